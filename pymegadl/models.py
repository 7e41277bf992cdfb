"""Data models for remote nodes."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class NodeKind(Enum):
    """Kind of a remote tree entry."""

    FILE = 0
    DIRECTORY = 1


@dataclass
class RemoteNode:
    """An entry of a folder export tree.

    Nodes are owned by the session that listed them. Children are looked
    up through ``DownloadSession.get_children``.
    """

    handle: str
    """Node handle as returned by the API"""

    name: str
    """Decrypted display name"""

    kind: NodeKind
    """File or directory"""

    path: str = ""
    """Slash separated path from the export root, starting with '/'"""

    parent_handle: Optional[str] = None
    """Handle of the parent node, None for the export root"""

    size: int = 0
    """File size in bytes (0 for directories)"""

    key: bytes = field(default=b"", repr=False)
    """Decrypted node key"""

    @property
    def is_file(self) -> bool:
        return self.kind == NodeKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind == NodeKind.DIRECTORY
