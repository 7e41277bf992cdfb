"""Classification of public share links."""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

_FILE_LINK_RE = re.compile(
    r"https?://mega(?:\.co)?\.nz/#!([a-z0-9_-]{8})!([a-z0-9_-]{43})",
    re.IGNORECASE,
)
_FOLDER_LINK_RE = re.compile(
    r"https?://mega(?:\.co)?\.nz/#F!([a-z0-9_-]{8})!([a-z0-9_-]{22})",
    re.IGNORECASE,
)


class LinkKind(Enum):
    """What a share link points to."""

    SINGLE = "single"
    FOLDER_EXPORT = "folder"


@dataclass(frozen=True)
class Link:
    """A parsed share link."""

    kind: LinkKind
    handle: str
    key: str
    url: str

    @property
    def is_folder(self) -> bool:
        return self.kind == LinkKind.FOLDER_EXPORT


def parse_link(text: str) -> Optional[Link]:
    """Classify a link string.

    Args:
        text: Raw link as given on the command line

    Returns:
        A ``Link`` for a single file or folder export link, or None if
        the string matches neither shape

    Examples:
        >>> parse_link("https://mega.nz/#F!abcdefgh!0123456789abcdefghijkl").kind
        <LinkKind.FOLDER_EXPORT: 'folder'>
        >>> parse_link("https://example.com/") is None
        True
    """
    match = _FILE_LINK_RE.fullmatch(text)
    if match:
        return Link(LinkKind.SINGLE, match.group(1), match.group(2), text)

    match = _FOLDER_LINK_RE.fullmatch(text)
    if match:
        return Link(LinkKind.FOLDER_EXPORT, match.group(1), match.group(2), text)

    return None
