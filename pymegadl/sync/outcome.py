"""Aggregated result of a directory sync."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class SyncOutcome:
    """Result of mirroring one remote directory subtree.

    A single failed child marks the whole subtree as failed, but the
    counters keep track of everything that did get downloaded.
    """

    success: bool = True
    """False if any directory or file in the subtree failed"""

    files_downloaded: int = 0
    """Number of files transferred successfully"""

    files_failed: int = 0
    """Number of files that failed (including local collisions)"""

    directories_created: int = 0
    """Number of local directories created"""

    failed_paths: list[Path] = field(default_factory=list)
    """Local paths of the failed files and directories"""

    def mark_failed(self, path: Path) -> None:
        self.success = False
        self.failed_paths.append(path)

    def merge(self, other: "SyncOutcome") -> None:
        """Fold a child subtree's outcome into this one."""
        self.success = self.success and other.success
        self.files_downloaded += other.files_downloaded
        self.files_failed += other.files_failed
        self.directories_created += other.directories_created
        self.failed_paths.extend(other.failed_paths)

    def __bool__(self) -> bool:
        return self.success
