"""Recursive mirroring of a remote directory onto a local directory."""

import logging
import time
from pathlib import Path

from ..context import RunContext
from ..exceptions import MegaError, MegaFilesystemError
from ..models import RemoteNode
from ..utils import join_remote_path
from .outcome import SyncOutcome

logger = logging.getLogger(__name__)


class DirectorySyncer:
    """Downloads a remote directory tree without touching existing local files.

    Existing local directories are reused, existing local files are
    reported as collisions and left alone. A failure anywhere marks the
    outcome as failed but never stops the remaining siblings.
    """

    def __init__(self, context: RunContext):
        """Initialize the directory syncer.

        Args:
            context: Run context holding the session, output and retry driver
        """
        self.context = context
        self.session = context.session
        self.out = context.out

    def sync(self, node: RemoteNode, local_path: Path, remote_path: str) -> SyncOutcome:
        """Mirror ``node`` and its descendants into ``local_path``.

        Args:
            node: Remote directory node
            local_path: Local directory to mirror into (created if missing)
            remote_path: Remote path of ``node``, used in messages

        Returns:
            Aggregated outcome of the subtree
        """
        outcome = SyncOutcome()

        try:
            if self._ensure_directory(local_path):
                outcome.directories_created += 1
        except MegaFilesystemError as e:
            self.out.error(str(e))
            outcome.mark_failed(local_path)
            return outcome

        for child in self.session.get_children(node):
            child_local = local_path / child.name
            child_remote = join_remote_path(remote_path, child.name)

            if child.is_file:
                if self.sync_file(child, child_local, child_remote):
                    outcome.files_downloaded += 1
                else:
                    outcome.files_failed += 1
                    outcome.mark_failed(child_local)
            else:
                outcome.merge(self.sync(child, child_local, child_remote))

        return outcome

    def _ensure_directory(self, local_path: Path) -> bool:
        """Make sure ``local_path`` is a directory.

        Symlinks are never followed, even when they point to a directory.

        Returns:
            True if the directory was created, False if it already existed

        Raises:
            MegaFilesystemError: If it can't be created or is not a directory
        """
        if local_path.is_symlink() or (
            local_path.exists() and not local_path.is_dir()
        ):
            raise MegaFilesystemError(
                f"Can't create local directory {local_path}: file exists"
            )
        if local_path.is_dir():
            return False

        if self.context.show_progress:
            self.out.info(f"D {local_path}")
        try:
            local_path.mkdir()
        except OSError as e:
            raise MegaFilesystemError(
                f"Can't create local directory {local_path}: {e}"
            ) from e
        logger.debug(f"Created directory {local_path}")
        return True

    def sync_file(self, node: RemoteNode, local_path: Path, remote_path: str) -> bool:
        """Download a single file node unless something already exists there.

        Args:
            node: Remote file node
            local_path: Target file path
            remote_path: Remote path of the file, used in messages

        Returns:
            True if the file was downloaded
        """
        if local_path.exists() or local_path.is_symlink():
            self.out.error(f"File already exists at {local_path}")
            return False

        if self.context.show_progress:
            self.out.info(f"F {local_path}")

        start = time.time()
        try:
            self.context.transfer.attempt(
                lambda: self.session.download_node(node, local_path),
                remote_path,
            )
        except MegaError:
            # Already reported by the retrying transfer
            return False
        finally:
            self.context.reporter.clear()

        logger.debug(f"Download of {remote_path} took {time.time() - start:.2f}s")
        if self.context.options.print_names:
            self.out.print(str(local_path))
        return True
