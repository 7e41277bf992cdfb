"""Per-link orchestration: classify, then fetch a file or mirror a folder."""

import logging
from collections.abc import Iterable

from .context import RunContext
from .exceptions import (
    MegaError,
    MegaFilesystemError,
    MegaStructuralError,
    MegaUsageError,
)
from .links import Link, LinkKind, parse_link
from .models import RemoteNode
from .sync import DirectorySyncer

logger = logging.getLogger(__name__)


class LinkDownloader:
    """Processes share links one after another.

    Failures of one link are reported and recorded; they never stop the
    remaining links, except a folder link in streaming mode, which
    aborts the run.
    """

    def __init__(self, context: RunContext):
        """Initialize the downloader.

        Args:
            context: Run context for this invocation
        """
        self.context = context
        self.session = context.session
        self.out = context.out
        self.options = context.options
        self.syncer = DirectorySyncer(context)

    def download_all(self, urls: Iterable[str]) -> bool:
        """Download every link.

        Args:
            urls: Link strings as given on the command line

        Returns:
            True if every valid link succeeded

        Raises:
            MegaUsageError: If a folder link is met in streaming mode
        """
        success = True
        for url in urls:
            link = parse_link(url)
            if link is None:
                self.out.warning(f"Skipping invalid Mega download link: {url}")
                continue

            if link.kind == LinkKind.SINGLE:
                ok = self.download_single(link)
            else:
                ok = self.download_folder(link)

            if not ok:
                success = False
        return success

    def download_single(self, link: Link) -> bool:
        """Download a single file link.

        Returns:
            True if the file was downloaded
        """
        target = None if self.options.stream else self.options.path
        try:
            self.context.transfer.attempt(
                lambda: self.session.download_link(link.handle, link.key, target),
                f"'{link.url}'",
            )
        except MegaError:
            # Already reported by the retrying transfer
            return False
        finally:
            self.context.reporter.clear()

        name = self.context.state.current_name
        if self.context.show_progress:
            self.out.info(f"Downloaded {name}")
        if self.options.print_names and not self.options.stream:
            self.out.print(str(name))
        return True

    def download_folder(self, link: Link) -> bool:
        """Mirror a folder export into the target directory.

        Returns:
            True if every node of the export was downloaded

        Raises:
            MegaUsageError: In streaming mode
        """
        if self.options.stream:
            raise MegaUsageError("Can't stream from a directory!")

        try:
            self.session.open_folder(link.handle, link.key)
        except MegaError as e:
            self.out.error(f"Can't open folder '{link.url}': {e}")
            return False

        try:
            root = self._single_root()
            self._check_target_directory()
        except MegaError as e:
            self.out.error(str(e))
            return False

        outcome = self.syncer.sync(root, self.options.path, root.path)
        logger.debug(
            f"Folder {link.handle}: {outcome.files_downloaded} downloaded, "
            f"{outcome.files_failed} failed, "
            f"{outcome.directories_created} directories created"
        )
        return outcome.success

    def _single_root(self) -> RemoteNode:
        roots = self.session.list_roots()
        if len(roots) != 1:
            raise MegaStructuralError(
                f"Folder export has {len(roots)} top-level nodes, expected exactly one"
            )
        return roots[0]

    def _check_target_directory(self) -> None:
        path = self.options.path
        if path.is_symlink() or not path.is_dir():
            raise MegaFilesystemError(f"{path} must be a directory")
