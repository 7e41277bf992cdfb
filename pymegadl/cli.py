"""CLI interface for pymegadl."""

import logging
from pathlib import Path
from typing import Any

import click

from . import __version__
from .context import RunContext, RunOptions
from .downloader import LinkDownloader
from .exceptions import MegaConfigError, MegaUsageError
from .output import OutputFormatter
from .progress import prepare_binary_stdout
from .session import MegaSession

logger = logging.getLogger(__name__)

STREAM_PATH = "-"


@click.command()
@click.argument("links", nargs=-1)
@click.option(
    "--path",
    default=".",
    show_default=True,
    help="Local directory or file name to save data to ('-' streams to stdout)",
)
@click.option("--no-progress", is_flag=True, help="Disable progress bar")
@click.option(
    "--print-names", is_flag=True, help="Print names of downloaded files"
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(version=__version__)
@click.pass_context
def main(
    ctx: Any,
    links: tuple[str, ...],
    path: str,
    no_progress: bool,
    print_names: bool,
    verbose: bool,
) -> None:
    """Download exported files and folders from mega.nz.

    LINKS: One or more public file (#!handle!key) or folder (#F!handle!key)
    links. Files are saved into PATH (or as PATH if it is not an existing
    directory), folders are mirrored into the PATH directory. Existing
    local files are never overwritten.

    Examples:
        megadl 'https://mega.nz/#!abcdefgh!<key>'             # Download a file
        megadl --path ./dest 'https://mega.nz/#F!abcdefgh!<key>'  # Folder
        megadl --path - 'https://mega.nz/#!abcdefgh!<key>' | mpv -  # Stream
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%H:%M:%S",
        )
        logging.getLogger("pymegadl").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    out = OutputFormatter()
    stream = path == STREAM_PATH

    if not links:
        out.error("No links specified for download!")
        ctx.exit(1)

    if stream and len(links) != 1:
        out.error("Can't stream from multiple files!")
        ctx.exit(1)

    if stream:
        prepare_binary_stdout()

    options = RunOptions(
        path=Path(".") if stream else Path(path),
        progress=not no_progress,
        stream=stream,
        print_names=print_names,
    )

    session = None
    try:
        session = MegaSession()
        context = RunContext(session, options, out=out)
        success = LinkDownloader(context).download_all(links)
    except (MegaUsageError, MegaConfigError) as e:
        out.error(str(e))
        ctx.exit(1)
    except KeyboardInterrupt:
        out.warning("Download cancelled by user")
        ctx.exit(130)  # Standard exit code for SIGINT
    finally:
        if session is not None:
            session.close()

    if not success:
        ctx.exit(1)
