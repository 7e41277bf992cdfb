"""Per-run state shared by the driver and the directory syncer."""

import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO, Callable, Optional

from rich.console import Console

from .events import StatusEventBus, TransferState
from .output import OutputFormatter
from .progress import ProgressReporter
from .retry import DEFAULT_RETRY_POLICY, RetryingTransfer, RetryPolicy
from .session import DownloadSession


@dataclass
class RunOptions:
    """Options of one command line invocation."""

    path: Path = field(default_factory=lambda: Path("."))
    """Target directory (folder links) or file/directory (single links)"""

    progress: bool = True
    """Show progress lines and per-object messages"""

    stream: bool = False
    """Write the single object to standard output"""

    print_names: bool = False
    """Print the path or name of every downloaded object"""

    def __post_init__(self) -> None:
        if self.stream:
            self.progress = False


class RunContext:
    """Everything one run needs, passed explicitly instead of held globally.

    Builds the event bus, subscribes the transfer state and the progress
    reporter to it in that order, and attaches it to the session.
    """

    def __init__(
        self,
        session: DownloadSession,
        options: RunOptions,
        out: Optional[OutputFormatter] = None,
        console: Optional[Console] = None,
        binary_out: Optional[BinaryIO] = None,
        policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session = session
        self.options = options
        self.out = out or OutputFormatter()
        self.state = TransferState()
        self.reporter = ProgressReporter(
            self.state,
            show_progress=options.progress,
            stream=options.stream,
            console=console,
            binary_out=binary_out,
        )
        self.bus = StatusEventBus()
        self.bus.subscribe(self.state)
        self.bus.subscribe(self.reporter)
        self.session.watch_status(self.bus)
        self.transfer = RetryingTransfer(
            self.out, reporter=self.reporter, policy=policy, sleep=sleep
        )

    @property
    def show_progress(self) -> bool:
        return self.options.progress
