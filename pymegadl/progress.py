"""Progress display and raw output for transfers.

This module provides the observer that turns status events into a
single in-place progress line, or into raw bytes on standard output
when streaming.
"""

import os
import sys
from typing import BinaryIO, Optional

from rich.console import Console
from rich.control import Control
from rich.segment import ControlType

from .events import Progress, RawChunk, StatusEvent, TransferState
from .utils import format_percent, format_size

# Carriage return followed by erase-to-end-of-line
_CLEAR_LINE = Control(ControlType.CARRIAGE_RETURN, (ControlType.ERASE_IN_LINE, 0))


def prepare_binary_stdout() -> None:
    """Switch standard output to binary mode on platforms that translate newlines."""
    if os.name == "nt":
        import msvcrt

        sys.stdout.flush()
        msvcrt.setmode(sys.stdout.fileno(), os.O_BINARY)


class ProgressReporter:
    """Status event observer rendering progress or forwarding raw bytes.

    The progress line starts with the current object name and is redrawn
    in place on every ``Progress`` event. Nothing is drawn when the
    console is not a terminal.
    """

    def __init__(
        self,
        state: TransferState,
        show_progress: bool = True,
        stream: bool = False,
        console: Optional[Console] = None,
        binary_out: Optional[BinaryIO] = None,
    ) -> None:
        """Initialize the reporter.

        Args:
            state: Transfer state updated by the same event bus
            show_progress: Render the progress line
            stream: Forward ``RawChunk`` bytes to ``binary_out``
            console: Console for the progress line (default: stdout)
            binary_out: Binary sink for streamed bytes (default: stdout buffer)
        """
        self.state = state
        self.stream = stream
        # Streaming owns stdout, the progress line would corrupt it
        self.show_progress = show_progress and not stream
        self.console = console or Console(highlight=False, soft_wrap=True)
        self._binary_out = binary_out
        self._line_active = False

    @property
    def binary_out(self) -> BinaryIO:
        if self._binary_out is None:
            return sys.stdout.buffer
        return self._binary_out

    def __call__(self, event: StatusEvent) -> None:
        if isinstance(event, RawChunk):
            if self.stream:
                self.binary_out.write(event.data)
                self.binary_out.flush()
        elif isinstance(event, Progress):
            if self.show_progress:
                self._draw()

    def format_line(self) -> str:
        """Format the progress line for the current transfer.

        Returns:
            Line like "file.bin: 42.00% - 4.2 MB of 10.0 MB (1.1 MB/s)"
        """
        name = self.state.current_name or "?"
        done = self.state.bytes_transferred
        total = self.state.total_bytes
        return (
            f"{name}: {format_percent(done, total)} - "
            f"{format_size(done)} of {format_size(total)} "
            f"({format_size(int(self.state.rate))}/s)"
        )

    def _draw(self) -> None:
        if not self.console.is_terminal:
            return
        self.console.control(_CLEAR_LINE)
        self.console.print(self.format_line(), end="", markup=False)
        self._line_active = True

    def clear(self) -> None:
        """Erase the progress line, if one is drawn."""
        if self._line_active:
            self.console.control(_CLEAR_LINE)
            self._line_active = False
