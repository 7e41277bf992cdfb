"""Transfer status events and their synchronous dispatch.

The session reports what it is doing through a ``StatusEventBus``. Every
observer runs on the calling thread, in registration order, before the
session continues with the transfer.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ObjectIdentified:
    """The name of the object being transferred became known."""

    name: str


@dataclass(frozen=True)
class Progress:
    """Incremental transfer progress."""

    bytes_transferred: int
    total_bytes: int


@dataclass(frozen=True)
class RawChunk:
    """Decrypted bytes, only emitted when streaming to standard output."""

    data: bytes


StatusEvent = Union[ObjectIdentified, Progress, RawChunk]
StatusObserver = Callable[[StatusEvent], None]


class StatusEventBus:
    """Fan-out point for transfer status events."""

    def __init__(self) -> None:
        self._observers: list[StatusObserver] = []

    def subscribe(self, observer: StatusObserver) -> None:
        """Register an observer. Observers are called in registration order."""
        self._observers.append(observer)

    def emit(self, event: StatusEvent) -> None:
        """Deliver an event to every observer before returning."""
        for observer in self._observers:
            observer(event)


class TransferState:
    """Progress of the current fetch.

    ``current_name`` survives ``reset()`` so the name of the last
    identified object can still be reported after the fetch returns.
    """

    def __init__(self) -> None:
        self.current_name: Optional[str] = None
        self.bytes_transferred = 0
        self.total_bytes = 0
        self.started_at = time.monotonic()

    def reset(self) -> None:
        self.bytes_transferred = 0
        self.total_bytes = 0
        self.started_at = time.monotonic()

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.started_at

    @property
    def rate(self) -> float:
        """Average transfer rate in bytes per second."""
        elapsed = self.elapsed
        if elapsed <= 0:
            return 0.0
        return self.bytes_transferred / elapsed

    def __call__(self, event: StatusEvent) -> None:
        if isinstance(event, ObjectIdentified):
            logger.debug(f"Transferring {event.name}")
            self.reset()
            self.current_name = event.name
        elif isinstance(event, Progress):
            self.bytes_transferred = event.bytes_transferred
            self.total_bytes = event.total_bytes
