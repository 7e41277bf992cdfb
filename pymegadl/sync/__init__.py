"""Directory mirroring for folder exports."""

from .engine import DirectorySyncer
from .outcome import SyncOutcome

__all__ = [
    "DirectorySyncer",
    "SyncOutcome",
]
