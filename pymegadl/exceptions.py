"""Exceptions raised by pymegadl.

Every error carries an ``ErrorKind``. Retry decisions switch on the kind:
only ``ErrorKind.NETWORK`` is treated as transient.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Closed set of failure classes."""

    LOCAL_COLLISION = "local-collision"
    FILESYSTEM = "filesystem"
    NETWORK = "network"
    PROTOCOL = "protocol"
    STRUCTURAL = "structural"
    CONFIG = "config"

    @property
    def is_retryable(self) -> bool:
        return self is ErrorKind.NETWORK


class MegaError(Exception):
    """Base exception for all pymegadl errors."""

    kind: ErrorKind = ErrorKind.PROTOCOL

    def __init__(self, message: str, kind: Optional[ErrorKind] = None):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind

    @property
    def is_retryable(self) -> bool:
        return self.kind.is_retryable


class MegaConfigError(MegaError):
    """Invalid configuration value."""

    kind = ErrorKind.CONFIG


class MegaNetworkError(MegaError):
    """Transport level failure, worth retrying."""

    kind = ErrorKind.NETWORK


class MegaAPIError(MegaError):
    """The API rejected a command."""

    kind = ErrorKind.PROTOCOL

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class MegaDecryptionError(MegaError):
    """Key or attribute material could not be decrypted."""

    kind = ErrorKind.PROTOCOL


class MegaIntegrityError(MegaError):
    """Downloaded content failed the MAC check."""

    kind = ErrorKind.PROTOCOL


class MegaLocalCollisionError(MegaError):
    """Target file already exists locally."""

    kind = ErrorKind.LOCAL_COLLISION


class MegaFilesystemError(MegaError):
    """Local directory could not be created or used."""

    kind = ErrorKind.FILESYSTEM


class MegaStructuralError(MegaError):
    """Folder export does not resolve to exactly one root node."""

    kind = ErrorKind.STRUCTURAL


class MegaUsageError(MegaError):
    """Options are invalid for the requested mode."""

    kind = ErrorKind.CONFIG
