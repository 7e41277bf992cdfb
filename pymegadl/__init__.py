"""pymegadl - download public mega.nz file and folder links."""

__version__ = "0.1.0"

from .api import MegaClient  # noqa: E402
from .exceptions import (  # noqa: E402
    ErrorKind,
    MegaAPIError,
    MegaConfigError,
    MegaDecryptionError,
    MegaError,
    MegaFilesystemError,
    MegaIntegrityError,
    MegaLocalCollisionError,
    MegaNetworkError,
    MegaStructuralError,
    MegaUsageError,
)
from .links import Link, LinkKind, parse_link  # noqa: E402
from .models import NodeKind, RemoteNode  # noqa: E402
from .session import DownloadSession, MegaSession  # noqa: E402

__all__ = [
    "DownloadSession",
    "ErrorKind",
    "Link",
    "LinkKind",
    "MegaAPIError",
    "MegaClient",
    "MegaConfigError",
    "MegaDecryptionError",
    "MegaError",
    "MegaFilesystemError",
    "MegaIntegrityError",
    "MegaLocalCollisionError",
    "MegaNetworkError",
    "MegaSession",
    "MegaStructuralError",
    "MegaUsageError",
    "NodeKind",
    "RemoteNode",
    "parse_link",
]
