"""Configuration for pymegadl, read from environment variables."""

import os
from typing import Optional

from .exceptions import MegaConfigError

DEFAULT_API_URL = "https://g.api.mega.co.nz"
DEFAULT_TIMEOUT = 60.0
DEFAULT_CHUNK_SIZE = 64 * 1024


class Config:
    """Runtime settings.

    Values come from the environment on every access so tests and
    callers can override them with ``os.environ`` or constructor
    arguments.

    Environment variables:
        MEGA_API_URL: Base URL of the API (default: https://g.api.mega.co.nz)
        MEGADL_TIMEOUT: Network timeout in seconds (default: 60)
        MEGADL_CHUNK_SIZE: Bytes read per network chunk (default: 65536)
    """

    def __init__(
        self,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        chunk_size: Optional[int] = None,
    ):
        self._api_url = api_url
        self._timeout = timeout
        self._chunk_size = chunk_size

    @property
    def api_url(self) -> str:
        url = self._api_url or os.environ.get("MEGA_API_URL") or DEFAULT_API_URL
        return url.rstrip("/")

    @property
    def timeout(self) -> float:
        if self._timeout is not None:
            return self._timeout
        value = _read_number("MEGADL_TIMEOUT", float, DEFAULT_TIMEOUT)
        if value <= 0:
            raise MegaConfigError("MEGADL_TIMEOUT must be positive")
        return value

    @property
    def chunk_size(self) -> int:
        if self._chunk_size is not None:
            return self._chunk_size
        value = _read_number("MEGADL_CHUNK_SIZE", int, DEFAULT_CHUNK_SIZE)
        if value <= 0:
            raise MegaConfigError("MEGADL_CHUNK_SIZE must be positive")
        return value


def _read_number(name, convert, default):
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return convert(raw)
    except ValueError as e:
        raise MegaConfigError(f"Invalid value for {name}: {raw!r}") from e


config = Config()
