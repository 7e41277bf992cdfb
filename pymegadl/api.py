"""API client for public Mega links."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import httpx

from .config import Config, config
from .exceptions import MegaAPIError, MegaNetworkError

logger = logging.getLogger(__name__)

# Negative numeric replies of the API
API_ERRORS: dict[int, str] = {
    -1: "EINTERNAL",
    -2: "EARGS",
    -3: "EAGAIN",
    -4: "ERATELIMIT",
    -5: "EFAILED",
    -6: "ETOOMANY",
    -7: "ERANGE",
    -8: "EEXPIRED",
    -9: "ENOENT",
    -10: "ECIRCULAR",
    -11: "EACCESS",
    -12: "EEXIST",
    -13: "EINCOMPLETE",
    -14: "EKEY",
    -15: "ESID",
    -16: "EBLOCKED",
    -17: "EOVERQUOTA",
    -18: "ETEMPUNAVAIL",
    -19: "ETOOMANYCONNECTIONS",
}

# Codes that mean "try again later" rather than "this will never work"
TRANSIENT_API_ERRORS = frozenset({-3, -4, -18, -19})


def raise_for_api_error(code: int, context: str) -> None:
    """Raise the exception matching a numeric API reply.

    Args:
        code: Negative API error code
        context: Command description for the message

    Raises:
        MegaNetworkError: For transient codes
        MegaAPIError: For everything else
    """
    name = API_ERRORS.get(code, "EUNKNOWN")
    message = f"{context} failed: {name} ({code})"
    if code in TRANSIENT_API_ERRORS:
        raise MegaNetworkError(message)
    raise MegaAPIError(message, code=code)


class MegaClient:
    """Client for the anonymous parts of the Mega API."""

    def __init__(
        self,
        settings: Config | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the API client.

        Args:
            settings: Optional settings (uses the global config if not provided)
            transport: Optional httpx transport, mainly for tests
        """
        self.settings = settings or config
        self.api_url = self.settings.api_url
        self.timeout = self.settings.timeout
        self._transport = transport
        self._sequence = 0
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        """Get or create the httpx client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(
                timeout=httpx.Timeout(self.timeout),
                follow_redirects=True,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        """Close the client and release connections."""
        if self._client is not None and not self._client.is_closed:
            self._client.close()
            self._client = None

    def _request(
        self, command: dict[str, Any], folder_handle: str | None = None
    ) -> Any:
        """Send a single API command.

        Args:
            command: Command dictionary, e.g. {"a": "g", "p": handle}
            folder_handle: Folder export handle the command runs in

        Returns:
            The command's reply

        Raises:
            MegaNetworkError: On transport errors, 5xx/429 replies and
                transient API codes
            MegaAPIError: On any other failure
        """
        self._sequence += 1
        params: dict[str, Any] = {"id": self._sequence}
        if folder_handle:
            params["n"] = folder_handle

        logger.debug(f"API command {command.get('a')} (id={self._sequence})")
        url = f"{self.api_url}/cs"
        try:
            response = self._get_client().post(url, params=params, json=[command])
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status_code = e.response.status_code
            message = f"API request failed with status {status_code}"
            if status_code == 429 or 500 <= status_code < 600:
                raise MegaNetworkError(message) from e
            raise MegaAPIError(message) from e
        except httpx.RequestError as e:
            raise MegaNetworkError(f"Network error: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise MegaAPIError("Invalid JSON response from server") from e

        context = f"API command '{command.get('a')}'"
        if isinstance(data, int):
            raise_for_api_error(data, context)
        if not isinstance(data, list) or not data:
            raise MegaAPIError(f"{context} returned an unexpected response")

        reply = data[0]
        if isinstance(reply, int) and reply < 0:
            raise_for_api_error(reply, context)
        return reply

    # =========================
    # Download Operations
    # =========================

    def get_download_info(
        self,
        handle: str | None = None,
        node_handle: str | None = None,
        folder_handle: str | None = None,
    ) -> dict[str, Any]:
        """Request the download URL and attributes of a file.

        Args:
            handle: Public file handle (single file links)
            node_handle: Node handle inside a folder export
            folder_handle: Folder export handle, required with node_handle

        Returns:
            Reply with "g" (download URL), "s" (size) and "at" (attributes)
        """
        command: dict[str, Any] = {"a": "g", "g": 1, "ssl": 2}
        if node_handle is not None:
            command["n"] = node_handle
        else:
            command["p"] = handle

        reply = self._request(command, folder_handle=folder_handle)
        if not isinstance(reply, dict):
            raise MegaAPIError("Download request returned an unexpected response")
        if isinstance(reply.get("e"), int) and reply["e"] < 0:
            raise_for_api_error(reply["e"], "Download request")
        if not reply.get("g") or "at" not in reply:
            raise MegaAPIError("Download request returned no download URL")
        return reply

    def list_folder(self, folder_handle: str) -> list[dict[str, Any]]:
        """List every node of a folder export.

        Args:
            folder_handle: Folder export handle

        Returns:
            Raw node dictionaries ("h", "p", "t", "a", "k", "s")
        """
        reply = self._request({"a": "f", "c": 1, "ca": 1, "r": 1}, folder_handle)
        if not isinstance(reply, dict) or not isinstance(reply.get("f"), list):
            raise MegaAPIError("Folder listing returned an unexpected response")
        return reply["f"]

    @contextmanager
    def stream(self, url: str) -> Iterator[httpx.Response]:
        """Open a streaming GET on a download URL.

        Raises:
            MegaNetworkError: On transport errors and HTTP errors
        """
        try:
            with self._get_client().stream("GET", url) as response:
                response.raise_for_status()
                yield response
        except httpx.HTTPStatusError as e:
            raise MegaNetworkError(f"Download failed: {e}") from e
        except httpx.RequestError as e:
            raise MegaNetworkError(f"Network error during download: {e}") from e
