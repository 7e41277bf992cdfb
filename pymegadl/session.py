"""Download session: the boundary between orchestration and the remote service.

``DownloadSession`` is the contract the driver and the directory syncer
depend on. ``MegaSession`` implements it for public file links and folder
exports.
"""

from __future__ import annotations

import hashlib
import logging
import os
from pathlib import Path
from typing import Any, BinaryIO, Optional, Protocol

from . import crypto
from .api import MegaClient
from .events import ObjectIdentified, Progress, RawChunk, StatusEvent, StatusEventBus
from .exceptions import (
    MegaAPIError,
    MegaDecryptionError,
    MegaFilesystemError,
    MegaIntegrityError,
    MegaLocalCollisionError,
    MegaNetworkError,
)
from .models import NodeKind, RemoteNode
from .utils import join_remote_path, temp_path_for

logger = logging.getLogger(__name__)


class StreamCursor:
    """Bytes of a streamed object already written by earlier attempts.

    A retry decrypts from offset 0 again. The prefix that already went
    out is compared against a digest of the written bytes instead of
    being emitted twice.
    """

    def __init__(self, handle: str):
        self.handle = handle
        self.emitted = 0
        self._written = hashlib.sha256()
        self._replayed = hashlib.sha256()

    def restart(self) -> None:
        """Start a new attempt from offset 0."""
        self._replayed = hashlib.sha256()

    def take(self, position: int, data: bytes) -> bytes:
        """Return the part of ``data`` that was not written yet.

        Args:
            position: Offset of ``data`` in the plaintext
            data: Decrypted bytes

        Raises:
            MegaIntegrityError: If the replayed prefix differs from the
                bytes written by an earlier attempt
        """
        if position < self.emitted:
            overlap = data[: self.emitted - position]
            self._replayed.update(overlap)
            data = data[len(overlap) :]
            caught_up = position + len(overlap) == self.emitted
            if caught_up and self._replayed.digest() != self._written.digest():
                raise MegaIntegrityError(
                    "Retried stream differs from the data already written"
                )
        if data:
            self.emitted += len(data)
            self._written.update(data)
        return data


class DownloadSession(Protocol):
    """What the orchestration layer needs from a remote session."""

    def watch_status(self, bus: StatusEventBus) -> None:
        """Report lifecycle events of every following fetch to ``bus``."""

    def download_link(
        self, handle: str, key: str, local_path: Optional[Path]
    ) -> Optional[Path]:
        """Fetch a single file link into ``local_path``, or stream it if None."""

    def open_folder(self, handle: str, key: str) -> None:
        """Load the node tree of a folder export."""

    def list_roots(self) -> list[RemoteNode]:
        """Top-level nodes of the opened folder export."""

    def get_children(self, node: RemoteNode) -> list[RemoteNode]:
        """Direct children of a directory node."""

    def download_node(self, node: RemoteNode, local_path: Path) -> Path:
        """Fetch a file node of the opened folder export into ``local_path``."""

    def close(self) -> None:
        """Release network resources."""


class MegaSession:
    """Anonymous session for public links."""

    def __init__(self, client: Optional[MegaClient] = None):
        """Initialize the session.

        Args:
            client: API client (a default one is created if not provided)
        """
        self.client = client or MegaClient()
        self._bus: Optional[StatusEventBus] = None
        self._folder_handle: Optional[str] = None
        self._nodes: dict[str, RemoteNode] = {}
        self._children: dict[str, list[RemoteNode]] = {}
        self._stream: Optional[StreamCursor] = None

    def watch_status(self, bus: StatusEventBus) -> None:
        self._bus = bus

    def _emit(self, event: StatusEvent) -> None:
        if self._bus is not None:
            self._bus.emit(event)

    def close(self) -> None:
        self.client.close()

    # =========================
    # Single file links
    # =========================

    def download_link(
        self, handle: str, key: str, local_path: Optional[Path]
    ) -> Optional[Path]:
        """Download a public file link.

        Args:
            handle: 8 character public handle
            key: 43 character file key
            local_path: Existing directory (file is saved under its remote
                name), file path, or None to stream

        Returns:
            Path the file was saved to, None when streaming

        Raises:
            MegaLocalCollisionError: If the target file or its temporary
                file already exists
            MegaIntegrityError: If a retried stream differs from the bytes
                an earlier attempt already wrote
            MegaError: On any API, network or decryption failure
        """
        file_key = crypto.base64_url_decode(key)
        if len(file_key) != 32:
            raise MegaDecryptionError("Invalid file key length")

        info = self.client.get_download_info(handle=handle)
        name = self._file_name(info, file_key)
        self._emit(ObjectIdentified(name))

        if local_path is None:
            if self._stream is None or self._stream.handle != handle:
                self._stream = StreamCursor(handle)
            self._fetch(info, file_key, None)
            self._stream = None
            return None

        target = local_path / name if local_path.is_dir() else local_path
        self._fetch(info, file_key, target)
        return target

    # =========================
    # Folder exports
    # =========================

    def open_folder(self, handle: str, key: str) -> None:
        """Load and decrypt the node tree of a folder export.

        Nodes whose key or attributes can't be decrypted are skipped with
        a warning in the log.
        """
        folder_key = crypto.base64_url_decode(key)
        if len(folder_key) != 16:
            raise MegaDecryptionError("Invalid folder key length")

        raw_nodes = self.client.list_folder(handle)
        self._folder_handle = handle
        self._nodes = {}
        self._children = {}

        for raw in raw_nodes:
            node = self._decrypt_node(raw, folder_key)
            if node is not None:
                self._nodes[node.handle] = node

        for node in self._nodes.values():
            if node.parent_handle in self._nodes:
                self._children.setdefault(node.parent_handle, []).append(node)
            else:
                node.parent_handle = None

        for root in self.list_roots():
            self._assign_paths(root, f"/{root.name}")

        logger.debug(f"Folder {handle} contains {len(self._nodes)} nodes")

    def _decrypt_node(
        self, raw: dict[str, Any], folder_key: bytes
    ) -> Optional[RemoteNode]:
        node_type = raw.get("t")
        if node_type not in (NodeKind.FILE.value, NodeKind.DIRECTORY.value):
            return None

        try:
            encrypted_key = str(raw.get("k", "")).split("/")[0].split(":")[-1]
            node_key = crypto.decrypt_key(
                crypto.base64_url_decode(encrypted_key), folder_key
            )
            attributes = crypto.decrypt_attributes(
                raw.get("a", ""), crypto.attribute_key(node_key)
            )
        except MegaDecryptionError as e:
            logger.warning(f"Skipping node {raw.get('h')}: {e}")
            return None

        return RemoteNode(
            handle=raw["h"],
            name=str(attributes.get("n", raw["h"])),
            kind=NodeKind(node_type),
            parent_handle=raw.get("p"),
            size=int(raw.get("s", 0)),
            key=node_key,
        )

    def _assign_paths(self, node: RemoteNode, path: str) -> None:
        node.path = path
        for child in self._children.get(node.handle, []):
            self._assign_paths(child, join_remote_path(path, child.name))

    def list_roots(self) -> list[RemoteNode]:
        return [node for node in self._nodes.values() if node.parent_handle is None]

    def get_children(self, node: RemoteNode) -> list[RemoteNode]:
        return list(self._children.get(node.handle, []))

    def download_node(self, node: RemoteNode, local_path: Path) -> Path:
        """Download a file node of the opened folder export.

        Raises:
            MegaLocalCollisionError: If ``local_path`` already exists
            MegaError: On any API, network or decryption failure
        """
        if self._folder_handle is None:
            raise MegaAPIError("No folder export is open")
        if not node.is_file:
            raise MegaAPIError(f"{node.path} is not a file")

        self._emit(ObjectIdentified(node.name))
        info = self.client.get_download_info(
            node_handle=node.handle, folder_handle=self._folder_handle
        )
        self._fetch(info, node.key, local_path)
        return local_path

    # =========================
    # Transfer
    # =========================

    def _file_name(self, info: dict[str, Any], file_key: bytes) -> str:
        attributes = crypto.decrypt_attributes(
            info["at"], crypto.attribute_key(file_key)
        )
        name = attributes.get("n")
        if not isinstance(name, str) or not name:
            raise MegaDecryptionError("File has no name attribute")
        return name

    def _fetch(
        self, info: dict[str, Any], file_key: bytes, target: Optional[Path]
    ) -> None:
        """Download, decrypt and verify content.

        Content goes to a temporary file next to ``target`` which is
        renamed on success. Only a temporary file created by this call is
        ever removed. With ``target`` None the plaintext is emitted as
        ``RawChunk`` events, skipping what earlier attempts already wrote.
        """
        if target is not None and (target.exists() or target.is_symlink()):
            raise MegaLocalCollisionError(f"File already exists at {target}")

        aes_key, nonce, meta_mac = crypto.unpack_file_key(file_key)
        decryptor = crypto.ctr_decryptor(aes_key, nonce)
        mac = crypto.ChunkMacCalculator(aes_key, nonce)
        total = int(info.get("s", 0))
        done = 0

        temp_path = temp_path_for(target) if target is not None else None
        handle: Optional[BinaryIO] = None
        owned_temp: Optional[Path] = None
        try:
            if temp_path is not None:
                handle = self._open_temp(temp_path)
                owned_temp = temp_path
            elif self._stream is not None:
                self._stream.restart()

            self._emit(Progress(0, total))
            with self.client.stream(info["g"]) as response:
                for chunk in response.iter_bytes(self.client.settings.chunk_size):
                    plain = decryptor.update(chunk)
                    mac.update(plain)
                    if handle is not None:
                        handle.write(plain)
                    else:
                        self._stream_out(done, plain)
                    done += len(chunk)
                    self._emit(Progress(done, total))

            if done != total:
                raise MegaNetworkError(
                    f"Transfer ended early: got {done} of {total} bytes"
                )
            mac.verify(meta_mac)

            if handle is not None and temp_path is not None and target is not None:
                handle.close()
                handle = None
                os.replace(temp_path, target)
                owned_temp = None
        except OSError as e:
            raise MegaFilesystemError(f"Failed to write {target}: {e}") from e
        finally:
            if handle is not None:
                handle.close()
            if owned_temp is not None and owned_temp.exists():
                owned_temp.unlink()

    def _open_temp(self, temp_path: Path) -> BinaryIO:
        try:
            return open(temp_path, "xb")
        except FileExistsError as e:
            raise MegaLocalCollisionError(f"File already exists at {temp_path}") from e
        except OSError as e:
            raise MegaFilesystemError(f"Can't open {temp_path}: {e}") from e

    def _stream_out(self, position: int, plain: bytes) -> None:
        if self._stream is not None:
            plain = self._stream.take(position, plain)
        if plain:
            self._emit(RawChunk(plain))
