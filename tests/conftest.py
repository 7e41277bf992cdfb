"""Shared fixtures for pymegadl tests."""

import base64
import json
import os
from pathlib import Path
from typing import Optional

import pytest
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from pymegadl.context import RunContext, RunOptions
from pymegadl.crypto import ChunkMacCalculator
from pymegadl.events import ObjectIdentified, Progress, RawChunk
from pymegadl.models import NodeKind, RemoteNode
from pymegadl.output import OutputFormatter

# =============================================================================
# Fake session for orchestration tests
# =============================================================================


class FakeSession:
    """In-memory DownloadSession.

    ``failures`` maps a node handle (or public handle) to a list of
    exceptions raised by the next fetches, one per call.
    """

    def __init__(self):
        self.bus = None
        self.roots: list[RemoteNode] = []
        self.children: dict[str, list[RemoteNode]] = {}
        self.contents: dict[str, bytes] = {}
        self.links: dict[str, tuple[str, bytes]] = {}
        self.failures: dict[str, list[Exception]] = {}
        self.open_error: Optional[Exception] = None
        self.calls: list[tuple[str, str]] = []
        self.closed = False
        self._counter = 0

    def _handle(self) -> str:
        self._counter += 1
        return f"n{self._counter:07d}"

    def add_dir(self, name: str, parent: Optional[RemoteNode] = None) -> RemoteNode:
        node = RemoteNode(
            handle=self._handle(),
            name=name,
            kind=NodeKind.DIRECTORY,
            path=f"{parent.path}/{name}" if parent else f"/{name}",
            parent_handle=parent.handle if parent else None,
        )
        if parent is None:
            self.roots.append(node)
        else:
            self.children.setdefault(parent.handle, []).append(node)
        return node

    def add_file(
        self,
        name: str,
        parent: RemoteNode,
        content: bytes = b"data",
        failures: Optional[list[Exception]] = None,
    ) -> RemoteNode:
        node = RemoteNode(
            handle=self._handle(),
            name=name,
            kind=NodeKind.FILE,
            path=f"{parent.path}/{name}",
            parent_handle=parent.handle,
            size=len(content),
        )
        self.children.setdefault(parent.handle, []).append(node)
        self.contents[node.handle] = content
        if failures:
            self.failures[node.handle] = list(failures)
        return node

    def _emit(self, event) -> None:
        if self.bus is not None:
            self.bus.emit(event)

    def _maybe_fail(self, handle: str) -> None:
        pending = self.failures.get(handle)
        if pending:
            raise pending.pop(0)

    def watch_status(self, bus) -> None:
        self.bus = bus

    def download_link(self, handle, key, local_path):
        self.calls.append(("download_link", handle))
        name, content = self.links[handle]
        self._emit(ObjectIdentified(name))
        self._maybe_fail(handle)
        self._emit(Progress(0, len(content)))
        if local_path is None:
            self._emit(RawChunk(content))
            self._emit(Progress(len(content), len(content)))
            return None
        target = local_path / name if local_path.is_dir() else local_path
        target.write_bytes(content)
        self._emit(Progress(len(content), len(content)))
        return target

    def open_folder(self, handle, key) -> None:
        self.calls.append(("open_folder", handle))
        if self.open_error is not None:
            raise self.open_error

    def list_roots(self):
        return list(self.roots)

    def get_children(self, node):
        return list(self.children.get(node.handle, []))

    def download_node(self, node, local_path):
        self.calls.append(("download_node", node.path))
        self._emit(ObjectIdentified(node.name))
        self._maybe_fail(node.handle)
        content = self.contents[node.handle]
        local_path.write_bytes(content)
        self._emit(Progress(len(content), len(content)))
        return local_path

    def close(self) -> None:
        self.closed = True

    def fetched(self, method: str) -> list[str]:
        return [target for name, target in self.calls if name == method]


@pytest.fixture
def session():
    """Provide an empty fake session."""
    return FakeSession()


@pytest.fixture
def sleeps():
    """Record requested sleep durations instead of sleeping."""
    return []


@pytest.fixture
def make_context(session, sleeps):
    """Build a RunContext around the fake session."""

    def factory(**option_kwargs) -> RunContext:
        options = RunOptions(**option_kwargs)
        return RunContext(
            session,
            options,
            out=OutputFormatter(),
            sleep=sleeps.append,
        )

    return factory


# =============================================================================
# Encryption helpers for session and crypto tests
# =============================================================================


def b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b))


def encrypt_attributes(attributes: dict, key: bytes) -> str:
    data = b"MEGA" + json.dumps(attributes).encode("utf-8")
    data += bytes(-len(data) % 16)
    encryptor = Cipher(algorithms.AES(key), modes.CBC(bytes(16))).encryptor()
    return b64(encryptor.update(data) + encryptor.finalize())


def encrypt_key(node_key: bytes, key: bytes) -> str:
    encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
    return b64(encryptor.update(node_key) + encryptor.finalize())


class EncryptedFile:
    """A file encrypted the way the service stores it."""

    def __init__(self, name: str, plaintext: bytes):
        self.name = name
        self.plaintext = plaintext
        self.aes_key = os.urandom(16)
        self.nonce = os.urandom(8)

        mac = ChunkMacCalculator(self.aes_key, self.nonce)
        mac.update(plaintext)
        self.meta_mac = mac.digest()

        tail = self.nonce + self.meta_mac
        self.file_key = xor(self.aes_key, tail) + tail

        encryptor = Cipher(
            algorithms.AES(self.aes_key), modes.CTR(self.nonce + bytes(8))
        ).encryptor()
        self.ciphertext = encryptor.update(plaintext) + encryptor.finalize()
        self.attributes = encrypt_attributes({"n": name}, self.aes_key)

    @property
    def key_string(self) -> str:
        return b64(self.file_key)


@pytest.fixture
def encrypted_file():
    """Factory for encrypted files."""

    def factory(name: str = "movie.bin", plaintext: Optional[bytes] = None):
        if plaintext is None:
            plaintext = os.urandom(300 * 1024 + 17)
        return EncryptedFile(name, plaintext)

    return factory


@pytest.fixture
def tmp_target(tmp_path) -> Path:
    """Provide an empty download directory."""
    target = tmp_path / "downloads"
    target.mkdir()
    return target


class FolderExportBuilder:
    """Builds the raw node list returned by a folder listing."""

    def __init__(self, handle: str = "fold-_01"):
        self.handle = handle
        self.folder_key = os.urandom(16)
        self.nodes: list[dict] = []
        self.files: dict[str, EncryptedFile] = {}
        self._counter = 0

    @property
    def key_string(self) -> str:
        return b64(self.folder_key)

    def _node_handle(self) -> str:
        self._counter += 1
        return f"h{self._counter:07d}"

    def add_dir(self, name: str, parent: Optional[str] = None) -> str:
        node_key = os.urandom(16)
        handle = self._node_handle()
        self.nodes.append(
            {
                "h": handle,
                "p": parent or "outside0",
                "t": 1,
                "a": encrypt_attributes({"n": name}, node_key),
                "k": f"{self.handle}:{encrypt_key(node_key, self.folder_key)}",
                "s": 0,
            }
        )
        return handle

    def add_file(self, parent: str, file: EncryptedFile) -> str:
        handle = self._node_handle()
        self.nodes.append(
            {
                "h": handle,
                "p": parent,
                "t": 0,
                "a": file.attributes,
                "k": f"{self.handle}:{encrypt_key(file.file_key, self.folder_key)}",
                "s": len(file.plaintext),
            }
        )
        self.files[handle] = file
        return handle


@pytest.fixture
def folder_export():
    """Provide a folder export builder."""
    return FolderExportBuilder()
