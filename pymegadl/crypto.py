"""Key handling and content decryption for public links.

Mega keys are URL-safe base64 strings. File keys are 32 bytes: the AES
key is the XOR of both halves, followed by an 8 byte CTR nonce and an
8 byte condensed MAC. Folder keys are plain 16 byte AES keys.
"""

import base64
import binascii
import json
from typing import Any

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from .exceptions import MegaDecryptionError, MegaIntegrityError

_ATTRIBUTE_PREFIX = b"MEGA{"
_BLOCK_SIZE = 16
_FIRST_CHUNK_SIZE = 128 * 1024
_MAX_CHUNK_SIZE = 1024 * 1024


def base64_url_decode(data: str) -> bytes:
    """Decode URL-safe base64 without padding.

    Examples:
        >>> base64_url_decode("AAEC")
        b'\\x00\\x01\\x02'
    """
    try:
        return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))
    except (binascii.Error, ValueError) as e:
        raise MegaDecryptionError(f"Invalid key encoding: {data!r}") from e


def _xor(a: bytes, b: bytes) -> bytes:
    return bytes(x ^ y for x, y in zip(a, b))


def unpack_file_key(file_key: bytes) -> tuple[bytes, bytes, bytes]:
    """Split a 32 byte file key.

    Returns:
        Tuple of (aes_key, ctr_nonce, meta_mac)
    """
    if len(file_key) != 32:
        raise MegaDecryptionError(f"File key must be 32 bytes, got {len(file_key)}")
    return _xor(file_key[:16], file_key[16:]), file_key[16:24], file_key[24:32]


def attribute_key(node_key: bytes) -> bytes:
    """Key used for attributes: file keys are folded, folder keys used as is."""
    if len(node_key) == 32:
        return _xor(node_key[:16], node_key[16:])
    return node_key


def decrypt_key(encrypted: bytes, key: bytes) -> bytes:
    """Decrypt node key material with AES-ECB."""
    if not encrypted or len(encrypted) % _BLOCK_SIZE:
        raise MegaDecryptionError("Encrypted key has invalid length")
    decryptor = Cipher(algorithms.AES(key), modes.ECB()).decryptor()
    return decryptor.update(encrypted) + decryptor.finalize()


def decrypt_attributes(encoded: str, key: bytes) -> dict[str, Any]:
    """Decrypt a node's attribute blob.

    Args:
        encoded: URL-safe base64 attribute string
        key: 16 byte attribute key

    Returns:
        Attribute dictionary, containing at least "n" (the name)

    Raises:
        MegaDecryptionError: If the key is wrong or the blob is malformed
    """
    data = base64_url_decode(encoded)
    if not data or len(data) % _BLOCK_SIZE:
        raise MegaDecryptionError("Attribute blob has invalid length")

    decryptor = Cipher(algorithms.AES(key), modes.CBC(bytes(16))).decryptor()
    plain = (decryptor.update(data) + decryptor.finalize()).rstrip(b"\0")

    if not plain.startswith(_ATTRIBUTE_PREFIX):
        raise MegaDecryptionError("Can't decrypt node attributes, wrong key?")
    try:
        attributes = json.loads(plain[4:].decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        raise MegaDecryptionError("Malformed node attributes") from e
    if not isinstance(attributes, dict):
        raise MegaDecryptionError("Malformed node attributes")
    return attributes


def ctr_decryptor(key: bytes, nonce: bytes) -> Any:
    """Create an AES-CTR decryptor starting at offset 0."""
    return Cipher(algorithms.AES(key), modes.CTR(nonce + bytes(8))).decryptor()


def chunk_size(index: int) -> int:
    """Size of the MAC chunk with the given index.

    Chunks start at 128 KiB, grow by 128 KiB and stay at 1 MiB.
    """
    return min((index + 1) * _FIRST_CHUNK_SIZE, _MAX_CHUNK_SIZE)


def condense_mac(file_mac: bytes) -> bytes:
    """Fold a 16 byte file MAC into the 8 byte value stored in the key."""
    return _xor(file_mac[0:4], file_mac[4:8]) + _xor(file_mac[8:12], file_mac[12:16])


class ChunkMacCalculator:
    """Incremental CBC-MAC over the plaintext, in Mega's chunk layout.

    Feed plaintext in any slicing with ``update``; ``verify`` checks the
    result against the MAC stored in the file key.
    """

    def __init__(self, key: bytes, nonce: bytes):
        self._key = key
        self._iv = nonce + nonce
        self._file_mac = bytes(16)
        self._mac_encryptor = Cipher(algorithms.AES(key), modes.ECB()).encryptor()
        self._buffer = bytearray()
        self._chunk_index = 0
        self._absorbed = 0

    def update(self, data: bytes) -> None:
        self._buffer += data
        size = chunk_size(self._chunk_index)
        while len(self._buffer) >= size:
            self._absorb(bytes(self._buffer[:size]))
            del self._buffer[:size]
            size = chunk_size(self._chunk_index)

    def _absorb(self, chunk: bytes) -> None:
        padded = chunk + bytes(-len(chunk) % _BLOCK_SIZE)
        encryptor = Cipher(algorithms.AES(self._key), modes.CBC(self._iv)).encryptor()
        chunk_mac = (encryptor.update(padded) + encryptor.finalize())[-_BLOCK_SIZE:]
        self._file_mac = self._mac_encryptor.update(_xor(self._file_mac, chunk_mac))
        self._chunk_index += 1
        self._absorbed += len(chunk)

    def digest(self) -> bytes:
        """Condensed 8 byte MAC of everything fed so far."""
        if self._buffer:
            self._absorb(bytes(self._buffer))
            self._buffer.clear()
        return condense_mac(self._file_mac)

    def verify(self, expected: bytes) -> None:
        """Compare against the stored MAC.

        Raises:
            MegaIntegrityError: On mismatch
        """
        mac = self.digest()
        if self._absorbed == 0:
            return
        if mac != expected:
            raise MegaIntegrityError("MAC mismatch, downloaded data is corrupted")
