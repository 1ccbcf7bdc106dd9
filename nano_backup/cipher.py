"""Streaming authenticated encryption for backup artifacts.

Artifacts are sealed with AES-256-GCM in fixed-size chunks so that
arbitrarily large archives are processed in constant memory:

    header = magic(4) | version(1) | salt(16) | chunk_size(4)
    body   = seal(chunk_0) | seal(chunk_1) | ... | seal(chunk_n, last=True)

A fresh random salt is drawn for every artifact and a per-artifact key is
derived from the operator key with HKDF-SHA256, so no (key, nonce) pair is
ever reused across artifacts. Each chunk nonce is the chunk counter plus a
final-chunk flag and the header is authenticated as associated data, which
makes truncation, reordering, header tampering and wrong keys all fail
with ``DecryptionError``.
"""

import os
import string
import struct
from pathlib import Path
from typing import BinaryIO, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from ._utils import logger
from .errors import DecryptionError

MAGIC = b"NBK1"
FORMAT_VERSION = 1
SALT_SIZE = 16
TAG_SIZE = 16
MIN_KEY_BYTES = 16
DEFAULT_CHUNK_SIZE = 64 * 1024
MAX_CHUNK_SIZE = 64 * 1024 * 1024

_HEADER = struct.Struct(">4sB16sI")
_HKDF_INFO = b"nano-backup artifact v1"


def _normalize_key(key_material: Union[str, bytes]) -> bytes:
    if isinstance(key_material, str):
        text = key_material.strip()
        # 64 hex chars are taken as a raw 256-bit key
        if len(text) == 64 and all(ch in string.hexdigits for ch in text):
            return bytes.fromhex(text)
        key_material = text.encode("utf-8")

    if len(key_material) < MIN_KEY_BYTES:
        raise ValueError(
            f"Encryption key must provide at least {MIN_KEY_BYTES} bytes of key material"
        )
    return bytes(key_material)


def _read_full(reader: BinaryIO, size: int) -> bytes:
    """Read exactly ``size`` bytes unless EOF is reached first."""
    buf = bytearray()
    while len(buf) < size:
        chunk = reader.read(size - len(buf))
        if not chunk:
            break
        buf.extend(chunk)
    return bytes(buf)


def _nonce(counter: int, last: bool) -> bytes:
    return counter.to_bytes(11, "big") + (b"\x01" if last else b"\x00")


class StreamCipher:
    """Encrypt and decrypt artifact streams under a single operator key."""

    def __init__(self, key_material: Union[str, bytes], chunk_size: int = DEFAULT_CHUNK_SIZE):
        """Initialize cipher.

        Args:
            key_material: Operator key, either 64 hex characters (raw key) or
                any secret of at least 16 bytes
            chunk_size: Plaintext bytes sealed per chunk
        """
        if not 0 < chunk_size <= MAX_CHUNK_SIZE:
            raise ValueError(f"chunk_size must be between 1 and {MAX_CHUNK_SIZE}, got {chunk_size}")
        self._key = _normalize_key(key_material)
        self.chunk_size = chunk_size

    def _aead(self, salt: bytes) -> AESGCM:
        hkdf = HKDF(algorithm=hashes.SHA256(), length=32, salt=salt, info=_HKDF_INFO)
        return AESGCM(hkdf.derive(self._key))

    def encrypt_stream(self, reader: BinaryIO, writer: BinaryIO) -> int:
        """Encrypt ``reader`` into ``writer``.

        Returns:
            Number of ciphertext bytes written (header included)
        """
        salt = os.urandom(SALT_SIZE)
        header = _HEADER.pack(MAGIC, FORMAT_VERSION, salt, self.chunk_size)
        aead = self._aead(salt)

        writer.write(header)
        written = len(header)

        counter = 0
        chunk = _read_full(reader, self.chunk_size)
        while True:
            next_chunk = _read_full(reader, self.chunk_size) if len(chunk) == self.chunk_size else b""
            last = not next_chunk
            sealed = aead.encrypt(_nonce(counter, last), chunk, header)
            writer.write(sealed)
            written += len(sealed)
            if last:
                return written
            chunk = next_chunk
            counter += 1

    def decrypt_stream(self, reader: BinaryIO, writer: BinaryIO) -> int:
        """Decrypt ``reader`` into ``writer``.

        Plaintext is written chunk by chunk as each chunk authenticates;
        callers must discard the output when ``DecryptionError`` is raised.

        Returns:
            Number of plaintext bytes written

        Raises:
            DecryptionError: Wrong key, corrupted, truncated or foreign input
        """
        header = _read_full(reader, _HEADER.size)
        if len(header) != _HEADER.size:
            raise DecryptionError("Ciphertext is truncated: incomplete header")

        magic, version, salt, chunk_size = _HEADER.unpack(header)
        if magic != MAGIC:
            raise DecryptionError("Not a nano-backup encrypted artifact")
        if version != FORMAT_VERSION:
            raise DecryptionError(f"Unsupported artifact format version: {version}")
        if not 0 < chunk_size <= MAX_CHUNK_SIZE:
            raise DecryptionError(f"Invalid chunk size in header: {chunk_size}")

        aead = self._aead(salt)
        sealed_size = chunk_size + TAG_SIZE
        written = 0

        counter = 0
        block = _read_full(reader, sealed_size)
        while True:
            next_block = _read_full(reader, sealed_size) if len(block) == sealed_size else b""
            last = not next_block
            if len(block) < TAG_SIZE:
                raise DecryptionError("Ciphertext is truncated")
            try:
                plain = aead.decrypt(_nonce(counter, last), block, header)
            except InvalidTag as e:
                raise DecryptionError(
                    f"Authentication failed at chunk {counter}: wrong key or corrupted ciphertext"
                ) from e
            writer.write(plain)
            written += len(plain)
            if last:
                return written
            block = next_block
            counter += 1

    def encrypt_file(self, source_path: Path, output_path: Path) -> int:
        """Encrypt a file, writing to a temporary name and renaming on success."""
        return self._transform_file(self.encrypt_stream, Path(source_path), Path(output_path))

    def decrypt_file(self, source_path: Path, output_path: Path) -> int:
        """Decrypt a file; no output file exists unless every chunk authenticated."""
        return self._transform_file(self.decrypt_stream, Path(source_path), Path(output_path))

    def _transform_file(self, transform, source_path: Path, output_path: Path) -> int:
        partial_path = output_path.with_name(output_path.name + ".partial")
        try:
            with open(source_path, "rb") as reader, open(partial_path, "wb") as writer:
                count = transform(reader, writer)
            os.replace(partial_path, output_path)
        except BaseException:
            partial_path.unlink(missing_ok=True)
            raise

        logger.debug(f"{transform.__name__}: {source_path.name} -> {output_path.name} ({count:,} bytes)")
        return count
