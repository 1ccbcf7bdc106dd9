"""SHA-256 checksums computed over streams, never whole artifacts in memory."""

import hashlib
from pathlib import Path
from typing import Iterable

CHUNK_SIZE = 1024 * 1024


def compute_stream_checksum(chunks: Iterable[bytes]) -> str:
    """Compute SHA-256 checksum of a byte-chunk stream.

    Args:
        chunks: Iterable of byte chunks

    Returns:
        SHA-256 checksum as hex string
    """
    sha256 = hashlib.sha256()
    for chunk in chunks:
        sha256.update(chunk)
    return sha256.hexdigest()


def compute_checksum(file_path: Path) -> str:
    """Compute SHA-256 checksum of file.

    Args:
        file_path: Path to file

    Returns:
        SHA-256 checksum as hex string
    """
    with open(file_path, "rb") as f:
        return compute_stream_checksum(iter(lambda: f.read(CHUNK_SIZE), b""))


def verify_checksum(file_path: Path, expected_checksum: str) -> bool:
    actual_checksum = compute_checksum(file_path)
    return actual_checksum == expected_checksum
