"""Tests for SHA-256 checksum helpers."""

import hashlib
import tempfile
from pathlib import Path

from nano_backup import checksum
from nano_backup.checksum import compute_checksum, compute_stream_checksum, verify_checksum


def test_compute_checksum_matches_hashlib():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "artifact.bin"
        data = b"backup payload " * 1000
        path.write_bytes(data)

        assert compute_checksum(path) == hashlib.sha256(data).hexdigest()
        assert len(compute_checksum(path)) == 64


def test_checksum_streams_in_chunks(monkeypatch):
    monkeypatch.setattr(checksum, "CHUNK_SIZE", 7)
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "artifact.bin"
        data = bytes(range(256)) * 3
        path.write_bytes(data)

        assert compute_checksum(path) == hashlib.sha256(data).hexdigest()


def test_stream_checksum_independent_of_chunking():
    data = b"abcdefghij" * 50
    whole = compute_stream_checksum([data])
    pieces = compute_stream_checksum(data[i:i + 3] for i in range(0, len(data), 3))

    assert whole == pieces == hashlib.sha256(data).hexdigest()


def test_empty_input():
    assert compute_stream_checksum([]) == hashlib.sha256(b"").hexdigest()


def test_verify_checksum():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "artifact.bin"
        path.write_bytes(b"payload")

        assert verify_checksum(path, hashlib.sha256(b"payload").hexdigest())
        assert not verify_checksum(path, hashlib.sha256(b"other").hexdigest())


def test_single_byte_difference_changes_checksum():
    data = bytearray(b"backup payload " * 100)
    original = compute_stream_checksum([bytes(data)])
    data[500] ^= 0x01

    assert compute_stream_checksum([bytes(data)]) != original
    assert compute_stream_checksum([b"backup payload " * 100]) == original
