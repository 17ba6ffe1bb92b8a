"""Shared fixtures: a storage root under tmp_path and in-memory zips."""

import io
import struct
import zipfile
from pathlib import Path

import pytest

from blogingest.config import StorageConfig
from blogingest.posts import ContentIngestor

# text that compresses to a few kilobytes with every zip method
BULKY_TEXT = "".join(f"line {i}: {i * 7919 % 104729}\n" for i in range(4000))


def make_zip(
    files: dict[str, str | bytes], compression: int = zipfile.ZIP_DEFLATED
) -> bytes:
    """Build a zip archive in memory from {member name: content}."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression) as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buf.getvalue()


def damage_first_member(data: bytes, span: int = 40) -> bytes:
    """Invert `span` bytes in the middle of the first member's compressed body."""
    fn_len, extra_len = struct.unpack("<HH", data[26:30])
    compressed = struct.unpack("<I", data[18:22])[0]
    start = 30 + fn_len + extra_len + compressed // 2
    out = bytearray(data)
    for i in range(start, start + span):
        out[i] ^= 0xFF
    return bytes(out)


@pytest.fixture
def storage_config(tmp_path: Path) -> StorageConfig:
    return StorageConfig(storage_root=tmp_path / "content", public_base_prefix="/static")


@pytest.fixture
def ingestor(storage_config: StorageConfig) -> ContentIngestor:
    return ContentIngestor(storage_config)
