"""Tests for compression helpers."""

import gzip
from pathlib import Path

import pytest

from result_relay.compression import format_bytes, gzip_bytes, is_pre_compressed


@pytest.mark.parametrize(
    ("content_type", "path", "expected"),
    [
        ("application/zip", "trace.bin", True),
        ("VIDEO/WEBM", "recording", True),
        ("application/octet-stream", "archive.tar.gz", True),
        ("application/octet-stream", Path("/tmp/video.MP4"), True),
        ("image/png", "screenshot.png", False),
        ("text/plain", "log.txt", False),
    ],
)
def test_is_pre_compressed(content_type: str, path: str | Path, expected: bool) -> None:
    """Detects compressed formats by content type or extension."""
    assert is_pre_compressed(content_type, path) is expected


def test_gzip_bytes_produces_gzip_stream() -> None:
    """Output decompresses back to the input."""
    data = b"a" * 2048

    compressed = gzip_bytes(data)

    assert compressed[:2] == b"\x1f\x8b"
    assert gzip.decompress(compressed) == data


@pytest.mark.parametrize(
    ("size", "expected"),
    [
        (0, "0 B"),
        (512, "512 B"),
        (1536, "1.5 KB"),
        (5 * 1024 * 1024, "5.0 MB"),
        (3 * 1024**3, "3.0 GB"),
    ],
)
def test_format_bytes(size: int, expected: str) -> None:
    """Formats sizes with binary units."""
    assert format_bytes(size) == expected
