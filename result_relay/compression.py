"""Gzip helpers and detection of already-compressed artifact formats."""

import gzip
from pathlib import Path

PRE_COMPRESSED_CONTENT_TYPES: frozenset[str] = frozenset(
    [
        "application/zip",
        "application/gzip",
        "application/x-gzip",
        "application/x-tar",
        "application/x-bzip2",
        "video/webm",
        "video/mp4",
        "video/avi",
        "image/webp",
        "audio/mp3",
        "audio/mpeg",
    ]
)

PRE_COMPRESSED_EXTENSIONS: tuple[str, ...] = (
    ".zip",
    ".gz",
    ".gzip",
    ".tgz",
    ".bz2",
    ".webm",
    ".mp4",
    ".avi",
    ".webp",
    ".mp3",
)

BYTE_UNITS = ("B", "KB", "MB", "GB")


def is_pre_compressed(content_type: str, path: str | Path) -> bool:
    """Check whether a file is already compressed by content type or extension."""
    if content_type.lower() in PRE_COMPRESSED_CONTENT_TYPES:
        return True
    return str(path).lower().endswith(PRE_COMPRESSED_EXTENSIONS)


def gzip_bytes(data: bytes) -> bytes:
    """Gzip-compress raw bytes."""
    return gzip.compress(data)


def format_bytes(size: int) -> str:
    """Format a byte count as a human-readable string (e.g. ``1.5 KB``)."""
    if size <= 0:
        return "0 B"
    value = float(size)
    index = 0
    while value >= 1024 and index < len(BYTE_UNITS) - 1:
        value /= 1024
        index += 1
    if index == 0:
        return f"{size} B"
    return f"{value:.1f} {BYTE_UNITS[index]}"
