"""Sanitize test-execution records and deliver them to an ingestion API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("result-relay")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0-dev"
