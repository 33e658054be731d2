"""HTTP clients for the ingestion API and presigned artifact uploads."""

from result_relay.clients.base import BaseClient
from result_relay.clients.report import ReportClient
from result_relay.clients.upload import UploadClient, UploadProgress, UploadTask

__all__ = ["BaseClient", "ReportClient", "UploadClient", "UploadProgress", "UploadTask"]
