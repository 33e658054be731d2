"""Models for delivery and upload outcomes."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from result_relay.models.api import ReportResponse
from result_relay.models.errors import RelayError


@dataclass(frozen=True, kw_only=True)
class ClientResult[T]:
    """Outcome of one logical request, across all of its attempts."""

    success: bool
    data: T | None = None
    error: RelayError | None = None
    latency: float = 0.0
    retry_count: int = 0
    attempts: int = 0


@dataclass(frozen=True, kw_only=True)
class SendResult:
    """Outcome of delivering one batch.

    Size, latency and retry metrics are populated whatever the outcome.
    """

    success: bool
    latency: float
    bytes_sent: int
    bytes_uncompressed: int
    retry_count: int
    request_id: str
    error: RelayError | None = None
    response: ReportResponse | None = None

    @property
    def upload_urls(self) -> Mapping[str, str]:
        """Presigned upload targets offered by the API (artifact id -> URL)."""
        if self.response is None:
            return {}
        return self.response.upload_urls


@dataclass(frozen=True, kw_only=True)
class ConfirmResult:
    """Outcome of confirming completed uploads."""

    success: bool
    request_id: str
    confirmed: int = 0
    error: RelayError | None = None


@dataclass(frozen=True, kw_only=True)
class UploadOutcome:
    """Result of uploading a single artifact."""

    id: str
    success: bool
    bytes_uploaded: int = 0
    error: str | None = None


@dataclass(frozen=True, kw_only=True)
class FailedUpload:
    """An artifact that could not be uploaded."""

    id: str
    error: str


@dataclass(frozen=True, kw_only=True)
class UploadSummary:
    """Aggregated outcome of an artifact upload pass.

    ``success`` is always true: failed uploads are reported as data.
    """

    success: bool = True
    succeeded: Sequence[str] = ()
    failed: Sequence[FailedUpload] = ()
    skipped: Sequence[str] = ()
    total_bytes_uploaded: int = 0
    total_artifact_size: int = 0


@dataclass(kw_only=True)
class RelayMetrics:
    """Running counters reported to the metrics callback."""

    requests_sent: int = 0
    requests_failed: int = 0
    results_reported: int = 0
    results_dropped: int = 0
    total_latency: float = 0.0
    last_request_latency: float = 0.0
    bytes_sent: int = 0
    bytes_uncompressed: int = 0
    uploads_succeeded: int = 0
    uploads_failed: int = 0
