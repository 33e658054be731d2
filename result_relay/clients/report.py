"""Client for the ingestion API report endpoints."""

import json
import logging
import uuid
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

import aiohttp

from result_relay import __version__
from result_relay.clients.base import BaseClient
from result_relay.compression import gzip_bytes
from result_relay.config import RelayConfig
from result_relay.models.api import ConfirmUploadsResponse, ReportResponse
from result_relay.models.errors import NetworkFailure
from result_relay.models.record import ExecutionRecord
from result_relay.models.result import ConfirmResult, SendResult
from result_relay.models.run import RunMetadata

log = logging.getLogger(__name__)

COMPRESSION_THRESHOLD = 1024
SDK_VERSION_HEADER = "X-Relay-SDK-Version"


def encode_payload(
    metadata: RunMetadata, records: Sequence[ExecutionRecord]
) -> bytes:
    """Serialize a batch to compact UTF-8 JSON."""
    payload = {
        **metadata.to_wire(),
        "results": [record.to_wire() for record in records],
    }
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode()


async def parse_report_response(response: aiohttp.ClientResponse) -> ReportResponse:
    """Parse the body of a successful report submission."""
    return ReportResponse.model_validate(await response.json())


async def parse_confirm_response(
    response: aiohttp.ClientResponse,
) -> ConfirmUploadsResponse:
    """Parse the body of a successful upload confirmation."""
    return ConfirmUploadsResponse.model_validate(await response.json())


@dataclass(frozen=True, kw_only=True)
class ReportClient(BaseClient):
    """Sends run batches and upload confirmations to the ingestion API."""

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: RelayConfig
    ) -> AsyncGenerator["ReportClient", None]:
        """Create client with managed session lifecycle."""
        async with aiohttp.ClientSession() as session:
            yield cls(config=config, session=session)

    def build_headers(
        self, request_id: str, framework: str = "pytest"
    ) -> dict[str, str]:
        """Headers common to every API request."""
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key.get_secret_value()}",
            "User-Agent": f"result-relay/{framework}/{__version__}",
            SDK_VERSION_HEADER: __version__,
            "X-Request-Id": request_id,
        }

    async def send_report(
        self,
        metadata: RunMetadata,
        records: Sequence[ExecutionRecord],
        *,
        max_retries: int | None = None,
    ) -> SendResult:
        """Deliver one batch and report how it went.

        Payloads above the compression threshold are gzipped. Never raises:
        every failure is returned in the result together with the request id
        and the number of records that were not delivered.
        """
        request_id = str(uuid.uuid4())
        body = b""
        bytes_uncompressed = 0

        try:
            body = encode_payload(metadata, records)
            bytes_uncompressed = len(body)
            headers = self.build_headers(request_id, metadata.framework)

            if bytes_uncompressed > COMPRESSION_THRESHOLD:
                body = gzip_bytes(body)
                headers["Content-Encoding"] = "gzip"
                log.debug(
                    "Compressed payload: %d -> %d bytes", bytes_uncompressed, len(body)
                )

            log.info(
                "Sending report: run_id=%s results=%d request_id=%s",
                metadata.run_id,
                len(records),
                request_id,
            )
            result = await self.request_with_retry(
                "POST",
                self.config.api_url,
                parse=parse_report_response,
                data=body,
                headers=headers,
                max_retries=max_retries,
            )
        except Exception as exc:
            log.error("Unexpected error sending report: %s", exc, exc_info=exc)
            return SendResult(
                success=False,
                latency=0.0,
                bytes_sent=len(body),
                bytes_uncompressed=bytes_uncompressed,
                retry_count=0,
                request_id=request_id,
                error=NetworkFailure(
                    message=self._mask(str(exc) or type(exc).__name__),
                    request_id=request_id,
                    results_affected=len(records),
                ),
            )

        if not result.success:
            return SendResult(
                success=False,
                latency=result.latency,
                bytes_sent=len(body),
                bytes_uncompressed=bytes_uncompressed,
                retry_count=result.retry_count,
                request_id=request_id,
                error=(
                    result.error.with_context(
                        request_id=request_id, results_affected=len(records)
                    )
                    if result.error
                    else None
                ),
            )

        log.info(
            "Report sent: request_id=%s latency=%.3fs retries=%d",
            request_id,
            result.latency,
            result.retry_count,
        )
        return SendResult(
            success=True,
            latency=result.latency,
            bytes_sent=len(body),
            bytes_uncompressed=bytes_uncompressed,
            retry_count=result.retry_count,
            request_id=request_id,
            response=result.data,
        )

    async def confirm_uploads(
        self, artifact_ids: Sequence[str], *, framework: str = "pytest"
    ) -> ConfirmResult:
        """Tell the API which artifacts finished uploading."""
        request_id = str(uuid.uuid4())
        payload: dict[str, Any] = {"artifactIds": list(artifact_ids)}

        result = await self.request_with_retry(
            "POST",
            self.config.confirm_url,
            parse=parse_confirm_response,
            data=json.dumps(payload).encode(),
            headers=self.build_headers(request_id, framework),
        )

        if not result.success or result.data is None:
            return ConfirmResult(
                success=False,
                request_id=request_id,
                error=(
                    result.error.with_context(request_id=request_id)
                    if result.error
                    else None
                ),
            )

        return ConfirmResult(
            success=True, request_id=request_id, confirmed=result.data.confirmed
        )
