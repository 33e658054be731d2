"""Coordinates capture, buffering, delivery and artifact upload for one run."""

import asyncio
import atexit
import itertools
import logging
from collections.abc import AsyncGenerator, Callable, Mapping, Sequence
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from dataclasses import dataclass, replace
from typing import Any

import aiohttp
from pydantic import ValidationError

from result_relay.buffer import ResultBuffer
from result_relay.clients.report import ReportClient
from result_relay.clients.upload import UploadClient, UploadProgress
from result_relay.collector import Collector
from result_relay.compression import format_bytes
from result_relay.config import RelayConfig
from result_relay.host import CompletedTest, RunStart
from result_relay.metadata import RunMetadataResolver
from result_relay.models.errors import NetworkFailure, RelayError, ValidationFailure
from result_relay.models.record import ExecutionRecord
from result_relay.models.result import RelayMetrics, SendResult, UploadSummary
from result_relay.orchestrator import ArtifactUploadOrchestrator
from result_relay.sanitizer import Sanitizer

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class Clients:
    """HTTP clients sharing one session."""

    report: ReportClient
    upload: UploadClient


type ClientsFactory = Callable[[RelayConfig], AbstractAsyncContextManager[Clients]]


@asynccontextmanager
async def open_clients(config: RelayConfig) -> AsyncGenerator[Clients, None]:
    """Open a session and the clients that use it."""
    async with aiohttp.ClientSession() as session:
        yield Clients(
            report=ReportClient(config=config, session=session),
            upload=UploadClient(config=config, session=session),
        )


class PipelineCoordinator:
    """Runs the reporting pipeline for a single test run.

    Implements the runner lifecycle: records are sanitized and buffered as
    tests finish, and delivered in batches when the run ends. Failures are
    reported through the configured callbacks and never abort the run.
    """

    def __init__(
        self,
        config: RelayConfig,
        *,
        clients: ClientsFactory = open_clients,
        resolver: RunMetadataResolver | None = None,
        framework: str = "pytest",
    ) -> None:
        self.config = config
        self.enabled = False
        self.metrics = RelayMetrics()
        self.buffer = ResultBuffer(config.max_buffer_size)
        self.collector = Collector(
            sanitizer=Sanitizer.from_config(
                enabled=config.redaction.enabled,
                patterns=config.redaction.patterns,
                replace_built_in=config.redaction.replace_built_in,
            ),
            max_error_length=config.max_error_length,
            max_stack_trace_lines=config.max_stack_trace_lines,
        )
        self.resolver = resolver or RunMetadataResolver(
            source=config.source, framework=framework
        )
        self._clients = clients
        self._pending: set[asyncio.Task[bool]] = set()
        self._exit_handler_registered = False

        if config.debug:
            logging.getLogger("result_relay").setLevel(logging.DEBUG)

    @classmethod
    def from_options(
        cls, options: Mapping[str, Any], **kwargs: Any
    ) -> "PipelineCoordinator":
        """Validate raw options, falling back to a disabled pipeline if invalid.

        The validation failure is reported through ``on_error`` when one was
        supplied, before any network activity.
        """
        try:
            config = RelayConfig.model_validate(options)
        except ValidationError as exc:
            log.warning("Invalid configuration, reporting disabled: %s", exc)
            coordinator = cls(RelayConfig(enabled=False), **kwargs)
            on_error = options.get("on_error")
            if callable(on_error):
                coordinator._invoke(on_error, ValidationFailure(message=str(exc)))
            return coordinator
        return cls(config, **kwargs)

    def on_run_start(self, run: RunStart) -> None:
        """Check readiness, resolve run metadata and register the exit flush."""
        reason = self.config.readiness()
        if reason is not None:
            if reason != "disabled":
                log.warning("Reporting disabled: %s", reason)
            self.enabled = False
            return

        self.resolver.start(run.shard_index, run.total_shards)
        self.enabled = True

        atexit.register(self._flush_at_exit)
        self._exit_handler_registered = True

        log.info(
            "Reporting enabled: source=%s run_id=%s",
            self.config.source,
            self.resolver.run_id,
        )

    def on_record(self, test: CompletedTest) -> None:
        """Sanitize and buffer one finished test."""
        if not self.enabled:
            return

        try:
            record = self.collector.collect(test)
        except Exception as exc:
            log.warning("Failed to collect test result %r: %s", test.title, exc)
            return

        self.buffer.push(record)
        self.metrics.results_dropped = self.buffer.dropped_count

        if self.buffer.count >= self.config.batch_size:
            self._schedule_flush()

    async def on_run_end(self) -> None:
        """Deliver everything still buffered, then report metrics."""
        self._unregister_exit_handler()
        if not self.enabled:
            return

        loop = asyncio.get_running_loop()
        pending = [task for task in self._pending if task.get_loop() is loop]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        if await self.flush():
            log.info(
                "Report complete: %d result(s) reported, %d dropped",
                self.metrics.results_reported,
                self.metrics.results_dropped,
            )
        self._notify_metrics()

    async def flush(self, *, max_retries: int | None = None) -> bool:
        """Send buffered records in batches, uploading artifacts after each.

        On the first failed batch, it and every batch not yet sent go back
        into the buffer in front of newer arrivals. Returns whether
        everything was delivered.
        """
        snapshot = self.buffer.flush()
        if not snapshot:
            log.debug("No results to send")
            return True

        chunks: Sequence[Sequence[ExecutionRecord]] = list(
            itertools.batched(snapshot, self.config.batch_size)
        )
        delivered = 0

        try:
            metadata = await self.resolver.build()
            if metadata.ci_url:
                metadata = metadata.model_copy(
                    update={
                        "ci_url": self.collector.sanitizer.redact_url(metadata.ci_url)
                    }
                )
            async with self._clients(self.config) as clients:
                orchestrator = ArtifactUploadOrchestrator(
                    upload_client=clients.upload,
                    report_client=clients.report,
                    framework=metadata.framework,
                )
                for chunk in chunks:
                    result = await clients.report.send_report(
                        metadata, chunk, max_retries=max_retries
                    )
                    self._record_send(result, len(chunk))
                    if not result.success:
                        self._requeue(snapshot[delivered:])
                        if result.error is not None:
                            self._notify_error(
                                result.error.with_context(
                                    results_affected=len(snapshot) - delivered
                                )
                            )
                        return False

                    delivered += len(chunk)
                    await self._upload(orchestrator, chunk, result)
        except Exception as exc:
            log.error("Failed to send report: %s", exc, exc_info=exc)
            undelivered = snapshot[delivered:]
            self._requeue(undelivered)
            self._notify_error(
                NetworkFailure(
                    message=str(exc) or type(exc).__name__,
                    results_affected=len(undelivered),
                )
            )
            return False

        return True

    async def _upload(
        self,
        orchestrator: ArtifactUploadOrchestrator,
        chunk: Sequence[ExecutionRecord],
        result: SendResult,
    ) -> None:
        artifacts = [artifact for record in chunk for artifact in record.artifacts]
        if not artifacts or not result.upload_urls:
            return

        summary = await orchestrator.upload_artifacts(
            artifacts, result.upload_urls, on_progress=_log_progress
        )
        self._record_uploads(summary)
        if summary.failed:
            self._notify_error(
                NetworkFailure(
                    message=f"Failed to upload {len(summary.failed)} artifact(s)",
                    results_affected=len(summary.failed),
                )
            )

    def _schedule_flush(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        task = loop.create_task(self.flush())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _requeue(self, records: Sequence[ExecutionRecord]) -> None:
        self.buffer.requeue(records)
        self.metrics.results_dropped = self.buffer.dropped_count

    def _record_send(self, result: SendResult, size: int) -> None:
        self.metrics.requests_sent += result.retry_count + 1
        self.metrics.total_latency += result.latency
        self.metrics.last_request_latency = result.latency
        self.metrics.bytes_sent += result.bytes_sent
        self.metrics.bytes_uncompressed += result.bytes_uncompressed
        if result.success:
            self.metrics.results_reported += size
        else:
            self.metrics.requests_failed += 1

    def _record_uploads(self, summary: UploadSummary) -> None:
        self.metrics.uploads_succeeded += len(summary.succeeded)
        self.metrics.uploads_failed += len(summary.failed)

    def _flush_at_exit(self) -> None:
        """Best-effort final delivery when the process exits mid-run."""
        self._exit_handler_registered = False
        if not self.enabled or self.buffer.count == 0:
            return
        log.debug("Process exiting, flushing %d pending result(s)", self.buffer.count)
        try:
            asyncio.run(self.flush(max_retries=0))
        except Exception as exc:
            log.warning("Final flush at exit failed: %s", exc)

    def _unregister_exit_handler(self) -> None:
        if self._exit_handler_registered:
            atexit.unregister(self._flush_at_exit)
            self._exit_handler_registered = False

    def _notify_error(self, error: RelayError) -> None:
        if self.config.on_error is not None:
            self._invoke(self.config.on_error, error)

    def _notify_metrics(self) -> None:
        if self.config.on_metrics is not None:
            self._invoke(self.config.on_metrics, replace(self.metrics))

    def _invoke(self, callback: Callable[[Any], None], payload: Any) -> None:
        try:
            callback(payload)
        except Exception as exc:
            log.warning("Callback %r raised: %s", callback, exc, exc_info=exc)


def _log_progress(progress: UploadProgress) -> None:
    log.debug(
        "Artifact upload progress: %d/%d (%s of %s)",
        progress.completed_count,
        progress.total_count,
        format_bytes(progress.bytes_uploaded),
        format_bytes(progress.total_bytes),
    )
