"""Client for uploading artifact files to presigned URLs."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import aiohttp

from result_relay.clients.base import BaseClient, ignore_body
from result_relay.compression import format_bytes, gzip_bytes
from result_relay.config import RelayConfig
from result_relay.models.result import UploadOutcome

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class UploadTask:
    """A single file to send to its presigned URL."""

    id: str
    file_path: Path
    content_type: str
    upload_url: str
    compress: bool = True


@dataclass(frozen=True, kw_only=True)
class UploadProgress:
    """Snapshot of a running upload batch."""

    completed_count: int
    total_count: int
    bytes_uploaded: int
    total_bytes: int

    @property
    def percent(self) -> float:
        """Share of tasks finished, from 0 to 100."""
        if self.total_count == 0:
            return 100.0
        return self.completed_count * 100 / self.total_count


type ProgressCallback = Callable[[UploadProgress], None]


@dataclass(frozen=True, kw_only=True)
class UploadClient(BaseClient):
    """Uploads artifact files with bounded concurrency.

    Presigned URLs carry their own authorization, so no API key is sent.
    """

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: RelayConfig
    ) -> AsyncGenerator["UploadClient", None]:
        """Create client with managed session lifecycle."""
        async with aiohttp.ClientSession() as session:
            yield cls(config=config, session=session)

    async def upload_batch(
        self,
        tasks: Sequence[UploadTask],
        on_progress: ProgressCallback | None = None,
    ) -> Sequence[UploadOutcome]:
        """Upload every task, never letting one failure cancel the others.

        Args:
            tasks: Files to upload
            on_progress: Called after each task finishes

        Returns:
            One outcome per task, in task order

        """
        if not tasks:
            return []

        semaphore = asyncio.Semaphore(self.config.upload_concurrency)
        total_bytes = sum(_file_size(task.file_path) for task in tasks)
        completed = 0
        bytes_uploaded = 0

        async def run(task: UploadTask) -> UploadOutcome:
            nonlocal completed, bytes_uploaded
            async with semaphore:
                outcome = await self.upload_file(task)
            completed += 1
            bytes_uploaded += outcome.bytes_uploaded
            if on_progress is not None:
                progress = UploadProgress(
                    completed_count=completed,
                    total_count=len(tasks),
                    bytes_uploaded=bytes_uploaded,
                    total_bytes=total_bytes,
                )
                try:
                    on_progress(progress)
                except Exception as exc:
                    log.warning("Progress callback raised: %s", exc, exc_info=exc)
            return outcome

        log.info(
            "Uploading %d artifact(s) (%s, concurrency=%d)",
            len(tasks),
            format_bytes(total_bytes),
            self.config.upload_concurrency,
        )
        results = await asyncio.gather(
            *(run(task) for task in tasks), return_exceptions=True
        )
        return self._process_results(tasks, results)

    def _process_results(
        self,
        tasks: Sequence[UploadTask],
        results: Sequence[UploadOutcome | BaseException],
    ) -> Sequence[UploadOutcome]:
        """Turn raised exceptions into failed outcomes."""
        outcomes: list[UploadOutcome] = []
        for task, result in zip(tasks, results, strict=True):
            if isinstance(result, UploadOutcome):
                outcomes.append(result)
            elif isinstance(result, Exception):
                log.error("Upload of %s crashed: %s", task.id, result, exc_info=result)
                outcomes.append(
                    UploadOutcome(id=task.id, success=False, error=str(result))
                )
            else:
                raise result
        return outcomes

    async def upload_file(self, task: UploadTask) -> UploadOutcome:
        """Read, optionally gzip, and send one file."""
        if not task.file_path.is_file():
            return UploadOutcome(
                id=task.id,
                success=False,
                error=f"File not found: {task.file_path.name}",
            )

        try:
            body = await asyncio.to_thread(task.file_path.read_bytes)
        except OSError as exc:
            return UploadOutcome(
                id=task.id, success=False, error=f"Failed to read file: {exc}"
            )

        headers = {"Content-Type": task.content_type}
        if task.compress:
            body = await asyncio.to_thread(gzip_bytes, body)
            headers["Content-Encoding"] = "gzip"

        result = await self.request_with_retry(
            self.config.upload_method,
            task.upload_url,
            parse=ignore_body,
            data=body,
            headers=headers,
        )
        if not result.success:
            message = result.error.message if result.error else "Upload failed"
            log.warning("Upload of %s failed: %s", task.id, message)
            return UploadOutcome(id=task.id, success=False, error=message)

        log.debug("Uploaded %s (%s)", task.id, format_bytes(len(body)))
        return UploadOutcome(id=task.id, success=True, bytes_uploaded=len(body))


def _file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError:
        return 0
