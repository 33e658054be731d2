"""Artifact upload orchestration against presigned upload targets."""

import logging
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from result_relay.clients.report import ReportClient
from result_relay.clients.upload import (
    ProgressCallback,
    UploadClient,
    UploadProgress,
    UploadTask,
)
from result_relay.compression import format_bytes
from result_relay.models.record import Artifact
from result_relay.models.result import FailedUpload, UploadOutcome, UploadSummary

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ArtifactUploadOrchestrator:
    """Uploads the artifacts the API asked for and confirms the ones that landed."""

    upload_client: UploadClient
    report_client: ReportClient
    framework: str = "pytest"

    async def upload_artifacts(
        self,
        artifacts: Sequence[Artifact],
        upload_urls: Mapping[str, str],
        on_progress: ProgressCallback | None = None,
    ) -> UploadSummary:
        """Upload artifacts that have a target and confirm the successes.

        Args:
            artifacts: Every artifact of the delivered batch
            upload_urls: Presigned URLs keyed by artifact id
            on_progress: Called when a new tenth of the batch completes

        Returns:
            Summary of succeeded, failed and skipped artifacts

        """
        targeted: list[tuple[Artifact, str]] = []
        skipped: list[str] = []
        for artifact in artifacts:
            url = upload_urls.get(artifact.id)
            if url:
                targeted.append((artifact, url))
            else:
                log.debug("No upload URL for artifact %s, skipping", artifact.id)
                skipped.append(artifact.id)

        if skipped:
            log.info("Skipping %d artifact(s) without upload URL", len(skipped))

        if not targeted:
            return UploadSummary(skipped=skipped)

        tasks = [
            UploadTask(
                id=artifact.id,
                file_path=artifact.path,
                content_type=artifact.content_type,
                upload_url=url,
                compress=not artifact.pre_compressed,
            )
            for artifact, url in targeted
        ]

        try:
            outcomes = await self.upload_client.upload_batch(
                tasks, on_progress=_throttle_progress(on_progress)
            )
        except Exception as exc:
            log.error("Artifact upload batch failed: %s", exc, exc_info=exc)
            outcomes = [
                UploadOutcome(id=task.id, success=False, error=str(exc))
                for task in tasks
            ]
        summary = self._process_results(
            outcomes,
            skipped=skipped,
            total_artifact_size=sum(artifact.size for artifact, _ in targeted),
        )

        if summary.succeeded:
            await self._confirm(summary.succeeded)

        return summary

    def _process_results(
        self,
        outcomes: Sequence[UploadOutcome],
        *,
        skipped: Sequence[str],
        total_artifact_size: int,
    ) -> UploadSummary:
        """Aggregate per-artifact outcomes."""
        succeeded: list[str] = []
        failed: list[FailedUpload] = []
        total_bytes = 0

        for outcome in outcomes:
            if outcome.success:
                succeeded.append(outcome.id)
                total_bytes += outcome.bytes_uploaded
            else:
                failed.append(
                    FailedUpload(id=outcome.id, error=outcome.error or "Unknown error")
                )

        log.info(
            "Artifact uploads completed: succeeded=%d failed=%d skipped=%d (%s)",
            len(succeeded),
            len(failed),
            len(skipped),
            format_bytes(total_bytes),
        )
        for failure in failed:
            log.warning("Artifact %s failed to upload: %s", failure.id, failure.error)

        return UploadSummary(
            succeeded=succeeded,
            failed=failed,
            skipped=skipped,
            total_bytes_uploaded=total_bytes,
            total_artifact_size=total_artifact_size,
        )

    async def _confirm(self, artifact_ids: Sequence[str]) -> None:
        try:
            result = await self.report_client.confirm_uploads(
                artifact_ids, framework=self.framework
            )
        except Exception as exc:
            log.warning("Failed to confirm uploads: %s", exc, exc_info=exc)
            return

        if result.success:
            log.debug("Confirmed %d upload(s)", result.confirmed)
        else:
            log.warning(
                "Failed to confirm uploads: %s",
                result.error.message if result.error else "unknown error",
            )


def _throttle_progress(
    callback: ProgressCallback | None,
) -> ProgressCallback | None:
    """Forward progress only when a new decile is crossed or the batch is done."""
    if callback is None:
        return None

    last_decile = 0

    def forward(progress: UploadProgress) -> None:
        nonlocal last_decile
        decile = progress.completed_count * 10 // max(progress.total_count, 1)
        if decile > last_decile or progress.completed_count == progress.total_count:
            last_decile = decile
            callback(progress)

    return forward
