"""Convert runner-reported tests into sanitized execution records."""

import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import get_args

from result_relay.host import CompletedTest, RawAttachment, RawStep
from result_relay.models.record import (
    Artifact,
    ExecutionRecord,
    StepRecord,
    TestStatus,
)
from result_relay.sanitizer import Sanitizer, truncate

log = logging.getLogger(__name__)

INLINE_TAG = re.compile(r"@[\w-]+")

TEST_DIR_MARKERS = (
    "/e2e/tests/",
    "/e2e/",
    "/tests/",
    "/test/",
    "/__tests__/",
    "/specs/",
    "/spec/",
)

KNOWN_STATUSES: frozenset[str] = frozenset(get_args(TestStatus.__value__))


def normalize_test_file(path: str) -> str:
    """Shorten a test file path for display.

    Returns the part after the first test-directory marker, else the last
    two path segments.
    """
    file = path.replace("\\", "/")
    for marker in TEST_DIR_MARKERS:
        index = file.find(marker)
        if index != -1:
            return file[index + len(marker) :]
    parts = file.split("/")
    return "/".join(parts[-2:])


def split_tags(title: str) -> tuple[str, Sequence[str]]:
    """Separate inline ``@tags`` from a title."""
    tags = INLINE_TAG.findall(title)
    return INLINE_TAG.sub("", title).strip(), tags


def map_status(status: str) -> TestStatus:
    """Map a runner status onto the known set; anything else is a failure."""
    if status in KNOWN_STATUSES:
        return status  # type: ignore[return-value]
    return "failed"


@dataclass(frozen=True, kw_only=True)
class Collector:
    """Turns a completed test into an execution record that is safe to send."""

    sanitizer: Sanitizer
    max_error_length: int = 4000
    max_stack_trace_lines: int = 20

    def collect(self, test: CompletedTest) -> ExecutionRecord:
        """Build the record, truncating and redacting every free-text field."""
        test_name, inline_tags = split_tags(test.title)
        tags = list(test.tags)
        tags.extend(tag for tag in inline_tags if tag not in tags)
        suite_path = list(test.suite_path)

        return ExecutionRecord(
            test_file=normalize_test_file(test.file),
            full_title=" > ".join([*suite_path, test_name]),
            suite_path=suite_path,
            test_name=test_name,
            tags=tags,
            project=test.project,
            status=map_status(test.status),
            duration_ms=max(test.duration_ms, 0.0),
            retry=max(test.retry, 0),
            error_message=self.error_text(test.error),
            steps=[self.collect_step(step) for step in test.steps],
            stdout=self.sanitizer.redact_lines(test.stdout),
            stderr=self.sanitizer.redact_lines(test.stderr),
            artifacts=self.collect_artifacts(test.attachments),
        )

    def error_text(self, error: str | None) -> str | None:
        """Truncate, then redact an error message."""
        if not error:
            return None
        return self.sanitizer.redact(
            truncate(error, self.max_stack_trace_lines, self.max_error_length)
        )

    def collect_step(self, step: RawStep) -> StepRecord:
        return StepRecord(
            title=step.title,
            category=step.category,
            duration_ms=step.duration_ms,
            error=self.error_text(step.error),
            steps=[self.collect_step(child) for child in step.steps],
        )

    def collect_artifacts(
        self, attachments: Sequence[RawAttachment]
    ) -> Sequence[Artifact]:
        """Stat attached files; attachments without a readable file are skipped."""
        artifacts: list[Artifact] = []
        for attachment in attachments:
            if not attachment.path:
                continue
            path = Path(attachment.path)
            try:
                size = path.stat().st_size
            except OSError:
                log.debug("Could not stat attachment %s (%s)", attachment.name, path)
                continue
            artifacts.append(
                Artifact(
                    kind=Artifact.infer_kind(attachment.name, attachment.content_type),
                    name=attachment.name,
                    path=path,
                    content_type=attachment.content_type,
                    size=size,
                )
            )
        return artifacts
