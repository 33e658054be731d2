"""Models for captured test-execution records and their artifacts."""

import uuid
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Literal

from pydantic import Field

from result_relay.compression import is_pre_compressed
from result_relay.models.base import Model

type TestStatus = Literal["passed", "failed", "skipped", "timedOut", "interrupted"]
type ArtifactKind = Literal["trace", "screenshot", "video", "attachment"]


def new_id() -> str:
    """Return a fresh random identifier."""
    return str(uuid.uuid4())


class StepRecord(Model):
    """A step performed during a test, with its nested sub-steps."""

    title: str
    category: str | None = None
    duration_ms: float = 0.0
    error: str | None = None
    steps: Sequence["StepRecord"] = Field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase payload for this step."""
        payload: dict[str, Any] = {
            "title": self.title,
            "durationMs": self.duration_ms,
            "error": self.error,
        }
        if self.category is not None:
            payload["category"] = self.category
        if self.steps:
            payload["steps"] = [step.to_wire() for step in self.steps]
        return payload


class Artifact(Model):
    """Metadata for one captured file.

    The file itself stays on disk. ``path`` is local-only and is never part
    of the wire projection.
    """

    id: str = Field(default_factory=new_id)
    kind: ArtifactKind
    name: str
    path: Path
    content_type: str
    size: int = Field(ge=0)

    @property
    def pre_compressed(self) -> bool:
        """Whether the file is already in a compressed format."""
        return is_pre_compressed(self.content_type, self.path)

    @staticmethod
    def infer_kind(name: str, content_type: str) -> ArtifactKind:
        """Infer the artifact kind from an attachment name and content type."""
        if name == "trace" or content_type == "application/zip":
            return "trace"
        if name == "screenshot" or content_type.startswith("image/"):
            return "screenshot"
        if name == "video" or content_type.startswith("video/"):
            return "video"
        return "attachment"

    def to_wire(self) -> dict[str, Any]:
        """Return the API-safe metadata (no local path)."""
        return {
            "id": self.id,
            "type": self.kind,
            "name": self.name,
            "contentType": self.content_type,
            "size": self.size,
            "compressed": self.pre_compressed,
        }


class ExecutionRecord(Model):
    """One test outcome, already sanitized."""

    id: str = Field(default_factory=new_id)
    test_file: str
    full_title: str
    suite_path: Sequence[str] = Field(default_factory=list)
    test_name: str
    tags: Sequence[str] = Field(default_factory=list)
    project: str | None = None
    status: TestStatus
    duration_ms: float = Field(default=0.0, ge=0)
    retry: int = Field(default=0, ge=0)
    error_message: str | None = None
    steps: Sequence[StepRecord] = Field(default_factory=list)
    stdout: Sequence[str] = Field(default_factory=list)
    stderr: Sequence[str] = Field(default_factory=list)
    artifacts: Sequence[Artifact] = Field(default_factory=list)

    @property
    def total_artifact_size(self) -> int:
        """Total size of all artifacts in bytes."""
        return sum(artifact.size for artifact in self.artifacts)

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase payload sent to the ingestion API."""
        return {
            "id": self.id,
            "testFile": self.test_file,
            "fullTitle": self.full_title,
            "suitePath": list(self.suite_path),
            "testName": self.test_name,
            "tags": list(self.tags),
            "project": self.project,
            "status": self.status,
            "durationMs": self.duration_ms,
            "retry": self.retry,
            "errorMessage": self.error_message,
            "artifacts": [artifact.to_wire() for artifact in self.artifacts],
            "steps": [step.to_wire() for step in self.steps],
            "stdout": list(self.stdout),
            "stderr": list(self.stderr),
        }
