"""Boundary between a test runner and the reporting pipeline."""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from pydantic import Field

from result_relay.models.base import Model


class RawAttachment(Model):
    """A file the runner attached to a test."""

    name: str
    path: str | None = None
    content_type: str = "application/octet-stream"


class RawStep(Model):
    """A step as reported by the runner, before sanitizing."""

    title: str
    category: str | None = None
    duration_ms: float = 0.0
    error: str | None = None
    steps: Sequence["RawStep"] = Field(default_factory=list)


class CompletedTest(Model):
    """A finished test as reported by the runner.

    ``status`` is the runner's own outcome string. Values outside the known
    set are recorded as failures.
    """

    title: str
    file: str
    suite_path: Sequence[str] = Field(default_factory=list)
    project: str | None = None
    tags: Sequence[str] = Field(default_factory=list)
    status: str
    duration_ms: float = 0.0
    retry: int = 0
    error: str | None = None
    stdout: Sequence[str] = Field(default_factory=list)
    stderr: Sequence[str] = Field(default_factory=list)
    steps: Sequence[RawStep] = Field(default_factory=list)
    attachments: Sequence[RawAttachment] = Field(default_factory=list)


@dataclass(frozen=True, kw_only=True)
class RunStart:
    """What the runner knows when the run begins."""

    shard_index: int | None = None
    total_shards: int | None = None


class RunListener(Protocol):
    """Lifecycle hooks a runner adapter calls."""

    def on_run_start(self, run: RunStart) -> None:
        """Run is about to begin."""

    def on_record(self, test: CompletedTest) -> None:
        """A test finished."""

    async def on_run_end(self) -> None:
        """Run is over; deliver everything still buffered."""
