"""Models describing the test run a batch belongs to."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Literal

from result_relay.models.base import Model

type CIProvider = Literal[
    "github-actions",
    "gitlab-ci",
    "circleci",
    "jenkins",
    "azure-devops",
    "bitbucket-pipelines",
]


@dataclass(frozen=True, kw_only=True)
class GitInfo:
    """Branch and commit reported by the local git checkout."""

    branch: str | None = None
    commit_sha: str | None = None


@dataclass(frozen=True, kw_only=True)
class CIInfo:
    """Metadata reported by the CI provider environment."""

    provider: CIProvider | None = None
    url: str | None = None
    branch: str | None = None
    commit_sha: str | None = None
    run_id: str | None = None


@dataclass(frozen=True, kw_only=True)
class ShardInfo:
    """Position of this process in a sharded run (1-based)."""

    index: int | None = None
    total: int | None = None


class RunMetadata(Model):
    """Identity and provenance of one test run."""

    run_id: str
    source: str
    framework: str = "pytest"
    branch: str | None = None
    commit_sha: str | None = None
    ci_url: str | None = None
    shard_index: int | None = None
    total_shards: int | None = None
    started_at: datetime
    finished_at: datetime | None = None

    def to_wire(self) -> dict[str, Any]:
        """Return the camelCase run fields of a report payload."""
        return {
            "runId": self.run_id,
            "source": self.source,
            "framework": self.framework,
            "branch": self.branch,
            "commitSha": self.commit_sha,
            "ciUrl": self.ci_url,
            "shardIndex": self.shard_index,
            "totalShards": self.total_shards,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }
