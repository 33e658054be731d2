"""Resolve the identity and provenance of a test run."""

import logging
import os
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime

from result_relay.ci import detect_ci
from result_relay.git import get_git_info
from result_relay.models.run import CIInfo, GitInfo, RunMetadata, ShardInfo

log = logging.getLogger(__name__)

RUN_ID_ENV = "TEST_RUN_ID"
SHARD_INDEX_ENV = "TEST_SHARD_INDEX"
TOTAL_SHARDS_ENV = "TEST_TOTAL_SHARDS"


def resolve_run_id(ci: CIInfo, env: Mapping[str, str]) -> str:
    """Pick the run id: explicit override, then CI run id, then a random one."""
    if explicit := env.get(RUN_ID_ENV):
        return explicit
    if ci.run_id:
        return f"ci-{ci.run_id}"
    return f"run-{uuid.uuid4()}"


def resolve_shard(
    host_index: int | None, host_total: int | None, env: Mapping[str, str]
) -> ShardInfo:
    """Take the shard from the host, else from positive integer env values."""
    if host_index is not None and host_total is not None:
        return ShardInfo(index=host_index, total=host_total)

    raw_index = env.get(SHARD_INDEX_ENV)
    raw_total = env.get(TOTAL_SHARDS_ENV)
    if not raw_index or not raw_total:
        return ShardInfo()

    try:
        index, total = int(raw_index), int(raw_total)
    except ValueError:
        log.debug("Ignoring non-integer shard env values %r/%r", raw_index, raw_total)
        return ShardInfo()

    if index <= 0 or total <= 0:
        return ShardInfo()
    return ShardInfo(index=index, total=total)


@dataclass(kw_only=True)
class RunMetadataResolver:
    """Collects run metadata at run start and builds it at run end.

    CI values take precedence over git values for branch and commit.
    """

    source: str
    framework: str = "pytest"
    env: Mapping[str, str] = field(default_factory=lambda: os.environ)
    git_info: Callable[[], Awaitable[GitInfo]] = get_git_info
    clock: Callable[[], datetime] = field(default=lambda: datetime.now(UTC))

    ci: CIInfo = field(default_factory=CIInfo, init=False)
    shard: ShardInfo = field(default_factory=ShardInfo, init=False)
    run_id: str = field(default="", init=False)
    started_at: datetime | None = field(default=None, init=False)
    _git: GitInfo | None = field(default=None, init=False, repr=False)

    def start(
        self, shard_index: int | None = None, total_shards: int | None = None
    ) -> None:
        """Capture start time, CI info, shard and run id."""
        self.started_at = self.clock()
        self.ci = detect_ci(self.env)
        self.shard = resolve_shard(shard_index, total_shards, self.env)
        self.run_id = resolve_run_id(self.ci, self.env)
        log.debug(
            "Run started: run_id=%s ci=%s shard=%s/%s",
            self.run_id,
            self.ci.provider,
            self.shard.index,
            self.shard.total,
        )

    async def build(self) -> RunMetadata:
        """Return metadata for a report, looking up git info once."""
        if not self.run_id:
            self.start()
        if self._git is None:
            try:
                self._git = await self.git_info()
            except Exception as exc:
                log.debug("Could not read git info: %s", exc)
                self._git = GitInfo()

        return RunMetadata(
            run_id=self.run_id,
            source=self.source,
            framework=self.framework,
            branch=self.ci.branch or self._git.branch,
            commit_sha=self.ci.commit_sha or self._git.commit_sha,
            ci_url=self.ci.url,
            shard_index=self.shard.index,
            total_shards=self.shard.total,
            started_at=self.started_at or self.clock(),
            finished_at=self.clock(),
        )
