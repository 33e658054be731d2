"""Tests for run metadata resolution."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock

import pytest

from result_relay.metadata import RunMetadataResolver, resolve_run_id, resolve_shard
from result_relay.models.run import CIInfo, GitInfo, ShardInfo

STARTED = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def test_run_id_prefers_explicit_override() -> None:
    """TEST_RUN_ID wins over CI values."""
    ci = CIInfo(run_id="42")
    assert resolve_run_id(ci, {"TEST_RUN_ID": "custom"}) == "custom"


def test_run_id_uses_ci_run_id() -> None:
    """CI run ids are prefixed."""
    assert resolve_run_id(CIInfo(run_id="42-1"), {}) == "ci-42-1"


def test_run_id_falls_back_to_random() -> None:
    """Without CI a random id is generated."""
    run_id = resolve_run_id(CIInfo(), {})

    assert run_id.startswith("run-")
    assert run_id != resolve_run_id(CIInfo(), {})


def test_shard_from_host() -> None:
    """Host-provided shard info is used as-is."""
    env = {"TEST_SHARD_INDEX": "1", "TEST_TOTAL_SHARDS": "9"}
    assert resolve_shard(2, 4, env) == ShardInfo(index=2, total=4)


def test_shard_from_env() -> None:
    """Shard info falls back to environment variables."""
    env = {"TEST_SHARD_INDEX": "3", "TEST_TOTAL_SHARDS": "5"}
    assert resolve_shard(None, None, env) == ShardInfo(index=3, total=5)


@pytest.mark.parametrize(
    "env",
    [
        {},
        {"TEST_SHARD_INDEX": "3"},
        {"TEST_SHARD_INDEX": "0", "TEST_TOTAL_SHARDS": "5"},
        {"TEST_SHARD_INDEX": "-1", "TEST_TOTAL_SHARDS": "5"},
        {"TEST_SHARD_INDEX": "one", "TEST_TOTAL_SHARDS": "5"},
    ],
)
def test_shard_ignores_missing_or_invalid_env(env: dict[str, str]) -> None:
    """Only positive integers are accepted."""
    assert resolve_shard(None, None, env) == ShardInfo()


async def test_build_prefers_ci_over_git() -> None:
    """Branch and commit come from CI when available, else git."""
    resolver = RunMetadataResolver(
        source="checkout-e2e",
        env={"GITHUB_ACTIONS": "true", "GITHUB_REF_NAME": "ci-branch"},
        git_info=AsyncMock(return_value=GitInfo(branch="local", commit_sha="abc")),
        clock=lambda: STARTED,
    )
    resolver.start()

    metadata = await resolver.build()

    assert metadata.branch == "ci-branch"
    assert metadata.commit_sha == "abc"
    assert metadata.source == "checkout-e2e"
    assert metadata.framework == "pytest"
    assert metadata.started_at == STARTED
    assert metadata.finished_at == STARTED


async def test_build_looks_up_git_once() -> None:
    """Git info is cached across builds."""
    git_info = AsyncMock(return_value=GitInfo(branch="main", commit_sha="abc"))
    resolver = RunMetadataResolver(source="nightly", env={}, git_info=git_info)
    resolver.start(shard_index=1, total_shards=2)

    first = await resolver.build()
    second = await resolver.build()

    git_info.assert_awaited_once()
    assert first.run_id == second.run_id
    assert first.shard_index == 1
    assert first.total_shards == 2


async def test_build_survives_git_errors() -> None:
    """A failing git lookup leaves branch and commit empty."""
    resolver = RunMetadataResolver(
        source="nightly", env={}, git_info=AsyncMock(side_effect=OSError("no git"))
    )
    resolver.start()

    metadata = await resolver.build()

    assert metadata.branch is None
    assert metadata.commit_sha is None
    assert metadata.run_id.startswith("run-")
