"""Detect the CI provider from environment variables."""

import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass

from result_relay.models.run import CIInfo, CIProvider

type Environ = Mapping[str, str]

BRANCH_PREFIXES = ("origin/", "refs/heads/")


def normalize_branch(branch: str | None) -> str | None:
    """Strip remote and ref prefixes (``origin/main``, ``refs/heads/main``)."""
    if not branch:
        return None
    for prefix in BRANCH_PREFIXES:
        if branch.startswith(prefix):
            return branch.removeprefix(prefix)
    return branch


def _github_actions(env: Environ) -> CIInfo:
    server = env.get("GITHUB_SERVER_URL")
    repository = env.get("GITHUB_REPOSITORY")
    run_id = env.get("GITHUB_RUN_ID")
    attempt = env.get("GITHUB_RUN_ATTEMPT")

    url = None
    if server and repository and run_id:
        url = f"{server}/{repository}/actions/runs/{run_id}"

    return CIInfo(
        provider="github-actions",
        url=url,
        branch=env.get("GITHUB_REF_NAME") or None,
        commit_sha=env.get("GITHUB_SHA") or None,
        run_id=f"{run_id}-{attempt}" if run_id and attempt else run_id or None,
    )


def _gitlab_ci(env: Environ) -> CIInfo:
    return CIInfo(
        provider="gitlab-ci",
        url=env.get("CI_JOB_URL") or None,
        branch=env.get("CI_COMMIT_REF_NAME") or None,
        commit_sha=env.get("CI_COMMIT_SHA") or None,
        run_id=env.get("CI_PIPELINE_ID") or None,
    )


def _circleci(env: Environ) -> CIInfo:
    return CIInfo(
        provider="circleci",
        url=env.get("CIRCLE_BUILD_URL") or None,
        branch=env.get("CIRCLE_BRANCH") or None,
        commit_sha=env.get("CIRCLE_SHA1") or None,
        run_id=env.get("CIRCLE_WORKFLOW_ID") or None,
    )


def _jenkins(env: Environ) -> CIInfo:
    return CIInfo(
        provider="jenkins",
        url=env.get("BUILD_URL") or None,
        branch=normalize_branch(env.get("GIT_BRANCH")),
        commit_sha=env.get("GIT_COMMIT") or None,
        run_id=env.get("BUILD_ID") or None,
    )


def _azure_devops(env: Environ) -> CIInfo:
    collection = env.get("SYSTEM_TEAMFOUNDATIONCOLLECTIONURI")
    project = env.get("SYSTEM_TEAMPROJECT")
    build_id = env.get("BUILD_BUILDID")

    url = None
    if collection and project and build_id:
        url = f"{collection}{project}/_build/results?buildId={build_id}"

    return CIInfo(
        provider="azure-devops",
        url=url,
        branch=normalize_branch(env.get("BUILD_SOURCEBRANCH")),
        commit_sha=env.get("BUILD_SOURCEVERSION") or None,
        run_id=build_id or None,
    )


def _bitbucket_pipelines(env: Environ) -> CIInfo:
    origin = env.get("BITBUCKET_GIT_HTTP_ORIGIN")
    build_number = env.get("BITBUCKET_BUILD_NUMBER")

    url = None
    if origin and env.get("BITBUCKET_REPO_SLUG") and build_number:
        url = f"{origin}/addon/pipelines/home#!/results/{build_number}"

    return CIInfo(
        provider="bitbucket-pipelines",
        url=url,
        branch=env.get("BITBUCKET_BRANCH") or None,
        commit_sha=env.get("BITBUCKET_COMMIT") or None,
        run_id=build_number or None,
    )


@dataclass(frozen=True, kw_only=True)
class CIProviderMatcher:
    """Recognizes one CI provider by a marker variable and extracts its info."""

    provider: CIProvider
    marker: str
    extract: Callable[[Environ], CIInfo]

    def matches(self, env: Environ) -> bool:
        """Check whether the marker variable is set."""
        return bool(env.get(self.marker))


# First match wins.
CI_PROVIDERS: Sequence[CIProviderMatcher] = (
    CIProviderMatcher(
        provider="github-actions", marker="GITHUB_ACTIONS", extract=_github_actions
    ),
    CIProviderMatcher(provider="gitlab-ci", marker="GITLAB_CI", extract=_gitlab_ci),
    CIProviderMatcher(provider="circleci", marker="CIRCLECI", extract=_circleci),
    CIProviderMatcher(provider="jenkins", marker="JENKINS_URL", extract=_jenkins),
    CIProviderMatcher(
        provider="azure-devops", marker="TF_BUILD", extract=_azure_devops
    ),
    CIProviderMatcher(
        provider="bitbucket-pipelines",
        marker="BITBUCKET_PIPELINE_UUID",
        extract=_bitbucket_pipelines,
    ),
)


def detect_ci(env: Environ | None = None) -> CIInfo:
    """Return the info of the first matching CI provider, or an empty CIInfo."""
    env = os.environ if env is None else env
    for matcher in CI_PROVIDERS:
        if matcher.matches(env):
            return matcher.extract(env)
    return CIInfo()


def is_ci(env: Environ | None = None) -> bool:
    """Check whether the process runs under any CI system."""
    env = os.environ if env is None else env
    return bool(env.get("CI")) or any(matcher.matches(env) for matcher in CI_PROVIDERS)
