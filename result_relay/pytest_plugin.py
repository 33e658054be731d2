"""pytest plugin that reports test outcomes through the relay pipeline.

The plugin stays inert unless a source label is given with ``--relay-source``
or the ``RESULT_RELAY_SOURCE`` environment variable.
"""

import asyncio
import mimetypes
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pytest

from result_relay.config import SOURCE_ENV
from result_relay.host import CompletedTest, RawAttachment, RunListener, RunStart
from result_relay.pipeline import PipelineCoordinator

PLUGIN_NAME = "result-relay-reporter"
ATTACHMENT_PROPERTY = "attachment"

# Marks that carry pytest behaviour rather than a user-facing tag.
BUILTIN_MARKS = frozenset(
    [
        "parametrize",
        "skip",
        "skipif",
        "xfail",
        "usefixtures",
        "filterwarnings",
        "asyncio",
        "timeout",
    ]
)


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("result-relay", "test result reporting")
    group.addoption(
        "--relay-source",
        dest="relay_source",
        default=None,
        help=f"Source label for reported results (or set {SOURCE_ENV})",
    )
    group.addoption(
        "--relay-api-url",
        dest="relay_api_url",
        default=None,
        help="Override the ingestion API endpoint",
    )


def pytest_configure(config: pytest.Config) -> None:
    source = config.getoption("relay_source") or os.environ.get(SOURCE_ENV)
    if not source:
        return

    options: dict[str, Any] = {"source": source}
    if api_url := config.getoption("relay_api_url"):
        options["api_url"] = api_url

    reporter = RelayPytestReporter(PipelineCoordinator.from_options(options))
    config.pluginmanager.register(reporter, PLUGIN_NAME)


class RelayPytestReporter:
    """Translates pytest hooks into run lifecycle calls."""

    def __init__(self, listener: RunListener) -> None:
        self.listener = listener
        self._tags: dict[str, Sequence[str]] = {}

    def pytest_sessionstart(self, session: pytest.Session) -> None:
        self.listener.on_run_start(RunStart())

    def pytest_itemcollected(self, item: pytest.Item) -> None:
        self._tags[item.nodeid] = marker_tags(item)

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        if report.when == "call" or (
            report.when == "setup" and report.outcome != "passed"
        ):
            self.listener.on_record(
                completed_test(report, self._tags.get(report.nodeid, ()))
            )

    def pytest_sessionfinish(self, session: pytest.Session) -> None:
        asyncio.run(self.listener.on_run_end())


def marker_tags(item: pytest.Item) -> Sequence[str]:
    """User marks on an item, as ``@name`` tags."""
    tags: list[str] = []
    for mark in item.iter_markers():
        tag = f"@{mark.name}"
        if mark.name not in BUILTIN_MARKS and tag not in tags:
            tags.append(tag)
    return tags


def completed_test(report: pytest.TestReport, tags: Sequence[str]) -> CompletedTest:
    """Build the runner-neutral view of a test report."""
    file, *scopes = report.nodeid.split("::")
    title = scopes.pop() if scopes else file

    return CompletedTest(
        title=title,
        file=file,
        suite_path=scopes,
        tags=tags,
        status=report.outcome,
        duration_ms=report.duration * 1000,
        error=report.longreprtext if report.failed else None,
        stdout=report.capstdout.splitlines(),
        stderr=report.capstderr.splitlines(),
        attachments=[
            attachment(str(value))
            for name, value in report.user_properties
            if name == ATTACHMENT_PROPERTY
        ],
    )


def attachment(path: str) -> RawAttachment:
    """Describe a file recorded with ``record_property("attachment", path)``."""
    content_type, _ = mimetypes.guess_type(path)
    return RawAttachment(
        name=Path(path).stem,
        path=path,
        content_type=content_type or "application/octet-stream",
    )
