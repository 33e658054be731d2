"""Fixtures for integration tests."""

import subprocess
from pathlib import Path
from typing import Protocol

import pytest


class GitFn(Protocol):
    """Protocol for running git in the test repo."""

    def __call__(self, *args: str) -> str:
        """Run a git command and return its stripped output."""


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """Create an initialized git repository."""
    repo = tmp_path / "repo"
    repo.mkdir()
    for args in (
        ["init"],
        ["config", "user.email", "test@example.com"],
        ["config", "user.name", "Test"],
    ):
        subprocess.run(
            ["git", *args],
            cwd=repo,
            check=True,
            capture_output=True,
        )
    return repo


@pytest.fixture
def git(git_repo: Path) -> GitFn:
    """Return a function to run git commands in the test repo."""

    def _git(*args: str) -> str:
        result = subprocess.run(
            ["git", *args],
            cwd=git_repo,
            check=True,
            capture_output=True,
            text=True,
        )
        return result.stdout.strip()

    return _git
