"""Read branch and commit from the local git checkout."""

import asyncio
import logging
from pathlib import Path

from result_relay.models.run import GitInfo

log = logging.getLogger(__name__)

GIT_TIMEOUT = 3.0


async def get_git_info(cwd: Path | None = None) -> GitInfo:
    """Return the current branch and commit, with None for anything unknown.

    A detached HEAD has no branch. Missing git, a non-repository directory
    and timeouts all yield empty values rather than errors.
    """
    branch, commit_sha = await asyncio.gather(
        rev_parse("--abbrev-ref", "HEAD", cwd=cwd),
        rev_parse("HEAD", cwd=cwd),
    )
    if branch == "HEAD":
        branch = None
    return GitInfo(branch=branch, commit_sha=commit_sha)


async def rev_parse(*args: str, cwd: Path | None = None) -> str | None:
    """Run ``git rev-parse`` and return its trimmed output, or None on failure."""
    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            "rev-parse",
            *args,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
        )
    except OSError as exc:
        log.debug("git unavailable: %s", exc)
        return None

    try:
        stdout, _ = await asyncio.wait_for(process.communicate(), GIT_TIMEOUT)
    except TimeoutError:
        log.debug("git rev-parse %s timed out", " ".join(args))
        process.kill()
        await process.wait()
        return None

    if process.returncode != 0:
        return None
    return stdout.decode().strip() or None
