"""Best-effort git plumbing: commit on write, look up the last revision of a file."""

import asyncio
import os

from docsync.logging_config import get_logger

logger = get_logger(__name__)


class GitCommandError(Exception):
    """A git invocation exited non-zero."""


class GitClient:
    """Run git commands against a repository root.

    Every public method swallows failures after logging them: version control
    is a side channel and must never abort a sync or a save.
    """

    def __init__(self, repo_path: str, enabled: bool = True) -> None:
        self._repo_path = repo_path
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    async def ensure_repository(self) -> bool:
        """Initialize a repository at the root if there is none yet."""
        if not self._enabled:
            return False
        try:
            inside = await self._run("rev-parse", "--is-inside-work-tree")
            if inside.strip() == "true":
                return True
        except GitCommandError:
            pass
        except OSError:
            logger.warning("git is not available; version control disabled")
            self._enabled = False
            return False

        try:
            await self._run("init")
        except (GitCommandError, OSError):
            logger.warning("Failed to initialize git repo at %s", self._repo_path)
            return False
        logger.info("Initialized git repo at %s", self._repo_path)
        return True

    async def commit(self, path: str, message: str) -> bool:
        """Stage `path` and commit it. Returns whether a commit was made."""
        if not self._enabled:
            return False
        try:
            await self._run("add", "--", path)
            await self._run("commit", "-m", message, "--", path)
        except (GitCommandError, OSError) as exc:
            logger.warning("Git commit skipped for %s: %s", path, exc)
            return False
        logger.info("Committed %s", path)
        return True

    async def remove(self, path: str, message: str) -> bool:
        """Record the deletion of `path` (already gone from disk) and commit it."""
        if not self._enabled:
            return False
        try:
            await self._run("rm", "--cached", "--ignore-unmatch", "--", path)
            await self._run("commit", "-m", message, "--", path)
        except (GitCommandError, OSError) as exc:
            logger.warning("Git delete skipped for %s: %s", path, exc)
            return False
        return True

    async def revision(self, path: str) -> str | None:
        """Return the hash of the last commit touching `path`, if any."""
        if not self._enabled:
            return None
        try:
            output = await self._run("log", "-n", "1", "--format=%H", "--", path)
        except (GitCommandError, OSError):
            return None
        return output.strip() or None

    async def _run(self, *args: str) -> str:
        process = await asyncio.create_subprocess_exec(
            "git",
            "-C",
            os.fspath(self._repo_path),
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise GitCommandError(
                f"git {args[0]} exited {process.returncode}: "
                f"{stderr.decode('utf-8', errors='replace').strip()}"
            )
        return stdout.decode("utf-8", errors="replace")
