"""Git command runner: one child process per call."""

import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from gitdesk.lib.errors import ProcessFailure

logger = logging.getLogger(__name__)


@dataclass
class GitResult:
    """Result of a git command."""
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def success(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def output(self) -> str:
        """Trimmed standard output."""
        return self.stdout.strip()

    @property
    def error_message(self) -> str:
        return self.stderr.strip() or self.stdout.strip() or f"exit status {self.returncode}"


def run_git(
    args: list[str],
    cwd: Path,
    timeout: float | None = None,
) -> GitResult:
    """
    Run a git command rooted at cwd.

    Local invocations run without a timeout; callers that touch the
    network pass one. Output is decoded as UTF-8 with undecodable bytes
    replaced, so a non-UTF-8 path or author name never aborts a read.

    Args:
        args: Git command arguments (e.g., ["status", "--porcelain"])
        cwd: Working directory for the command
        timeout: Timeout in seconds, or None to wait indefinitely

    Returns:
        GitResult with returncode, stdout, stderr, and timed_out flag
    """
    cmd = ["git", "-C", str(cwd)] + args
    logger.debug(f"Running: {' '.join(cmd)}")
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
        )
        return GitResult(
            returncode=result.returncode,
            stdout=result.stdout,
            stderr=result.stderr,
        )
    except subprocess.TimeoutExpired:
        return GitResult(
            returncode=-1,
            stdout="",
            stderr=f"Command timed out after {timeout}s",
            timed_out=True,
        )
    except OSError as e:
        # git missing from PATH or cwd unusable
        return GitResult(returncode=-1, stdout="", stderr=str(e))


def run_git_checked(
    args: list[str],
    cwd: Path,
    timeout: float | None = None,
) -> str:
    """
    Run a git command and return its trimmed stdout.

    Raises:
        ProcessFailure: if git exits non-zero, times out, or cannot start
    """
    result = run_git(args, cwd, timeout=timeout)
    if not result.success:
        logger.debug(f"git {' '.join(args)} failed in {cwd}: {result.error_message}")
        raise ProcessFailure(args, result.error_message)
    return result.output
