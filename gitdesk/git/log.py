"""Git log operations."""

from pathlib import Path

from gitdesk.git.runner import run_git_checked
from gitdesk.lib.constants import HISTORY_PAGE_SIZE, LOG_PRETTY_FORMAT


def read_log(worktree: Path, skip: int = 0, count: int = HISTORY_PAGE_SIZE) -> str:
    """
    Get one page of history with per-commit --shortstat lines.

    Args:
        worktree: Path to worktree
        skip: Number of commits (from HEAD) to skip
        count: Maximum number of commits to return

    Raises:
        ProcessFailure: if git log fails (including on an unborn HEAD)
    """
    return run_git_checked(
        [
            "log",
            f"--pretty=format:{LOG_PRETTY_FORMAT}",
            "--shortstat",
            "--no-merges",
            f"--skip={max(skip, 0)}",
            f"-{count}",
        ],
        worktree,
    )
