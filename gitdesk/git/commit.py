"""Git index and commit operations."""

from pathlib import Path

from gitdesk.git.runner import run_git, run_git_checked
from gitdesk.lib.errors import ValidationFailure


def stage_file(worktree: Path, path: str) -> str:
    """Stage one file (git add)."""
    return run_git_checked(["add", "--", path], worktree)


def unstage_file(worktree: Path, path: str) -> str:
    """Remove one file from the index, keeping the working-tree copy."""
    return run_git_checked(["restore", "--staged", "--", path], worktree)


def stage_all(worktree: Path) -> str:
    """Stage all changes (new, modified, deleted)."""
    return run_git_checked(["add", "-A"], worktree)


def unstage_all(worktree: Path) -> str:
    """Unstage everything.

    On an unborn HEAD there is nothing to reset to, so the index is
    emptied instead.
    """
    if run_git(["rev-parse", "--verify", "--quiet", "HEAD"], worktree).success:
        return run_git_checked(["reset", "-q"], worktree)
    return run_git_checked(["rm", "--cached", "-r", "-q", "--ignore-unmatch", "."], worktree)


def discard_changes(worktree: Path, path: str) -> str:
    """Restore a file's working-tree copy from the index."""
    return run_git_checked(["checkout", "--", path], worktree)


def build_commit_message(message: str, description: str | None = None) -> str:
    """Join summary and optional description the way git expects."""
    summary = (message or "").strip()
    if not summary:
        raise ValidationFailure("message", "Commit message cannot be empty")
    if description and description.strip():
        return f"{summary}\n\n{description.strip()}"
    return summary


def commit(worktree: Path, message: str, description: str | None = None) -> str:
    """Create a commit from the index.

    Raises:
        ValidationFailure: if the message is empty (git is not called)
        ProcessFailure: if git commit fails
    """
    full_message = build_commit_message(message, description)
    return run_git_checked(["commit", "-m", full_message], worktree)


def amend_last_commit(worktree: Path, message: str | None = None) -> str:
    """Amend HEAD, replacing its message only when a non-blank one is given."""
    args = ["commit", "--amend"]
    if message and message.strip():
        args += ["-m", message.strip()]
    else:
        args.append("--no-edit")
    return run_git_checked(args, worktree)
