"""Git branch and stash operations."""

from pathlib import Path

from gitdesk.git.runner import run_git, run_git_checked


def get_current_branch(worktree: Path) -> str | None:
    """Get the current branch name, or None if detached HEAD."""
    result = run_git(["branch", "--show-current"], worktree)
    if result.success:
        return result.output or None
    return None


def list_branches(worktree: Path) -> list[str]:
    """List local branch names in the order git reports them.

    Raises:
        ProcessFailure: if git for-each-ref fails
    """
    output = run_git_checked(
        ["for-each-ref", "--format=%(refname:short)", "refs/heads"], worktree
    )
    return [line.strip() for line in output.splitlines() if line.strip()]


def checkout_branch(repo: Path, branch: str) -> str:
    """Check out an existing branch."""
    return run_git_checked(["checkout", branch, "--"], repo)


def create_branch(repo: Path, name: str, base: str) -> str:
    """Create name from base and check it out.

    Unstaged changes are carried across by git itself.
    """
    return run_git_checked(["checkout", "-b", name, base, "--"], repo)


def stash_push(repo: Path, message: str) -> str:
    """Stash all uncommitted changes under a descriptive message."""
    return run_git_checked(["stash", "push", "-m", message], repo)
