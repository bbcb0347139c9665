"""Git remote operations."""

from pathlib import Path

from gitdesk.git.runner import run_git, run_git_checked
from gitdesk.lib.constants import FETCH_TIMEOUT_SECONDS
from gitdesk.lib.errors import ConfigurationMissing


def get_remote_url(repo: Path, remote: str = "origin") -> str:
    """Get the configured URL of a remote.

    Raises:
        ConfigurationMissing: if the remote has no URL
    """
    result = run_git(["config", "--get", f"remote.{remote}.url"], repo)
    if not result.success or not result.output:
        raise ConfigurationMissing(f"No URL configured for remote '{remote}'")
    return result.output


def fetch_branch(repo: Path, branch: str, remote: str = "origin") -> str:
    """Fetch a remote branch into a local branch of the same name."""
    return run_git_checked(
        ["fetch", remote, f"{branch}:{branch}"], repo, timeout=FETCH_TIMEOUT_SECONDS
    )
