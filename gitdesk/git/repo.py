"""Repository discovery."""

from pathlib import Path

from gitdesk.git.runner import run_git
from gitdesk.lib.errors import ConfigurationMissing


def find_repo_root(path: Path) -> Path:
    """Resolve the top level of the working copy containing path.

    Raises:
        ConfigurationMissing: if path is not inside a git working copy
    """
    result = run_git(["rev-parse", "--show-toplevel"], path)
    if not result.success or not result.output:
        raise ConfigurationMissing(f"No git repository found at {path}")
    return Path(result.output)
