"""Git operations for gitdesk.

Every git invocation goes through run_git in runner.py, one child
process per call.

Return type conventions:
- Functions returning str: trimmed stdout; raise ProcessFailure on a
  non-zero exit. Examples: stage_file(), commit(), create_branch()
- Readers returning parsed values raise ProcessFailure so the caller can
  decide how to degrade. Examples: read_status(), list_branches()
"""

from gitdesk.git.runner import (
    GitResult,
    run_git,
    run_git_checked,
)
from gitdesk.git.repo import find_repo_root
from gitdesk.git.status import (
    StatusReport,
    parse_status,
    read_status,
)
from gitdesk.git.commit import (
    stage_file,
    unstage_file,
    stage_all,
    unstage_all,
    discard_changes,
    commit,
    amend_last_commit,
)
from gitdesk.git.branch import (
    get_current_branch,
    list_branches,
    checkout_branch,
    create_branch,
    stash_push,
)
from gitdesk.git.remote import (
    get_remote_url,
    fetch_branch,
)
from gitdesk.git.log import read_log

__all__ = [
    # runner
    "GitResult",
    "run_git",
    "run_git_checked",
    "find_repo_root",
    # status
    "StatusReport",
    "parse_status",
    "read_status",
    # commit
    "stage_file",
    "unstage_file",
    "stage_all",
    "unstage_all",
    "discard_changes",
    "commit",
    "amend_last_commit",
    # branch
    "get_current_branch",
    "list_branches",
    "checkout_branch",
    "create_branch",
    "stash_push",
    # remote
    "get_remote_url",
    "fetch_branch",
    # log
    "read_log",
]
