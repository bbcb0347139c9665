"""Execution of branch creation and switching.

Steps run strictly in order. The first failure aborts the rest and is
re-raised with the names of the steps that already completed. Completed
steps are not undone: a stash made before a failed checkout stays in the
stash list.
"""

import logging
from pathlib import Path
from typing import Callable

from gitdesk.git.branch import checkout_branch, create_branch, stash_push
from gitdesk.git.remote import fetch_branch
from gitdesk.lib.constants import UNKNOWN_BRANCH
from gitdesk.lib.errors import ProcessFailure, ValidationFailure
from gitdesk.lib.types import BaseBranchChoice, BranchCreationIntent, BranchSet, StashAction

logger = logging.getLogger(__name__)

Step = tuple[str, Callable[[], str]]


def resolve_base(intent: BranchCreationIntent, current_branch: str, default_branch: str) -> str:
    """Turn the main/current choice into a branch name."""
    if intent.base_branch is BaseBranchChoice.MAIN:
        return default_branch
    return current_branch or default_branch


def creation_stash_message(current_branch: str | None, name: str) -> str:
    return f"WIP on {current_branch or 'unknown'} before creating {name}"


def switch_stash_message(current_branch: str | None, target: str) -> str:
    return f"WIP on {current_branch or 'unknown'} before switching to {target}"


def run_chain(steps: list[Step]) -> list[str]:
    """
    Run steps in order, stopping at the first failure.

    Returns:
        Names of all steps, all completed

    Raises:
        ProcessFailure: from the failing step, with `completed` listing the
            steps that ran before it
    """
    completed: list[str] = []
    for name, action in steps:
        try:
            action()
        except ProcessFailure as e:
            if completed:
                logger.warning(
                    f"Step '{name}' failed after {', '.join(completed)}; "
                    "completed steps are left in place"
                )
            raise ProcessFailure(e.git_args, e.message, completed=completed) from e
        completed.append(name)
        logger.debug(f"Step '{name}' done")
    return completed


def create_branch_steps(
    repo: Path,
    intent: BranchCreationIntent,
    current_branch: str,
    default_branch: str,
    has_changes: bool,
) -> list[Step]:
    """Build the ordered steps for a creation intent."""
    base = resolve_base(intent, current_branch, default_branch)
    steps: list[Step] = []
    if has_changes and intent.stash_action is StashAction.LEAVE:
        message = creation_stash_message(current_branch, intent.name)
        steps.append(("stash", lambda: stash_push(repo, message)))
    # With BRING, checkout -b carries the changes across on its own
    steps.append(("create", lambda: create_branch(repo, intent.name, base)))
    return steps


def execute_creation(
    repo: Path,
    intent: BranchCreationIntent,
    current_branch: str,
    default_branch: str,
    has_changes: bool,
) -> list[str]:
    """Stash if asked, then create and check out the branch."""
    logger.info(
        f"Creating branch {intent.name} from {resolve_base(intent, current_branch, default_branch)}"
        f" (stash action: {intent.stash_action.value if intent.stash_action else 'none'})"
    )
    return run_chain(create_branch_steps(repo, intent, current_branch, default_branch, has_changes))


def execute_switch(
    repo: Path,
    target: str,
    current_branch: str | None,
    stash_action: StashAction | None,
    has_changes: bool,
) -> list[str]:
    """Stash if asked, then check out an existing branch."""
    steps: list[Step] = []
    if has_changes and stash_action is StashAction.LEAVE:
        message = switch_stash_message(current_branch, target)
        steps.append(("stash", lambda: stash_push(repo, message)))
    steps.append(("checkout", lambda: checkout_branch(repo, target)))
    logger.info(f"Switching to branch {target}")
    return run_chain(steps)


def validate_switch_target(name: str, branches: BranchSet) -> str:
    """The target of a branch switch must be an existing local branch."""
    candidate = (name or "").strip()
    if not candidate:
        raise ValidationFailure("branch", "Branch name cannot be empty")
    if candidate not in branches:
        raise ValidationFailure("branch", f"Branch '{candidate}' does not exist")
    return candidate


def validate_pr_branch(branch: str) -> str:
    """Reject branch names a pull request switch cannot use."""
    candidate = (branch or "").strip()
    if not candidate:
        raise ValidationFailure("branch", "Invalid branch name received")
    if candidate == UNKNOWN_BRANCH:
        raise ValidationFailure("branch", "Branch name could not be determined from PR data")
    if candidate.startswith("-"):
        raise ValidationFailure("branch", f"Branch name cannot start with a hyphen: {candidate}")
    if " " in candidate or ".." in candidate or candidate.endswith("/"):
        logger.warning(f"Branch name may contain invalid characters: {candidate}")
    return candidate


def execute_pr_switch(repo: Path, branch: str, local_branches: tuple[str, ...]) -> list[str]:
    """Fetch the pull request branch if it is not local, then check it out."""
    steps: list[Step] = []
    if branch not in local_branches:
        logger.info(f"Branch {branch} does not exist locally, fetching from remote")
        steps.append(("fetch", lambda: fetch_branch(repo, branch)))
    steps.append(("checkout", lambda: checkout_branch(repo, branch)))
    return run_chain(steps)
