"""Branch creation workflow state machine using transitions library.

Decides which prompts must be answered before a branch is created:

- on the default branch with a clean tree: create directly, no prompts
- on the default branch with uncommitted changes: ask what to do with
  the changes; the base is fixed to the default branch
- anywhere else: ask for the base branch first, then about uncommitted
  changes if there are any

Usage:
    from gitdesk.workflow.fsm import BranchCreationWorkflow

    flow = BranchCreationWorkflow("feature-x", branches, uncommitted_changes=2)
    flow.submit("feature/login")        # -> Prompt.BASE_BRANCH
    flow.select_base(BaseBranchChoice.MAIN)  # -> Prompt.UNCOMMITTED_DISPOSITION
    flow.select_disposition(StashAction.LEAVE)  # -> None
    flow.intent  # BranchCreationIntent ready to execute
"""

import logging
from enum import Enum
from typing import Callable, Iterable

from transitions import Machine

from gitdesk.lib.constants import BRANCH_NAME_PATTERN, MAX_BRANCH_NAME_LEN
from gitdesk.lib.errors import ValidationFailure
from gitdesk.lib.types import BaseBranchChoice, BranchCreationIntent, BranchSet, StashAction

logger = logging.getLogger(__name__)


STATES = [
    "idle",
    "filtering",
    "direct_create",
    "await_base_branch",
    "await_uncommitted_disposition",
    "committed",
    "cancelled",
]

TERMINAL_STATES = ("committed", "cancelled")

# Transitions defined as (trigger, source, dest)
TRANSITIONS = [
    # A candidate name was typed
    {"trigger": "begin", "source": "idle", "dest": "filtering"},
    {"trigger": "reject_name", "source": "filtering", "dest": "idle"},

    # Routing once the name is valid
    {"trigger": "route_direct", "source": "filtering", "dest": "direct_create"},
    {"trigger": "route_base", "source": "filtering", "dest": "await_base_branch"},
    {"trigger": "route_disposition", "source": "filtering", "dest": "await_uncommitted_disposition"},

    # Prompt answers
    {"trigger": "choose_base", "source": "await_base_branch",
     "dest": "await_uncommitted_disposition", "conditions": "has_uncommitted_changes"},
    {"trigger": "choose_base", "source": "await_base_branch",
     "dest": "committed", "unless": "has_uncommitted_changes"},
    {"trigger": "choose_disposition", "source": "await_uncommitted_disposition", "dest": "committed"},
    {"trigger": "execute", "source": "direct_create", "dest": "committed"},

    # Abandon from any live state
    {"trigger": "cancel",
     "source": ["idle", "filtering", "direct_create", "await_base_branch",
                "await_uncommitted_disposition"],
     "dest": "cancelled"},
]


class Route(Enum):
    DIRECT_CREATE = "direct_create"
    AWAIT_BASE_BRANCH = "await_base_branch"
    AWAIT_UNCOMMITTED_DISPOSITION = "await_uncommitted_disposition"


class Prompt(Enum):
    """Question the UI must ask before the workflow can continue."""
    BASE_BRANCH = "baseBranch"
    UNCOMMITTED_DISPOSITION = "uncommittedChanges"


def validate_branch_name(name: str, existing: Iterable[str] = ()) -> str:
    """
    Check a candidate branch name, returning it stripped.

    Raises:
        ValidationFailure: if empty, longer than 255 characters, containing
            characters outside [A-Za-z0-9_/-], starting with a hyphen,
            or already a branch
    """
    candidate = (name or "").strip()
    if not candidate:
        raise ValidationFailure("branch", "Branch name cannot be empty")
    if len(candidate) > MAX_BRANCH_NAME_LEN:
        raise ValidationFailure(
            "branch", f"Branch name is longer than {MAX_BRANCH_NAME_LEN} characters"
        )
    if not BRANCH_NAME_PATTERN.match(candidate):
        raise ValidationFailure(
            "branch",
            f"Invalid branch name '{candidate}': only letters, numbers, hyphens, "
            "underscores, and forward slashes are allowed",
        )
    if candidate.startswith("-"):
        raise ValidationFailure("branch", "Branch name cannot start with a hyphen")
    if candidate in set(existing):
        raise ValidationFailure("branch", f"Branch '{candidate}' already exists")
    return candidate


def plan_creation(current_branch: str, default_branch: str, uncommitted_changes: int) -> Route:
    """Pick the first step of the workflow from repository state."""
    if current_branch == default_branch:
        if uncommitted_changes > 0:
            return Route.AWAIT_UNCOMMITTED_DISPOSITION
        return Route.DIRECT_CREATE
    return Route.AWAIT_BASE_BRANCH


def switch_requires_disposition(uncommitted_changes: int) -> bool:
    """A branch switch only needs a prompt when there is something to carry."""
    return uncommitted_changes > 0


class BranchCreationWorkflow:
    """State machine for one branch creation.

    Wraps the transitions library with the prompt logic. One instance per
    creation attempt; terminal once committed or cancelled.
    """

    def __init__(
        self,
        current_branch: str,
        branches: BranchSet,
        uncommitted_changes: int,
        on_transition: Callable[[str, str, str], None] | None = None,
    ):
        """Initialize the workflow.

        Args:
            current_branch: Checked-out branch
            branches: Local branches, used for collisions and the default branch
            uncommitted_changes: Number of changed files in the working copy
            on_transition: Optional callback(from_state, to_state, trigger)
        """
        self.current_branch = current_branch
        self.branches = branches
        self.default_branch = branches.default_branch
        self.uncommitted_changes = uncommitted_changes
        self.on_transition = on_transition

        self.name: str | None = None
        self.base_choice = BaseBranchChoice.MAIN
        self.stash_action: StashAction | None = None

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial="idle",
            auto_transitions=False,  # Only explicit transitions
            send_event=True,  # Pass EventData to callbacks
            after_state_change="on_state_change",
        )

    def has_uncommitted_changes(self, event=None) -> bool:
        return self.uncommitted_changes > 0

    def on_state_change(self, event) -> None:
        """Callback after any state transition."""
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.info(f"[BRANCH] {self.name or '?'}: {from_state} -> {to_state} ({trigger})")

        if self.on_transition:
            self.on_transition(from_state, to_state, trigger)

    @property
    def is_finished(self) -> bool:
        return self.state in TERMINAL_STATES

    @property
    def pending_prompt(self) -> Prompt | None:
        if self.state == "await_base_branch":
            return Prompt.BASE_BRANCH
        if self.state == "await_uncommitted_disposition":
            return Prompt.UNCOMMITTED_DISPOSITION
        return None

    @property
    def intent(self) -> BranchCreationIntent | None:
        """The creation to execute, once the workflow is committed."""
        if self.state != "committed" or self.name is None:
            return None
        return BranchCreationIntent(
            name=self.name,
            base_branch=self.base_choice,
            stash_action=self.stash_action,
        )

    def submit(self, name: str) -> Prompt | None:
        """
        Validate a candidate name and route the workflow.

        Returns:
            The first prompt to show, or None when the branch can be
            created straight away.

        Raises:
            ValidationFailure: if the name is rejected; the workflow goes
                back to idle so another name can be submitted
        """
        self.begin()
        try:
            self.name = validate_branch_name(name, self.branches.names)
        except ValidationFailure:
            self.reject_name()
            raise

        route = plan_creation(self.current_branch, self.default_branch, self.uncommitted_changes)
        if route is Route.DIRECT_CREATE:
            self.base_choice = BaseBranchChoice.MAIN
            self.route_direct()
            self.execute()
        elif route is Route.AWAIT_UNCOMMITTED_DISPOSITION:
            self.base_choice = BaseBranchChoice.MAIN
            self.route_disposition()
        else:
            # Preselect the current branch, as the base prompt does
            self.base_choice = BaseBranchChoice.CURRENT
            self.route_base()
        return self.pending_prompt

    def select_base(self, choice: BaseBranchChoice) -> Prompt | None:
        """Answer the base-branch prompt."""
        self.base_choice = choice
        self.choose_base()
        return self.pending_prompt

    def select_disposition(self, action: StashAction) -> Prompt | None:
        """Answer the uncommitted-changes prompt."""
        self.stash_action = action
        self.choose_disposition()
        return self.pending_prompt

    def abort(self) -> None:
        """Cancel the workflow; nothing has been executed yet."""
        self.cancel()


def resolve_intent(
    current_branch: str,
    branches: BranchSet,
    uncommitted_changes: int,
    name: str,
    base_choice: BaseBranchChoice,
    stash_action: StashAction | None,
) -> BranchCreationIntent:
    """
    Run a whole workflow with answers supplied up front.

    Answers the UI gave for prompts the workflow never asks are ignored
    (the base is fixed to the default branch when already on it).

    Raises:
        ValidationFailure: if the name is rejected, or the disposition
            prompt is required and no stash action was given
    """
    flow = BranchCreationWorkflow(current_branch, branches, uncommitted_changes)
    prompt = flow.submit(name)
    if prompt is Prompt.BASE_BRANCH:
        prompt = flow.select_base(base_choice)
    if prompt is Prompt.UNCOMMITTED_DISPOSITION:
        if stash_action is None:
            flow.abort()
            raise ValidationFailure(
                "stashAction",
                "There are uncommitted changes: choose 'leave' or 'bring'",
            )
        flow.select_disposition(stash_action)
    return flow.intent
