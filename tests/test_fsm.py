"""Tests for gitdesk.workflow.fsm module."""

import pytest

from gitdesk.lib.errors import ValidationFailure
from gitdesk.lib.types import BaseBranchChoice, BranchSet, StashAction
from gitdesk.workflow.fsm import (
    BranchCreationWorkflow,
    Prompt,
    Route,
    STATES,
    TRANSITIONS,
    plan_creation,
    resolve_intent,
    switch_requires_disposition,
    validate_branch_name,
)

BRANCHES = BranchSet(("main", "develop", "feature/old"))


class TestFSMStates:
    """Tests for FSM state definitions."""

    def test_all_states_defined(self):
        expected = [
            "idle", "filtering", "direct_create", "await_base_branch",
            "await_uncommitted_disposition", "committed", "cancelled",
        ]
        assert set(STATES) == set(expected)

    def test_terminal_states_have_no_outgoing_transitions(self):
        for t in TRANSITIONS:
            sources = t["source"] if isinstance(t["source"], list) else [t["source"]]
            assert "committed" not in sources
            assert "cancelled" not in sources


class TestValidateBranchName:
    """Branch name rules."""

    def test_valid_names(self):
        assert validate_branch_name("feature/login-v2") == "feature/login-v2"
        assert validate_branch_name("  fix_123 ") == "fix_123"

    @pytest.mark.parametrize("name", ["", "   ", "has space", "dots..bad", "ünïcode", "a~b", "-f", "--force"])
    def test_invalid_names(self, name):
        with pytest.raises(ValidationFailure):
            validate_branch_name(name)

    def test_length_limit(self):
        assert validate_branch_name("a" * 255) == "a" * 255
        with pytest.raises(ValidationFailure):
            validate_branch_name("a" * 256)

    def test_existing_branch(self):
        with pytest.raises(ValidationFailure, match="already exists"):
            validate_branch_name("develop", BRANCHES.names)


class TestPlanCreation:
    """Routing from repository state."""

    def test_on_default_clean(self):
        assert plan_creation("main", "main", 0) is Route.DIRECT_CREATE

    def test_on_default_dirty(self):
        assert plan_creation("main", "main", 3) is Route.AWAIT_UNCOMMITTED_DISPOSITION

    def test_elsewhere(self):
        assert plan_creation("develop", "main", 0) is Route.AWAIT_BASE_BRANCH
        assert plan_creation("develop", "main", 2) is Route.AWAIT_BASE_BRANCH

    def test_switch_prompt(self):
        assert switch_requires_disposition(0) is False
        assert switch_requires_disposition(1) is True


class TestBranchCreationWorkflow:
    """Driving the machine through its prompts."""

    def test_direct_create(self):
        flow = BranchCreationWorkflow("main", BRANCHES, 0)
        assert flow.submit("feature/new") is None
        assert flow.state == "committed"
        assert flow.intent.base_branch is BaseBranchChoice.MAIN
        assert flow.intent.stash_action is None

    def test_disposition_only_on_default_branch(self):
        flow = BranchCreationWorkflow("main", BRANCHES, 2)
        assert flow.submit("feature/new") is Prompt.UNCOMMITTED_DISPOSITION
        assert flow.select_disposition(StashAction.BRING) is None
        assert flow.intent.base_branch is BaseBranchChoice.MAIN
        assert flow.intent.stash_action is StashAction.BRING

    def test_base_then_disposition(self):
        flow = BranchCreationWorkflow("develop", BRANCHES, 1)
        assert flow.submit("feature/new") is Prompt.BASE_BRANCH
        assert flow.base_choice is BaseBranchChoice.CURRENT
        assert flow.select_base(BaseBranchChoice.MAIN) is Prompt.UNCOMMITTED_DISPOSITION
        flow.select_disposition(StashAction.LEAVE)
        assert flow.intent.base_branch is BaseBranchChoice.MAIN
        assert flow.intent.stash_action is StashAction.LEAVE

    def test_base_only_when_clean(self):
        flow = BranchCreationWorkflow("develop", BRANCHES, 0)
        flow.submit("feature/new")
        assert flow.select_base(BaseBranchChoice.CURRENT) is None
        assert flow.is_finished
        assert flow.intent.base_branch is BaseBranchChoice.CURRENT

    def test_rejected_name_returns_to_idle(self):
        flow = BranchCreationWorkflow("main", BRANCHES, 0)
        with pytest.raises(ValidationFailure):
            flow.submit("bad name")
        assert flow.state == "idle"
        assert flow.submit("good-name") is None

    def test_cancel(self):
        flow = BranchCreationWorkflow("develop", BRANCHES, 0)
        flow.submit("feature/new")
        flow.abort()
        assert flow.state == "cancelled"
        assert flow.is_finished
        assert flow.intent is None

    def test_terminal_state_rejects_triggers(self):
        flow = BranchCreationWorkflow("main", BRANCHES, 0)
        flow.submit("feature/new")
        with pytest.raises(Exception):
            flow.abort()

    def test_transition_callback(self):
        seen = []
        flow = BranchCreationWorkflow(
            "main", BRANCHES, 0, on_transition=lambda src, dst, trig: seen.append((src, dst, trig))
        )
        flow.submit("feature/new")
        assert seen == [
            ("idle", "filtering", "begin"),
            ("filtering", "direct_create", "route_direct"),
            ("direct_create", "committed", "execute"),
        ]

    def test_default_branch_master(self):
        flow = BranchCreationWorkflow("master", BranchSet(("master", "x")), 0)
        assert flow.submit("y") is None


class TestResolveIntent:
    """Answering every prompt up front."""

    def test_ignores_unasked_base(self):
        intent = resolve_intent("main", BRANCHES, 0, "feature/x", BaseBranchChoice.CURRENT, None)
        assert intent.base_branch is BaseBranchChoice.MAIN

    def test_requires_stash_action_when_dirty(self):
        with pytest.raises(ValidationFailure, match="stashAction"):
            resolve_intent("develop", BRANCHES, 3, "feature/x", BaseBranchChoice.CURRENT, None)

    def test_full_answers(self):
        intent = resolve_intent(
            "develop", BRANCHES, 3, "feature/x", BaseBranchChoice.CURRENT, StashAction.LEAVE
        )
        assert intent.name == "feature/x"
        assert intent.base_branch is BaseBranchChoice.CURRENT
        assert intent.stash_action is StashAction.LEAVE
