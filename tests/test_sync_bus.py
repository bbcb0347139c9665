"""Tests for gitdesk.bus.sync_bus module."""

import asyncio
from pathlib import Path
from unittest.mock import patch, MagicMock

import pytest

from gitdesk.bus import messages as msg
from gitdesk.bus.pubsub import Topic
from gitdesk.bus.sync_bus import SyncBus
from gitdesk.git.status import StatusReport
from gitdesk.lib.config import Settings
from gitdesk.lib.errors import ProcessFailure
from gitdesk.lib.github import PullRequestListing
from gitdesk.lib.types import (
    BaseBranchChoice,
    ChangeOrigin,
    ChangeRecord,
    RepoIdentity,
    StashAction,
    StatusCode,
)

REPO = Path("/repo")


def report(head="main", changes=()):
    return StatusReport(
        head=head,
        working_tree_changes=[
            ChangeRecord(p, int(StatusCode.MODIFIED), ChangeOrigin.WORKING_TREE) for p in changes
        ],
    )


def log_page(prefix, count, start=0):
    return "\n".join(
        f"{prefix}{i}|Dev|dev@example.com|{1700000000 - i}|Change {i}"
        for i in range(start, start + count)
    )


@pytest.fixture
def bus():
    return SyncBus(REPO, Settings(history_page_size=3), host=MagicMock())


@pytest.fixture
def published(bus):
    """Every published message, in order."""
    seen = []
    bus.subscribers.subscribe_all(seen.append)
    return seen


def of_type(messages, cls):
    return [m for m in messages if isinstance(m, cls)]


class TestStatus:
    """Status refresh and stale replies."""

    @patch("gitdesk.bus.sync_bus.read_status")
    def test_refresh_publishes_snapshot(self, mock_status, bus, published):
        mock_status.return_value = report("feature", ["a.py"])
        snapshot = asyncio.run(bus.refresh_status())
        assert snapshot.branch == "feature"
        assert bus.snapshot is snapshot
        update = of_type(published, msg.StatusUpdate)[0]
        assert update.data["files"] == [{"path": "a.py", "status": "modified", "isStaged": False}]

    @patch("gitdesk.bus.sync_bus.read_status")
    def test_failure_publishes_error_snapshot(self, mock_status, bus, published):
        mock_status.side_effect = ProcessFailure(["status"], "fatal: not a git repository")
        snapshot = asyncio.run(bus.refresh_status())
        assert snapshot.error == "fatal: not a git repository"
        assert of_type(published, msg.StatusUpdate)[0].data["error"] == "fatal: not a git repository"

    @patch("gitdesk.bus.sync_bus.read_status")
    def test_older_reply_is_discarded(self, mock_status, bus, published):
        mock_status.side_effect = [report("old"), report("new")]

        async def scenario():
            release = asyncio.Event()
            calls = []

            async def controlled_run(fn, *args):
                calls.append(fn)
                result = fn(*args)
                if len(calls) == 1:
                    await release.wait()
                return result

            bus._run = controlled_run
            first = asyncio.create_task(bus.refresh_status())
            await asyncio.sleep(0)
            second = await bus.refresh_status()
            release.set()
            return await first, second

        first, second = asyncio.run(scenario())
        assert first is None
        assert second.branch == "new"
        assert bus.snapshot.branch == "new"
        assert [u.data["branch"] for u in of_type(published, msg.StatusUpdate)] == ["new"]


class TestHistory:
    """History refresh and pagination."""

    @patch("gitdesk.sync.history.read_log")
    def test_refresh_and_load_more(self, mock_log, bus, published):
        mock_log.return_value = log_page("c", 3)
        asyncio.run(bus.refresh_history())
        mock_log.return_value = log_page("c", 2, start=3)
        page = asyncio.run(bus.load_more_commits(3))

        assert [c.hash for c in page] == ["c3", "c4"]
        assert len(bus.commits) == 5
        extra = of_type(published, msg.AdditionalCommits)[0]
        assert extra.offset == 3
        assert [c["hash"] for c in extra.data] == ["c3", "c4"]

    @patch("gitdesk.sync.history.read_log")
    def test_load_more_for_stale_offset_is_dropped(self, mock_log, bus, published):
        mock_log.return_value = log_page("c", 3)
        asyncio.run(bus.refresh_history())
        assert asyncio.run(bus.load_more_commits(1)) is None
        assert len(bus.commits) == 3
        assert of_type(published, msg.AdditionalCommits) == []

    @patch("gitdesk.sync.history.read_log")
    def test_failed_load_more_keeps_list(self, mock_log, bus, published):
        mock_log.return_value = log_page("c", 3)
        asyncio.run(bus.refresh_history())
        mock_log.side_effect = ProcessFailure(["log"], "fatal: bad revision")
        assert asyncio.run(bus.load_more_commits(3)) is None
        assert len(bus.commits) == 3
        assert of_type(published, msg.ErrorMessage)[0].operation == "loadMoreCommits"

    @patch("gitdesk.sync.history.read_log")
    def test_refresh_failure_gives_placeholder(self, mock_log, bus, published):
        mock_log.side_effect = ProcessFailure(["log"], "fatal: your current branch has no commits")
        asyncio.run(bus.refresh_history())
        update = of_type(published, msg.CommitHistoryUpdate)[0]
        assert update.error == "fatal: your current branch has no commits"
        assert update.data[0]["message"] == "Unable to load git history"
        assert bus.commits == ()


class TestMutations:
    """Mutations and the re-reads they imply."""

    @patch("gitdesk.bus.sync_bus.read_status")
    @patch("gitdesk.bus.sync_bus.stage_file")
    def test_stage_refreshes_status(self, mock_stage, mock_status, bus, published):
        mock_status.return_value = report("main", ["a.py"])
        assert asyncio.run(bus.stage_file("a.py"))
        mock_stage.assert_called_once_with(REPO, "a.py")
        assert len(of_type(published, msg.StatusUpdate)) == 1

    @patch("gitdesk.bus.sync_bus.read_status")
    @patch("gitdesk.bus.sync_bus.stage_file")
    def test_failed_mutation_reports_and_skips_refresh(self, mock_stage, mock_status, bus, published):
        mock_stage.side_effect = ProcessFailure(["add", "--", "x"], "fatal: pathspec 'x' did not match")
        assert not asyncio.run(bus.stage_file("x"))
        errors = of_type(published, msg.ErrorMessage)
        assert errors[0].operation == "stageFile"
        assert "pathspec" in errors[0].message
        mock_status.assert_not_called()

    @patch("gitdesk.sync.history.read_log")
    @patch("gitdesk.bus.sync_bus.read_status")
    @patch("gitdesk.bus.sync_bus.commit")
    def test_commit_refreshes_status_and_history(self, mock_commit, mock_status, mock_log, bus, published):
        mock_status.return_value = report()
        mock_log.return_value = log_page("n", 1)
        assert asyncio.run(bus.commit("Add feature", "Details"))
        mock_commit.assert_called_once_with(REPO, "Add feature", "Details")
        assert of_type(published, msg.StatusUpdate)
        assert of_type(published, msg.CommitHistoryUpdate)

    @patch("gitdesk.bus.sync_bus.read_status")
    @patch("gitdesk.bus.sync_bus.commit")
    def test_empty_commit_message_rejected(self, mock_commit, mock_status, bus, published):
        from gitdesk.lib.errors import ValidationFailure

        mock_commit.side_effect = ValidationFailure("message", "Commit message cannot be empty")
        assert not asyncio.run(bus.commit(""))
        assert of_type(published, msg.ErrorMessage)[0].operation == "commit"

    @patch("gitdesk.bus.sync_bus.read_status")
    @patch("gitdesk.bus.sync_bus.stash_push")
    def test_stash_default_message(self, mock_stash, mock_status, bus):
        mock_status.return_value = report("feature")
        asyncio.run(bus.refresh_status())
        asyncio.run(bus.stash_changes())
        mock_stash.assert_called_once_with(REPO, "WIP on feature")


class TestBranches:
    """Branch listing, planning and creation."""

    @patch("gitdesk.bus.sync_bus.get_current_branch")
    @patch("gitdesk.bus.sync_bus.list_branches")
    def test_refresh_branches(self, mock_list, mock_current, bus, published):
        mock_list.return_value = ["develop", "master"]
        mock_current.return_value = "develop"
        branches = asyncio.run(bus.refresh_branches())
        assert branches.default_branch == "master"
        update = of_type(published, msg.BranchesUpdate)[0]
        assert update.current_branch == "develop"
        assert update.default_branch == "master"

    @patch("gitdesk.bus.sync_bus.list_branches")
    @patch("gitdesk.bus.sync_bus.read_status")
    def test_plan_branch_prompts(self, mock_status, mock_list, bus, published):
        mock_status.return_value = report("develop", ["a.py"])
        mock_list.return_value = ["main", "develop"]
        reply = asyncio.run(bus.plan_branch("feature/x"))
        assert reply.prompt == "baseBranch"
        assert reply.current_branch == "develop"
        assert reply.default_branch == "main"
        assert of_type(published, msg.BranchPrompt) == [reply]

    @patch("gitdesk.bus.sync_bus.list_branches")
    @patch("gitdesk.bus.sync_bus.read_status")
    def test_plan_branch_rejects_existing(self, mock_status, mock_list, bus, published):
        mock_status.return_value = report("main")
        mock_list.return_value = ["main", "develop"]
        assert asyncio.run(bus.plan_branch("develop")) is None
        assert "already exists" in of_type(published, msg.ErrorMessage)[0].message

    @patch("gitdesk.bus.sync_bus.get_current_branch")
    @patch("gitdesk.workflow.branch_flow.create_branch")
    @patch("gitdesk.workflow.branch_flow.stash_push")
    @patch("gitdesk.bus.sync_bus.list_branches")
    @patch("gitdesk.bus.sync_bus.read_status")
    def test_create_branch_leave(
        self, mock_status, mock_list, mock_stash, mock_create, mock_current, bus, published
    ):
        mock_status.return_value = report("main", ["a.py"])
        mock_list.return_value = ["main"]
        mock_current.return_value = "feature/x"

        ok = asyncio.run(bus.create_branch("feature/x", BaseBranchChoice.CURRENT, StashAction.LEAVE))

        assert ok
        mock_stash.assert_called_once_with(REPO, "WIP on main before creating feature/x")
        mock_create.assert_called_once_with(REPO, "feature/x", "main")
        assert of_type(published, msg.StatusUpdate)
        assert of_type(published, msg.BranchesUpdate)

    @patch("gitdesk.workflow.branch_flow.create_branch")
    @patch("gitdesk.bus.sync_bus.list_branches")
    @patch("gitdesk.bus.sync_bus.read_status")
    def test_create_branch_needs_stash_action(self, mock_status, mock_list, mock_create, bus, published):
        mock_status.return_value = report("develop", ["a.py"])
        mock_list.return_value = ["main", "develop"]
        assert not asyncio.run(bus.create_branch("feature/x", BaseBranchChoice.MAIN))
        mock_create.assert_not_called()
        error = of_type(published, msg.ErrorMessage)[0]
        assert error.operation == "createBranch"
        assert "stashAction" in error.message

    @patch("gitdesk.workflow.branch_flow.create_branch")
    @patch("gitdesk.workflow.branch_flow.stash_push")
    @patch("gitdesk.bus.sync_bus.list_branches")
    @patch("gitdesk.bus.sync_bus.read_status")
    def test_failed_create_reports_completed_stash(
        self, mock_status, mock_list, mock_stash, mock_create, bus, published
    ):
        mock_status.return_value = report("main", ["a.py"])
        mock_list.return_value = ["main"]
        mock_create.side_effect = ProcessFailure(["checkout", "-b"], "fatal: cannot lock ref")
        assert not asyncio.run(bus.create_branch("feature/x", BaseBranchChoice.MAIN, StashAction.LEAVE))
        assert of_type(published, msg.ErrorMessage)[0].completed_steps == ["stash"]

    @patch("gitdesk.bus.sync_bus.get_current_branch")
    @patch("gitdesk.workflow.branch_flow.checkout_branch")
    @patch("gitdesk.workflow.branch_flow.fetch_branch")
    @patch("gitdesk.bus.sync_bus.list_branches")
    @patch("gitdesk.bus.sync_bus.read_status")
    def test_switch_to_pull_request(
        self, mock_status, mock_list, mock_fetch, mock_checkout, mock_current, bus
    ):
        mock_status.return_value = report("main")
        mock_list.return_value = ["main"]
        mock_current.return_value = "feature/pr"
        assert asyncio.run(bus.switch_to_pull_request(42, "feature/pr"))
        mock_fetch.assert_called_once_with(REPO, "feature/pr")
        mock_checkout.assert_called_once_with(REPO, "feature/pr")

    def test_switch_to_unknown_pr_branch(self, bus, published):
        assert not asyncio.run(bus.switch_to_pull_request(7, "unknown-branch"))
        assert of_type(published, msg.ErrorMessage)[0].operation == "switchToPR"

    @patch("gitdesk.workflow.branch_flow.checkout_branch")
    @patch("gitdesk.workflow.branch_flow.fetch_branch")
    @patch("gitdesk.bus.sync_bus.list_branches")
    def test_pr_branch_like_an_option_is_rejected(self, mock_list, mock_fetch, mock_checkout, bus, published):
        assert not asyncio.run(bus.switch_to_pull_request(7, "--force"))
        mock_list.assert_not_called()
        mock_fetch.assert_not_called()
        mock_checkout.assert_not_called()
        assert "hyphen" in of_type(published, msg.ErrorMessage)[0].message

    @patch("gitdesk.bus.sync_bus.get_current_branch")
    @patch("gitdesk.workflow.branch_flow.checkout_branch")
    @patch("gitdesk.bus.sync_bus.list_branches")
    @patch("gitdesk.bus.sync_bus.read_status")
    def test_switch_branch(self, mock_status, mock_list, mock_checkout, mock_current, bus, published):
        mock_status.return_value = report("main")
        mock_list.return_value = ["main", "develop"]
        mock_current.return_value = "develop"
        assert asyncio.run(bus.switch_branch("develop"))
        mock_checkout.assert_called_once_with(REPO, "develop")
        assert of_type(published, msg.BranchesUpdate)

    @pytest.mark.parametrize("name", ["-f", "--force", "missing", ""])
    @patch("gitdesk.workflow.branch_flow.stash_push")
    @patch("gitdesk.workflow.branch_flow.checkout_branch")
    @patch("gitdesk.bus.sync_bus.list_branches")
    @patch("gitdesk.bus.sync_bus.read_status")
    def test_switch_to_non_branch_is_rejected(
        self, mock_status, mock_list, mock_checkout, mock_stash, name, bus, published
    ):
        mock_status.return_value = report("main", ["f.txt"])
        mock_list.return_value = ["main", "develop"]
        assert not asyncio.run(bus.switch_branch(name, StashAction.LEAVE))
        mock_checkout.assert_not_called()
        mock_stash.assert_not_called()
        error = of_type(published, msg.ErrorMessage)[0]
        assert error.operation == "switchBranch"
        assert not of_type(published, msg.StatusUpdate)

    @pytest.mark.parametrize("name", ["", "has space", "-f", "a" * 256])
    @patch("gitdesk.bus.sync_bus.list_branches")
    @patch("gitdesk.bus.sync_bus.read_status")
    def test_malformed_name_rejected_before_git(self, mock_status, mock_list, name, bus, published):
        assert not asyncio.run(bus.create_branch(name, BaseBranchChoice.MAIN, StashAction.LEAVE))
        assert asyncio.run(bus.plan_branch(name)) is None
        mock_status.assert_not_called()
        mock_list.assert_not_called()
        errors = of_type(published, msg.ErrorMessage)
        assert [e.operation for e in errors] == ["createBranch", "planBranch"]


class TestPullRequests:
    """Pull request listing through the bus."""

    @patch("gitdesk.bus.sync_bus.list_pull_requests")
    def test_publishes_listing(self, mock_list, bus, published):
        mock_list.return_value = PullRequestListing(records=[], repository=RepoIdentity("acme", "widgets"))
        assert asyncio.run(bus.refresh_pull_requests()) == ()
        update = of_type(published, msg.PullRequestsUpdate)[0]
        assert update.repository == {"owner": "acme", "name": "widgets"}
        assert update.data == []


class TestDispatch:
    """Raw message dispatch."""

    def test_unknown_command(self, bus, published):
        asyncio.run(bus.dispatch({"type": "nope"}))
        assert of_type(published, msg.ErrorMessage)[0].operation == "dispatch"

    def test_full_file_path(self, bus, published):
        asyncio.run(bus.dispatch('{"type": "getFullFilePath", "path": "src/a.py"}'))
        assert of_type(published, msg.FullFilePath)[0].path == str(REPO / "src/a.py")

    def test_host_actions_pass_through(self, bus):
        asyncio.run(bus.dispatch({"type": "openExternalUrl", "url": "https://github.com/acme/widgets/pulls"}))
        asyncio.run(bus.dispatch({"type": "openSettings", "section": "github"}))
        bus.host.open_external_url.assert_called_once_with("https://github.com/acme/widgets/pulls")
        bus.host.open_settings.assert_called_once_with("github")

    @patch("gitdesk.bus.sync_bus.read_status")
    @patch("gitdesk.bus.sync_bus.unstage_file")
    def test_routes_to_mutation(self, mock_unstage, mock_status, bus):
        mock_status.return_value = report()
        asyncio.run(bus.dispatch({"type": "unstageFile", "path": "a.py"}))
        mock_unstage.assert_called_once_with(REPO, "a.py")
