"""The bus between the UI and the git layer.

SyncBus owns the process-wide view of one repository: the current status
snapshot, the commit history, the branch list and the pull request list.
Each is replaced wholesale by the read that produced it (history also
grows by pagination) and published to that topic's listeners.

All entry points are coroutines; blocking git calls run in worker
threads, so overlapping commands really overlap. Reads take a sequence
number when issued and their replies are dropped if a newer read of the
same topic has already been applied.

Mutations re-read what they invalidate:
    stage/unstage/discard/stash   -> status
    commit/amend                  -> status, history
    switch/create branch, PR      -> status, branches
"""

import asyncio
import logging
import webbrowser
from pathlib import Path
from typing import Any, Callable, Protocol, assert_never

import httpx

from gitdesk.bus import messages as msg
from gitdesk.bus.pubsub import SequenceTracker, SubscriberRegistry, Topic
from gitdesk.git import (
    amend_last_commit,
    commit,
    discard_changes,
    get_current_branch,
    list_branches,
    read_status,
    stage_all,
    stage_file,
    stash_push,
    unstage_all,
    unstage_file,
)
from gitdesk.lib.config import Settings, user_settings_path
from gitdesk.lib.constants import FALLBACK_BRANCH
from gitdesk.lib.errors import GitDeskError, ProcessFailure, ValidationFailure
from gitdesk.lib.github import list_pull_requests
from gitdesk.lib.types import (
    BaseBranchChoice,
    BranchSet,
    CommitRecord,
    PullRequestRecord,
    RepositorySnapshot,
    StashAction,
)
from gitdesk.sync.history import CommitHistoryPager
from gitdesk.sync.reconcile import build_snapshot, error_snapshot, reconcile
from gitdesk.workflow.branch_flow import (
    execute_creation,
    execute_pr_switch,
    execute_switch,
    validate_pr_branch,
    validate_switch_target,
)
from gitdesk.workflow.fsm import (
    BranchCreationWorkflow,
    resolve_intent,
    switch_requires_disposition,
    validate_branch_name,
)

logger = logging.getLogger(__name__)

HISTORY_PLACEHOLDER_HASH = "0" * 40


class HostActions(Protocol):
    """UI-host actions the core passes through without interpreting."""

    def open_external_url(self, url: str) -> None: ...

    def open_settings(self, section: str | None) -> None: ...


class DefaultHostActions:
    """Host actions for a standalone process."""

    def open_external_url(self, url: str) -> None:
        if not webbrowser.open(url):
            logger.warning(f"Failed to open URL: {url}")

    def open_settings(self, section: str | None) -> None:
        logger.info(f"Settings live in {user_settings_path()} (section: {section or 'all'})")


def _history_placeholder() -> CommitRecord:
    return CommitRecord(
        hash=HISTORY_PLACEHOLDER_HASH,
        author="System",
        author_email="",
        timestamp_seconds=0,
        subject="Unable to load git history",
    )


class SyncBus:
    """Single logical actor for one repository."""

    def __init__(
        self,
        repo: Path,
        settings: Settings | None = None,
        host: HostActions | None = None,
        http_client: httpx.Client | None = None,
    ):
        self.repo = repo
        self.settings = settings or Settings()
        self.host = host or DefaultHostActions()
        self.http_client = http_client

        self.subscribers = SubscriberRegistry()
        self.sequence = SequenceTracker()
        self.history = CommitHistoryPager(repo, page_size=self.settings.history_page_size)

        self._snapshot = RepositorySnapshot(files=(), branch=FALLBACK_BRANCH)
        self._branches = BranchSet()
        self._pull_requests: tuple[PullRequestRecord, ...] = ()

    # -- State (read-only views) --

    @property
    def snapshot(self) -> RepositorySnapshot:
        return self._snapshot

    @property
    def branches(self) -> BranchSet:
        return self._branches

    @property
    def commits(self) -> tuple[CommitRecord, ...]:
        return self.history.commits

    @property
    def pull_requests(self) -> tuple[PullRequestRecord, ...]:
        return self._pull_requests

    def subscribe(self, topic: Topic, listener: Callable[[Any], None]) -> Callable[[], None]:
        """Listen to one topic; returns the unsubscribe callable."""
        return self.subscribers.subscribe(topic, listener)

    # -- Plumbing --

    async def _run(self, fn: Callable, *args: Any) -> Any:
        return await asyncio.to_thread(fn, *args)

    def _report(self, operation: str, error: GitDeskError) -> None:
        """Publish a mutation failure as a user-visible message."""
        completed = error.completed if isinstance(error, ProcessFailure) and error.completed else None
        logger.error(f"{operation} failed: {error}")
        self.subscribers.publish(
            Topic.ERRORS,
            msg.ErrorMessage(operation=operation, message=str(error), completed_steps=completed),
        )

    async def _refresh(self, *topics: Topic) -> None:
        for topic in topics:
            if topic is Topic.STATUS:
                await self.refresh_status()
            elif topic is Topic.HISTORY:
                await self.refresh_history()
            elif topic is Topic.BRANCHES:
                await self.refresh_branches()

    async def _mutate(self, operation: str, fn: Callable, *args: Any, refresh: tuple[Topic, ...]) -> bool:
        try:
            await self._run(fn, self.repo, *args)
        except (ProcessFailure, ValidationFailure) as e:
            self._report(operation, e)
            return False
        await self._refresh(*refresh)
        return True

    def _read_branch_state(self) -> tuple[str, BranchSet, int]:
        """Fresh current branch, branch list and change count for the workflows."""
        report = read_status(self.repo)
        branches = BranchSet(tuple(list_branches(self.repo)))
        changes = len(reconcile(report.index_changes, report.working_tree_changes, self.repo))
        return report.head or "HEAD", branches, changes

    # -- Reads --

    async def refresh_status(self) -> RepositorySnapshot | None:
        """Read and publish a new snapshot; None if the reply was stale."""
        seq = self.sequence.issue(Topic.STATUS)
        try:
            report = await self._run(read_status, self.repo)
            snapshot = build_snapshot(report, self.repo)
        except ProcessFailure as e:
            logger.error(f"Error reading git status: {e}")
            snapshot = error_snapshot(e.message)

        if not self.sequence.accept(Topic.STATUS, seq):
            return None
        self._snapshot = snapshot
        self.subscribers.publish(Topic.STATUS, msg.StatusUpdate(seq=seq, data=snapshot.to_dict()))
        return snapshot

    async def refresh_history(self) -> tuple[CommitRecord, ...] | None:
        """Reload the first history page, replacing the list."""
        seq = self.sequence.issue(Topic.HISTORY)
        error = None
        try:
            page = await self._run(self.history.fetch_page, 0)
        except ProcessFailure as e:
            logger.error(f"Error getting commit history: {e}")
            page, error = [], e.message

        if not self.sequence.accept(Topic.HISTORY, seq):
            return None
        self.history.set_commits(page)
        data = [c.to_dict() for c in page] if error is None else [_history_placeholder().to_dict()]
        self.subscribers.publish(
            Topic.HISTORY, msg.CommitHistoryUpdate(seq=seq, data=data, error=error)
        )
        return self.history.commits

    async def load_more_commits(self, offset: int) -> list[CommitRecord] | None:
        """Append the page after `offset`; None if failed or superseded."""
        seq = self.sequence.issue(Topic.HISTORY)
        try:
            page = await self._run(self.history.fetch_page, offset)
        except ProcessFailure as e:
            self._report("loadMoreCommits", e)
            return None

        if seq != self.sequence.latest_issued(Topic.HISTORY):
            logger.debug(f"Dropping page at offset {offset}; a newer history read was issued")
            return None
        if offset != len(self.history):
            logger.debug(f"Dropping page at offset {offset}; history now has {len(self.history)} commits")
            return None
        if not self.sequence.accept(Topic.HISTORY, seq):
            return None
        self.history.append(page)
        self.subscribers.publish(
            Topic.HISTORY,
            msg.AdditionalCommits(seq=seq, offset=offset, data=[c.to_dict() for c in page]),
        )
        return page

    async def refresh_branches(self) -> BranchSet | None:
        seq = self.sequence.issue(Topic.BRANCHES)
        error = None
        current = None
        try:
            names = await self._run(list_branches, self.repo)
            current = await self._run(get_current_branch, self.repo)
        except ProcessFailure as e:
            logger.error(f"Error getting branches: {e}")
            names, error = [], e.message

        if not self.sequence.accept(Topic.BRANCHES, seq):
            return None
        self._branches = BranchSet(tuple(names))
        self.subscribers.publish(
            Topic.BRANCHES,
            msg.BranchesUpdate(
                seq=seq,
                data=list(self._branches.names),
                current_branch=current,
                default_branch=self._branches.default_branch,
                error=error,
            ),
        )
        return self._branches

    async def refresh_pull_requests(self) -> tuple[PullRequestRecord, ...] | None:
        seq = self.sequence.issue(Topic.PULL_REQUESTS)
        listing = await self._run(list_pull_requests, self.repo, self.settings, self.http_client)

        if not self.sequence.accept(Topic.PULL_REQUESTS, seq):
            return None
        self._pull_requests = tuple(listing.records)
        self.subscribers.publish(
            Topic.PULL_REQUESTS,
            msg.PullRequestsUpdate(
                seq=seq,
                data=[pr.to_dict() for pr in listing.records],
                repository=listing.repository.to_dict() if listing.repository else None,
                message=listing.message,
            ),
        )
        return self._pull_requests

    # -- Mutations --

    async def stage_file(self, path: str) -> bool:
        return await self._mutate("stageFile", stage_file, path, refresh=(Topic.STATUS,))

    async def unstage_file(self, path: str) -> bool:
        return await self._mutate("unstageFile", unstage_file, path, refresh=(Topic.STATUS,))

    async def stage_all(self) -> bool:
        return await self._mutate("stageAll", stage_all, refresh=(Topic.STATUS,))

    async def unstage_all(self) -> bool:
        return await self._mutate("unstageAll", unstage_all, refresh=(Topic.STATUS,))

    async def discard_changes(self, path: str) -> bool:
        return await self._mutate("discardChanges", discard_changes, path, refresh=(Topic.STATUS,))

    async def commit(self, message: str, description: str | None = None) -> bool:
        return await self._mutate(
            "commit", commit, message, description, refresh=(Topic.STATUS, Topic.HISTORY)
        )

    async def amend_last_commit(self, message: str | None = None) -> bool:
        return await self._mutate(
            "amendLastCommit", amend_last_commit, message, refresh=(Topic.STATUS, Topic.HISTORY)
        )

    async def stash_changes(self, message: str | None = None) -> bool:
        stash_message = message or f"WIP on {self._snapshot.branch or 'unknown'}"
        return await self._mutate("stashChanges", stash_push, stash_message, refresh=(Topic.STATUS,))

    async def plan_branch(self, name: str) -> msg.BranchPrompt | None:
        """Tell the UI which prompt, if any, creating `name` needs."""
        try:
            validate_branch_name(name)
            current, branches, changes = await self._run(self._read_branch_state)
            flow = BranchCreationWorkflow(current, branches, changes)
            prompt = flow.submit(name)
            # Planning only; the UI comes back with createBranch
            if not flow.is_finished:
                flow.abort()
        except (ProcessFailure, ValidationFailure) as e:
            self._report("planBranch", e)
            return None

        reply = msg.BranchPrompt(
            name=flow.name,
            prompt=prompt.value if prompt else None,
            current_branch=current,
            default_branch=branches.default_branch,
        )
        self.subscribers.publish(Topic.PROMPTS, reply)
        return reply

    async def create_branch(
        self,
        name: str,
        base_branch: BaseBranchChoice,
        stash_action: StashAction | None = None,
    ) -> bool:
        """Validate, stash if asked, create and check out, then re-read."""
        try:
            # Shape checks first; collisions need the branch list
            validate_branch_name(name)
            current, branches, changes = await self._run(self._read_branch_state)
            intent = resolve_intent(current, branches, changes, name, base_branch, stash_action)
            await self._run(
                execute_creation, self.repo, intent, current, branches.default_branch, changes > 0
            )
        except (ProcessFailure, ValidationFailure) as e:
            self._report("createBranch", e)
            return False
        await self._refresh(Topic.STATUS, Topic.BRANCHES)
        return True

    async def switch_branch(self, name: str, stash_action: StashAction | None = None) -> bool:
        try:
            current, branches, changes = await self._run(self._read_branch_state)
            target = validate_switch_target(name, branches)
            await self._run(
                execute_switch, self.repo, target, current, stash_action,
                switch_requires_disposition(changes),
            )
        except (ProcessFailure, ValidationFailure) as e:
            self._report("switchBranch", e)
            return False
        await self._refresh(Topic.STATUS, Topic.BRANCHES)
        return True

    async def switch_to_pull_request(self, number: int, branch: str) -> bool:
        logger.info(f"Switching to PR #{number} branch {branch}")
        try:
            target = validate_pr_branch(branch)
            names = await self._run(list_branches, self.repo)
            await self._run(execute_pr_switch, self.repo, target, tuple(names))
        except (ProcessFailure, ValidationFailure) as e:
            self._report("switchToPR", e)
            return False
        await self._refresh(Topic.STATUS, Topic.BRANCHES)
        return True

    # -- Pass-through --

    def full_file_path(self, path: str) -> str:
        full_path = str(self.repo / path)
        self.subscribers.publish(Topic.FILES, msg.FullFilePath(path=full_path))
        return full_path

    # -- Dispatch --

    async def dispatch(self, payload: dict | str | bytes) -> None:
        """Parse a raw UI message and run it to completion."""
        try:
            command = msg.parse_command(payload)
        except ValidationFailure as e:
            self._report("dispatch", e)
            return
        logger.debug(f"Dispatching {command.type}")
        await self.handle(command)

    async def handle(self, command: msg.Command) -> None:
        match command:
            case msg.GetStatus():
                await self.refresh_status()
            case msg.StageFile(path=path):
                await self.stage_file(path)
            case msg.UnstageFile(path=path):
                await self.unstage_file(path)
            case msg.StageAll():
                await self.stage_all()
            case msg.UnstageAll():
                await self.unstage_all()
            case msg.DiscardChanges(path=path):
                await self.discard_changes(path)
            case msg.Commit(message=message, description=description):
                await self.commit(message, description)
            case msg.AmendLastCommit(message=message):
                await self.amend_last_commit(message)
            case msg.GetBranches():
                await self.refresh_branches()
            case msg.SwitchBranch(name=name, stash_action=stash_action):
                await self.switch_branch(name, stash_action)
            case msg.PlanBranch(name=name):
                await self.plan_branch(name)
            case msg.CreateBranch(name=name, base_branch=base_branch, stash_action=stash_action):
                await self.create_branch(name, base_branch, stash_action)
            case msg.StashChanges(message=message):
                await self.stash_changes(message)
            case msg.GetCommitHistory():
                await self.refresh_history()
            case msg.LoadMoreCommits(offset=offset):
                await self.load_more_commits(offset)
            case msg.GetPullRequests():
                await self.refresh_pull_requests()
            case msg.SwitchToPR(number=number, branch=branch):
                await self.switch_to_pull_request(number, branch)
            case msg.GetFullFilePath(path=path):
                self.full_file_path(path)
            case msg.OpenExternalUrl(url=url):
                self.host.open_external_url(url)
            case msg.OpenSettings(section=section):
                self.host.open_settings(section)
            case _:
                assert_never(command)
