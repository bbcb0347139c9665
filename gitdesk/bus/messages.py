"""Messages exchanged with the UI.

Every inbound command and every outbound result is a pydantic model
tagged by its `type` field. Commands parse through a discriminated union,
so an unknown tag or a missing field is rejected at the boundary instead
of falling through a dispatcher.
"""

import json
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from gitdesk.lib.errors import ValidationFailure
from gitdesk.lib.types import BaseBranchChoice, StashAction


class _Message(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# -- Commands (UI -> core) --

class GetStatus(_Message):
    type: Literal["getStatus"] = "getStatus"


class StageFile(_Message):
    type: Literal["stageFile"] = "stageFile"
    path: str


class UnstageFile(_Message):
    type: Literal["unstageFile"] = "unstageFile"
    path: str


class StageAll(_Message):
    type: Literal["stageAll"] = "stageAll"


class UnstageAll(_Message):
    type: Literal["unstageAll"] = "unstageAll"


class DiscardChanges(_Message):
    type: Literal["discardChanges"] = "discardChanges"
    path: str


class Commit(_Message):
    type: Literal["commit"] = "commit"
    message: str
    description: str | None = None


class AmendLastCommit(_Message):
    type: Literal["amendLastCommit"] = "amendLastCommit"
    message: str | None = None


class GetBranches(_Message):
    type: Literal["getBranches"] = "getBranches"


class SwitchBranch(_Message):
    type: Literal["switchBranch"] = "switchBranch"
    name: str
    stash_action: StashAction | None = None


class PlanBranch(_Message):
    type: Literal["planBranch"] = "planBranch"
    name: str


class CreateBranch(_Message):
    type: Literal["createBranch"] = "createBranch"
    name: str
    base_branch: BaseBranchChoice
    stash_action: StashAction | None = None


class StashChanges(_Message):
    type: Literal["stashChanges"] = "stashChanges"
    message: str | None = None


class GetCommitHistory(_Message):
    type: Literal["getCommitHistory"] = "getCommitHistory"


class LoadMoreCommits(_Message):
    type: Literal["loadMoreCommits"] = "loadMoreCommits"
    offset: int = Field(ge=0)


class GetPullRequests(_Message):
    type: Literal["getPullRequests"] = "getPullRequests"


class SwitchToPR(_Message):
    type: Literal["switchToPR"] = "switchToPR"
    number: int
    branch: str


class GetFullFilePath(_Message):
    type: Literal["getFullFilePath"] = "getFullFilePath"
    path: str


class OpenExternalUrl(_Message):
    type: Literal["openExternalUrl"] = "openExternalUrl"
    url: str


class OpenSettings(_Message):
    type: Literal["openSettings"] = "openSettings"
    section: str | None = None


Command = Annotated[
    Union[
        GetStatus,
        StageFile,
        UnstageFile,
        StageAll,
        UnstageAll,
        DiscardChanges,
        Commit,
        AmendLastCommit,
        GetBranches,
        SwitchBranch,
        PlanBranch,
        CreateBranch,
        StashChanges,
        GetCommitHistory,
        LoadMoreCommits,
        GetPullRequests,
        SwitchToPR,
        GetFullFilePath,
        OpenExternalUrl,
        OpenSettings,
    ],
    Field(discriminator="type"),
]

_command_adapter: TypeAdapter = TypeAdapter(Command)


def parse_command(payload: dict | str | bytes) -> Command:
    """
    Parse a raw UI message into its command model.

    Raises:
        ValidationFailure: if the payload is not JSON, has an unknown
            `type`, or is missing/has malformed fields
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise ValidationFailure("message", f"Invalid JSON: {e}") from None
    if not isinstance(payload, dict):
        raise ValidationFailure("message", "Message must be a JSON object")
    try:
        return _command_adapter.validate_python(payload)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(p) for p in first.get("loc", ())) or "message"
        raise ValidationFailure(location, first.get("msg", str(e))) from None


# -- Results (core -> UI) --

class StatusUpdate(_Message):
    type: Literal["statusUpdate"] = "statusUpdate"
    seq: int
    data: dict[str, Any]


class CommitHistoryUpdate(_Message):
    type: Literal["commitHistoryUpdate"] = "commitHistoryUpdate"
    seq: int
    data: list[dict[str, Any]]
    error: str | None = None


class AdditionalCommits(_Message):
    type: Literal["additionalCommits"] = "additionalCommits"
    seq: int
    offset: int
    data: list[dict[str, Any]]


class BranchesUpdate(_Message):
    type: Literal["branchesUpdate"] = "branchesUpdate"
    seq: int
    data: list[str]
    current_branch: str | None = None
    default_branch: str
    error: str | None = None


class PullRequestsUpdate(_Message):
    type: Literal["pullRequestsUpdate"] = "pullRequestsUpdate"
    seq: int
    data: list[dict[str, Any]]
    repository: dict[str, str] | None = None
    message: str | None = None


class BranchPrompt(_Message):
    type: Literal["branchPrompt"] = "branchPrompt"
    name: str
    prompt: Literal["baseBranch", "uncommittedChanges"] | None = None
    current_branch: str
    default_branch: str


class FullFilePath(_Message):
    type: Literal["fullFilePath"] = "fullFilePath"
    path: str


class ErrorMessage(_Message):
    type: Literal["error"] = "error"
    operation: str
    message: str
    completed_steps: list[str] | None = None


Result = Union[
    StatusUpdate,
    CommitHistoryUpdate,
    AdditionalCommits,
    BranchesUpdate,
    PullRequestsUpdate,
    BranchPrompt,
    FullFilePath,
    ErrorMessage,
]
