"""
Shared data types for gitdesk.

This module contains the dataclasses and enums passed between the git
layer, the reconcilers, the branch workflow and the bus, kept here to
avoid circular imports.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum, IntEnum

from gitdesk.lib.constants import DEFAULT_BRANCH_CANDIDATES, FALLBACK_BRANCH


class ChangeOrigin(Enum):
    INDEX = "index"
    WORKING_TREE = "workingTree"


class StatusCode(IntEnum):
    """Raw per-file status codes reported by the backend."""
    INDEX_MODIFIED = 0
    INDEX_ADDED = 1
    INDEX_DELETED = 2
    INDEX_RENAMED = 3
    INDEX_COPIED = 4
    MODIFIED = 5
    DELETED = 6
    UNTRACKED = 7
    IGNORED = 8
    INTENT_TO_ADD = 9
    ADDED_BY_US = 10
    ADDED_BY_THEM = 11
    DELETED_BY_US = 12
    DELETED_BY_THEM = 13
    BOTH_ADDED = 14
    BOTH_DELETED = 15
    BOTH_MODIFIED = 16


@dataclass(frozen=True)
class ChangeRecord:
    """One change as the backend reports it; superseded on every refresh."""
    path: str | None  # None when the backend could not resolve a path
    raw_status_code: int
    origin: ChangeOrigin


class FileStatus(Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"
    UNTRACKED = "untracked"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class FileView:
    """The single visible entry for a path."""
    path: str
    status: FileStatus
    is_staged: bool

    def to_dict(self) -> dict:
        return {"path": self.path, "status": self.status.value, "isStaged": self.is_staged}


@dataclass(frozen=True)
class RepositorySnapshot:
    """Repository state from one reconciliation pass. Never mutated."""
    files: tuple[FileView, ...]
    branch: str
    ahead: int = 0
    behind: int = 0
    error: str | None = None
    taken_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def uncommitted_changes(self) -> int:
        return len(self.files)

    @property
    def staged(self) -> tuple[FileView, ...]:
        return tuple(f for f in self.files if f.is_staged)

    def to_dict(self) -> dict:
        data = {
            "files": [f.to_dict() for f in self.files],
            "branch": self.branch,
            "ahead": self.ahead,
            "behind": self.behind,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass(frozen=True)
class CommitRecord:
    hash: str
    author: str
    author_email: str
    timestamp_seconds: int
    subject: str
    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0

    @property
    def date(self) -> datetime:
        return datetime.fromtimestamp(self.timestamp_seconds, tz=timezone.utc)

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "author": self.author,
            "authorEmail": self.author_email,
            "date": self.date.isoformat(),
            "message": self.subject,
            "filesChanged": self.files_changed,
            "insertions": self.insertions,
            "deletions": self.deletions,
        }


@dataclass(frozen=True)
class BranchSet:
    """Local branch names in the order the backend reported them."""
    names: tuple[str, ...] = ()

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __len__(self) -> int:
        return len(self.names)

    @property
    def default_branch(self) -> str:
        for candidate in DEFAULT_BRANCH_CANDIDATES:
            if candidate in self.names:
                return candidate
        if self.names:
            return self.names[0]
        return FALLBACK_BRANCH


class PRStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"
    MERGED = "merged"
    INFO = "info"  # Synthetic placeholder, not a real pull request


@dataclass(frozen=True)
class PullRequestRecord:
    number: int
    title: str
    author: str
    branch: str
    created_at: str
    status: PRStatus
    url: str | None = None
    message: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.status is PRStatus.INFO

    def to_dict(self) -> dict:
        data = {
            "number": self.number,
            "title": self.title,
            "author": self.author,
            "branch": self.branch,
            "createdAt": self.created_at,
            "status": self.status.value,
        }
        if self.url is not None:
            data["htmlUrl"] = self.url
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass(frozen=True)
class RepoIdentity:
    owner: str
    name: str
    host: str = "github.com"

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.name}"

    def to_dict(self) -> dict:
        return {"owner": self.owner, "name": self.name}


class BaseBranchChoice(Enum):
    MAIN = "main"  # The default branch, whatever its name
    CURRENT = "current"


class StashAction(Enum):
    LEAVE = "leave"  # Stash changes; they stay behind
    BRING = "bring"  # Changes follow the checkout


@dataclass(frozen=True)
class BranchCreationIntent:
    """Lives only for the duration of one branch-creation workflow."""
    name: str
    base_branch: BaseBranchChoice
    stash_action: StashAction | None = None
