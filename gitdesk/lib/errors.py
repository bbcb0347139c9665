"""
Error taxonomy for gitdesk.

Read paths degrade instead of raising past the bus; mutating paths raise
one of these and the bus turns them into user-visible messages.
"""

from enum import Enum
from typing import Sequence


class GitDeskError(Exception):
    """Base class for all gitdesk errors."""


class ProcessFailure(GitDeskError):
    """git exited non-zero, could not be started, or its output was unusable."""

    def __init__(self, args: Sequence[str], message: str, completed: Sequence[str] = ()):
        self.git_args = list(args)
        self.message = message
        # Steps of a chained mutation that finished before this one failed
        self.completed = list(completed)
        command = " ".join(self.git_args) if self.git_args else "git"
        super().__init__(f"git {command} failed: {message}")


class ConfigurationMissing(GitDeskError):
    """No repository, remote, or credential where one is required."""


class RemoteErrorKind(Enum):
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    OTHER = "other"


class RemoteAPIFailure(GitDeskError):
    """The code-hosting API answered with an error or could not be reached."""

    def __init__(self, kind: RemoteErrorKind, message: str, status_code: int | None = None):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @classmethod
    def from_status(cls, status_code: int) -> "RemoteAPIFailure":
        """Build the failure matching an HTTP status code."""
        if status_code == 401:
            return cls(
                RemoteErrorKind.UNAUTHORIZED,
                "GitHub authentication failed. Please check your token.",
                status_code,
            )
        if status_code == 403:
            return cls(
                RemoteErrorKind.FORBIDDEN,
                "Access denied. Please check your token permissions.",
                status_code,
            )
        if status_code == 404:
            return cls(
                RemoteErrorKind.NOT_FOUND,
                "Repository not found or access denied.",
                status_code,
            )
        return cls(RemoteErrorKind.OTHER, f"GitHub API error: {status_code}", status_code)


class ValidationFailure(GitDeskError):
    """Input rejected before any external call was attempted."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"[{field}] {message}")
