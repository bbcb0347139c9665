"""Status reconciliation.

Folds the index-side and working-tree-side change lists into one FileView
per path. Index records are applied first and are never overwritten by a
working-tree record for the same path.
"""

import logging
import posixpath
from pathlib import Path, PurePosixPath

from gitdesk.git.status import StatusReport
from gitdesk.lib.constants import FALLBACK_BRANCH
from gitdesk.lib.types import (
    ChangeRecord,
    FileStatus,
    FileView,
    RepositorySnapshot,
    StatusCode,
)

logger = logging.getLogger(__name__)

STATUS_CATEGORIES: dict[int, FileStatus] = {
    StatusCode.INDEX_ADDED: FileStatus.ADDED,
    StatusCode.ADDED_BY_US: FileStatus.ADDED,
    StatusCode.ADDED_BY_THEM: FileStatus.ADDED,
    StatusCode.BOTH_ADDED: FileStatus.ADDED,
    StatusCode.INTENT_TO_ADD: FileStatus.ADDED,
    StatusCode.INDEX_MODIFIED: FileStatus.MODIFIED,
    StatusCode.MODIFIED: FileStatus.MODIFIED,
    StatusCode.BOTH_MODIFIED: FileStatus.MODIFIED,
    StatusCode.INDEX_RENAMED: FileStatus.MODIFIED,
    StatusCode.INDEX_COPIED: FileStatus.MODIFIED,
    StatusCode.INDEX_DELETED: FileStatus.DELETED,
    StatusCode.DELETED: FileStatus.DELETED,
    StatusCode.DELETED_BY_US: FileStatus.DELETED,
    StatusCode.DELETED_BY_THEM: FileStatus.DELETED,
    StatusCode.BOTH_DELETED: FileStatus.DELETED,
    StatusCode.UNTRACKED: FileStatus.UNTRACKED,
}


def categorize(code: int) -> FileStatus:
    """Map a raw status code to its display category."""
    return STATUS_CATEGORIES.get(code, FileStatus.UNKNOWN)


def normalize_path(path: str | None, root: Path | None = None) -> str | None:
    """Return path relative to the repository root, or None if unresolvable."""
    if not path:
        return None
    candidate = path.replace("\\", "/")

    if PurePosixPath(candidate).is_absolute():
        if root is None:
            return None
        root_str = root.as_posix().rstrip("/") + "/"
        if not candidate.startswith(root_str):
            return None
        candidate = candidate[len(root_str):]

    candidate = posixpath.normpath(candidate)
    if candidate in (".", "") or candidate.startswith("../"):
        return None
    return candidate


def reconcile(
    index_changes: list[ChangeRecord],
    working_tree_changes: list[ChangeRecord],
    root: Path | None = None,
) -> list[FileView]:
    """
    Merge both change lists into one FileView per path.

    Args:
        index_changes: Staged records; each yields is_staged=True
        working_tree_changes: Unstaged records
        root: Repository root, used to relativize absolute paths

    Returns:
        FileViews in insertion order (index records first). Not sorted.
    """
    files: dict[str, FileView] = {}

    for records, staged in ((index_changes, True), (working_tree_changes, False)):
        for record in records:
            path = normalize_path(record.path, root)
            if path is None:
                logger.warning(f"Skipping change with no resolvable path: {record}")
                continue
            if path in files and not staged:
                continue
            files[path] = FileView(
                path=path,
                status=categorize(record.raw_status_code),
                is_staged=staged,
            )

    return list(files.values())


def build_snapshot(report: StatusReport, root: Path | None = None) -> RepositorySnapshot:
    """Reconcile a status read into a fresh immutable snapshot."""
    files = reconcile(report.index_changes, report.working_tree_changes, root)
    return RepositorySnapshot(
        files=tuple(files),
        branch=report.head or FALLBACK_BRANCH,
        ahead=report.ahead,
        behind=report.behind,
    )


def error_snapshot(message: str) -> RepositorySnapshot:
    """Snapshot delivered when the status read itself failed."""
    return RepositorySnapshot(files=(), branch="unknown", ahead=0, behind=0, error=message)

