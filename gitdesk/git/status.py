"""Git status operations.

Reads `git status --porcelain=v2 --branch -z` and splits each entry into
index-side and working-tree-side ChangeRecords.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from gitdesk.git.runner import run_git_checked
from gitdesk.lib.types import ChangeOrigin, ChangeRecord, StatusCode

logger = logging.getLogger(__name__)

STATUS_ARGS = ["status", "--porcelain=v2", "--branch", "-z", "--untracked-files=all"]

# X column of an ordinary/renamed entry
INDEX_CODES = {
    "M": StatusCode.INDEX_MODIFIED,
    "T": StatusCode.INDEX_MODIFIED,
    "A": StatusCode.INDEX_ADDED,
    "D": StatusCode.INDEX_DELETED,
    "R": StatusCode.INDEX_RENAMED,
    "C": StatusCode.INDEX_COPIED,
}

# Y column of an ordinary/renamed entry
WORKING_TREE_CODES = {
    "M": StatusCode.MODIFIED,
    "T": StatusCode.MODIFIED,
    "D": StatusCode.DELETED,
    "A": StatusCode.INTENT_TO_ADD,  # git add -N
}

# XY of an unmerged entry
CONFLICT_CODES = {
    "DD": StatusCode.BOTH_DELETED,
    "AU": StatusCode.ADDED_BY_US,
    "UD": StatusCode.DELETED_BY_THEM,
    "UA": StatusCode.ADDED_BY_THEM,
    "DU": StatusCode.DELETED_BY_US,
    "AA": StatusCode.BOTH_ADDED,
    "UU": StatusCode.BOTH_MODIFIED,
}


@dataclass
class StatusReport:
    """Everything one status read tells us about the working copy."""
    head: str | None = None  # None when detached
    upstream: str | None = None
    ahead: int = 0
    behind: int = 0
    index_changes: list[ChangeRecord] = field(default_factory=list)
    working_tree_changes: list[ChangeRecord] = field(default_factory=list)


def _parse_header(entry: str, report: StatusReport) -> None:
    parts = entry.split(" ")
    if len(parts) < 3:
        return
    key = parts[1]
    if key == "branch.head":
        report.head = None if parts[2] == "(detached)" else parts[2]
    elif key == "branch.upstream":
        report.upstream = parts[2]
    elif key == "branch.ab" and len(parts) >= 4:
        try:
            report.ahead = int(parts[2].lstrip("+"))
            report.behind = int(parts[3].lstrip("-"))
        except ValueError:
            logger.warning(f"Unparseable ahead/behind header: {entry!r}")


def _add_xy(report: StatusReport, xy: str, path: str | None) -> None:
    index_code = INDEX_CODES.get(xy[0])
    if index_code is not None:
        report.index_changes.append(ChangeRecord(path, int(index_code), ChangeOrigin.INDEX))
    tree_code = WORKING_TREE_CODES.get(xy[1])
    if tree_code is not None:
        report.working_tree_changes.append(ChangeRecord(path, int(tree_code), ChangeOrigin.WORKING_TREE))


def parse_status(output: str) -> StatusReport:
    """Parse porcelain v2 -z output into a StatusReport."""
    report = StatusReport()
    entries = output.split("\0")
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if not entry:
            continue

        kind = entry[0]
        if kind == "#":
            _parse_header(entry, report)
        elif kind == "1":
            # 1 XY sub mH mI mW hH hI path
            parts = entry.split(" ", 8)
            if len(parts) == 9:
                _add_xy(report, parts[1], parts[8] or None)
        elif kind == "2":
            # 2 XY sub mH mI mW hH hI Xscore path, then origPath as its own entry
            parts = entry.split(" ", 9)
            if len(parts) == 10:
                _add_xy(report, parts[1], parts[9] or None)
            i += 1
        elif kind == "u":
            # u XY sub m1 m2 m3 mW h1 h2 h3 path
            parts = entry.split(" ", 10)
            if len(parts) == 11:
                code = CONFLICT_CODES.get(parts[1], StatusCode.BOTH_MODIFIED)
                report.working_tree_changes.append(
                    ChangeRecord(parts[10] or None, int(code), ChangeOrigin.WORKING_TREE)
                )
        elif kind == "?":
            report.working_tree_changes.append(
                ChangeRecord(entry[2:] or None, int(StatusCode.UNTRACKED), ChangeOrigin.WORKING_TREE)
            )
        elif kind == "!":
            continue
        else:
            logger.warning(f"Unknown status entry: {entry!r}")

    return report


def read_status(worktree: Path) -> StatusReport:
    """Read HEAD, ahead/behind and both change lists.

    Raises:
        ProcessFailure: if git status fails (e.g., not a repository)
    """
    return parse_status(run_git_checked(STATUS_ARGS, worktree))
