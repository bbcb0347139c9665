"""Turns raw backend output into the state the UI consumes."""

from gitdesk.sync.reconcile import (
    categorize,
    reconcile,
    build_snapshot,
    error_snapshot,
)
from gitdesk.sync.history import (
    parse_log,
    CommitHistoryPager,
)

__all__ = [
    "categorize",
    "reconcile",
    "build_snapshot",
    "error_snapshot",
    "parse_log",
    "CommitHistoryPager",
]
