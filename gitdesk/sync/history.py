"""Commit history parsing and pagination.

`git log --pretty=format:%H|%an|%ae|%at|%s --shortstat` prints a header
line per commit, optionally followed by a statistics line:

    3f2a...|Ada|ada@example.com|1700000000|Fix parser | lexer
     2 files changed, 10 insertions(+), 3 deletions(-)

The subject is everything after the fourth pipe, embedded pipes included.
"""

import logging
import re
from dataclasses import replace
from pathlib import Path

from gitdesk.git.log import read_log
from gitdesk.lib.constants import HISTORY_PAGE_SIZE
from gitdesk.lib.types import CommitRecord

logger = logging.getLogger(__name__)

STATS_LINE = re.compile(r'^\s*\d+ files? changed')
FILES_CHANGED = re.compile(r'(\d+) files? changed')
INSERTIONS = re.compile(r'(\d+) insertions?')
DELETIONS = re.compile(r'(\d+) deletions?')


def _is_stats_line(line: str) -> bool:
    # A subject may mention "2 files changed"; headers always carry pipes
    return "|" not in line and STATS_LINE.match(line) is not None


def _stat(pattern: re.Pattern, line: str) -> int:
    match = pattern.search(line)
    return int(match.group(1)) if match else 0


def _parse_header(line: str) -> CommitRecord | None:
    parts = line.split("|", 4)
    if len(parts) < 5:
        logger.warning(f"Skipping malformed log header: {line!r}")
        return None
    commit_hash, author, email, timestamp, subject = parts
    try:
        seconds = int(timestamp.strip())
    except ValueError:
        logger.warning(f"Skipping log header with bad timestamp: {line!r}")
        return None
    return CommitRecord(
        hash=commit_hash.strip(),
        author=author.strip(),
        author_email=email.strip(),
        timestamp_seconds=seconds,
        subject=subject.strip(),
    )


def parse_log(raw: str) -> list[CommitRecord]:
    """Parse log output into CommitRecords, newest first.

    Pure function: parsing the same text twice yields equal lists.
    """
    commits: list[CommitRecord] = []
    lines = [line for line in raw.splitlines() if line.strip()]

    i = 0
    while i < len(lines):
        line = lines[i]
        i += 1
        if "|" not in line:
            continue

        record = _parse_header(line)
        if record is None:
            continue

        if i < len(lines) and _is_stats_line(lines[i]):
            stats = lines[i]
            i += 1
            record = replace(
                record,
                files_changed=_stat(FILES_CHANGED, stats),
                insertions=_stat(INSERTIONS, stats),
                deletions=_stat(DELETIONS, stats),
            )

        commits.append(record)

    return commits


class CommitHistoryPager:
    """Append-only commit history for one repository.

    refresh() replaces the list with the first page; load_more() only ever
    appends. A failed read leaves the list untouched and re-raises.
    """

    def __init__(self, repo: Path, page_size: int = HISTORY_PAGE_SIZE):
        self.repo = repo
        self.page_size = page_size
        self._commits: list[CommitRecord] = []

    @property
    def commits(self) -> tuple[CommitRecord, ...]:
        return tuple(self._commits)

    def __len__(self) -> int:
        return len(self._commits)

    def fetch_page(self, offset: int) -> list[CommitRecord]:
        """Read and parse one page without touching the stored list.

        Raises:
            ProcessFailure: if git log fails
        """
        return parse_log(read_log(self.repo, skip=offset, count=self.page_size))

    def refresh(self) -> list[CommitRecord]:
        """Reload the first page, replacing the stored list."""
        page = self.fetch_page(0)
        self._commits = page
        return list(page)

    def set_commits(self, commits: list[CommitRecord]) -> None:
        """Install a first page read elsewhere."""
        self._commits = list(commits)

    def append(self, commits: list[CommitRecord]) -> None:
        self._commits.extend(commits)

    def load_more(self, offset: int | None = None) -> list[CommitRecord]:
        """Fetch the page after `offset` commits and append it.

        Returns only the newly loaded records.
        """
        if offset is None:
            offset = len(self._commits)
        page = self.fetch_page(offset)
        self._commits.extend(page)
        logger.debug(f"Loaded {len(page)} more commits (total {len(self._commits)})")
        return page
