"""Shared constants for gitdesk."""

import re

# Branch name validation
BRANCH_NAME_PATTERN = re.compile(r'^[A-Za-z0-9_/-]+$')
MAX_BRANCH_NAME_LEN = 255

# Branches tried, in order, when deriving the default branch
DEFAULT_BRANCH_CANDIDATES = ("main", "master")
FALLBACK_BRANCH = "main"

# Commits fetched per history page
HISTORY_PAGE_SIZE = 30

# Log format: hash|author|email|epoch|subject, followed by --shortstat lines
LOG_PRETTY_FORMAT = "%H|%an|%ae|%at|%s"

# Pull request listing
PR_PAGE_SIZE = 10
API_TIMEOUT_SECONDS = 10
GITHUB_API_URL = "https://api.github.com"
UNKNOWN_BRANCH = "unknown-branch"

# Timeout for network-touching git operations (seconds)
FETCH_TIMEOUT_SECONDS = 60

# Watcher debounce (seconds)
WATCH_DEBOUNCE_SECONDS = 0.3

# CLI exit codes
EXIT_SUCCESS = 0
EXIT_ERROR = 1
EXIT_USAGE = 2
