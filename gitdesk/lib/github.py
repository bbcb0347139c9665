"""
GitHub integration for the pull request list.

Resolves owner/repo from the origin URL, finds a token, and lists open
pull requests over the REST API. Listing never raises: every failure
becomes a single informational record the UI can render.

Token sources, first hit wins:
1. An existing GitHub CLI session (`gh auth token`)
2. A credential git can hand over without prompting (`git credential fill`)
3. GITHUB_TOKEN from gitdesk settings
"""

import logging
import os
import re
import subprocess
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable

import httpx

from gitdesk.git.remote import get_remote_url
from gitdesk.lib.config import Settings
from gitdesk.lib.constants import UNKNOWN_BRANCH
from gitdesk.lib.errors import ConfigurationMissing, RemoteAPIFailure, RemoteErrorKind
from gitdesk.lib.types import PRStatus, PullRequestRecord, RepoIdentity

logger = logging.getLogger(__name__)


# Timeout for credential lookups (seconds)
CREDENTIAL_TIMEOUT_SECONDS = 10

GITHUB_API_VERSION = "2022-11-28"
USER_AGENT = "gitdesk"

NO_REPOSITORY_MESSAGE = (
    "Unable to determine repository information. "
    "Make sure you have a remote origin configured."
)
AUTH_REQUIRED_MESSAGE = (
    "Sign in with the GitHub CLI (gh auth login) or set GITHUB_TOKEN "
    "in your gitdesk settings"
)

# https://host/owner/repo(.git), ssh://git@host:22/owner/repo(.git)
URL_REMOTE = re.compile(
    r'^(?:https?|ssh|git)://(?:[^@/]+@)?(?P<host>[^/:]+)(?::\d+)?/'
    r'(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$'
)
# git@host:owner/repo(.git)
SCP_REMOTE = re.compile(
    r'^(?:[^@/]+@)?(?P<host>[^/:]+):(?P<owner>[^/]+)/(?P<name>[^/]+?)(?:\.git)?/?$'
)


@dataclass
class PullRequestListing:
    """What the bus publishes for one pull request refresh."""
    records: list[PullRequestRecord] = field(default_factory=list)
    repository: RepoIdentity | None = None
    message: str | None = None


def parse_remote_url(url: str) -> RepoIdentity | None:
    """Extract owner/name from an HTTPS, ssh:// or scp-style remote URL."""
    url = url.strip()
    for pattern in (URL_REMOTE, SCP_REMOTE):
        match = pattern.match(url)
        if match:
            return RepoIdentity(
                owner=match.group("owner"),
                name=match.group("name"),
                host=match.group("host"),
            )
    return None


def pulls_web_url(identity: RepoIdentity) -> str:
    """Deep link to the repository's pull request list."""
    return f"https://{identity.host}/{identity.owner}/{identity.name}/pulls"


def token_from_gh_cli(host: str = "github.com") -> str | None:
    """Token of an existing GitHub CLI session, if any."""
    try:
        result = subprocess.run(
            ["gh", "auth", "token", "--hostname", host],
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=CREDENTIAL_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"GitHub CLI session not available: {e}")
        return None
    if result.returncode != 0:
        return None
    return result.stdout.strip() or None


def token_from_credential_helper(host: str = "github.com") -> str | None:
    """Ask git's credential helpers for a stored password, never prompting."""
    env = os.environ.copy()
    env["GIT_TERMINAL_PROMPT"] = "0"
    env["GCM_INTERACTIVE"] = "never"
    env.pop("GIT_ASKPASS", None)
    env.pop("SSH_ASKPASS", None)
    try:
        result = subprocess.run(
            ["git", "-c", "credential.interactive=false", "credential", "fill"],
            input=f"protocol=https\nhost={host}\n\n",
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            env=env,
            timeout=CREDENTIAL_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Credential helper not available: {e}")
        return None
    if result.returncode != 0:
        return None
    for line in result.stdout.splitlines():
        if line.startswith("password="):
            return line.split("=", 1)[1].strip() or None
    return None


def resolve_token(settings: Settings, host: str = "github.com") -> str | None:
    """Walk the token sources in order; None if none yields a token."""
    token = token_from_gh_cli(host)
    if token:
        logger.info("Using GitHub CLI session")
        return token

    token = token_from_credential_helper(host)
    if token:
        logger.info("Using token from git credential helper")
        return token

    if settings.github_token:
        logger.info("Using GITHUB_TOKEN from settings")
        return settings.github_token

    return None


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def info_record(title: str, message: str, identity: RepoIdentity) -> PullRequestRecord:
    """Synthetic placeholder carrying a message and a link to the PR list."""
    return PullRequestRecord(
        number=0,
        title=title,
        author="system",
        branch="main",
        created_at=_now_iso(),
        status=PRStatus.INFO,
        url=pulls_web_url(identity),
        message=message,
    )


def to_record(pr: dict) -> PullRequestRecord:
    """Map one REST API pull request object to a PullRequestRecord."""
    head = pr.get("head") or {}
    branch = head.get("ref")
    if not branch:
        logger.warning(f"PR #{pr.get('number')} has no branch name in head.ref")
        branch = UNKNOWN_BRANCH

    if pr.get("merged_at"):
        status = PRStatus.MERGED
    elif pr.get("state") == "closed":
        status = PRStatus.CLOSED
    else:
        status = PRStatus.OPEN

    user = pr.get("user") or {}
    return PullRequestRecord(
        number=int(pr.get("number", 0)),
        title=pr.get("title") or "",
        author=user.get("login") or "unknown",
        branch=branch,
        created_at=pr.get("created_at") or "",
        status=status,
        url=pr.get("html_url"),
    )


def fetch_open_pull_requests(
    identity: RepoIdentity,
    token: str,
    settings: Settings,
    client: httpx.Client | None = None,
) -> list[PullRequestRecord]:
    """
    List open pull requests for identity.

    Raises:
        RemoteAPIFailure: on a non-2xx response, network error, timeout,
            or unparseable body
    """
    url = f"{settings.github_api_url}/repos/{identity.owner}/{identity.name}/pulls"
    headers = {
        "Authorization": f"Bearer {token}",
        "Accept": "application/vnd.github+json",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": USER_AGENT,
    }
    params = {"state": "open", "per_page": settings.pr_page_size}

    try:
        if client is None:
            response = httpx.get(url, headers=headers, params=params, timeout=settings.api_timeout)
        else:
            response = client.get(url, headers=headers, params=params, timeout=settings.api_timeout)
    except httpx.TimeoutException:
        raise RemoteAPIFailure(RemoteErrorKind.OTHER, "Request timeout") from None
    except httpx.HTTPError as e:
        raise RemoteAPIFailure(RemoteErrorKind.OTHER, f"Network error: {e}") from None

    if not response.is_success:
        raise RemoteAPIFailure.from_status(response.status_code)

    try:
        payload = response.json()
    except ValueError:
        raise RemoteAPIFailure(
            RemoteErrorKind.OTHER, "Failed to parse GitHub API response", response.status_code
        ) from None
    if not isinstance(payload, list):
        raise RemoteAPIFailure(
            RemoteErrorKind.OTHER, "Unexpected GitHub API response", response.status_code
        )

    return [to_record(pr) for pr in payload if isinstance(pr, dict)]


def list_pull_requests(
    repo: Path,
    settings: Settings,
    client: httpx.Client | None = None,
    token_resolver: Callable[[Settings, str], str | None] = resolve_token,
) -> PullRequestListing:
    """
    List open pull requests for the repository's origin remote.

    Never raises: a missing remote gives an empty listing with a message,
    a missing token or an API failure gives one informational record.
    """
    try:
        remote_url = get_remote_url(repo)
    except ConfigurationMissing as e:
        logger.info(f"No remote for pull requests: {e}")
        return PullRequestListing(message=NO_REPOSITORY_MESSAGE)

    identity = parse_remote_url(remote_url)
    if identity is None:
        logger.warning(f"Could not parse repository URL: {remote_url}")
        return PullRequestListing(message=NO_REPOSITORY_MESSAGE)

    token = token_resolver(settings, identity.host)
    if not token:
        return PullRequestListing(
            records=[info_record("GitHub Authentication Required", AUTH_REQUIRED_MESSAGE, identity)],
            repository=identity,
        )

    try:
        records = fetch_open_pull_requests(identity, token, settings, client=client)
    except RemoteAPIFailure as e:
        logger.warning(f"GitHub API error ({e.kind.value}) for {identity.slug}: {e.message}")
        return PullRequestListing(
            records=[info_record("GitHub API Error", f"API Error: {e.message}", identity)],
            repository=identity,
        )

    logger.info(f"Fetched {len(records)} pull requests for {identity.slug}")
    return PullRequestListing(records=records, repository=identity)
