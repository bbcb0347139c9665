"""
Configuration loaders for gitdesk.

Settings come from KEY=value env files, later sources overriding earlier:

1. ~/.config/gitdesk/settings.env (or $XDG_CONFIG_HOME/gitdesk/settings.env)
2. <repo>/.git/gitdesk.env
3. GITDESK_<KEY> environment variables

A plain GITHUB_TOKEN environment variable is used only when none of the
above sets one.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from . import envparse
from . import validate
from .constants import (
    API_TIMEOUT_SECONDS,
    GITHUB_API_URL,
    HISTORY_PAGE_SIZE,
    PR_PAGE_SIZE,
    WATCH_DEBOUNCE_SECONDS,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "GITDESK_"
USER_SETTINGS_NAME = "settings.env"
REPO_SETTINGS_NAME = "gitdesk.env"


@dataclass
class Settings:
    """Runtime settings for one repository."""
    github_token: str | None = None
    github_api_url: str = GITHUB_API_URL
    api_timeout: float = API_TIMEOUT_SECONDS
    pr_page_size: int = PR_PAGE_SIZE
    history_page_size: int = HISTORY_PAGE_SIZE
    watch: bool = True
    watch_debounce: float = WATCH_DEBOUNCE_SECONDS
    log_level: str = "INFO"


def user_settings_path(environ: Mapping[str, str] | None = None) -> Path:
    """Location of the per-user settings file."""
    environ = os.environ if environ is None else environ
    base = environ.get("XDG_CONFIG_HOME")
    config_home = Path(base) if base else Path.home() / ".config"
    return config_home / "gitdesk" / USER_SETTINGS_NAME


def repo_settings_path(repo: Path) -> Path:
    """Location of the per-repository settings file."""
    return repo / ".git" / REPO_SETTINGS_NAME


def _read_optional(path: Path) -> dict[str, str]:
    if not path.is_file():
        return {}
    logger.debug(f"Reading settings from {path}")
    return envparse.load_env(path)


def collect_settings_env(
    repo: Path | None,
    environ: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Merge every settings source into one validated KEY=value dict.

    Raises:
        ValueError: if a settings file is syntactically invalid
        ValidationFailure: if a key or value fails the settings schema
    """
    environ = os.environ if environ is None else environ

    env: dict[str, str] = {}
    env.update(_read_optional(user_settings_path(environ)))
    if repo is not None:
        env.update(_read_optional(repo_settings_path(repo)))

    for key, value in environ.items():
        if key.startswith(ENV_PREFIX) and len(key) > len(ENV_PREFIX):
            env[key[len(ENV_PREFIX):]] = value

    if not env.get("GITHUB_TOKEN") and environ.get("GITHUB_TOKEN"):
        env["GITHUB_TOKEN"] = environ["GITHUB_TOKEN"]

    validate.validate(env, "settings")
    return env


def load_settings(
    repo: Path | None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings for repo and return Settings."""
    env = collect_settings_env(repo, environ)
    token = env.get("GITHUB_TOKEN", "").strip()
    return Settings(
        github_token=token or None,
        github_api_url=env.get("GITHUB_API_URL", GITHUB_API_URL).rstrip("/"),
        api_timeout=float(env.get("API_TIMEOUT", API_TIMEOUT_SECONDS)),
        pr_page_size=int(env.get("PR_PAGE_SIZE", PR_PAGE_SIZE)),
        history_page_size=int(env.get("HISTORY_PAGE_SIZE", HISTORY_PAGE_SIZE)),
        watch=env.get("WATCH", "true").lower() in ("true", "1"),
        watch_debounce=float(env.get("WATCH_DEBOUNCE", WATCH_DEBOUNCE_SECONDS)),
        log_level=env.get("LOG_LEVEL", "INFO"),
    )
