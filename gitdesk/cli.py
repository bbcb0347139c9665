#!/usr/bin/env python3
"""gitdesk CLI entrypoint."""

import sys
import asyncio
import argparse
import logging
from pathlib import Path

from gitdesk.bus import messages as msg
from gitdesk.bus.pubsub import Topic
from gitdesk.bus.sync_bus import SyncBus
from gitdesk.git import find_repo_root
from gitdesk.lib.config import load_settings
from gitdesk.lib.constants import EXIT_ERROR, EXIT_SUCCESS, EXIT_USAGE
from gitdesk.lib.errors import ConfigurationMissing, ProcessFailure, ValidationFailure
from gitdesk.lib.types import BaseBranchChoice, StashAction
from gitdesk.server import StdioServer

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool, level: str = "INFO") -> None:
    """Log to stderr; stdout carries command output."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO))


def get_bus(args) -> SyncBus:
    """Find the repository and load its settings, or exit with usage error."""
    try:
        repo = find_repo_root(Path(args.repo or Path.cwd()))
        settings = load_settings(repo)
    except (ConfigurationMissing, ValidationFailure, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        sys.exit(EXIT_USAGE)
    setup_logging(args.verbose, settings.log_level)
    return SyncBus(repo, settings)


def collect_errors(bus: SyncBus) -> list[msg.ErrorMessage]:
    errors: list[msg.ErrorMessage] = []
    bus.subscribe(Topic.ERRORS, errors.append)
    return errors


def cmd_serve(args):
    bus = get_bus(args)
    watch = bus.settings.watch and not args.no_watch
    asyncio.run(StdioServer(bus).serve(watch=watch))
    return EXIT_SUCCESS


def cmd_status(args):
    bus = get_bus(args)
    snapshot = asyncio.run(bus.refresh_status())
    if snapshot.error:
        print(f"ERROR: {snapshot.error}", file=sys.stderr)
        return EXIT_ERROR

    print(f"On branch {snapshot.branch}")
    if not snapshot.files:
        print("Nothing to commit, working tree clean")
    for view in snapshot.files:
        marker = "S" if view.is_staged else " "
        print(f"  {marker} {view.status.value:<10} {view.path}")
    return EXIT_SUCCESS


def cmd_log(args):
    bus = get_bus(args)
    try:
        commits = bus.history.fetch_page(args.skip)
    except ProcessFailure as e:
        print(f"ERROR: {e.message}", file=sys.stderr)
        return EXIT_ERROR

    for c in commits:
        stats = f" ({c.files_changed} files, +{c.insertions} -{c.deletions})" if c.files_changed else ""
        print(f"{c.hash[:8]} {c.date:%Y-%m-%d} {c.author}: {c.subject}{stats}")
    return EXIT_SUCCESS


def cmd_branches(args):
    bus = get_bus(args)
    updates: list[msg.BranchesUpdate] = []
    bus.subscribe(Topic.BRANCHES, updates.append)
    asyncio.run(bus.refresh_branches())
    update = updates[-1]
    if update.error:
        print(f"ERROR: {update.error}", file=sys.stderr)
        return EXIT_ERROR

    for name in update.data:
        marker = "*" if name == update.current_branch else " "
        print(f"{marker} {name}")
    return EXIT_SUCCESS


def cmd_prs(args):
    bus = get_bus(args)
    updates: list[msg.PullRequestsUpdate] = []
    bus.subscribe(Topic.PULL_REQUESTS, updates.append)
    records = asyncio.run(bus.refresh_pull_requests()) or ()
    update = updates[-1]
    if update.message:
        print(update.message, file=sys.stderr)
        return EXIT_ERROR

    for pr in records:
        if pr.is_placeholder:
            print(f"{pr.title}: {pr.message}", file=sys.stderr)
            return EXIT_ERROR
        print(f"#{pr.number:<5} {pr.title} [{pr.branch}] by {pr.author}")
    if not records:
        print("No open pull requests")
    return EXIT_SUCCESS


def cmd_create_branch(args):
    bus = get_bus(args)
    errors = collect_errors(bus)
    stash = StashAction(args.stash) if args.stash else None
    ok = asyncio.run(bus.create_branch(args.name, BaseBranchChoice(args.base), stash))
    if not ok:
        print(f"ERROR: {errors[-1].message}", file=sys.stderr)
        if errors[-1].completed_steps:
            print(f"Completed before failure: {', '.join(errors[-1].completed_steps)}", file=sys.stderr)
        return EXIT_ERROR
    print(f"Switched to a new branch '{args.name}'")
    return EXIT_SUCCESS


def main():
    parser = argparse.ArgumentParser(prog='gitdesk', description='Git working-copy sync service')
    parser.add_argument('--repo', '-C', help='Repository path (default: current directory)')
    parser.add_argument('--verbose', '-v', action='store_true', help='Debug logging on stderr')
    subparsers = parser.add_subparsers(dest='command', required=True)

    # gitdesk serve
    p_serve = subparsers.add_parser('serve', help='Run the JSON-lines host on stdio')
    p_serve.add_argument('--no-watch', action='store_true', help='Do not watch the working copy')
    p_serve.set_defaults(func=cmd_serve)

    # gitdesk status
    p_status = subparsers.add_parser('status', help='Show changed files')
    p_status.set_defaults(func=cmd_status)

    # gitdesk log
    p_log = subparsers.add_parser('log', help='Show one page of commit history')
    p_log.add_argument('--skip', type=int, default=0, help='Commits to skip')
    p_log.set_defaults(func=cmd_log)

    # gitdesk branches
    p_branches = subparsers.add_parser('branches', help='List local branches')
    p_branches.set_defaults(func=cmd_branches)

    # gitdesk prs
    p_prs = subparsers.add_parser('prs', help='List open pull requests')
    p_prs.set_defaults(func=cmd_prs)

    # gitdesk create-branch
    p_create = subparsers.add_parser('create-branch', help='Create and check out a branch')
    p_create.add_argument('name', help='New branch name')
    p_create.add_argument('--base', choices=[c.value for c in BaseBranchChoice],
                          default=BaseBranchChoice.CURRENT.value,
                          help='Base on the default branch or the current one')
    p_create.add_argument('--stash', choices=[a.value for a in StashAction],
                          help='What to do with uncommitted changes')
    p_create.set_defaults(func=cmd_create_branch)

    args = parser.parse_args()
    return args.func(args)


if __name__ == '__main__':
    sys.exit(main())
