"""
Working-copy watcher.

Turns file system events into status refreshes on the bus. Bursts of
events are debounced into one refresh. Inside .git only the index and
HEAD matter; everything else there (objects, logs, lock files) is noise.
"""

import asyncio
import logging
import threading
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from gitdesk.lib.constants import WATCH_DEBOUNCE_SECONDS

logger = logging.getLogger(__name__)

GIT_FILES_OF_INTEREST = ("index", "HEAD")


def is_relevant(path: Path, repo: Path) -> bool:
    """True if a change to path can alter the repository status."""
    try:
        rel = path.relative_to(repo)
    except ValueError:
        return False
    if not rel.parts:
        return False
    if rel.parts[0] != ".git":
        return True
    return len(rel.parts) == 2 and rel.parts[1] in GIT_FILES_OF_INTEREST


class RepositoryWatchHandler(FileSystemEventHandler):
    """Debounces relevant events into calls to on_change."""

    def __init__(
        self,
        repo: Path,
        on_change: Callable[[], None],
        debounce_seconds: float = WATCH_DEBOUNCE_SECONDS,
    ):
        super().__init__()
        self.repo = repo
        self.on_change = on_change
        self.debounce_seconds = debounce_seconds
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self.observer = None
        self.refresh_tasks: set[asyncio.Task] = set()

    def start_watching(self) -> None:
        if self.observer is not None:
            logger.warning("Watcher already running - ignoring start_watching() call")
            return
        self.observer = Observer()
        self.observer.schedule(self, str(self.repo), recursive=True)
        self.observer.start()
        logger.info(f"Watching {self.repo}")

    def stop_watching(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        if self.observer is not None:
            self.observer.stop()
            self.observer.join(timeout=5.0)
            self.observer = None
            logger.info("File system observer stopped")

    def on_any_event(self, event: FileSystemEvent) -> None:
        paths = [event.src_path, getattr(event, "dest_path", "")]
        if any(p and is_relevant(Path(str(p)), self.repo) for p in paths):
            self._schedule()

    def _schedule(self) -> None:
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = threading.Timer(self.debounce_seconds, self._fire)
            self._timer.daemon = True
            self._timer.start()

    def _fire(self) -> None:
        with self._lock:
            self._timer = None
        logger.debug("Working copy changed")
        try:
            self.on_change()
        except Exception:
            logger.exception("Change callback failed")


def watch_repository(bus, loop: asyncio.AbstractEventLoop, debounce_seconds: float) -> RepositoryWatchHandler:
    """Start a watcher that refreshes bus status on the given loop.

    Refresh tasks are held in handler.refresh_tasks until they finish;
    a failed refresh is logged.
    """

    def finished(task: asyncio.Task) -> None:
        handler.refresh_tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Status refresh after file change failed", exc_info=task.exception())

    def start_refresh() -> None:
        task = loop.create_task(bus.refresh_status())
        handler.refresh_tasks.add(task)
        task.add_done_callback(finished)

    def refresh() -> None:
        loop.call_soon_threadsafe(start_refresh)

    handler = RepositoryWatchHandler(bus.repo, refresh, debounce_seconds)
    handler.start_watching()
    return handler
