"""JSON-lines host for the sync bus.

One JSON command per stdin line; every published result is written to
stdout as one JSON line. Commands run concurrently, each as its own
task, so a slow pull request listing never holds up staging.

Usage:
    gitdesk serve [--repo PATH]
"""

import asyncio
import json
import logging
import sys
from typing import IO

from gitdesk.bus.sync_bus import SyncBus
from gitdesk.watch import watch_repository

logger = logging.getLogger(__name__)


class StdioServer:
    """Thin adapter: all state lives in the SyncBus."""

    def __init__(self, bus: SyncBus, stdin: IO[str] | None = None, stdout: IO[str] | None = None):
        self.bus = bus
        self.stdin = stdin or sys.stdin
        self.stdout = stdout or sys.stdout
        self._tasks: set[asyncio.Task] = set()
        bus.subscribers.subscribe_all(self._emit)

    def _emit(self, message) -> None:
        self.stdout.write(json.dumps(message.to_wire()) + "\n")
        self.stdout.flush()

    def _spawn(self, line: str) -> None:
        task = asyncio.get_running_loop().create_task(self.bus.dispatch(line))
        self._tasks.add(task)
        task.add_done_callback(self._finished)

    def _finished(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Command failed", exc_info=task.exception())

    async def serve(self, watch: bool = True, debounce: float | None = None) -> None:
        """Run until stdin closes, then let in-flight commands finish."""
        loop = asyncio.get_running_loop()
        watcher = None
        if watch:
            watcher = watch_repository(
                self.bus, loop, debounce if debounce is not None else self.bus.settings.watch_debounce
            )

        logger.info(f"Serving {self.bus.repo} on stdio")
        try:
            await self.bus.refresh_status()
            while True:
                line = await asyncio.to_thread(self.stdin.readline)
                if not line:
                    break
                line = line.strip()
                if line:
                    self._spawn(line)
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
        finally:
            if watcher is not None:
                watcher.stop_watching()
        logger.info("stdin closed, shutting down")
