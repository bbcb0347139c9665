"""Per-topic fan-out and reply sequencing.

Replies to overlapping requests can arrive in any order. Each request
takes a sequence number when it is issued, and a reply is applied only
if no newer request of the same topic has been applied already.
"""

import logging
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class Topic(Enum):
    STATUS = "status"
    HISTORY = "history"
    BRANCHES = "branches"
    PULL_REQUESTS = "pull_requests"
    FILES = "files"  # fullFilePath replies
    PROMPTS = "prompts"  # branchPrompt replies
    ERRORS = "errors"


Listener = Callable[[object], None]


class SubscriberRegistry:
    """Listener sets per topic; no global state."""

    def __init__(self) -> None:
        self._listeners: dict[Topic, list[Listener]] = {topic: [] for topic in Topic}

    def subscribe(self, topic: Topic, listener: Listener) -> Callable[[], None]:
        """Add a listener; returns a callable that removes it again."""
        self._listeners[topic].append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners[topic].remove(listener)
            except ValueError:
                pass  # Already removed

        return unsubscribe

    def subscribe_all(self, listener: Listener) -> Callable[[], None]:
        """Subscribe one listener to every topic."""
        removers = [self.subscribe(topic, listener) for topic in Topic]

        def unsubscribe() -> None:
            for remove in removers:
                remove()

        return unsubscribe

    def listener_count(self, topic: Topic) -> int:
        return len(self._listeners[topic])

    def publish(self, topic: Topic, message: object) -> int:
        """Deliver message to every listener of topic.

        A failing listener is logged and does not stop delivery to the
        others. Returns the number of listeners that received it.
        """
        delivered = 0
        for listener in list(self._listeners[topic]):
            try:
                listener(message)
                delivered += 1
            except Exception:
                logger.exception(f"Listener {listener!r} failed on {topic.value}")
        return delivered


class SequenceTracker:
    """Monotonic request numbers and last-applied reply per topic."""

    def __init__(self) -> None:
        self._issued: dict[Topic, int] = {topic: 0 for topic in Topic}
        self._applied: dict[Topic, int] = {topic: 0 for topic in Topic}

    def issue(self, topic: Topic) -> int:
        self._issued[topic] += 1
        return self._issued[topic]

    def latest_issued(self, topic: Topic) -> int:
        return self._issued[topic]

    def last_applied(self, topic: Topic) -> int:
        return self._applied[topic]

    def accept(self, topic: Topic, seq: int) -> bool:
        """Record seq as applied if it is newer than the last applied reply."""
        if seq <= self._applied[topic]:
            logger.debug(
                f"Discarding stale {topic.value} reply #{seq} "
                f"(last applied #{self._applied[topic]})"
            )
            return False
        self._applied[topic] = seq
        return True
