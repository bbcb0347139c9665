"""Message bus between the UI and the git layer."""

from gitdesk.bus.messages import parse_command
from gitdesk.bus.pubsub import SequenceTracker, SubscriberRegistry, Topic
from gitdesk.bus.sync_bus import SyncBus

__all__ = [
    "parse_command",
    "SequenceTracker",
    "SubscriberRegistry",
    "Topic",
    "SyncBus",
]
