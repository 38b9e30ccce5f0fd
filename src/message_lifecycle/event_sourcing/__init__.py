"""Event-sourced persistence of messages: streams, loading, snapshots, saving."""

from .loader import DefaultEventApplicator, EventSourcedLoader
from .repository import MessageRepository, default_event_registry
from .snapshots import EveryNEventsStrategy, SnapshotOnEveryWrite
from .stream import StreamName

__all__ = [
    "DefaultEventApplicator",
    "EventSourcedLoader",
    "EveryNEventsStrategy",
    "MessageRepository",
    "SnapshotOnEveryWrite",
    "StreamName",
    "default_event_registry",
]
