"""EventSourcedLoader — rebuild a message from its snapshot and stream tail."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..domain.message import Message
from ..domain.message_events import MessageEvent

if TYPE_CHECKING:
    from ..domain.event_registry import EventTypeRegistry
    from ..domain.events import DomainEvent
    from ..ports.event_store import IEventStore
    from ..ports.snapshots import ISnapshotStore

logger = logging.getLogger(__name__)


class DefaultEventApplicator:
    """
    Applies events by dispatching to ``apply_<EventTypeName>``
    or ``apply_event`` on the aggregate.
    """

    def apply(self, aggregate: Message, event: DomainEvent) -> Message:
        event_type = type(event).__name__
        method = getattr(aggregate, f"apply_{event_type}", None)
        if method is None or not callable(method):
            method = getattr(aggregate, "apply_event", None)
        if method is None or not callable(method):
            raise AttributeError(
                f"Aggregate {type(aggregate).__name__} "
                f"has no apply_{event_type} or apply_event"
            )
        method(event)
        return aggregate


class EventSourcedLoader:
    """
    Loads a message from snapshot (if any) + the events written after it.

    **Flow:** get_latest_snapshot → restore from snapshot, or from the first
    event's embedded state → read_stream(after_version) → hydrate each stored
    payload → apply to the message.
    """

    def __init__(
        self,
        event_store: IEventStore,
        event_registry: EventTypeRegistry,
        *,
        snapshot_store: ISnapshotStore | None = None,
        applicator: DefaultEventApplicator | None = None,
    ) -> None:
        self._event_store = event_store
        self._event_registry = event_registry
        self._snapshot_store = snapshot_store
        self._applicator = applicator or DefaultEventApplicator()

    async def load(self, stream_name: str) -> Message | None:
        """Reconstitute the message of *stream_name*.

        Returns ``None`` when there is neither a snapshot nor any event.
        """
        after_version = 0
        message: Message | None = None

        if self._snapshot_store is not None:
            snapshot = await self._snapshot_store.get_latest_snapshot(stream_name)
            if snapshot:
                after_version = int(snapshot.get("version", 0))
                message = Message.from_snapshot(
                    snapshot["snapshot_data"], after_version
                )

        stored_events = await self._event_store.read_stream(
            stream_name, after_version=after_version
        )
        if message is None and not stored_events:
            return None

        for stored in stored_events:
            event = self._event_registry.hydrate(stored.event_type, dict(stored.payload))
            if event is None:
                logger.warning(
                    "Skipping unknown event %s at %s@%d",
                    stored.event_type,
                    stream_name,
                    stored.version,
                )
                continue
            if message is None:
                if not isinstance(event, MessageEvent):
                    continue
                message = Message.from_snapshot(event.message, stored.version)
            else:
                message = self._applicator.apply(message, event)
            object.__setattr__(message, "_version", stored.version)

        return message
