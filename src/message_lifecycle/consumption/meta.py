"""EventMeta — where a consumed event came from."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..event_sourcing.stream import StreamName

if TYPE_CHECKING:
    from ..ports.event_store import StoredEvent

EVENT_TYPE_STREAM_PREFIX = "$et-"


@dataclass(frozen=True)
class EventMeta:
    """Ledger key plus routing context of one observed event.

    ``stream``/``revision`` form the ledger key. For an event-type
    subscription they are ``$et-<EventType>`` and the global position;
    ``source_stream`` is always the per-message stream.
    """

    stream: str
    revision: int
    event_type: str
    tenant: str | None = None
    aggregate_id: str | None = None
    source_stream: str | None = None

    @classmethod
    def for_event_type(cls, stored: StoredEvent) -> EventMeta:
        if stored.position is None:
            raise ValueError(f"Event {stored.event_id} has no store position")
        tenant = stored.metadata.get("tenant")
        return cls(
            stream=f"{EVENT_TYPE_STREAM_PREFIX}{stored.event_type}",
            revision=stored.position,
            event_type=stored.event_type,
            tenant=(
                tenant
                if isinstance(tenant, str) and tenant
                else StreamName.tenant_of(stored.stream_name)
            ),
            aggregate_id=stored.aggregate_id or None,
            source_stream=stored.stream_name,
        )
