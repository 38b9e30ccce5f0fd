"""IEventStore protocol + StoredEvent dataclass."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable
from uuid import uuid4


def _empty_dict() -> dict[str, object]:
    return {}


@dataclass(frozen=True)
class StoredEvent:
    """Persistent representation of a domain event.

    - ``stream_name``: the per-aggregate stream the event belongs to.
    - ``version``: revision of the event inside its stream (1st, 2nd, ...).
    - ``schema_version``: event payload schema version.
    - ``position``: global, monotonically increasing store position, used by
      catch-up subscriptions. Assigned by the store on append.
    """

    event_id: str = field(default_factory=lambda: str(uuid4()))
    event_type: str = ""
    stream_name: str = ""
    aggregate_id: str = ""
    aggregate_type: str = ""
    version: int = 0
    schema_version: int = 1
    payload: dict[str, object] = field(default_factory=_empty_dict)
    metadata: dict[str, object] = field(default_factory=_empty_dict)
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: str | None = None
    causation_id: str | None = None
    position: int | None = None


@runtime_checkable
class IEventStore(Protocol):
    """Append-only, per-stream ordered event log."""

    async def append_to_stream(
        self,
        stream_name: str,
        events: list[StoredEvent],
        *,
        expected_version: int | None = None,
    ) -> int:
        """Append *events* atomically to *stream_name*.

        Each event's ``version`` is assigned by the store as the next stream
        revision. When *expected_version* is given the append fails with
        ``ConcurrentModificationError`` unless the stream's current revision
        equals it (``0`` means "stream must not exist yet").

        Returns:
            The stream revision after the append.
        """
        ...

    async def read_stream(
        self,
        stream_name: str,
        *,
        after_version: int = 0,
    ) -> list[StoredEvent]:
        """Return the events of *stream_name* with ``version > after_version``."""
        ...

    async def get_stream_version(self, stream_name: str) -> int:
        """Return the current revision of *stream_name* (``0`` if absent)."""
        ...

    async def get_events_after(
        self, position: int, limit: int = 1000
    ) -> list[StoredEvent]:
        """Return events with ``position > position`` in position order.

        Used by catch-up subscriptions to resume from a cursor.
        """
        ...

    async def get_latest_position(self) -> int | None:
        """Return the highest position in the store, or ``None`` if empty."""
        ...
