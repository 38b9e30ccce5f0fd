"""Domain Event base class."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


class DomainEvent(BaseModel):
    """Base class for all Domain Events.

    Events are immutable and carry full tracing context. Event types must be
    registered with an ``EventTypeRegistry`` to be hydrated from storage.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    occurred_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    version: int = 1
    aggregate_id: str | None = Field(
        default=None, description="ID of the aggregate instance this event belongs to"
    )
    aggregate_type: str | None = Field(
        default=None, description="Type identifier of the aggregate (e.g. 'Message')"
    )
    metadata: dict[str, object] = Field(default_factory=dict)
    correlation_id: str | None = None
    causation_id: str | None = None


def enrich_event_metadata(
    event: DomainEvent,
    *,
    correlation_id: str | None = None,
    causation_id: str | None = None,
    metadata: dict[str, object] | None = None,
) -> DomainEvent:
    """Return a copy of *event* with tracing IDs and extra metadata injected.

    IDs the event already carries are kept; *metadata* keys are merged over
    the existing metadata.
    """
    updates: dict[str, object] = {}
    if correlation_id and not event.correlation_id:
        updates["correlation_id"] = correlation_id
    if causation_id and not event.causation_id:
        updates["causation_id"] = causation_id
    if metadata:
        updates["metadata"] = {**event.metadata, **metadata}

    if not updates:
        return event

    return event.model_copy(update=updates)
