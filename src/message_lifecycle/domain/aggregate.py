"""Aggregate Root base class for event-sourced aggregates."""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from pydantic import BaseModel, ConfigDict, PrivateAttr

if TYPE_CHECKING:
    from .events import DomainEvent


class AggregateRoot(BaseModel):
    """Base class for all Aggregate Roots.

    Buffers domain events raised by business operations until the
    repository appends them, and carries the stream revision the aggregate
    was loaded at (``version``). The repository is the only writer of the
    version.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str
    _version: int = PrivateAttr(default=0)
    _domain_events: list[DomainEvent] = PrivateAttr(
        default_factory=lambda: cast("list[DomainEvent]", [])
    )

    def add_event(self, event: DomainEvent) -> None:
        """Record a domain event to be appended later."""
        self._domain_events.append(event)

    def collect_events(self) -> list[DomainEvent]:
        """Return all recorded events and clear the internal list."""
        events = list(self._domain_events)
        self._domain_events.clear()
        return events

    @property
    def uncommitted_events(self) -> list[DomainEvent]:
        """Buffered events not yet appended (read-only copy)."""
        return list(self._domain_events)

    @property
    def version(self) -> int:
        """Read-only version, managed by the persistence layer."""
        return self._version

    def mark_committed(self, version: int) -> None:
        """Drop buffered events after a successful append at *version*."""
        self._domain_events.clear()
        object.__setattr__(self, "_version", version)
