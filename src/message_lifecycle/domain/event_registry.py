"""EventTypeRegistry — maps stored event type names to their classes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .events import DomainEvent

logger = logging.getLogger(__name__)


class EventTypeRegistry:
    """Registry for mapping ``event_type_name: str`` → ``type[DomainEvent]``.

    Used to reconstruct domain events from stored payloads. Registration is
    explicit; create one instance per application context.

    Usage::

        registry = EventTypeRegistry()
        registry.register("MessageCreated", MessageCreated)
        event = registry.hydrate("MessageCreated", payload)
    """

    def __init__(self) -> None:
        self._registry: dict[str, type[DomainEvent]] = {}

    def register(self, name: str, event_class: type[DomainEvent]) -> None:
        """Register an event class under *name*."""
        self._registry[name] = event_class

    def register_all(self, *event_classes: type[DomainEvent]) -> None:
        """Register classes under their own class names."""
        for cls in event_classes:
            self.register(cls.__name__, cls)

    def get(self, event_type: str) -> type[DomainEvent] | None:
        """Look up an event class by type name."""
        return self._registry.get(event_type)

    def has(self, event_type: str) -> bool:
        """Return ``True`` if *event_type* is registered."""
        return event_type in self._registry

    def hydrate(self, event_type: str, data: dict[str, Any]) -> DomainEvent | None:
        """Reconstruct a domain event from its type name and payload dict.

        Returns ``None`` if the event type is not registered or the payload
        does not validate.
        """
        event_class = self.get(event_type)
        if event_class is None:
            return None

        try:
            return event_class.model_validate(data)
        except (TypeError, ValueError):
            logger.warning("Could not hydrate %s payload", event_type, exc_info=True)
            return None

    def list_registered(self) -> list[str]:
        """Return all registered event type names."""
        return list(self._registry.keys())
