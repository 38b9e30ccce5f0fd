"""MessageRepository — load, save and optimistic update of message streams."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, cast

from ..config import DeliverySettings
from ..correlation import get_causation_id, get_correlation_id
from ..domain.events import enrich_event_metadata
from ..domain.message_events import MESSAGE_EVENT_TYPES
from ..exceptions import (
    ConcurrentModificationError,
    MessageLifecycleError,
    MessageNotFoundError,
    PersistenceError,
    UnauthorizedOperationError,
)
from ..instrumentation import get_hook_registry
from ..ports.event_store import StoredEvent
from .loader import EventSourcedLoader
from .snapshots import SnapshotOnEveryWrite
from .stream import StreamName

if TYPE_CHECKING:
    from collections.abc import Callable

    from ..domain.actor import Actor, SagaContext
    from ..domain.event_registry import EventTypeRegistry
    from ..domain.events import DomainEvent
    from ..domain.message import Message
    from ..ports.event_store import IEventStore
    from ..ports.snapshots import ISnapshotStore, ISnapshotStrategy

logger = logging.getLogger(__name__)


def default_event_registry() -> EventTypeRegistry:
    """Registry with every message event registered under its class name."""
    from ..domain.event_registry import EventTypeRegistry

    registry = EventTypeRegistry()
    registry.register_all(*MESSAGE_EVENT_TYPES)
    return registry


class MessageRepository:
    """Repository for event-sourced messages.

    - **Load:** latest snapshot, then the events written after it.
    - **Save:** appends buffered events with ``expected_version`` equal to the
      revision the message was loaded at, then snapshots per strategy.
    - **Update:** load → mutate → save, reloading on
      ``ConcurrentModificationError``.

    Every stream is scoped to the actor's tenant.
    """

    def __init__(
        self,
        event_store: IEventStore,
        snapshot_store: ISnapshotStore | None = None,
        event_registry: EventTypeRegistry | None = None,
        settings: DeliverySettings | None = None,
        snapshot_strategy: ISnapshotStrategy | None = None,
    ) -> None:
        self._event_store = event_store
        self._snapshot_store = snapshot_store
        self._event_registry = event_registry or default_event_registry()
        self._settings = settings or DeliverySettings()
        self._snapshot_strategy = snapshot_strategy or SnapshotOnEveryWrite()
        self._loader = EventSourcedLoader(
            event_store, self._event_registry, snapshot_store=snapshot_store
        )

    def stream_for(self, message_id: str, actor: Actor) -> StreamName:
        return StreamName.for_message(self._settings, actor.tenant or "", message_id)

    # ── Load ─────────────────────────────────────────────────────────

    async def get(self, message_id: str, actor: Actor | None) -> Message:
        """Load a message; ``MessageNotFoundError`` if its stream is empty."""
        if actor is None:
            raise UnauthorizedOperationError("get")
        stream = str(self.stream_for(message_id, actor))
        registry = get_hook_registry()
        return cast(
            "Message",
            await registry.execute_all(
                "message.repository.get",
                {
                    "message.id": message_id,
                    "stream": stream,
                    "correlation_id": get_correlation_id(),
                },
                lambda: self._get_internal(message_id, stream),
            ),
        )

    async def _get_internal(self, message_id: str, stream: str) -> Message:
        message = await self._loader.load(stream)
        if message is None:
            raise MessageNotFoundError(message_id)
        return message

    async def exists(self, message_id: str, actor: Actor | None) -> bool:
        if actor is None:
            raise UnauthorizedOperationError("exists")
        stream = str(self.stream_for(message_id, actor))
        if self._snapshot_store is not None:
            if await self._snapshot_store.get_latest_snapshot(stream) is not None:
                return True
        return await self._event_store.get_stream_version(stream) > 0

    # ── Save ─────────────────────────────────────────────────────────

    async def save(
        self,
        message: Message,
        actor: Actor | None,
        saga_context: SagaContext | None = None,
    ) -> Message:
        """Append the message's buffered events atomically.

        Raises:
            UnauthorizedOperationError: If *actor* is ``None``.
            ConcurrentModificationError: If the stream moved past
                ``message.version``.
            PersistenceError: For any other store failure.
        """
        if actor is None:
            raise UnauthorizedOperationError("save")
        stream = str(self.stream_for(message.id, actor))
        registry = get_hook_registry()
        return cast(
            "Message",
            await registry.execute_all(
                "message.repository.save",
                {
                    "message.id": message.id,
                    "stream": stream,
                    "event_count": len(message.uncommitted_events),
                    "correlation_id": get_correlation_id() or message.correlation_id,
                },
                lambda: self._save_internal(message, actor, stream, saga_context),
            ),
        )

    async def _save_internal(
        self,
        message: Message,
        actor: Actor,
        stream: str,
        saga_context: SagaContext | None,
    ) -> Message:
        if saga_context is not None and await self._saga_already_applied(
            stream, saga_context.operation_id
        ):
            logger.info(
                "Operation %s already applied to %s; returning stored state",
                saga_context.operation_id,
                stream,
            )
            message.collect_events()
            return await self._get_internal(message.id, stream)

        events = message.uncommitted_events
        if not events:
            return message

        stored = [
            self._to_stored(stream, self._stamp(event, message, actor, saga_context))
            for event in events
        ]

        try:
            new_version = await self._event_store.append_to_stream(
                stream, stored, expected_version=message.version
            )
        except MessageLifecycleError:
            raise
        except Exception as exc:
            raise PersistenceError(f"Failed to append to {stream}: {exc}") from exc

        message.mark_committed(new_version)

        if self._snapshot_store is not None and self._snapshot_strategy.should_snapshot(
            message, len(stored)
        ):
            try:
                await self._snapshot_store.save_snapshot(
                    stream, message.to_dto().model_dump(mode="json"), new_version
                )
            except MessageLifecycleError:
                raise
            except Exception as exc:
                raise PersistenceError(
                    f"Failed to snapshot {stream}@{new_version}: {exc}"
                ) from exc

        return message

    async def _saga_already_applied(self, stream: str, operation_id: str) -> bool:
        for stored in await self._event_store.read_stream(stream):
            saga = stored.metadata.get("saga")
            if isinstance(saga, dict) and saga.get("operation_id") == operation_id:
                return True
        return False

    def _stamp(
        self,
        event: DomainEvent,
        message: Message,
        actor: Actor,
        saga_context: SagaContext | None,
    ) -> DomainEvent:
        metadata: dict[str, object] = {"actor_id": actor.subject, "tenant": actor.tenant}
        if saga_context is not None:
            timestamp = datetime.now(timezone.utc).isoformat()
            metadata["saga"] = saga_context.as_metadata(timestamp)
        return enrich_event_metadata(
            event,
            correlation_id=get_correlation_id() or message.correlation_id,
            causation_id=get_causation_id(),
            metadata=metadata,
        )

    def _to_stored(self, stream: str, event: DomainEvent) -> StoredEvent:
        return StoredEvent(
            event_id=event.event_id,
            event_type=type(event).__name__,
            stream_name=stream,
            aggregate_id=event.aggregate_id or "",
            aggregate_type=event.aggregate_type or "Message",
            schema_version=event.version,
            payload=event.model_dump(mode="json"),
            metadata=dict(event.metadata),
            occurred_at=event.occurred_at,
            correlation_id=event.correlation_id,
            causation_id=event.causation_id,
        )

    # ── Update ───────────────────────────────────────────────────────

    async def update(
        self,
        message_id: str,
        actor: Actor | None,
        mutate: Callable[[Message], Any],
        *,
        max_attempts: int = 3,
        saga_context: SagaContext | None = None,
    ) -> Message:
        """Load, apply *mutate*, save; reload and retry on a revision conflict.

        *mutate* runs against a fresh copy on every attempt, so it must not
        depend on state from a previous attempt.
        """
        if actor is None:
            raise UnauthorizedOperationError("update")
        attempt = 0
        while True:
            attempt += 1
            message = await self.get(message_id, actor)
            mutate(message)
            try:
                return await self.save(message, actor, saga_context)
            except ConcurrentModificationError as exc:
                if attempt >= max_attempts:
                    raise
                logger.debug(
                    "Concurrent modification on %s (attempt %d/%d), reloading",
                    exc.stream,
                    attempt,
                    max_attempts,
                )
