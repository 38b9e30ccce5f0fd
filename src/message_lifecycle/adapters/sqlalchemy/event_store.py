"""
SQLAlchemy implementation of the Event Store.

``position`` is an autoincrement primary key, so the database assigns the
global order. The unique ``(stream_name, version)`` constraint is the last
line of optimistic concurrency: a racing writer that passed the
expected-version check still fails on insert.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...correlation import get_correlation_id
from ...exceptions import ConcurrentModificationError, EventStoreError
from ...instrumentation import get_hook_registry
from ...ports.event_store import IEventStore, StoredEvent
from .models import StoredEventModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class SQLAlchemyEventStore(IEventStore):
    """
    Event Store implementation using SQLAlchemy.

    Each call opens its own session and transaction from *session_factory*.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append_to_stream(
        self,
        stream_name: str,
        events: list[StoredEvent],
        *,
        expected_version: int | None = None,
    ) -> int:
        registry = get_hook_registry()
        first = events[0] if events else None
        result: int = await registry.execute_all(
            f"event_store.append.{stream_name.split('-', 1)[0]}",
            {
                "stream": stream_name,
                "aggregate.id": first.aggregate_id if first else None,
                "event_count": len(events),
                "correlation_id": (first.correlation_id if first else None)
                or get_correlation_id(),
            },
            lambda: self._append_internal(stream_name, events, expected_version),
        )
        return result

    async def _append_internal(
        self,
        stream_name: str,
        events: list[StoredEvent],
        expected_version: int | None,
    ) -> int:
        current = 0
        try:
            async with self._session_factory() as session, session.begin():
                current = await self._current_version(session, stream_name)
                if expected_version is not None and expected_version != current:
                    raise ConcurrentModificationError(
                        stream_name, expected_version, current
                    )
                session.add_all(
                    [
                        self._to_model(stream_name, event, current + i + 1)
                        for i, event in enumerate(events)
                    ]
                )
                await session.flush()
        except IntegrityError as exc:
            raise ConcurrentModificationError(
                stream_name,
                expected_version if expected_version is not None else current,
                None,
            ) from exc
        except SQLAlchemyError as exc:
            raise EventStoreError(f"Failed to append to {stream_name}: {exc}") from exc
        return current + len(events)

    async def read_stream(
        self,
        stream_name: str,
        *,
        after_version: int = 0,
    ) -> list[StoredEvent]:
        stmt = (
            select(StoredEventModel)
            .where(
                StoredEventModel.stream_name == stream_name,
                StoredEventModel.version > after_version,
            )
            .order_by(StoredEventModel.version)
        )
        return await self._fetch(stmt)

    async def get_stream_version(self, stream_name: str) -> int:
        try:
            async with self._session_factory() as session:
                return await self._current_version(session, stream_name)
        except SQLAlchemyError as exc:
            raise EventStoreError(str(exc)) from exc

    async def get_events_after(
        self, position: int, limit: int = 1000
    ) -> list[StoredEvent]:
        """
        Return events after a given position for cursor-based pagination.
        """
        stmt = (
            select(StoredEventModel)
            .where(StoredEventModel.position > position)
            .order_by(StoredEventModel.position)
            .limit(limit)
        )
        return await self._fetch(stmt)

    async def get_latest_position(self) -> int | None:
        try:
            async with self._session_factory() as session:
                return await session.scalar(select(func.max(StoredEventModel.position)))
        except SQLAlchemyError as exc:
            raise EventStoreError(str(exc)) from exc

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    async def _current_version(session: AsyncSession, stream_name: str) -> int:
        value = await session.scalar(
            select(func.max(StoredEventModel.version)).where(
                StoredEventModel.stream_name == stream_name
            )
        )
        return int(value or 0)

    async def _fetch(self, stmt: object) -> list[StoredEvent]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)  # type: ignore[call-overload]
                return [self._to_dataclass(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise EventStoreError(str(exc)) from exc

    @staticmethod
    def _to_model(stream_name: str, event: StoredEvent, version: int) -> StoredEventModel:
        return StoredEventModel(
            event_id=event.event_id,
            event_type=event.event_type,
            stream_name=stream_name,
            aggregate_id=event.aggregate_id,
            aggregate_type=event.aggregate_type,
            version=version,
            schema_version=event.schema_version,
            payload=event.payload,
            metadata_=event.metadata,
            occurred_at=event.occurred_at,
            correlation_id=event.correlation_id,
            causation_id=event.causation_id,
        )

    @staticmethod
    def _to_dataclass(model: StoredEventModel) -> StoredEvent:
        return StoredEvent(
            event_id=model.event_id,
            event_type=model.event_type,
            stream_name=model.stream_name,
            aggregate_id=model.aggregate_id,
            aggregate_type=model.aggregate_type,
            version=model.version,
            schema_version=model.schema_version,
            payload=model.payload,
            metadata=model.metadata_ or {},
            occurred_at=model.occurred_at,
            correlation_id=model.correlation_id,
            causation_id=model.causation_id,
            position=model.position,
        )
