"""
SQLAlchemy processed-event ledger.

The claim is a plain ``INSERT`` on the ``(consumer, stream, revision)``
primary key, so the database decides the single winner. A ``failed`` row is
re-claimed with a conditional ``UPDATE ... WHERE status = 'failed'``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...exceptions import AlreadyClaimedError, LedgerError
from ...ports.ledger import (
    DONE_STATUSES,
    IProcessedEventLedger,
    LedgerStats,
    ProcessedEventRecord,
    ProcessingStatus,
)
from .models import ProcessedEventModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

_DONE_VALUES = tuple(status.value for status in DONE_STATUSES)


class SQLAlchemyProcessedEventLedger(IProcessedEventLedger):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        consumer: str = "default",
    ) -> None:
        self._session_factory = session_factory
        self._consumer = consumer

    @property
    def consumer(self) -> str:
        return self._consumer

    def _key(self, stream: str, revision: int) -> tuple[object, ...]:
        return (
            ProcessedEventModel.consumer == self._consumer,
            ProcessedEventModel.stream == stream,
            ProcessedEventModel.revision == revision,
        )

    async def is_processed(self, stream: str, revision: int) -> bool:
        stmt = select(ProcessedEventModel.status).where(
            *self._key(stream, revision),
            ProcessedEventModel.status.in_(_DONE_VALUES),
        )
        try:
            async with self._session_factory() as session:
                return (await session.scalar(stmt)) is not None
        except SQLAlchemyError as exc:
            raise LedgerError(str(exc)) from exc

    async def mark_processing(self, stream: str, revision: int) -> None:
        now = datetime.now(timezone.utc)
        try:
            async with self._session_factory() as session, session.begin():
                session.add(
                    ProcessedEventModel(
                        consumer=self._consumer,
                        stream=stream,
                        revision=revision,
                        status=ProcessingStatus.PROCESSING.value,
                        created_at=now,
                        updated_at=now,
                    )
                )
                await session.flush()
            return
        except IntegrityError:
            pass
        except SQLAlchemyError as exc:
            raise LedgerError(f"Failed to claim {stream}@{revision}: {exc}") from exc

        reclaim = (
            update(ProcessedEventModel)
            .where(
                *self._key(stream, revision),
                ProcessedEventModel.status == ProcessingStatus.FAILED.value,
            )
            .values(
                status=ProcessingStatus.PROCESSING.value,
                updated_at=now,
                error=None,
            )
        )
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(reclaim)
        except SQLAlchemyError as exc:
            raise LedgerError(f"Failed to re-claim {stream}@{revision}: {exc}") from exc
        if result.rowcount != 1:  # type: ignore[attr-defined]
            raise AlreadyClaimedError(stream, revision)

    async def update_status(
        self,
        stream: str,
        revision: int,
        status: ProcessingStatus,
        *,
        error: str | None = None,
    ) -> None:
        now = datetime.now(timezone.utc)
        values: dict[str, object] = {
            "status": status.value,
            "updated_at": now,
            "error": error,
        }
        if status in DONE_STATUSES:
            values["processed_at"] = now
        stmt = (
            update(ProcessedEventModel)
            .where(*self._key(stream, revision))
            .values(**values)
        )
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise LedgerError(str(exc)) from exc
        if result.rowcount == 0:  # type: ignore[attr-defined]
            raise LedgerError(f"No ledger record for {stream}@{revision}")

    async def get_record(
        self, stream: str, revision: int
    ) -> ProcessedEventRecord | None:
        stmt = select(ProcessedEventModel).where(*self._key(stream, revision))
        try:
            async with self._session_factory() as session:
                model = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise LedgerError(str(exc)) from exc
        if model is None:
            return None
        return ProcessedEventRecord(
            consumer=model.consumer,
            stream=model.stream,
            revision=model.revision,
            status=ProcessingStatus(model.status),
            created_at=model.created_at,
            updated_at=model.updated_at,
            processed_at=model.processed_at,
            error=model.error,
        )

    async def get_stats(self) -> LedgerStats:
        stmt = (
            select(ProcessedEventModel.status, func.count())
            .where(ProcessedEventModel.consumer == self._consumer)
            .group_by(ProcessedEventModel.status)
        )
        try:
            async with self._session_factory() as session:
                rows = (await session.execute(stmt)).all()
        except SQLAlchemyError as exc:
            raise LedgerError(str(exc)) from exc
        counts = {status: int(n) for status, n in rows}
        return LedgerStats(
            total=sum(counts.values()),
            processing=counts.get(ProcessingStatus.PROCESSING.value, 0),
            processed=counts.get(ProcessingStatus.PROCESSED.value, 0),
            skipped=counts.get(ProcessingStatus.SKIPPED.value, 0),
            failed=counts.get(ProcessingStatus.FAILED.value, 0),
        )
