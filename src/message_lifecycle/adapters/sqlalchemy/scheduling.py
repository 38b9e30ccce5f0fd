"""
SQLAlchemy implementation of the delayed-job queue.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError

from ...delivery.job import DeliveryJob
from ...exceptions import PersistenceError
from ...ports.scheduling import IDelayedJobQueue
from .models import DeliveryJobModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class SQLAlchemyDelayedJobQueue(IDelayedJobQueue):
    """
    SQLAlchemy-backed delayed-job queue (``delivery_jobs`` table).
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def enqueue_at(
        self,
        job: DeliveryJob,
        execute_at: datetime,
        description: str | None = None,
    ) -> str:
        if execute_at.tzinfo is None:
            execute_at = execute_at.replace(tzinfo=timezone.utc)
        job_id = str(uuid4())
        model = DeliveryJobModel(
            id=job_id,
            message_id=job.message_id,
            job_payload=job.model_dump(mode="json"),
            execute_at=execute_at,
            status="PENDING",
            created_at=datetime.now(timezone.utc),
            description=description,
        )
        try:
            async with self._session_factory() as session, session.begin():
                session.add(model)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to enqueue job: {exc}") from exc
        return job_id

    async def get_due_jobs(self) -> list[tuple[str, DeliveryJob]]:
        """
        Retrieve all jobs due for execution, oldest first.
        """
        now = datetime.now(timezone.utc)
        stmt = (
            select(DeliveryJobModel)
            .where(
                DeliveryJobModel.execute_at <= now,
                DeliveryJobModel.status == "PENDING",
            )
            .order_by(DeliveryJobModel.execute_at)
        )
        try:
            async with self._session_factory() as session:
                models = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc
        return [(m.id, DeliveryJob.model_validate(m.job_payload)) for m in models]

    async def cancel(self, job_id: str) -> bool:
        stmt = (
            update(DeliveryJobModel)
            .where(DeliveryJobModel.id == job_id, DeliveryJobModel.status == "PENDING")
            .values(status="CANCELLED")
        )
        try:
            async with self._session_factory() as session, session.begin():
                result = await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc
        return bool(result.rowcount)  # type: ignore[attr-defined]

    async def delete_executed(self, job_id: str) -> None:
        """Remove a job after execution."""
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(
                    delete(DeliveryJobModel).where(DeliveryJobModel.id == job_id)
                )
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc
