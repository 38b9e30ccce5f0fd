"""
SQLAlchemy implementation of Snapshot Store.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ...exceptions import PersistenceError
from ...ports.snapshots import ISnapshotStore
from .models import SnapshotModel

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker


class SQLAlchemySnapshotStore(ISnapshotStore):
    """
    SQLAlchemy-backed Snapshot Store. Keeps every snapshot row; reads
    return the highest version.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def save_snapshot(
        self,
        stream_name: str,
        snapshot_data: dict[str, Any],
        version: int,
    ) -> None:
        model = SnapshotModel(
            stream_name=stream_name,
            version=version,
            snapshot_data=snapshot_data,
        )
        try:
            async with self._session_factory() as session, session.begin():
                session.add(model)
        except IntegrityError:
            # same version already snapshotted
            return
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to snapshot {stream_name}: {exc}") from exc

    async def get_latest_snapshot(self, stream_name: str) -> dict[str, Any] | None:
        stmt = (
            select(SnapshotModel)
            .where(SnapshotModel.stream_name == stream_name)
            .order_by(SnapshotModel.version.desc())
            .limit(1)
        )
        try:
            async with self._session_factory() as session:
                model = (await session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc

        if not model:
            return None

        return {
            "snapshot_data": model.snapshot_data,
            "version": model.version,
            "created_at": model.created_at,
        }

    async def delete_snapshot(self, stream_name: str) -> None:
        stmt = delete(SnapshotModel).where(SnapshotModel.stream_name == stream_name)
        try:
            async with self._session_factory() as session, session.begin():
                await session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceError(str(exc)) from exc
