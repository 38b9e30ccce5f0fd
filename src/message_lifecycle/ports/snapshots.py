"""ISnapshotStore — persistence protocol for stream snapshots."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..domain.aggregate import AggregateRoot


@runtime_checkable
class ISnapshotStore(Protocol):
    """Port for persisting and retrieving stream snapshots.

    A snapshot is the materialized aggregate state at a stream revision;
    loading starts from it and replays only the events written after.

    Usage::

        await snapshot_store.save_snapshot(stream, message.to_dto().model_dump(
            mode="json"), version=message.version)
        snapshot = await snapshot_store.get_latest_snapshot(stream)
    """

    async def save_snapshot(
        self,
        stream_name: str,
        snapshot_data: dict[str, Any],
        version: int,
    ) -> None:
        """Save the state of *stream_name* as of *version*."""
        ...

    async def get_latest_snapshot(self, stream_name: str) -> dict[str, Any] | None:
        """Return ``{"snapshot_data", "version", "created_at"}`` or ``None``."""
        ...

    async def delete_snapshot(self, stream_name: str) -> None:
        """Delete all snapshots of *stream_name*."""
        ...


class ISnapshotStrategy(Protocol):
    """Decides whether an aggregate should be snapshotted after a write."""

    def should_snapshot(self, aggregate: AggregateRoot, events_written: int) -> bool:
        ...
