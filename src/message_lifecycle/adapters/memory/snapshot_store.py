"""InMemorySnapshotStore — in-memory snapshot store for tests."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any

from ...ports.snapshots import ISnapshotStore


class InMemorySnapshotStore(ISnapshotStore):
    """In-memory implementation of ISnapshotStore.

    Keeps only the latest snapshot per stream; an older version never
    overwrites a newer one.
    """

    def __init__(self) -> None:
        self._store: dict[str, dict[str, Any]] = {}

    async def save_snapshot(
        self,
        stream_name: str,
        snapshot_data: dict[str, Any],
        version: int,
    ) -> None:
        existing = self._store.get(stream_name)
        if existing is not None and existing["version"] >= version:
            return
        self._store[stream_name] = {
            "snapshot_data": copy.deepcopy(snapshot_data),
            "version": version,
            "created_at": datetime.now(timezone.utc),
        }

    async def get_latest_snapshot(self, stream_name: str) -> dict[str, Any] | None:
        snapshot = self._store.get(stream_name)
        return copy.deepcopy(snapshot) if snapshot is not None else None

    async def delete_snapshot(self, stream_name: str) -> None:
        self._store.pop(stream_name, None)

    def clear(self) -> None:
        """Remove all snapshots (test helper)."""
        self._store.clear()
