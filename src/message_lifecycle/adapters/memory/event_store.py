"""InMemoryEventStore — list-backed fake for unit tests and single-process use."""

from __future__ import annotations

import dataclasses

from ...correlation import get_correlation_id
from ...exceptions import ConcurrentModificationError
from ...instrumentation import get_hook_registry
from ...ports.event_store import IEventStore, StoredEvent


class InMemoryEventStore(IEventStore):
    """In-memory implementation of ``IEventStore``.

    Keeps one global list (positions start at 1) plus a per-stream index.
    The expected-version check and the append run without an intervening
    ``await``, so concurrent appenders on one event loop cannot interleave.
    """

    def __init__(self) -> None:
        self._events: list[StoredEvent] = []
        self._streams: dict[str, list[StoredEvent]] = {}

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
        stream = self._streams.get(stream_name, [])
        current = len(stream)
        if expected_version is not None and expected_version != current:
            raise ConcurrentModificationError(stream_name, expected_version, current)
        if not events:
            return current

        stored: list[StoredEvent] = []
        for i, event in enumerate(events):
            stored.append(
                dataclasses.replace(
                    event,
                    stream_name=stream_name,
                    version=current + i + 1,
                    position=len(self._events) + i + 1,
                )
            )
        self._events.extend(stored)
        self._streams.setdefault(stream_name, []).extend(stored)
        return current + len(stored)

    async def read_stream(
        self,
        stream_name: str,
        *,
        after_version: int = 0,
    ) -> list[StoredEvent]:
        return [e for e in self._streams.get(stream_name, []) if e.version > after_version]

    async def get_stream_version(self, stream_name: str) -> int:
        return len(self._streams.get(stream_name, []))

    async def get_events_after(
        self, position: int, limit: int = 1000
    ) -> list[StoredEvent]:
        # positions are 1-based and dense
        start = max(position, 0)
        return self._events[start : start + limit]

    async def get_latest_position(self) -> int | None:
        if not self._events:
            return None
        return len(self._events)

    # ── Test helpers ─────────────────────────────────────────────

    def clear(self) -> None:
        self._events.clear()
        self._streams.clear()

    def __len__(self) -> int:
        return len(self._events)
