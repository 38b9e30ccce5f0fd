"""Snapshot strategies: when to materialize a stream's state after a write."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..ports.snapshots import ISnapshotStrategy

if TYPE_CHECKING:
    from ..domain.aggregate import AggregateRoot


class SnapshotOnEveryWrite(ISnapshotStrategy):
    """Snapshot after every successful append (the default)."""

    def should_snapshot(self, aggregate: AggregateRoot, events_written: int) -> bool:
        return events_written > 0


class EveryNEventsStrategy(ISnapshotStrategy):
    """
    Snapshots an aggregate whenever a write crosses a multiple of N.
    """

    def __init__(self, n: int = 50) -> None:
        if n < 1:
            raise ValueError("n must be >= 1")
        self.n = n

    def should_snapshot(self, aggregate: AggregateRoot, events_written: int) -> bool:
        if aggregate.version <= 0 or events_written <= 0:
            return False
        before = aggregate.version - events_written
        return aggregate.version // self.n > before // self.n
