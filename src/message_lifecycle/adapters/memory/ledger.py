"""InMemoryProcessedEventLedger — dict-backed ledger for tests."""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone

from ...exceptions import AlreadyClaimedError, LedgerError
from ...ports.ledger import (
    DONE_STATUSES,
    IProcessedEventLedger,
    LedgerStats,
    ProcessedEventRecord,
    ProcessingStatus,
)


class InMemoryProcessedEventLedger(IProcessedEventLedger):
    """Single-event-loop ledger.

    ``mark_processing`` checks and inserts without awaiting in between, which
    makes the claim atomic with respect to other coroutines. Pass the same
    ``records`` dict to several instances to model consumers sharing one
    table.
    """

    def __init__(
        self,
        consumer: str = "default",
        records: dict[tuple[str, str, int], ProcessedEventRecord] | None = None,
    ) -> None:
        self._consumer = consumer
        self._records = records if records is not None else {}

    @property
    def consumer(self) -> str:
        return self._consumer

    def _key(self, stream: str, revision: int) -> tuple[str, str, int]:
        return (self._consumer, stream, revision)

    async def is_processed(self, stream: str, revision: int) -> bool:
        record = self._records.get(self._key(stream, revision))
        return record is not None and record.status in DONE_STATUSES

    async def mark_processing(self, stream: str, revision: int) -> None:
        key = self._key(stream, revision)
        now = datetime.now(timezone.utc)
        existing = self._records.get(key)
        if existing is not None:
            if existing.status is not ProcessingStatus.FAILED:
                raise AlreadyClaimedError(stream, revision)
            self._records[key] = dataclasses.replace(
                existing, status=ProcessingStatus.PROCESSING, updated_at=now, error=None
            )
            return
        self._records[key] = ProcessedEventRecord(
            consumer=self._consumer,
            stream=stream,
            revision=revision,
            status=ProcessingStatus.PROCESSING,
            created_at=now,
            updated_at=now,
        )

    async def update_status(
        self,
        stream: str,
        revision: int,
        status: ProcessingStatus,
        *,
        error: str | None = None,
    ) -> None:
        key = self._key(stream, revision)
        existing = self._records.get(key)
        if existing is None:
            raise LedgerError(f"No ledger record for {stream}@{revision}")
        now = datetime.now(timezone.utc)
        self._records[key] = dataclasses.replace(
            existing,
            status=status,
            updated_at=now,
            processed_at=now if status in DONE_STATUSES else existing.processed_at,
            error=error,
        )

    async def get_record(
        self, stream: str, revision: int
    ) -> ProcessedEventRecord | None:
        return self._records.get(self._key(stream, revision))

    async def get_stats(self) -> LedgerStats:
        mine = [r for r in self._records.values() if r.consumer == self._consumer]
        counts = {status: 0 for status in ProcessingStatus}
        for record in mine:
            counts[record.status] += 1
        return LedgerStats(
            total=len(mine),
            processing=counts[ProcessingStatus.PROCESSING],
            processed=counts[ProcessingStatus.PROCESSED],
            skipped=counts[ProcessingStatus.SKIPPED],
            failed=counts[ProcessingStatus.FAILED],
        )

    # --- Test helpers ---

    def __len__(self) -> int:
        return sum(1 for r in self._records.values() if r.consumer == self._consumer)
