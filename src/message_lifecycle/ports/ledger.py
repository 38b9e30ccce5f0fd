"""IProcessedEventLedger — idempotent event consumption records."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol, runtime_checkable


class ProcessingStatus(str, Enum):
    """Consumption state of one ``(stream, revision)`` for one consumer."""

    PROCESSING = "processing"
    PROCESSED = "processed"
    SKIPPED = "skipped"
    FAILED = "failed"


# Statuses for which the event needs no further work.
DONE_STATUSES = frozenset({ProcessingStatus.PROCESSED, ProcessingStatus.SKIPPED})


@dataclass(frozen=True)
class ProcessedEventRecord:
    consumer: str
    stream: str
    revision: int
    status: ProcessingStatus
    created_at: datetime
    updated_at: datetime
    processed_at: datetime | None = None
    error: str | None = None


@dataclass(frozen=True)
class LedgerStats:
    total: int = 0
    processing: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0


@runtime_checkable
class IProcessedEventLedger(Protocol):
    """Durable record of which events a consumer has handled.

    Instances are bound to one consumer name; two consumers each process an
    event once. Records are never deleted.
    """

    @property
    def consumer(self) -> str:
        ...

    async def is_processed(self, stream: str, revision: int) -> bool:
        """True if the event was processed or skipped."""
        ...

    async def mark_processing(self, stream: str, revision: int) -> None:
        """Atomically claim the event.

        Raises:
            AlreadyClaimedError: If a record already exists, unless that
                record is ``failed``, in which case it is re-claimed.
        """
        ...

    async def update_status(
        self,
        stream: str,
        revision: int,
        status: ProcessingStatus,
        *,
        error: str | None = None,
    ) -> None:
        """Transition an existing record; ``LedgerError`` if it does not exist."""
        ...

    async def get_record(self, stream: str, revision: int) -> ProcessedEventRecord | None:
        ...

    async def get_stats(self) -> LedgerStats:
        ...

    # Conveniences shared by every adapter that subclasses this protocol.

    async def get_status(self, stream: str, revision: int) -> ProcessingStatus | None:
        record = await self.get_record(stream, revision)
        return record.status if record is not None else None

    async def mark_processed(self, stream: str, revision: int) -> None:
        await self.update_status(stream, revision, ProcessingStatus.PROCESSED)

    async def mark_skipped(
        self, stream: str, revision: int, reason: str | None = None
    ) -> None:
        await self.update_status(stream, revision, ProcessingStatus.SKIPPED, error=reason)

    async def mark_failed(self, stream: str, revision: int, error: str) -> None:
        await self.update_status(stream, revision, ProcessingStatus.FAILED, error=error)
