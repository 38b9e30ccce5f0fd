"""In-memory delayed-job queue for testing."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from ...ports.scheduling import IDelayedJobQueue

if TYPE_CHECKING:
    from ...delivery.job import DeliveryJob


class InMemoryDelayedJobQueue(IDelayedJobQueue):
    """
    Dict-backed :class:`IDelayedJobQueue` for unit / integration tests.
    """

    def __init__(self) -> None:
        self._scheduled: dict[str, tuple[DeliveryJob, datetime, str | None]] = {}

    async def enqueue_at(
        self,
        job: DeliveryJob,
        execute_at: datetime,
        description: str | None = None,
    ) -> str:
        if execute_at.tzinfo is None:
            execute_at = execute_at.replace(tzinfo=timezone.utc)

        job_id = str(uuid.uuid4())
        self._scheduled[job_id] = (job, execute_at, description)
        return job_id

    async def get_due_jobs(self) -> list[tuple[str, DeliveryJob]]:
        now = datetime.now(timezone.utc)
        due = [
            (job_id, job, execute_at)
            for job_id, (job, execute_at, _) in self._scheduled.items()
            if execute_at <= now
        ]
        due.sort(key=lambda item: item[2])
        return [(job_id, job) for job_id, job, _ in due]

    async def cancel(self, job_id: str) -> bool:
        return self._scheduled.pop(job_id, None) is not None

    async def delete_executed(self, job_id: str) -> None:
        self._scheduled.pop(job_id, None)

    # --- Test helpers ---

    def jobs(self) -> list[tuple[DeliveryJob, datetime]]:
        """All pending jobs with their execution times, soonest first."""
        return sorted(
            ((job, at) for job, at, _ in self._scheduled.values()),
            key=lambda item: item[1],
        )

    def make_all_due(self) -> None:
        """Move every pending job's execution time to now."""
        now = datetime.now(timezone.utc)
        self._scheduled = {
            job_id: (job, now, description)
            for job_id, (job, _, description) in self._scheduled.items()
        }

    @property
    def scheduled_count(self) -> int:
        return len(self._scheduled)
