"""IDelayedJobQueue — protocol for deferred delivery attempts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from ..delivery.job import DeliveryJob


@runtime_checkable
class IDelayedJobQueue(Protocol):
    """Port for "wake up and attempt delivery at time T".

    Holds no business state; a job only names the message to attempt.

    Usage::

        job_id = await queue.enqueue_at(job, now + timedelta(seconds=4))

        for job_id, job in await queue.get_due_jobs():
            await orchestrator.deliver(job)
            await queue.delete_executed(job_id)
    """

    async def enqueue_at(
        self,
        job: DeliveryJob,
        execute_at: datetime,
        description: str | None = None,
    ) -> str:
        """Schedule *job* for *execute_at* (UTC). Returns the job id."""
        ...

    async def get_due_jobs(self) -> list[tuple[str, DeliveryJob]]:
        """Return jobs due now or earlier, oldest first."""
        ...

    async def cancel(self, job_id: str) -> bool:
        """Cancel a pending job. True if it existed."""
        ...

    async def delete_executed(self, job_id: str) -> None:
        """Remove a job after it ran."""
        ...
