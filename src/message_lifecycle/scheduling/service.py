"""DeliverySchedulerService — runs due delivery jobs."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, cast

from ..config import DeliverySettings
from ..correlation import correlation_scope, get_correlation_id
from ..domain.actor import Actor
from ..domain.message import utcnow
from ..domain.message_snapshot import MessageStatus
from ..exceptions import DomainError, ValidationError
from ..instrumentation import get_hook_registry

if TYPE_CHECKING:
    from ..delivery.job import DeliveryJob
    from ..delivery.orchestrator import DeliveryOrchestrator, DeliveryOutcome
    from ..domain.message import Message
    from ..event_sourcing.repository import MessageRepository
    from ..ports.scheduling import IDelayedJobQueue

logger = logging.getLogger(__name__)

_QUEUEABLE = frozenset({MessageStatus.SCHEDULED, MessageStatus.RETRYING})


class DeliverySchedulerService:
    """
    Coordinates the delayed-job queue with the delivery orchestrator.

    A job that raises a domain or validation error is dropped: running it
    again cannot succeed. Any other error puts the job back with a backoff,
    up to ``max_dispatch_failures`` runs.
    """

    def __init__(
        self,
        job_queue: IDelayedJobQueue,
        repository: MessageRepository,
        orchestrator: DeliveryOrchestrator,
        settings: DeliverySettings | None = None,
    ) -> None:
        self._job_queue = job_queue
        self._repository = repository
        self._orchestrator = orchestrator
        self._settings = settings or DeliverySettings()

    async def process_due_jobs(self) -> int:
        """
        Runs every due job once.

        Returns:
            The number of jobs that completed (and were removed).
        """
        registry = get_hook_registry()
        return cast(
            "int",
            await registry.execute_all(
                "scheduler.dispatch.batch",
                {"correlation_id": get_correlation_id()},
                self._process_due_jobs_internal,
            ),
        )

    async def _process_due_jobs_internal(self) -> int:
        due = await self._job_queue.get_due_jobs()
        if not due:
            return 0

        count = 0
        for job_id, job in due:
            try:
                with correlation_scope(job.correlation_id):
                    await get_hook_registry().execute_all(
                        "scheduler.dispatch",
                        {
                            "job.id": job_id,
                            "message.id": job.message_id,
                            "retry_attempt": job.retry_attempt,
                            "correlation_id": job.correlation_id,
                        },
                        lambda job_id=job_id, job=job: self._run_job(job_id, job),
                    )
            except (DomainError, ValidationError) as exc:
                logger.error(
                    "Dropping delivery job %s for message %s: %s",
                    job_id,
                    job.message_id,
                    exc,
                )
                await self._job_queue.delete_executed(job_id)
                continue
            except Exception:
                logger.exception(
                    "Failed to run delivery job %s for message %s",
                    job_id,
                    job.message_id,
                )
                await self._requeue_failed(job_id, job)
                continue
            await self._job_queue.delete_executed(job_id)
            count += 1
        return count

    async def _requeue_failed(self, job_id: str, job: DeliveryJob) -> None:
        failed = job.after_dispatch_failure()
        if failed.dispatch_failures >= self._settings.max_dispatch_failures:
            logger.error(
                "Dropping delivery job %s for message %s after %d failed runs",
                job_id,
                job.message_id,
                failed.dispatch_failures,
            )
        else:
            delay_ms = min(
                self._settings.base_delay_ms * 2 ** (failed.dispatch_failures - 1),
                self._settings.max_delay_ms,
            )
            await self._job_queue.enqueue_at(
                failed,
                utcnow() + timedelta(milliseconds=delay_ms),
                description=f"rerun {failed.dispatch_failures} of {job.message_id}",
            )
        await self._job_queue.delete_executed(job_id)

    async def _run_job(self, job_id: str, job: DeliveryJob) -> DeliveryOutcome:
        actor = Actor.system(job.tenant)

        def queue(message: Message) -> None:
            if message.status in _QUEUEABLE:
                message.mark_as_queued(actor, job_id, message.priority)

        # terminal messages pass through untouched; the orchestrator skips them
        await self._repository.update(job.message_id, actor, queue)
        logger.info(
            "Running delivery job %s for message %s (attempt %d)",
            job_id,
            job.message_id,
            job.retry_attempt,
        )

        outcome = await self._orchestrator.deliver(job)
        if outcome.retry_requested and outcome.next_job is not None:
            execute_at = utcnow() + (outcome.retry_delay or timedelta(0))
            await self._job_queue.enqueue_at(
                outcome.next_job,
                execute_at,
                description=(
                    f"retry {outcome.next_job.retry_attempt} of {job.message_id}"
                ),
            )
        return outcome
