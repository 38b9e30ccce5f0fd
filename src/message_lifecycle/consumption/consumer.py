"""MessageCreatedConsumer — ledger-guarded entry point of the delivery pipeline."""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, cast

from ..config import DeliverySettings
from ..correlation import correlation_scope
from ..delivery.job import DeliveryJob
from ..domain.message import as_utc, utcnow
from ..domain.message_events import MessageCreated
from ..instrumentation import get_hook_registry
from .ledger_guard import LedgerGuard

if TYPE_CHECKING:
    from ..delivery.orchestrator import DeliveryOrchestrator
    from ..ports.event_store import StoredEvent
    from ..ports.ledger import IProcessedEventLedger
    from ..ports.scheduling import IDelayedJobQueue
    from .meta import EventMeta

logger = logging.getLogger(__name__)


class ConsumeResult(str, Enum):
    DUPLICATE = "duplicate"
    SKIPPED = "skipped"
    NO_TENANT = "no_tenant"
    SCHEDULED = "scheduled"
    DISPATCHED = "dispatched"


class MessageCreatedConsumer:
    """Turns each ``MessageCreated`` into exactly one delivery start.

    Flow per event:

    1. Already processed, or claimed by someone else → ``DUPLICATE``.
    2. Any other event type → ledger ``skipped``.
    3. No tenant (meta or stream name) → ledger ``failed``, no exception.
    4. Future ``scheduled_at`` → delayed job at that time.
       Otherwise deliver now; a retry request becomes a delayed job.
    5. Ledger ``processed``. Any exception marks ``failed`` and re-raises.
    """

    event_type = MessageCreated.__name__

    def __init__(
        self,
        ledger: IProcessedEventLedger,
        orchestrator: DeliveryOrchestrator,
        job_queue: IDelayedJobQueue,
        settings: DeliverySettings | None = None,
    ) -> None:
        self._guard = LedgerGuard(ledger)
        self._orchestrator = orchestrator
        self._job_queue = job_queue
        self._settings = settings or DeliverySettings()

    async def handle(self, event: StoredEvent, meta: EventMeta) -> ConsumeResult:
        registry = get_hook_registry()
        return cast(
            "ConsumeResult",
            await registry.execute_all(
                f"consumer.handle.{meta.event_type}",
                {
                    "stream": meta.stream,
                    "revision": meta.revision,
                    "event.type": meta.event_type,
                    "message.id": meta.aggregate_id,
                    "correlation_id": event.correlation_id,
                },
                lambda: self._handle_internal(event, meta),
            ),
        )

    async def _handle_internal(self, event: StoredEvent, meta: EventMeta) -> ConsumeResult:
        if not await self._guard.claim(meta.stream, meta.revision):
            return ConsumeResult.DUPLICATE

        try:
            if meta.event_type != self.event_type:
                await self._guard.skip(
                    meta.stream, meta.revision, f"unexpected event type {meta.event_type}"
                )
                return ConsumeResult.SKIPPED

            if not meta.tenant:
                logger.error(
                    "No tenant for %s@%d (source %s); marking failed",
                    meta.stream,
                    meta.revision,
                    meta.source_stream,
                )
                await self._guard.fail(meta.stream, meta.revision, "missing tenant context")
                return ConsumeResult.NO_TENANT

            created = MessageCreated.model_validate(event.payload)
            with correlation_scope(
                created.message.correlation_id, causation_id=event.event_id
            ):
                result = await self._start_delivery(created, meta.tenant)
            await self._guard.done(meta.stream, meta.revision)
            return result
        except Exception as exc:
            logger.exception("Failed to handle %s@%d", meta.stream, meta.revision)
            await self._guard.fail(meta.stream, meta.revision, exc)
            raise

    async def _start_delivery(self, created: MessageCreated, tenant: str) -> ConsumeResult:
        snapshot = created.message
        job = DeliveryJob.for_message(snapshot, tenant, self._settings)
        now = utcnow()

        if snapshot.scheduled_at is not None and as_utc(snapshot.scheduled_at) > now:
            job_id = await self._job_queue.enqueue_at(
                job,
                as_utc(snapshot.scheduled_at),
                description=f"scheduled delivery of message {snapshot.id}",
            )
            logger.info(
                "Message %s scheduled for %s (job %s)",
                snapshot.id,
                snapshot.scheduled_at,
                job_id,
            )
            return ConsumeResult.SCHEDULED

        outcome = await self._orchestrator.deliver(job)
        if outcome.retry_requested and outcome.next_job is not None:
            execute_at = utcnow() + (outcome.retry_delay or timedelta(0))
            await self._job_queue.enqueue_at(
                outcome.next_job,
                execute_at,
                description=f"retry {outcome.next_job.retry_attempt} of {snapshot.id}",
            )
        return ConsumeResult.DISPATCHED
