"""
Tests for the delayed-job queue, DeliverySchedulerService and its worker.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING
from unittest.mock import AsyncMock

import pytest

from message_lifecycle import (
    Actor,
    DeliveryJob,
    DeliveryOrchestrator,
    DeliverySchedulerService,
    DeliverySchedulerWorker,
    DeliverySettings,
    Message,
    MessageQueued,
    MessageRenderer,
    MessageStatus,
    MustacheTemplateRenderer,
)
from message_lifecycle.adapters.memory import InMemoryDelayedJobQueue

if TYPE_CHECKING:
    from .conftest import Pipeline


def _job(message_id: str = "m-1", retry_attempt: int = 0) -> DeliveryJob:
    return DeliveryJob(message_id=message_id, tenant="acme", retry_attempt=retry_attempt)


async def _scheduled_message(pipeline: Pipeline, actor: Actor) -> Message:
    message = Message.create(
        actor,
        config_code="slack-main",
        channel="#general",
        scheduled_at=datetime.now(timezone.utc) + timedelta(hours=1),
    )
    return await pipeline.repository.save(message, actor)


# ── InMemoryDelayedJobQueue ──────────────────────────────────────────


@pytest.mark.asyncio()
async def test_queue_returns_only_due_jobs_oldest_first() -> None:
    queue = InMemoryDelayedJobQueue()
    now = datetime.now(timezone.utc)
    await queue.enqueue_at(_job("later"), now - timedelta(seconds=1))
    await queue.enqueue_at(_job("earliest"), now - timedelta(minutes=1))
    await queue.enqueue_at(_job("future"), now + timedelta(hours=1))

    due = await queue.get_due_jobs()

    assert [job.message_id for _, job in due] == ["earliest", "later"]
    assert queue.scheduled_count == 3


@pytest.mark.asyncio()
async def test_queue_cancel_and_delete() -> None:
    queue = InMemoryDelayedJobQueue()
    job_id = await queue.enqueue_at(_job(), datetime.now(timezone.utc))

    assert await queue.cancel(job_id) is True
    assert await queue.cancel(job_id) is False

    other = await queue.enqueue_at(_job(), datetime.now(timezone.utc))
    await queue.delete_executed(other)
    assert queue.scheduled_count == 0


# ── DeliverySchedulerService ─────────────────────────────────────────


@pytest.mark.asyncio()
async def test_due_scheduled_message_is_queued_and_delivered(
    pipeline: Pipeline, actor: Actor
) -> None:
    message = await _scheduled_message(pipeline, actor)
    await pipeline.job_queue.enqueue_at(
        DeliveryJob.for_message(message, "acme", pipeline.settings),
        datetime.now(timezone.utc),
    )

    processed = await pipeline.scheduler.process_due_jobs()

    assert processed == 1
    assert pipeline.job_queue.scheduled_count == 0
    pipeline.transport.assert_sent("#general")

    stream = str(pipeline.repository.stream_for(message.id, actor))
    event_types = [e.event_type for e in await pipeline.event_store.read_stream(stream)]
    assert event_types == ["MessageCreated", "MessageQueued", "MessageDelivered"]
    stored = await pipeline.repository.get(message.id, actor)
    assert stored.status is MessageStatus.SUCCESS


@pytest.mark.asyncio()
async def test_future_jobs_are_left_alone(pipeline: Pipeline, actor: Actor) -> None:
    message = await _scheduled_message(pipeline, actor)
    await pipeline.job_queue.enqueue_at(
        DeliveryJob.for_message(message, "acme", pipeline.settings),
        datetime.now(timezone.utc) + timedelta(hours=1),
    )

    assert await pipeline.scheduler.process_due_jobs() == 0
    assert pipeline.job_queue.scheduled_count == 1


@pytest.mark.asyncio()
async def test_retry_outcome_reenqueues_next_attempt(
    pipeline: Pipeline, actor: Actor
) -> None:
    message = await _scheduled_message(pipeline, actor)
    await pipeline.job_queue.enqueue_at(
        DeliveryJob.for_message(message, "acme", pipeline.settings),
        datetime.now(timezone.utc),
    )
    pipeline.transport.script("service_unavailable")

    await pipeline.scheduler.process_due_jobs()
    await pipeline.orchestrator.drain()

    jobs = pipeline.job_queue.jobs()
    assert len(jobs) == 1
    next_job, execute_at = jobs[0]
    assert next_job.retry_attempt == 1
    assert execute_at > datetime.now(timezone.utc)
    stored = await pipeline.repository.get(message.id, actor)
    assert stored.status is MessageStatus.RETRYING


@pytest.mark.asyncio()
async def test_failing_job_is_requeued_with_backoff() -> None:
    queue = InMemoryDelayedJobQueue()
    await queue.enqueue_at(_job("m-1"), datetime.now(timezone.utc))
    repository = AsyncMock()
    repository.update.side_effect = RuntimeError("store offline")
    service = DeliverySchedulerService(queue, repository, AsyncMock())

    assert await service.process_due_jobs() == 0

    [(job, execute_at)] = queue.jobs()
    assert job.dispatch_failures == 1
    assert execute_at > datetime.now(timezone.utc)
    # not due yet, so the next poll leaves it alone
    assert await service.process_due_jobs() == 0
    repository.update.assert_awaited_once()


@pytest.mark.asyncio()
async def test_failing_job_is_dropped_after_max_dispatch_failures() -> None:
    queue = InMemoryDelayedJobQueue()
    await queue.enqueue_at(_job("m-1"), datetime.now(timezone.utc))
    repository = AsyncMock()
    repository.update.side_effect = RuntimeError("store offline")
    service = DeliverySchedulerService(
        queue, repository, AsyncMock(), DeliverySettings(max_dispatch_failures=3)
    )

    for _ in range(5):
        queue.make_all_due()
        await service.process_due_jobs()

    assert repository.update.await_count == 3
    assert queue.scheduled_count == 0


@pytest.mark.asyncio()
async def test_job_for_missing_message_is_dropped(pipeline: Pipeline) -> None:
    await pipeline.job_queue.enqueue_at(_job("no-such-message"), datetime.now(timezone.utc))

    assert await pipeline.scheduler.process_due_jobs() == 0
    assert pipeline.job_queue.scheduled_count == 0


@pytest.mark.asyncio()
async def test_job_with_invalid_tenant_is_dropped(pipeline: Pipeline) -> None:
    job = DeliveryJob(message_id="m-1", tenant="not-a-valid-tenant")
    await pipeline.job_queue.enqueue_at(job, datetime.now(timezone.utc))

    assert await pipeline.scheduler.process_due_jobs() == 0
    assert pipeline.job_queue.scheduled_count == 0


@pytest.mark.asyncio()
async def test_template_store_outage_follows_the_retry_policy(
    pipeline: Pipeline, actor: Actor
) -> None:
    class _Unavailable:
        async def load(self, template_code: str) -> str | None:
            raise RuntimeError("template store unavailable")

    orchestrator = DeliveryOrchestrator(
        pipeline.repository,
        pipeline.transport,
        pipeline.credentials,
        renderer=MessageRenderer(MustacheTemplateRenderer(_Unavailable())),  # type: ignore[arg-type]
        settings=pipeline.settings,
    )
    service = DeliverySchedulerService(
        pipeline.job_queue, pipeline.repository, orchestrator, pipeline.settings
    )
    message = Message.create(
        actor,
        config_code="slack-main",
        channel="#general",
        template_code="welcome",
        payload={"name": "Ada"},
    )
    await pipeline.repository.save(message, actor)
    await pipeline.job_queue.enqueue_at(
        DeliveryJob.for_message(message, "acme", pipeline.settings),
        datetime.now(timezone.utc),
    )

    for _ in range(10):
        pipeline.job_queue.make_all_due()
        await service.process_due_jobs()
        await orchestrator.drain()

    stored = await pipeline.repository.get(message.id, actor)
    assert stored.status is MessageStatus.FAILED
    assert stored.failure_reason is not None
    assert stored.failure_reason.endswith("(retries exhausted after 3 attempts)")
    assert pipeline.job_queue.scheduled_count == 0
    assert pipeline.transport.sent_messages == []


@pytest.mark.asyncio()
async def test_terminal_message_is_not_requeued(
    pipeline: Pipeline, actor: Actor
) -> None:
    message = await _scheduled_message(pipeline, actor)
    await pipeline.repository.update(
        message.id, actor, lambda m: m.mark_as_delivered(actor)
    )
    await pipeline.job_queue.enqueue_at(
        DeliveryJob.for_message(message, "acme", pipeline.settings),
        datetime.now(timezone.utc),
    )

    assert await pipeline.scheduler.process_due_jobs() == 1
    assert pipeline.transport.sent_messages == []

    stored = await pipeline.repository.get(message.id, actor)
    assert stored.status is MessageStatus.SUCCESS
    stream = str(pipeline.repository.stream_for(message.id, actor))
    events = await pipeline.event_store.read_stream(stream)
    assert all(e.event_type != MessageQueued.__name__ for e in events)


# ── DeliverySchedulerWorker ──────────────────────────────────────────


@pytest.mark.asyncio()
async def test_worker_run_once_delegates_to_service() -> None:
    service = AsyncMock()
    service.process_due_jobs.return_value = 2
    worker = DeliverySchedulerWorker(service, poll_interval=0.01)

    assert await worker.run_once() == 2
    service.process_due_jobs.assert_awaited_once()


@pytest.mark.asyncio()
async def test_worker_trigger_wakes_loop() -> None:
    service = AsyncMock()
    service.process_due_jobs.return_value = 0
    worker = DeliverySchedulerWorker(service, poll_interval=60.0)

    await worker.start()
    assert worker.is_running
    worker.trigger()
    for _ in range(50):
        if service.process_due_jobs.await_count:
            break
        await asyncio.sleep(0.01)
    await worker.stop()

    assert service.process_due_jobs.await_count >= 1
    assert not worker.is_running
