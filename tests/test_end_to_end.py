"""
End-to-end delivery: create → consume → retry via the delayed-job queue →
delivered.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import pytest

from message_lifecycle import (
    Actor,
    ConsumeResult,
    EventMeta,
    EventSubscriptionWorker,
    HookRegistry,
    Message,
    MessageStatus,
    StructuredLoggingHook,
    set_hook_registry,
)

if TYPE_CHECKING:
    from .conftest import Pipeline


@pytest.mark.asyncio()
async def test_rate_limited_message_is_retried_then_delivered(
    pipeline: Pipeline, actor: Actor
) -> None:
    message = Message.create(
        actor,
        config_code="slack-main",
        channel="#general",
        template_code="welcome",
        payload={"name": "Ada"},
    )
    await pipeline.repository.save(message, actor)

    # first attempt is rate limited
    pipeline.transport.script("rate_limited")
    worker = EventSubscriptionWorker(pipeline.event_store, pipeline.consumer.handle)
    assert await worker.run_once() == 1
    await pipeline.orchestrator.drain()

    assert pipeline.transport.sent_messages[0].text == "Hello Ada!"
    retrying = await pipeline.repository.get(message.id, actor)
    assert retrying.status is MessageStatus.RETRYING
    assert retrying.retry_count == 1
    assert retrying.sent_at is None
    assert pipeline.job_queue.scheduled_count == 1

    # the delayed job comes due and the second attempt succeeds
    pipeline.job_queue.make_all_due()
    assert await pipeline.scheduler.process_due_jobs() == 1
    await pipeline.orchestrator.drain()

    delivered = await pipeline.repository.get(message.id, actor)
    assert delivered.status is MessageStatus.SUCCESS
    assert delivered.sent_at is not None
    assert delivered.retry_count == 1
    assert pipeline.job_queue.scheduled_count == 0
    assert len(pipeline.transport.delivered) == 1

    stream = str(pipeline.repository.stream_for(message.id, actor))
    history = [e.event_type for e in await pipeline.event_store.read_stream(stream)]
    assert history == [
        "MessageCreated",
        "MessageRetrying",
        "MessageQueued",
        "MessageDelivered",
    ]

    # replaying the subscription from the start does not deliver again
    replay = EventSubscriptionWorker(pipeline.event_store, pipeline.consumer.handle)
    await replay.run_once()
    assert len(pipeline.transport.sent_messages) == 2


@pytest.mark.asyncio()
async def test_duplicate_observation_is_absorbed(
    pipeline: Pipeline, actor: Actor
) -> None:
    message = Message.create(actor, config_code="slack-main", channel="#general")
    await pipeline.repository.save(message, actor)
    stored = (await pipeline.event_store.get_events_after(0))[0]
    meta = EventMeta.for_event_type(stored)

    results = [await pipeline.consumer.handle(stored, meta) for _ in range(3)]

    assert results == [
        ConsumeResult.DISPATCHED,
        ConsumeResult.DUPLICATE,
        ConsumeResult.DUPLICATE,
    ]
    pipeline.transport.assert_sent("#general", 1)


@pytest.mark.asyncio()
async def test_structured_logging_hook_reports_each_operation(
    pipeline: Pipeline, actor: Actor, caplog: pytest.LogCaptureFixture
) -> None:
    registry = HookRegistry()
    registry.register(StructuredLoggingHook(), operations=["*"])
    set_hook_registry(registry)

    message = Message.create(
        actor, config_code="slack-main", channel="#general", correlation_id="corr-e2e"
    )
    with caplog.at_level(logging.INFO, logger="message_lifecycle.observability"):
        await pipeline.repository.save(message, actor)
        stored = (await pipeline.event_store.get_events_after(0))[0]
        await pipeline.consumer.handle(stored, EventMeta.for_event_type(stored))

    entries = [
        json.loads(r.getMessage())
        for r in caplog.records
        if r.name == "message_lifecycle.observability"
    ]
    operations = {entry["operation"] for entry in entries}
    assert "message.repository.save" in operations
    assert "consumer.handle.MessageCreated" in operations
    assert "delivery.attempt" in operations
    assert all(entry["outcome"] == "success" for entry in entries)
    delivery = next(e for e in entries if e["operation"] == "delivery.attempt")
    assert delivery["correlation_id"] == "corr-e2e"
    assert delivery["message.id"] == message.id
