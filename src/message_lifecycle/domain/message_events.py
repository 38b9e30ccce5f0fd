"""Domain events emitted during message lifecycle transitions.

Every event embeds the full post-transition :class:`MessageSnapshot`, so the
latest event of a stream is always enough to rebuild the message.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import ConfigDict

from .events import DomainEvent
from .message_snapshot import MessageSnapshot, MessageStatus


class MessageEvent(DomainEvent):
    """Common shape of all message events."""

    model_config = ConfigDict(frozen=True)

    message: MessageSnapshot
    actor_id: str
    tenant: str | None = None


class MessageCreated(MessageEvent):
    """Emitted when a message is accepted for delivery."""


class MessageTransitionEvent(MessageEvent):
    """Base for events produced by a status transition."""

    previous_status: MessageStatus


class MessageQueued(MessageTransitionEvent):
    """Emitted when a delivery job for the message is queued."""

    job_id: str
    queue_priority: int
    queued_at: datetime


class MessageScheduled(MessageTransitionEvent):
    """Emitted when the message is (re)scheduled for a future time."""

    scheduled_at: datetime


class MessageRetrying(MessageTransitionEvent):
    """Emitted when a failed attempt will be retried."""

    retry_count: int
    next_retry_at: datetime | None = None
    reason: str


class MessageDelivered(MessageTransitionEvent):
    """Emitted when the transport accepted the message."""

    sent_at: datetime


class MessageDeliveryFailed(MessageTransitionEvent):
    """Emitted when delivery failed for good."""

    reason: str
    is_retryable: bool = False
    retry_count: int


class MessageUpdated(MessageEvent):
    """Emitted for field updates that do not change the status."""

    changed_fields: list[str]


MESSAGE_EVENT_TYPES: tuple[type[MessageEvent], ...] = (
    MessageCreated,
    MessageQueued,
    MessageScheduled,
    MessageRetrying,
    MessageDelivered,
    MessageDeliveryFailed,
    MessageUpdated,
)
