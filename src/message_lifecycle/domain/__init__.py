from .actor import SYSTEM_SUBJECT, Actor, SagaContext
from .aggregate import AggregateRoot
from .event_registry import EventTypeRegistry
from .events import DomainEvent, enrich_event_metadata
from .message import REOPEN_ONLY, TRANSITIONS, Message, is_valid_channel
from .message_events import (
    MESSAGE_EVENT_TYPES,
    MessageCreated,
    MessageDelivered,
    MessageDeliveryFailed,
    MessageEvent,
    MessageQueued,
    MessageRetrying,
    MessageScheduled,
    MessageTransitionEvent,
    MessageUpdated,
)
from .message_snapshot import MAX_RENDERED_LENGTH, MessageSnapshot, MessageStatus

__all__ = [
    "MAX_RENDERED_LENGTH",
    "MESSAGE_EVENT_TYPES",
    "REOPEN_ONLY",
    "SYSTEM_SUBJECT",
    "TRANSITIONS",
    "Actor",
    "AggregateRoot",
    "DomainEvent",
    "EventTypeRegistry",
    "Message",
    "MessageCreated",
    "MessageDelivered",
    "MessageDeliveryFailed",
    "MessageEvent",
    "MessageQueued",
    "MessageRetrying",
    "MessageScheduled",
    "MessageSnapshot",
    "MessageStatus",
    "MessageTransitionEvent",
    "MessageUpdated",
    "SagaContext",
    "enrich_event_metadata",
    "is_valid_channel",
]
