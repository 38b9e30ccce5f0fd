"""Event consumption: subscription polling, ledger guarding, the created-consumer."""

from .consumer import ConsumeResult, MessageCreatedConsumer
from .ledger_guard import LedgerGuard
from .meta import EVENT_TYPE_STREAM_PREFIX, EventMeta
from .retry import RetryPolicy
from .subscription import EventSubscriptionWorker

__all__ = [
    "EVENT_TYPE_STREAM_PREFIX",
    "ConsumeResult",
    "EventMeta",
    "EventSubscriptionWorker",
    "LedgerGuard",
    "MessageCreatedConsumer",
    "RetryPolicy",
]
