"""Protocols the engine depends on; adapters implement them."""

from .event_store import IEventStore, StoredEvent
from .ledger import (
    DONE_STATUSES,
    IProcessedEventLedger,
    LedgerStats,
    ProcessedEventRecord,
    ProcessingStatus,
)
from .rendering import ITemplateProvider, ITemplateRenderer
from .scheduling import IDelayedJobQueue
from .snapshots import ISnapshotStore, ISnapshotStrategy
from .transport import (
    ICredentialsProvider,
    IMessageTransport,
    TransportCredentials,
    TransportResult,
)

__all__ = [
    "DONE_STATUSES",
    "ICredentialsProvider",
    "IDelayedJobQueue",
    "IEventStore",
    "IMessageTransport",
    "IProcessedEventLedger",
    "ISnapshotStore",
    "ISnapshotStrategy",
    "ITemplateProvider",
    "ITemplateRenderer",
    "LedgerStats",
    "ProcessedEventRecord",
    "ProcessingStatus",
    "StoredEvent",
    "TransportCredentials",
    "TransportResult",
]
