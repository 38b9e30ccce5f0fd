from .event_store import InMemoryEventStore
from .ledger import InMemoryProcessedEventLedger
from .scheduling import InMemoryDelayedJobQueue
from .snapshot_store import InMemorySnapshotStore
from .templates import InMemoryTemplateProvider
from .transport import InMemoryTransport, SentMessage, StaticCredentialsProvider

__all__ = [
    "InMemoryDelayedJobQueue",
    "InMemoryEventStore",
    "InMemoryProcessedEventLedger",
    "InMemorySnapshotStore",
    "InMemoryTemplateProvider",
    "InMemoryTransport",
    "SentMessage",
    "StaticCredentialsProvider",
]
