"""SQLAlchemy (async) adapters.

Every adapter takes an ``async_sessionmaker`` and runs each operation in its
own session and transaction. Create the schema with ``Base.metadata``::

    engine = create_async_engine("postgresql+asyncpg://...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, expire_on_commit=False)
"""

from .event_store import SQLAlchemyEventStore
from .ledger import SQLAlchemyProcessedEventLedger
from .models import (
    Base,
    DeliveryJobModel,
    ProcessedEventModel,
    SnapshotModel,
    StoredEventModel,
)
from .scheduling import SQLAlchemyDelayedJobQueue
from .snapshot_store import SQLAlchemySnapshotStore
from .types import JSONType, UTCDateTime

__all__ = [
    "Base",
    "DeliveryJobModel",
    "JSONType",
    "ProcessedEventModel",
    "SQLAlchemyDelayedJobQueue",
    "SQLAlchemyEventStore",
    "SQLAlchemyProcessedEventLedger",
    "SQLAlchemySnapshotStore",
    "SnapshotModel",
    "StoredEventModel",
    "UTCDateTime",
]
