"""
SQLAlchemy models for the event log, snapshots, ledger and delayed jobs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import BigInteger, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from .types import JSONType, UTCDateTime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models in this package.
    """


class StoredEventModel(Base):
    """
    Model for the Event Store.
    One row per event; ``position`` is the global catch-up cursor and
    ``(stream_name, version)`` is unique.
    """

    __tablename__ = "event_store"

    position: Mapped[int] = mapped_column(
        Integer().with_variant(BigInteger, "postgresql"),
        primary_key=True,
        autoincrement=True,
    )
    event_id: Mapped[str] = mapped_column(String, unique=True)
    event_type: Mapped[str] = mapped_column(String, index=True)
    stream_name: Mapped[str] = mapped_column(String, index=True)
    aggregate_id: Mapped[str] = mapped_column(String, index=True)
    aggregate_type: Mapped[str] = mapped_column(String)
    version: Mapped[int] = mapped_column(Integer)
    schema_version: Mapped[int] = mapped_column(Integer, default=1)
    payload: Mapped[dict[str, Any]] = mapped_column(JSONType)
    metadata_: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True)
    correlation_id: Mapped[str | None] = mapped_column(
        String, nullable=True, index=True
    )
    causation_id: Mapped[str | None] = mapped_column(String, nullable=True)

    __table_args__ = (
        UniqueConstraint("stream_name", "version", name="uq_event_store_stream_version"),
    )


class SnapshotModel(Base):
    """
    Persists stream snapshots (latest state at a stream revision).
    """

    __tablename__ = "snapshots"

    id: Mapped[int] = mapped_column(
        Integer().with_variant(BigInteger, "postgresql"),
        primary_key=True,
        autoincrement=True,
    )
    stream_name: Mapped[str] = mapped_column(String, index=True)
    version: Mapped[int] = mapped_column(Integer)
    snapshot_data: Mapped[dict[str, Any]] = mapped_column(JSONType)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)

    __table_args__ = (
        UniqueConstraint("stream_name", "version", name="uq_snapshots_stream_version"),
    )


class ProcessedEventModel(Base):
    """
    One consumer's processing record of one ``(stream, revision)``.
    Never deleted.
    """

    __tablename__ = "processed_events"

    consumer: Mapped[str] = mapped_column(String, primary_key=True)
    stream: Mapped[str] = mapped_column(String, primary_key=True)
    revision: Mapped[int] = mapped_column(
        Integer().with_variant(BigInteger, "postgresql"), primary_key=True
    )
    status: Mapped[str] = mapped_column(String, index=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    processed_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    __table_args__ = (Index("ix_processed_events_consumer_status", "consumer", "status"),)


class DeliveryJobModel(Base):
    """
    Persists delayed delivery jobs.
    """

    __tablename__ = "delivery_jobs"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    message_id: Mapped[str] = mapped_column(String, index=True)
    job_payload: Mapped[dict[str, Any]] = mapped_column(JSONType)

    execute_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True)
    status: Mapped[str] = mapped_column(
        String, default="PENDING", index=True
    )  # PENDING, CANCELLED

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=_utcnow)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
