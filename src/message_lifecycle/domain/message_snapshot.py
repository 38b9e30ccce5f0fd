"""MessageStatus and the immutable MessageSnapshot carried by every event."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

MAX_RENDERED_LENGTH = 4000


class MessageStatus(str, Enum):
    """Lifecycle states of a message."""

    PENDING = "pending"
    SCHEDULED = "scheduled"
    RETRYING = "retrying"
    SUCCESS = "success"
    FAILED = "failed"


class MessageSnapshot(BaseModel):
    """Full materialized state of a message at one point in its stream."""

    model_config = ConfigDict(frozen=True)

    id: str
    config_code: str
    channel: str
    template_code: str | None = None
    payload: dict[str, Any] | None = None
    rendered_message: str | None = None
    status: MessageStatus
    priority: int = 0
    scheduled_at: datetime | None = None
    sent_at: datetime | None = None
    failure_reason: str | None = None
    correlation_id: str
    retry_count: int = 0
    created_at: datetime
    updated_at: datetime
