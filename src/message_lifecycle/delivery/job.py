"""DeliveryJob payload and priority tiers."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from pydantic import BaseModel, ConfigDict

if TYPE_CHECKING:
    from ..config import DeliverySettings
    from ..domain.message import Message
    from ..domain.message_snapshot import MessageSnapshot


class DeliveryPriority(str, Enum):
    """Retry/backoff tier derived from a message's integer priority."""

    NORMAL = "normal"
    URGENT = "urgent"
    CRITICAL = "critical"

    @property
    def is_elevated(self) -> bool:
        return self is not DeliveryPriority.NORMAL

    @classmethod
    def from_level(cls, level: int, settings: DeliverySettings) -> DeliveryPriority:
        if level >= settings.critical_priority_threshold:
            return cls.CRITICAL
        if level >= settings.urgent_priority_threshold:
            return cls.URGENT
        return cls.NORMAL


class DeliveryJob(BaseModel):
    """What the delayed-job queue hands back to the orchestrator."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    tenant: str
    correlation_id: str | None = None
    retry_attempt: int = 0
    is_retry: bool = False
    priority: DeliveryPriority = DeliveryPriority.NORMAL
    # runs of this job that raised before reaching a delivery outcome
    dispatch_failures: int = 0

    @classmethod
    def for_message(
        cls,
        message: Message | MessageSnapshot,
        tenant: str,
        settings: DeliverySettings,
    ) -> DeliveryJob:
        return cls(
            message_id=message.id,
            tenant=tenant,
            correlation_id=message.correlation_id,
            retry_attempt=message.retry_count,
            is_retry=message.retry_count > 0,
            priority=DeliveryPriority.from_level(message.priority, settings),
        )

    def next_attempt(self) -> DeliveryJob:
        return self.model_copy(
            update={
                "retry_attempt": self.retry_attempt + 1,
                "is_retry": True,
                "dispatch_failures": 0,
            }
        )

    def after_dispatch_failure(self) -> DeliveryJob:
        return self.model_copy(update={"dispatch_failures": self.dispatch_failures + 1})
