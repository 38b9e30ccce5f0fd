"""Actor and saga context value objects."""

from __future__ import annotations

from dataclasses import dataclass, field

SYSTEM_SUBJECT = "system:message-delivery"


@dataclass(frozen=True)
class Actor:
    """Identity on whose behalf a mutating operation runs.

    Background work (event consumers, scheduled jobs) uses
    :meth:`Actor.system`, an explicit value passed down the call chain.
    """

    subject: str
    tenant: str | None = None
    roles: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def system(cls, tenant: str | None) -> Actor:
        """Build the system identity scoped to *tenant*."""
        return cls(subject=SYSTEM_SUBJECT, tenant=tenant, roles=("system",))

    @property
    def is_system(self) -> bool:
        return self.subject == SYSTEM_SUBJECT


@dataclass(frozen=True)
class SagaContext:
    """Caller-supplied idempotency scope for repository saves.

    ``operation_id`` identifies one logical operation; saving again with the
    same id is treated as already completed.
    """

    saga_id: str
    correlation_id: str
    operation_id: str
    is_retry: bool = False
    is_compensation: bool = False

    def as_metadata(self, timestamp: str) -> dict[str, object]:
        return {
            "saga_id": self.saga_id,
            "correlation_id": self.correlation_id,
            "operation_id": self.operation_id,
            "timestamp": timestamp,
            "is_compensation": self.is_compensation,
        }
