"""Deterministic stream names: ``{context}.{aggregate}.{version}-{tenant}-{id}``."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..exceptions import ValidationError

if TYPE_CHECKING:
    from ..config import DeliverySettings


@dataclass(frozen=True)
class StreamName:
    """One stream per message per tenant.

    The prefix and the tenant may not contain ``-``; the id may (UUIDs do).
    """

    context: str
    aggregate_type: str
    version: str
    tenant: str
    aggregate_id: str

    def __post_init__(self) -> None:
        if not self.tenant or "-" in self.tenant:
            raise ValidationError({"tenant": ["must be non-empty and contain no '-'"]})
        if not self.aggregate_id:
            raise ValidationError({"aggregate_id": ["is required"]})

    @classmethod
    def for_message(
        cls, settings: DeliverySettings, tenant: str, message_id: str
    ) -> StreamName:
        return cls(
            context=settings.context,
            aggregate_type=settings.aggregate_type,
            version=settings.stream_version,
            tenant=tenant,
            aggregate_id=message_id,
        )

    @property
    def category(self) -> str:
        return f"{self.context}.{self.aggregate_type}"

    def __str__(self) -> str:
        return (
            f"{self.context}.{self.aggregate_type}.{self.version}"
            f"-{self.tenant}-{self.aggregate_id}"
        )

    @classmethod
    def parse(cls, value: str) -> StreamName:
        """Inverse of ``str()``; ``ValidationError`` for malformed names."""
        parts = value.split("-", 2)
        if len(parts) != 3:
            raise ValidationError({"stream": [f"malformed stream name {value!r}"]})
        prefix, tenant, aggregate_id = parts
        segments = prefix.split(".")
        if len(segments) != 3 or not all(segments):
            raise ValidationError({"stream": [f"malformed stream prefix {prefix!r}"]})
        context, aggregate_type, version = segments
        return cls(context, aggregate_type, version, tenant, aggregate_id)

    @classmethod
    def tenant_of(cls, value: str) -> str | None:
        """Tenant segment of *value*, or ``None`` if it does not parse."""
        try:
            return cls.parse(value).tenant
        except ValidationError:
            return None
