"""Outbound transport and credential ports."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class TransportCredentials:
    """Secret material a transport needs for one workspace/config."""

    token: str
    extra: tuple[tuple[str, str], ...] = ()


@dataclass(frozen=True)
class TransportResult:
    """Outcome of one send call.

    ``error`` carries the platform error code (e.g. ``ratelimited``) when
    ``success`` is false.
    """

    success: bool
    timestamp: str | None = None
    channel: str | None = None
    error: str | None = None

    @classmethod
    def ok(cls, timestamp: str, channel: str | None = None) -> TransportResult:
        return cls(success=True, timestamp=timestamp, channel=channel)

    @classmethod
    def failed(cls, error: str) -> TransportResult:
        return cls(success=False, error=error)


@runtime_checkable
class IMessageTransport(Protocol):
    """Sends rendered text to a delivery target.

    May also raise ``PermanentDeliveryError`` / ``RetryableDeliveryError``.
    """

    async def send(
        self, target: str, text: str, credentials: TransportCredentials
    ) -> TransportResult:
        ...


@runtime_checkable
class ICredentialsProvider(Protocol):
    """Resolves transport credentials for a config code and tenant."""

    async def get(self, config_code: str, tenant: str) -> TransportCredentials:
        """Raises ``CredentialsNotFoundError`` when nothing is configured."""
        ...
