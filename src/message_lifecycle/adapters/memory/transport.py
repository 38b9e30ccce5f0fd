"""In-memory transport and credentials for test assertions."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from itertools import count

from ...exceptions import CredentialsNotFoundError, DeliveryError
from ...ports.transport import (
    ICredentialsProvider,
    IMessageTransport,
    TransportCredentials,
    TransportResult,
)

logger = logging.getLogger(__name__)


@dataclass
class SentMessage:
    """Record of a send call for test assertions."""

    target: str
    text: str
    credentials: TransportCredentials
    result: TransportResult


class InMemoryTransport(IMessageTransport):
    """
    Test double (Fake) that records every send call.

    Outcomes are scripted with :meth:`script`: each queued item is either a
    ``TransportResult``, an error code string (a failed result), or a
    ``DeliveryError`` to raise. When the script is empty sends succeed.
    ``delay`` makes every send sleep first (timeouts).
    """

    def __init__(self, *, delay: float = 0.0) -> None:
        self.sent_messages: list[SentMessage] = []
        self.delay = delay
        self._script: deque[TransportResult | str | DeliveryError] = deque()
        self._ts = count(1)

    def script(self, *outcomes: TransportResult | str | DeliveryError) -> None:
        self._script.extend(outcomes)

    async def send(
        self, target: str, text: str, credentials: TransportCredentials
    ) -> TransportResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        outcome = self._script.popleft() if self._script else None
        if isinstance(outcome, DeliveryError):
            self.sent_messages.append(
                SentMessage(target, text, credentials, TransportResult.failed(outcome.code))
            )
            raise outcome
        if isinstance(outcome, str):
            result = TransportResult.failed(outcome)
        elif outcome is None:
            result = TransportResult.ok(f"1700000000.{next(self._ts):06d}", target)
        else:
            result = outcome
        self.sent_messages.append(SentMessage(target, text, credentials, result))
        logger.debug("Fake send to %s: %s", target, result)
        return result

    @property
    def delivered(self) -> list[SentMessage]:
        return [m for m in self.sent_messages if m.result.success]

    def assert_sent(self, target: str, count: int = 1) -> None:
        """Helper for test assertions: successful sends to *target*."""
        matches = [m for m in self.delivered if m.target == target]
        if len(matches) != count:
            raise AssertionError(
                f"Expected {count} messages to {target}, but found {len(matches)}."
            )

    def clear(self) -> None:
        self.sent_messages.clear()
        self._script.clear()


class StaticCredentialsProvider(ICredentialsProvider):
    """Credentials keyed by ``(config_code, tenant)``; ``tenant=None`` matches any."""

    def __init__(
        self, credentials: dict[tuple[str, str | None], TransportCredentials] | None = None
    ) -> None:
        self._credentials = dict(credentials or {})

    def add(
        self, config_code: str, token: str, tenant: str | None = None
    ) -> None:
        self._credentials[(config_code, tenant)] = TransportCredentials(token=token)

    async def get(self, config_code: str, tenant: str) -> TransportCredentials:
        found = self._credentials.get((config_code, tenant)) or self._credentials.get(
            (config_code, None)
        )
        if found is None:
            raise CredentialsNotFoundError(config_code, tenant)
        return found
