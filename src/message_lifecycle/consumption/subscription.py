"""EventSubscriptionWorker — catch-up subscription over the global event log."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

from ..config import DeliverySettings
from ..polling import PollingLoop
from .meta import EventMeta
from .retry import RetryPolicy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

    from ..ports.event_store import IEventStore, StoredEvent

    EventHandler = Callable[[StoredEvent, EventMeta], Awaitable[Any]]

logger = logging.getLogger("message_lifecycle.subscription")


class EventSubscriptionWorker:
    """Feeds events of the subscribed types to a handler, in position order.

    A handler error is retried in-process per :class:`RetryPolicy`; after
    the last attempt the event is logged and parked. Deduplication is the
    handler's job.

    Positions are handed out when a write starts, not when it commits, so
    a concurrent writer can make position N visible after N+1. The cursor
    therefore only advances over an unbroken run of positions: events read
    past a hole are handled once and remembered, and the hole is given
    ``subscription_gap_grace_seconds`` to fill before the worker treats it
    as a rolled-back write and moves past it. The cursor lives in memory
    and restarts at ``start_position``.
    """

    def __init__(
        self,
        event_store: IEventStore,
        handler: EventHandler,
        *,
        event_types: Iterable[str] = ("MessageCreated",),
        retry_policy: RetryPolicy | None = None,
        settings: DeliverySettings | None = None,
        start_position: int = 0,
    ) -> None:
        settings = settings or DeliverySettings()
        self._event_store = event_store
        self._handler = handler
        self._event_types = frozenset(event_types)
        self._retry_policy = retry_policy or RetryPolicy()
        self._batch_size = settings.subscription_batch_size
        self._gap_grace = settings.subscription_gap_grace_seconds
        self._position = start_position
        self._seen_ahead: set[int] = set()
        self._gap_since: tuple[int, float] | None = None
        self._parked: list[EventMeta] = []
        self._loop = PollingLoop(
            "event-subscription", self.run_once, settings.subscription_poll_interval
        )

    @property
    def position(self) -> int:
        """Highest position below which every event has been seen."""
        return self._position

    @property
    def parked(self) -> list[EventMeta]:
        """Events whose handler kept failing."""
        return list(self._parked)

    @property
    def is_running(self) -> bool:
        return self._loop.is_running

    def trigger(self) -> None:
        self._loop.trigger()

    async def start(self) -> None:
        if self._loop.start():
            logger.info(
                "Subscription started at position %d (types=%s)",
                self._position,
                sorted(self._event_types),
            )

    async def stop(self) -> None:
        await self._loop.stop()
        logger.info("Subscription stopped at position %d", self._position)

    async def run_once(self) -> int:
        """Process one batch; returns the number of events handed to the handler."""
        batch = await self._event_store.get_events_after(
            self._position, self._batch_size
        )
        handled = 0
        for stored in batch:
            if stored.position is None:
                logger.warning("Event %s has no position, skipping", stored.event_id)
                continue
            if stored.position in self._seen_ahead:
                continue
            if stored.event_type in self._event_types:
                await self._handle(stored, EventMeta.for_event_type(stored))
                handled += 1
            self._seen_ahead.add(stored.position)
        self._advance()
        return handled

    def _advance(self) -> None:
        while self._seen_ahead:
            following = self._position + 1
            if following in self._seen_ahead:
                self._seen_ahead.discard(following)
                self._position = following
                continue
            if not self._gap_expired(following):
                return
            resume = min(self._seen_ahead) - 1
            logger.warning(
                "Positions %d..%d never appeared within %.1fs; moving past them",
                following,
                resume,
                self._gap_grace,
            )
            self._position = resume
        self._gap_since = None

    def _gap_expired(self, position: int) -> bool:
        now = time.monotonic()
        if self._gap_since is None or self._gap_since[0] != position:
            self._gap_since = (position, now)
        return now - self._gap_since[1] >= self._gap_grace

    async def _handle(self, stored: StoredEvent, meta: EventMeta) -> None:
        def _log_retry(attempt: int, exc: Exception) -> None:
            logger.warning(
                "Handler failed for %s@%d (attempt %d), retrying: %s",
                meta.stream,
                meta.revision,
                attempt,
                exc,
            )

        try:
            await self._retry_policy.call(
                lambda: self._handler(stored, meta), on_retry=_log_retry
            )
        except Exception as exc:
            logger.error(
                "Parking %s@%d after %d attempts: %s",
                meta.stream,
                meta.revision,
                self._retry_policy.max_attempts,
                exc,
                exc_info=True,
            )
            self._parked.append(meta)
