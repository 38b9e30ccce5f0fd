"""LedgerGuard — claim protocol over a processed-event ledger."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..exceptions import AlreadyClaimedError

if TYPE_CHECKING:
    from ..ports.ledger import IProcessedEventLedger

logger = logging.getLogger(__name__)


class LedgerGuard:
    """``is_processed`` → ``mark_processing``, with lost races absorbed.

    Usage::

        if await guard.claim(stream, revision):
            try:
                ...
            except Exception as exc:
                await guard.fail(stream, revision, exc)
                raise
            await guard.done(stream, revision)
    """

    def __init__(self, ledger: IProcessedEventLedger) -> None:
        self._ledger = ledger

    @property
    def ledger(self) -> IProcessedEventLedger:
        return self._ledger

    async def claim(self, stream: str, revision: int) -> bool:
        """True if this caller now owns the event."""
        if await self._ledger.is_processed(stream, revision):
            logger.debug("%s@%d already processed", stream, revision)
            return False
        try:
            await self._ledger.mark_processing(stream, revision)
        except AlreadyClaimedError:
            logger.debug("%s@%d claimed by another worker", stream, revision)
            return False
        return True

    async def done(self, stream: str, revision: int) -> None:
        await self._ledger.mark_processed(stream, revision)

    async def skip(self, stream: str, revision: int, reason: str) -> None:
        await self._ledger.mark_skipped(stream, revision, reason)

    async def fail(self, stream: str, revision: int, error: BaseException | str) -> None:
        await self._ledger.mark_failed(stream, revision, str(error))
