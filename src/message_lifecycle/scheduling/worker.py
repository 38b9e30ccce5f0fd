"""DeliverySchedulerWorker — keeps the delayed-job queue moving in the background."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ..polling import PollingLoop

if TYPE_CHECKING:
    from .service import DeliverySchedulerService

logger = logging.getLogger("message_lifecycle.scheduling")


class DeliverySchedulerWorker:
    """Runs :meth:`DeliverySchedulerService.process_due_jobs` on a
    :class:`PollingLoop`.

    Call :meth:`trigger` right after enqueueing a job that is already due;
    otherwise due jobs are picked up within ``poll_interval`` seconds.
    """

    def __init__(
        self,
        service: DeliverySchedulerService,
        poll_interval: float = 1.0,
    ) -> None:
        self._service = service
        self._loop = PollingLoop("delivery-scheduler", self.run_once, poll_interval)

    @property
    def is_running(self) -> bool:
        return self._loop.is_running

    def trigger(self) -> None:
        self._loop.trigger()

    async def start(self) -> None:
        if self._loop.start():
            logger.info(
                "Delivery scheduler started (poll_interval=%.1fs)",
                self._loop.poll_interval,
            )

    async def stop(self) -> None:
        await self._loop.stop()
        logger.info("Delivery scheduler stopped")

    async def run_once(self) -> int:
        """One pass over the due jobs; returns how many completed."""
        count = await self._service.process_due_jobs()
        if count:
            logger.info("Ran %d due delivery jobs", count)
        return count
