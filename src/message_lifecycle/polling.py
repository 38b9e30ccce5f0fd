"""PollingLoop — trigger-or-interval driver shared by the background workers."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)


class PollingLoop:
    """Runs ``step`` in a background task until stopped.

    ``step`` returns how much work it did. While it keeps finding work the
    loop runs it back to back, so a backlog drains without waiting out the
    interval; once it reports zero the loop sleeps until :meth:`trigger` is
    called or ``poll_interval`` seconds pass. A ``step`` that raises is
    logged and counts as idle.
    """

    def __init__(
        self,
        name: str,
        step: Callable[[], Awaitable[int]],
        poll_interval: float,
        *,
        stop_timeout: float = 5.0,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        self.name = name
        self._step = step
        self._poll_interval = poll_interval
        self._stop_timeout = stop_timeout
        self._wakeup = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def poll_interval(self) -> float:
        return self._poll_interval

    def trigger(self) -> None:
        self._wakeup.set()

    def start(self) -> bool:
        """Start the task; ``False`` if it was already running."""
        if self.is_running:
            return False
        self._wakeup.clear()
        self._task = asyncio.create_task(self._run(), name=self.name)
        return True

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError, asyncio.TimeoutError):
            await asyncio.wait_for(task, timeout=self._stop_timeout)

    async def _run(self) -> None:
        while True:
            try:
                done = await self._step()
            except Exception:
                logger.exception("%s: step failed", self.name)
                done = 0
            if done:
                continue
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wakeup.wait(), timeout=self._poll_interval)
            self._wakeup.clear()
