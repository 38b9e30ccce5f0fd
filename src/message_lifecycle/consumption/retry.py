"""RetryPolicy — in-process redelivery schedule for a failing event handler."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """How often, and how far apart, a handler that raised is run again.

    Delays double from ``base_delay`` up to ``max_delay`` (seconds); with
    ``jitter`` each one is spread over 50%..150% of its nominal value.
    Anything slower than a couple of seconds belongs on the delayed-job
    queue instead.
    """

    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")
        if self.base_delay > self.max_delay:
            raise ValueError("base_delay must be <= max_delay")

    def should_retry(self, attempt: int) -> bool:
        """Whether a run may follow the 1-based *attempt* that just failed."""
        return 1 <= attempt < self.max_attempts

    def delay_for_attempt(self, attempt: int) -> float:
        if attempt < 1:
            return 0.0
        delay = min(self.base_delay * 2 ** (attempt - 1), self.max_delay)
        if self.jitter:
            delay = random.uniform(0.5 * delay, 1.5 * delay)  # noqa: S311
        return delay

    async def call(
        self,
        operation: Callable[[], Awaitable[T]],
        *,
        on_retry: Callable[[int, Exception], None] | None = None,
    ) -> T:
        """Run *operation* until it returns or the attempts run out.

        The error of the last attempt propagates. ``on_retry`` sees each
        earlier failure with its attempt number.
        """
        attempt = 1
        while True:
            try:
                return await operation()
            except Exception as exc:
                if not self.should_retry(attempt):
                    raise
                if on_retry is not None:
                    on_retry(attempt, exc)
            delay = self.delay_for_attempt(attempt)
            if delay > 0:
                await asyncio.sleep(delay)
            attempt += 1
