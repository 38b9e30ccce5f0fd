"""StructuredLoggingHook — JSON log entries with correlation context."""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from .correlation import get_correlation_id

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

_log = logging.getLogger(__name__)

_ATTRIBUTE_KEYS = ("message.id", "stream", "revision", "event.type", "job.id")


class StructuredLoggingHook:
    """Instrumentation hook emitting one JSON entry per wrapped operation.

    Register it on a :class:`~message_lifecycle.instrumentation.HookRegistry`::

        get_hook_registry().register(StructuredLoggingHook(), operations=["*"])
    """

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._log = logger or _log

    async def __call__(
        self,
        operation: str,
        attributes: dict[str, Any],
        next_handler: Callable[[], Awaitable[Any]],
    ) -> Any:
        start = time.monotonic()
        outcome = "success"
        try:
            return await next_handler()
        except Exception:  # noqa: BLE001
            outcome = "error"
            raise
        finally:
            try:
                entry: dict[str, Any] = {
                    "operation": operation,
                    "outcome": outcome,
                    "duration_ms": round((time.monotonic() - start) * 1000, 2),
                    "correlation_id": attributes.get("correlation_id")
                    or get_correlation_id(),
                }
                for key in _ATTRIBUTE_KEYS:
                    if attributes.get(key) is not None:
                        entry[key] = attributes[key]
                self._log.info(json.dumps(entry, default=str))
            except Exception:  # noqa: BLE001
                _log.debug("Failed to emit structured log entry", exc_info=True)
