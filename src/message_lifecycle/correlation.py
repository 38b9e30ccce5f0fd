"""Correlation / causation IDs carried across async boundaries.

Delivery runs in background workers, so each unit of work (a consumed event,
a due job) opens a :func:`correlation_scope` seeded from the message's own
correlation id. Everything logged or appended inside the scope picks it up.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_causation_id: ContextVar[str | None] = ContextVar("causation_id", default=None)


def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str | None) -> None:
    """Set correlation ID in context."""
    _correlation_id.set(correlation_id)


def get_causation_id() -> str | None:
    """Get current causation ID from context."""
    return _causation_id.get()


def generate_correlation_id() -> str:
    """Generate a new correlation ID."""
    return str(uuid.uuid4())


@contextmanager
def correlation_scope(
    correlation_id: str | None = None,
    causation_id: str | None = None,
) -> Iterator[str]:
    """Bind correlation (and optionally causation) IDs for the enclosed block.

    A fresh correlation id is generated when none is given. Previous values
    are restored on exit.
    """
    cid = correlation_id or get_correlation_id() or generate_correlation_id()
    corr_token = _correlation_id.set(cid)
    cause_token = _causation_id.set(causation_id) if causation_id else None
    try:
        yield cid
    finally:
        if cause_token is not None:
            _causation_id.reset(cause_token)
        _correlation_id.reset(corr_token)
