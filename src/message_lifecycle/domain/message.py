"""Message — event-sourced aggregate root for one message's delivery lifecycle."""

from __future__ import annotations

import re
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from pydantic import ConfigDict, Field

from ..exceptions import (
    InvalidScheduleError,
    InvalidStatusTransitionError,
    InvariantViolationError,
    UnauthorizedOperationError,
    ValidationError,
)
from .aggregate import AggregateRoot
from .message_events import (
    MessageCreated,
    MessageDelivered,
    MessageDeliveryFailed,
    MessageEvent,
    MessageQueued,
    MessageRetrying,
    MessageScheduled,
    MessageTransitionEvent,
    MessageUpdated,
)
from .message_snapshot import MAX_RENDERED_LENGTH, MessageSnapshot, MessageStatus

if TYPE_CHECKING:
    from .actor import Actor

_CHANNEL_NAME = re.compile(r"^#\S+$")
_CHANNEL_USER = re.compile(r"^@U[A-Z0-9]{8,}$")

_S = MessageStatus

# (previous, new) → event variant. Pairs not listed are rejected unless
# previous == new, which is an idempotent no-op.
TRANSITIONS: dict[tuple[MessageStatus, MessageStatus], type[MessageTransitionEvent]] = {
    (_S.PENDING, _S.PENDING): MessageQueued,
    (_S.SCHEDULED, _S.PENDING): MessageQueued,
    (_S.RETRYING, _S.PENDING): MessageQueued,
    (_S.PENDING, _S.SCHEDULED): MessageScheduled,
    (_S.SCHEDULED, _S.SCHEDULED): MessageScheduled,
    (_S.PENDING, _S.RETRYING): MessageRetrying,
    (_S.SCHEDULED, _S.RETRYING): MessageRetrying,
    (_S.RETRYING, _S.RETRYING): MessageRetrying,
    (_S.FAILED, _S.RETRYING): MessageRetrying,
    (_S.PENDING, _S.SUCCESS): MessageDelivered,
    (_S.SCHEDULED, _S.SUCCESS): MessageDelivered,
    (_S.RETRYING, _S.SUCCESS): MessageDelivered,
    (_S.PENDING, _S.FAILED): MessageDeliveryFailed,
    (_S.SCHEDULED, _S.FAILED): MessageDeliveryFailed,
    (_S.RETRYING, _S.FAILED): MessageDeliveryFailed,
}

# Transitions that need an explicit re-open from the caller.
REOPEN_ONLY: frozenset[tuple[MessageStatus, MessageStatus]] = frozenset(
    {(_S.FAILED, _S.RETRYING)}
)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def is_valid_channel(channel: str) -> bool:
    """``#channel-name`` or an ``@U…`` user id."""
    return bool(_CHANNEL_NAME.match(channel) or _CHANNEL_USER.match(channel))


def _require_actor(actor: Actor | None, operation: str) -> Actor:
    if actor is None:
        raise UnauthorizedOperationError(operation)
    return actor


def _require_future(value: datetime, field: str, now: datetime) -> datetime:
    value = as_utc(value)
    if value <= now:
        raise InvalidScheduleError({field: ["must be strictly in the future"]})
    return value


class Message(AggregateRoot):
    """Aggregate root for a single outbound message.

    Status transitions (see :data:`TRANSITIONS`)::

        PENDING   → SCHEDULED | RETRYING | SUCCESS | FAILED
        SCHEDULED → PENDING (queued) | SCHEDULED | RETRYING | SUCCESS | FAILED
        RETRYING  → PENDING (queued) | RETRYING | SUCCESS | FAILED
        FAILED    → RETRYING (explicit re-open only)

    Every mutation goes through :meth:`_transition` (or
    :meth:`_update_fields` for status-preserving edits). It re-checks the
    invariants on a candidate copy before committing and emits exactly one
    event. Loading from a snapshot or replaying events never re-runs the
    "must be in the future" checks.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    config_code: str
    channel: str
    template_code: str | None = None
    payload: dict[str, Any] | None = None
    rendered_message: str | None = None
    status: MessageStatus = MessageStatus.PENDING
    priority: int = 0
    scheduled_at: datetime | None = None
    sent_at: datetime | None = None
    failure_reason: str | None = None
    correlation_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    retry_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # -- factory ----------------------------------------------------------

    @classmethod
    def create(
        cls,
        actor: Actor | None,
        *,
        config_code: str,
        channel: str,
        template_code: str | None = None,
        payload: dict[str, Any] | None = None,
        priority: int = 0,
        scheduled_at: datetime | None = None,
        correlation_id: str | None = None,
        message_id: str | None = None,
    ) -> Message:
        """Create a new message and emit ``MessageCreated``.

        A message with ``scheduled_at`` starts in ``SCHEDULED``.

        Raises:
            UnauthorizedOperationError: If *actor* is ``None``.
            InvalidScheduleError: If *scheduled_at* is not strictly in the future.
            ValidationError: If required fields are missing or malformed.
        """
        actor = _require_actor(actor, "create")
        now = utcnow()

        errors: dict[str, list[str]] = {}
        if not config_code or not config_code.strip():
            errors.setdefault("config_code", []).append("is required")
        if not channel or not channel.strip():
            errors.setdefault("channel", []).append("is required")
        elif not is_valid_channel(channel):
            errors.setdefault("channel", []).append(
                "must be '#channel' or a user id like '@U01234567'"
            )
        if priority < 0:
            errors.setdefault("priority", []).append("must be >= 0")
        if errors:
            raise ValidationError(errors)

        data: dict[str, Any] = {
            "config_code": config_code,
            "channel": channel,
            "template_code": template_code,
            "payload": payload,
            "priority": priority,
            "created_at": now,
            "updated_at": now,
            "status": MessageStatus.PENDING,
        }
        if scheduled_at is not None:
            data["scheduled_at"] = _require_future(scheduled_at, "scheduled_at", now)
            data["status"] = MessageStatus.SCHEDULED
        if correlation_id:
            data["correlation_id"] = correlation_id
        if message_id:
            data["id"] = message_id

        message = cls(**data)
        message._check_invariants()
        message._emit(MessageCreated, actor)
        return message

    @classmethod
    def from_snapshot(
        cls, snapshot: MessageSnapshot | dict[str, Any], version: int
    ) -> Message:
        """Rebuild a message from a stored snapshot without re-validating schedules."""
        data = (
            snapshot.model_dump()
            if isinstance(snapshot, MessageSnapshot)
            else snapshot
        )
        message = cls.model_validate(data)
        object.__setattr__(message, "_version", version)
        return message

    # -- lifecycle operations ---------------------------------------------

    def mark_as_queued(self, actor: Actor | None, job_id: str, priority: int) -> None:
        """Record that a delivery job was queued; moves the message to PENDING."""
        actor = _require_actor(actor, "mark_as_queued")
        self._transition(
            actor,
            MessageStatus.PENDING,
            event_fields={
                "job_id": job_id,
                "queue_priority": priority,
                "queued_at": utcnow(),
            },
        )

    def mark_as_delivered(
        self, actor: Actor | None, rendered_message: str | None = None
    ) -> None:
        """SUCCESS; no-op when already delivered."""
        actor = _require_actor(actor, "mark_as_delivered")
        if self.status is MessageStatus.SUCCESS:
            return
        now = utcnow()
        changes: dict[str, Any] = {"sent_at": now}
        if rendered_message is not None:
            changes["rendered_message"] = rendered_message
        self._transition(
            actor, MessageStatus.SUCCESS, changes=changes, event_fields={"sent_at": now}
        )

    def mark_as_failed(
        self,
        actor: Actor | None,
        reason: str,
        *,
        is_retryable: bool = False,
        retry_count: int | None = None,
    ) -> None:
        """FAILED with a human-readable reason; no-op when already failed."""
        actor = _require_actor(actor, "mark_as_failed")
        if self.status is MessageStatus.FAILED:
            return
        count = self.retry_count
        if retry_count is not None:
            count = max(self.retry_count, retry_count)
        self._transition(
            actor,
            MessageStatus.FAILED,
            changes={"failure_reason": reason, "retry_count": count},
            event_fields={
                "reason": reason,
                "is_retryable": is_retryable,
                "retry_count": count,
            },
        )

    def mark_for_retry(
        self,
        actor: Actor | None,
        reason: str,
        next_retry_at: datetime | None = None,
        *,
        reopen: bool = False,
    ) -> None:
        """RETRYING; bumps ``retry_count`` and optionally sets the next attempt time.

        Re-opening a FAILED message requires ``reopen=True``.
        """
        actor = _require_actor(actor, "mark_for_retry")
        changes: dict[str, Any] = {
            "failure_reason": reason,
            "retry_count": self.retry_count + 1,
        }
        if next_retry_at is not None:
            changes["scheduled_at"] = _require_future(
                next_retry_at, "next_retry_at", utcnow()
            )
        self._transition(
            actor,
            MessageStatus.RETRYING,
            changes=changes,
            event_fields={
                "retry_count": changes["retry_count"],
                "next_retry_at": changes.get("scheduled_at"),
                "reason": reason,
            },
            reopen=reopen,
        )

    def reschedule(self, actor: Actor | None, new_time: datetime) -> None:
        """SCHEDULED at *new_time* (strictly in the future)."""
        actor = _require_actor(actor, "reschedule")
        when = _require_future(new_time, "scheduled_at", utcnow())
        if self.status is MessageStatus.SCHEDULED and self.scheduled_at == when:
            return
        self._transition(
            actor,
            MessageStatus.SCHEDULED,
            changes={"scheduled_at": when},
            event_fields={"scheduled_at": when},
        )

    def update_rendered_message(
        self, actor: Actor | None, rendered_message: str
    ) -> None:
        """Store the rendered text; emits ``MessageUpdated`` only on change."""
        actor = _require_actor(actor, "update_rendered_message")
        self._update_fields(actor, {"rendered_message": rendered_message})

    # -- state views --------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.status in (MessageStatus.SUCCESS, MessageStatus.FAILED)

    def to_dto(self) -> MessageSnapshot:
        """Immutable snapshot of the current state."""
        return MessageSnapshot.model_validate(self.model_dump())

    # -- event application (rehydration) -----------------------------------

    def apply_event(self, event: MessageEvent) -> None:
        """Restore state from the snapshot embedded in *event*."""
        for name, value in event.message.model_dump().items():
            setattr(self, name, value)

    # -- internals ------------------------------------------------------------

    def _transition(
        self,
        actor: Actor,
        new_status: MessageStatus,
        *,
        changes: dict[str, Any] | None = None,
        event_fields: dict[str, Any] | None = None,
        reopen: bool = False,
    ) -> bool:
        previous = self.status
        key = (previous, new_status)
        event_cls = TRANSITIONS.get(key)
        if event_cls is None:
            if previous == new_status:
                return False
            raise InvalidStatusTransitionError(previous.value, new_status.value)
        if key in REOPEN_ONLY and not reopen:
            raise InvalidStatusTransitionError(previous.value, new_status.value)

        updates = {**(changes or {}), "status": new_status, "updated_at": utcnow()}
        self._commit(updates)
        self._emit(
            event_cls, actor, previous_status=previous, **(event_fields or {})
        )
        return True

    def _update_fields(self, actor: Actor, changes: dict[str, Any]) -> bool:
        changed = [n for n, value in changes.items() if getattr(self, n) != value]
        if not changed:
            return False
        self._commit({**{n: changes[n] for n in changed}, "updated_at": utcnow()})
        self._emit(MessageUpdated, actor, changed_fields=changed)
        return True

    def _commit(self, updates: dict[str, Any]) -> None:
        candidate = self.model_copy(update=updates)
        candidate._check_invariants()
        if candidate.retry_count < self.retry_count:
            raise InvariantViolationError("retry_count may not decrease")
        for name, value in updates.items():
            setattr(self, name, value)

    def _check_invariants(self) -> None:
        problems: list[str] = []
        if not self.id:
            problems.append("id is required")
        if not self.config_code:
            problems.append("config_code is required")
        if not self.channel:
            problems.append("channel is required")
        if self.status is None:
            problems.append("status is required")
        if self.retry_count < 0:
            problems.append("retry_count must be >= 0")
        rendered = self.rendered_message
        if rendered is not None and len(rendered) > MAX_RENDERED_LENGTH:
            problems.append(f"rendered_message exceeds {MAX_RENDERED_LENGTH} chars")
        scheduled = self.scheduled_at
        if scheduled is not None and as_utc(scheduled) <= as_utc(self.created_at):
            problems.append("scheduled_at must be later than created_at")
        if problems:
            raise InvariantViolationError("; ".join(problems))

    def _emit(self, event_cls: type[MessageEvent], actor: Actor, **fields: Any) -> None:
        self.add_event(
            event_cls(
                message=self.to_dto(),
                actor_id=actor.subject,
                tenant=actor.tenant,
                aggregate_id=self.id,
                aggregate_type=type(self).__name__,
                correlation_id=self.correlation_id,
                **fields,
            )
        )
