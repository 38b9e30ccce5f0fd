"""DeliveryOrchestrator — one delivery attempt and the transition it causes."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING, Any, cast

from ..config import DeliverySettings
from ..correlation import correlation_scope
from ..domain.actor import Actor
from ..domain.message import utcnow
from ..exceptions import (
    CredentialsNotFoundError,
    PermanentDeliveryError,
    RetryableDeliveryError,
)
from ..instrumentation import BackgroundTasks, get_hook_registry
from .policy import DeliveryPolicy, ErrorClassification
from .rendering import MessageRenderer

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from ..domain.message import Message
    from ..event_sourcing.repository import MessageRepository
    from ..ports.transport import (
        ICredentialsProvider,
        IMessageTransport,
        TransportResult,
    )
    from .job import DeliveryJob

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR = "unexpected_error"
NOT_CONFIGURED = "not_configured"
TIMEOUT = "timeout"


class OutcomeKind(str, Enum):
    DELIVERED = "delivered"
    FAILED = "failed"
    RETRY_REQUESTED = "retry_requested"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class DeliveryOutcome:
    """What happened to one attempt, and what the caller should do next.

    Only ``RETRY_REQUESTED`` carries ``retry_delay`` and ``next_job``; the
    caller enqueues ``next_job`` after ``retry_delay``.
    """

    kind: OutcomeKind
    message_id: str
    error_code: str | None = None
    reason: str | None = None
    retry_delay: timedelta | None = None
    transport_timestamp: str | None = None
    next_job: DeliveryJob | None = None

    @property
    def retry_requested(self) -> bool:
        return self.kind is OutcomeKind.RETRY_REQUESTED


@dataclass(frozen=True)
class _AttemptFailure:
    code: str
    classification: ErrorClassification


class DeliveryOrchestrator:
    """Render → credentials → send, then record the outcome on the message.

    Every attempt runs under ``attempt_timeout_seconds``. The attempt itself is
    shielded: a timed-out attempt keeps running in the background and its
    late result is only logged.
    """

    def __init__(
        self,
        repository: MessageRepository,
        transport: IMessageTransport,
        credentials: ICredentialsProvider,
        renderer: MessageRenderer | None = None,
        policy: DeliveryPolicy | None = None,
        settings: DeliverySettings | None = None,
    ) -> None:
        self._repository = repository
        self._transport = transport
        self._credentials = credentials
        self._renderer = renderer or MessageRenderer()
        self._settings = settings or (policy.settings if policy else DeliverySettings())
        self._policy = policy or DeliveryPolicy(self._settings)
        self._background = BackgroundTasks("delivery")

    async def deliver(self, job: DeliveryJob) -> DeliveryOutcome:
        actor = Actor.system(job.tenant)
        with correlation_scope(job.correlation_id) as correlation_id:
            registry = get_hook_registry()
            return cast(
                "DeliveryOutcome",
                await registry.execute_all(
                    "delivery.attempt",
                    {
                        "message.id": job.message_id,
                        "retry_attempt": job.retry_attempt,
                        "priority": job.priority.value,
                        "correlation_id": correlation_id,
                    },
                    lambda: self._deliver_internal(job, actor),
                ),
            )

    async def drain(self) -> None:
        """Wait for background bookkeeping and timed-out sends."""
        await self._background.drain()

    # ── Attempt ──────────────────────────────────────────────────────

    async def _deliver_internal(self, job: DeliveryJob, actor: Actor) -> DeliveryOutcome:
        message = await self._repository.get(job.message_id, actor)
        if message.is_terminal:
            logger.info(
                "Message %s already %s; skipping attempt",
                message.id,
                message.status.value,
            )
            return DeliveryOutcome(OutcomeKind.SKIPPED, message.id)

        attempt = asyncio.ensure_future(self._attempt(message, job.tenant))
        try:
            text, result = await asyncio.wait_for(
                asyncio.shield(attempt), timeout=self._settings.attempt_timeout_seconds
            )
        except asyncio.TimeoutError:
            logger.warning(
                "Delivery of %s timed out after %.1fs",
                message.id,
                self._settings.attempt_timeout_seconds,
            )
            self._background.spawn(
                self._log_late_result(attempt, message.id), label=f"late:{message.id}"
            )
            failure = _AttemptFailure(TIMEOUT, ErrorClassification.RETRYABLE)
        except PermanentDeliveryError as exc:
            failure = _AttemptFailure(exc.code, ErrorClassification.PERMANENT)
        except RetryableDeliveryError as exc:
            failure = _AttemptFailure(exc.code, ErrorClassification.RETRYABLE)
        except CredentialsNotFoundError:
            failure = _AttemptFailure(NOT_CONFIGURED, ErrorClassification.PERMANENT)
        except Exception:
            logger.exception("Unexpected error delivering %s", message.id)
            failure = _AttemptFailure(UNEXPECTED_ERROR, ErrorClassification.RETRYABLE)
        else:
            if result.success:
                settled = await self._settle(
                    message.id, actor, lambda m: m.mark_as_delivered(actor, text)
                )
                if not settled:
                    return DeliveryOutcome(OutcomeKind.SKIPPED, message.id)
                logger.info("Delivered message %s to %s", message.id, message.channel)
                return DeliveryOutcome(
                    OutcomeKind.DELIVERED,
                    message.id,
                    transport_timestamp=result.timestamp,
                )
            code = result.error or UNEXPECTED_ERROR
            failure = _AttemptFailure(code, self._policy.classify_error(code))

        if failure.classification is ErrorClassification.PERMANENT:
            return await self._fail(message, actor, job, failure.code)
        return await self._retry_or_fail(message, actor, job, failure.code)

    async def _attempt(
        self, message: Message, tenant: str
    ) -> tuple[str, TransportResult]:
        text = await self._renderer.render(message)
        credentials = await self._credentials.get(message.config_code, tenant)
        return text, await self._transport.send(message.channel, text, credentials)

    async def _log_late_result(
        self, attempt: asyncio.Future[tuple[str, TransportResult]], message_id: str
    ) -> None:
        try:
            _, result = await attempt
        except Exception as exc:  # noqa: BLE001
            logger.warning("Timed-out attempt for %s later failed: %s", message_id, exc)
            return
        logger.warning(
            "Timed-out send of %s completed late (success=%s)", message_id, result.success
        )

    async def _settle(
        self, message_id: str, actor: Actor, record: Callable[[Message], Any]
    ) -> bool:
        """Apply *record* unless another worker already finished the message."""
        settled = True

        def apply(message: Message) -> None:
            nonlocal settled
            settled = not message.is_terminal
            if settled:
                record(message)

        await self._repository.update(message_id, actor, apply)
        if not settled:
            logger.info(
                "Message %s was finished by another worker; outcome not recorded",
                message_id,
            )
        return settled

    # ── Outcomes ─────────────────────────────────────────────────────

    async def _fail(
        self,
        message: Message,
        actor: Actor,
        job: DeliveryJob,
        code: str,
        *,
        is_retryable: bool = False,
        suffix: str = "",
    ) -> DeliveryOutcome:
        reason = self._policy.user_friendly_message(code, message.channel) + suffix
        settled = await self._settle(
            message.id,
            actor,
            lambda m: m.mark_as_failed(
                actor, reason, is_retryable=is_retryable, retry_count=job.retry_attempt
            ),
        )
        if not settled:
            return DeliveryOutcome(OutcomeKind.SKIPPED, message.id, error_code=code)
        logger.warning("Message %s failed permanently: %s", message.id, code)
        return DeliveryOutcome(
            OutcomeKind.FAILED, message.id, error_code=code, reason=reason
        )

    async def _retry_or_fail(
        self, message: Message, actor: Actor, job: DeliveryJob, code: str
    ) -> DeliveryOutcome:
        attempts_made = job.retry_attempt + 1
        known = self._policy.is_known_error(code)
        if not self._policy.should_retry(
            attempts_made, self._settings.max_attempts, job.priority, known_error=known
        ):
            return await self._fail(
                message,
                actor,
                job,
                code,
                is_retryable=True,
                suffix=f" (retries exhausted after {attempts_made} attempts)",
            )

        delay = self._policy.compute_backoff_delay(job.retry_attempt, job.priority)
        reason = self._policy.user_friendly_message(code, message.channel)
        next_retry_at = utcnow() + delay
        self._background.spawn(
            self._record_retry(message.id, actor, reason, next_retry_at),
            label=f"retry:{message.id}",
        )
        logger.info(
            "Message %s attempt %d failed with %s; retrying in %s",
            message.id,
            attempts_made,
            code,
            delay,
        )
        return DeliveryOutcome(
            OutcomeKind.RETRY_REQUESTED,
            message.id,
            error_code=code,
            reason=reason,
            retry_delay=delay,
            next_job=job.next_attempt(),
        )

    async def _record_retry(
        self, message_id: str, actor: Actor, reason: str, next_retry_at: datetime
    ) -> None:
        await self._settle(
            message_id,
            actor,
            lambda m: m.mark_for_retry(actor, reason, next_retry_at),
        )
