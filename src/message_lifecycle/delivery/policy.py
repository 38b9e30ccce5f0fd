"""DeliveryPolicy — pure error classification, retry and backoff decisions."""

from __future__ import annotations

from datetime import timedelta
from enum import Enum
from typing import TYPE_CHECKING

from ..config import DeliverySettings
from ..domain.message import is_valid_channel

if TYPE_CHECKING:
    from .job import DeliveryPriority


class ErrorClassification(str, Enum):
    PERMANENT = "permanent"
    RETRYABLE = "retryable"


PERMANENT_ERROR_CODES = frozenset(
    {
        "channel_not_found",
        "not_in_channel",
        "cannot_dm_bot",
        "user_not_found",
        "account_inactive",
        "token_revoked",
        "invalid_auth",
        "msg_too_long",
        "not_configured",
    }
)

RETRYABLE_ERROR_CODES = frozenset(
    {
        "ratelimited",
        "rate_limited",
        "internal_error",
        "service_unavailable",
        "timeout",
        "fatal_error",
    }
)

_FRIENDLY_MESSAGES: dict[str, str] = {
    "channel_not_found": (
        'Channel "{channel}" not found. For DMs, use user ID format like @U1234567890'
    ),
    "not_in_channel": (
        'Bot is not added to channel "{channel}". Please add the bot to the '
        "channel or use user ID for DMs"
    ),
    "cannot_dm_bot": 'Cannot send direct message to bot user "{channel}"',
    "user_not_found": 'User "{channel}" not found. Please check the user ID format',
    "account_inactive": "Slack account is inactive and cannot receive messages",
    "token_revoked": (
        "Slack authentication token has been revoked. "
        "Please reconfigure the integration"
    ),
    "invalid_auth": (
        "Slack authentication failed. Please check the bot token configuration"
    ),
    "msg_too_long": (
        "Message is too long for Slack. Please shorten the message content"
    ),
    "not_configured": "No Slack credentials are configured for this message",
}


class DeliveryPolicy:
    """Stateless decisions about a failed delivery attempt.

    :meth:`should_retry` takes the number of attempts already made;
    :meth:`compute_backoff_delay` takes the zero-based retry index.
    """

    def __init__(self, settings: DeliverySettings | None = None) -> None:
        self._settings = settings or DeliverySettings()

    @property
    def settings(self) -> DeliverySettings:
        return self._settings

    def classify_error(self, code: str) -> ErrorClassification:
        if code in PERMANENT_ERROR_CODES:
            return ErrorClassification.PERMANENT
        return ErrorClassification.RETRYABLE

    def is_known_error(self, code: str) -> bool:
        return code in PERMANENT_ERROR_CODES or code in RETRYABLE_ERROR_CODES

    def effective_max_attempts(
        self,
        max_attempts: int,
        priority: DeliveryPriority,
        *,
        known_error: bool = True,
    ) -> int:
        effective = max_attempts
        if priority.is_elevated:
            effective = max(effective, self._settings.elevated_min_attempts)
        if not known_error:
            effective = min(effective, self._settings.max_unknown_error_attempts)
        return effective

    def should_retry(
        self,
        attempt: int,
        max_attempts: int,
        priority: DeliveryPriority,
        *,
        known_error: bool = True,
    ) -> bool:
        """True if another attempt is allowed after *attempt* attempts."""
        return attempt < self.effective_max_attempts(
            max_attempts, priority, known_error=known_error
        )

    def compute_backoff_delay(
        self, attempt: int, priority: DeliveryPriority
    ) -> timedelta:
        base = (
            self._settings.elevated_base_delay_ms
            if priority.is_elevated
            else self._settings.base_delay_ms
        )
        delay_ms = min(base * 2 ** max(attempt, 0), self._settings.max_delay_ms)
        return timedelta(milliseconds=delay_ms)

    def user_friendly_message(self, code: str, channel: str) -> str:
        template = _FRIENDLY_MESSAGES.get(code)
        if template is None:
            return f"Slack delivery failed: {code}"
        return template.format(channel=channel)

    def validate_channel_format(self, channel: str) -> tuple[bool, str | None]:
        """``(is_valid, reason)`` for a delivery target."""
        if not channel or not channel.strip():
            return False, "Channel cannot be empty"
        if not channel.startswith(("#", "@")):
            return False, "Channel must start with # for channels or @ for direct messages"
        if not is_valid_channel(channel):
            return False, (
                "User ID format should be @U followed by alphanumeric characters "
                "(e.g., @U1234567890)"
            )
        return True, None
