"""
Tests for DeliveryPolicy: error classification, retry ceilings and backoff.
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from message_lifecycle import (
    DeliveryPolicy,
    DeliveryPriority,
    DeliverySettings,
    ErrorClassification,
)


@pytest.fixture()
def policy() -> DeliveryPolicy:
    return DeliveryPolicy(DeliverySettings())


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        ("rate_limited", ErrorClassification.RETRYABLE),
        ("ratelimited", ErrorClassification.RETRYABLE),
        ("service_unavailable", ErrorClassification.RETRYABLE),
        ("channel_not_found", ErrorClassification.PERMANENT),
        ("token_revoked", ErrorClassification.PERMANENT),
        ("msg_too_long", ErrorClassification.PERMANENT),
        ("totally_unknown_code", ErrorClassification.RETRYABLE),
    ],
)
def test_classify_error(
    policy: DeliveryPolicy, code: str, expected: ErrorClassification
) -> None:
    assert policy.classify_error(code) is expected


def test_unknown_codes_are_not_known(policy: DeliveryPolicy) -> None:
    assert policy.is_known_error("rate_limited")
    assert policy.is_known_error("invalid_auth")
    assert not policy.is_known_error("totally_unknown_code")


def test_should_retry_elevated_priority_gets_higher_ceiling(
    policy: DeliveryPolicy,
) -> None:
    assert policy.should_retry(3, 4, DeliveryPriority.URGENT) is True
    assert policy.should_retry(5, 4, DeliveryPriority.CRITICAL) is True
    assert policy.should_retry(6, 4, DeliveryPriority.CRITICAL) is False


def test_should_retry_normal_priority_stops_at_max(policy: DeliveryPolicy) -> None:
    assert policy.should_retry(3, 4, DeliveryPriority.NORMAL) is True
    assert policy.should_retry(4, 4, DeliveryPriority.NORMAL) is False


def test_unknown_errors_have_their_own_ceiling(policy: DeliveryPolicy) -> None:
    assert policy.should_retry(2, 4, DeliveryPriority.NORMAL, known_error=False)
    assert not policy.should_retry(3, 4, DeliveryPriority.NORMAL, known_error=False)
    assert not policy.should_retry(3, 4, DeliveryPriority.CRITICAL, known_error=False)


def test_backoff_is_exponential_and_capped(policy: DeliveryPolicy) -> None:
    normal = [
        policy.compute_backoff_delay(attempt, DeliveryPriority.NORMAL)
        for attempt in range(6)
    ]
    assert normal == [
        timedelta(seconds=2),
        timedelta(seconds=4),
        timedelta(seconds=8),
        timedelta(seconds=16),
        timedelta(seconds=30),
        timedelta(seconds=30),
    ]


def test_backoff_uses_smaller_base_for_elevated_priority(
    policy: DeliveryPolicy,
) -> None:
    assert policy.compute_backoff_delay(0, DeliveryPriority.URGENT) == timedelta(
        seconds=1
    )
    assert policy.compute_backoff_delay(2, DeliveryPriority.CRITICAL) == timedelta(
        seconds=4
    )
    assert policy.compute_backoff_delay(10, DeliveryPriority.CRITICAL) == timedelta(
        seconds=30
    )


def test_priority_tiers_follow_thresholds() -> None:
    settings = DeliverySettings()
    assert DeliveryPriority.from_level(0, settings) is DeliveryPriority.NORMAL
    assert DeliveryPriority.from_level(5, settings) is DeliveryPriority.URGENT
    assert DeliveryPriority.from_level(10, settings) is DeliveryPriority.CRITICAL


def test_user_friendly_messages(policy: DeliveryPolicy) -> None:
    assert policy.user_friendly_message("channel_not_found", "#ops") == (
        'Channel "#ops" not found. For DMs, use user ID format like @U1234567890'
    )
    assert policy.user_friendly_message("weird", "#ops") == (
        "Slack delivery failed: weird"
    )


@pytest.mark.parametrize(
    ("channel", "valid"),
    [
        ("#general", True),
        ("@U01234567", True),
        ("", False),
        ("general", False),
        ("@bob", False),
    ],
)
def test_validate_channel_format(
    policy: DeliveryPolicy, channel: str, valid: bool
) -> None:
    is_valid, reason = policy.validate_channel_format(channel)
    assert is_valid is valid
    assert (reason is None) is valid


def test_settings_validation() -> None:
    with pytest.raises(ValueError, match="max_attempts"):
        DeliverySettings(max_attempts=0)
    with pytest.raises(ValueError, match="'-'"):
        DeliverySettings(context="core-x")


@pytest.mark.parametrize("field", ["base_delay_ms", "elevated_base_delay_ms"])
def test_settings_reject_zero_backoff_base(field: str) -> None:
    # a zero base would schedule the retry at "now", which mark_for_retry rejects
    with pytest.raises(ValueError, match="backoff bases"):
        DeliverySettings(**{field: 0})  # type: ignore[arg-type]


def test_settings_reject_bad_worker_limits() -> None:
    with pytest.raises(ValueError, match="max_dispatch_failures"):
        DeliverySettings(max_dispatch_failures=0)
    with pytest.raises(ValueError, match="subscription_gap_grace_seconds"):
        DeliverySettings(subscription_gap_grace_seconds=-1)
