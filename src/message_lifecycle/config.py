"""Tunables for stream naming, retry policy and worker timing."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class DeliverySettings:
    """Configuration shared by the repository, policy and workers.

    Attributes:
        context: Bounded-context prefix of every stream name.
        aggregate_type: Aggregate segment of the stream name.
        stream_version: Schema version segment of the stream name.
        max_attempts: Default retry ceiling for normal-priority messages.
        elevated_min_attempts: Minimum ceiling for urgent/critical messages.
        max_unknown_error_attempts: Ceiling for errors whose code is not in
            either classification table (caps misclassified failures).
        base_delay_ms: Backoff base for normal priority.
        elevated_base_delay_ms: Backoff base for urgent/critical priority.
        max_delay_ms: Backoff cap.
        attempt_timeout_seconds: Per-attempt budget for rendering, credential
            lookup and send.
        scheduler_poll_interval: Seconds between delayed-job polls.
        max_dispatch_failures: Times a delivery job may raise before it is
            dropped from the queue.
        subscription_poll_interval: Seconds between event-log polls.
        subscription_batch_size: Events fetched per poll.
        subscription_gap_grace_seconds: How long the subscription waits for a
            missing position to commit before moving past it.
        consumer_name: Ledger namespace of the delivery consumer.
        urgent_priority_threshold: Integer priority at which a message
            counts as urgent.
        critical_priority_threshold: Integer priority at which a message
            counts as critical.
    """

    context: str = "core"
    aggregate_type: str = "message"
    stream_version: str = "v1"

    max_attempts: int = 4
    elevated_min_attempts: int = 6
    max_unknown_error_attempts: int = 3
    base_delay_ms: int = 2000
    elevated_base_delay_ms: int = 1000
    max_delay_ms: int = 30000

    attempt_timeout_seconds: float = 10.0
    scheduler_poll_interval: float = 1.0
    max_dispatch_failures: int = 5
    subscription_poll_interval: float = 0.5
    subscription_batch_size: int = 100
    subscription_gap_grace_seconds: float = 5.0

    consumer_name: str = "message-delivery"

    urgent_priority_threshold: int = 5
    critical_priority_threshold: int = 10

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_ms <= 0 or self.elevated_base_delay_ms <= 0:
            raise ValueError("backoff bases must be > 0")
        if self.max_delay_ms < max(self.base_delay_ms, self.elevated_base_delay_ms):
            raise ValueError("max_delay_ms must be >= the backoff bases")
        if self.attempt_timeout_seconds <= 0:
            raise ValueError("attempt_timeout_seconds must be > 0")
        if self.max_dispatch_failures < 1:
            raise ValueError("max_dispatch_failures must be >= 1")
        if self.subscription_gap_grace_seconds < 0:
            raise ValueError("subscription_gap_grace_seconds must be >= 0")
        segments = (self.context, self.aggregate_type, self.stream_version)
        if any("-" in s for s in segments):
            raise ValueError("stream name segments may not contain '-'")
