"""message_lifecycle — event-sourced delivery engine for tenant messages.

A message is an event-sourced aggregate stored in its own stream. A
ledger-guarded consumer picks up ``MessageCreated`` events and starts
delivery; a policy decides retries, which come back through a delayed-job
queue.
"""

from .config import DeliverySettings
from .consumption import (
    ConsumeResult,
    EventMeta,
    EventSubscriptionWorker,
    LedgerGuard,
    MessageCreatedConsumer,
    RetryPolicy,
)
from .correlation import (
    correlation_scope,
    generate_correlation_id,
    get_causation_id,
    get_correlation_id,
    set_correlation_id,
)
from .delivery import (
    DeliveryJob,
    DeliveryOrchestrator,
    DeliveryOutcome,
    DeliveryPolicy,
    DeliveryPriority,
    ErrorClassification,
    MessageRenderer,
    MustacheTemplateRenderer,
    OutcomeKind,
)
from .domain import (
    Actor,
    Message,
    MessageCreated,
    MessageDelivered,
    MessageDeliveryFailed,
    MessageQueued,
    MessageRetrying,
    MessageScheduled,
    MessageSnapshot,
    MessageStatus,
    MessageUpdated,
    SagaContext,
)
from .event_sourcing import MessageRepository, StreamName
from .exceptions import (
    AlreadyClaimedError,
    ConcurrentModificationError,
    CredentialsNotFoundError,
    DeliveryError,
    DomainError,
    InvalidScheduleError,
    InvalidStatusTransitionError,
    InvariantViolationError,
    LedgerError,
    MessageLifecycleError,
    MessageNotFoundError,
    PermanentDeliveryError,
    PersistenceError,
    RetryableDeliveryError,
    TemplateNotFoundError,
    UnauthorizedOperationError,
    ValidationError,
)
from .instrumentation import (
    BackgroundTasks,
    HookRegistry,
    get_hook_registry,
    set_hook_registry,
)
from .observability import StructuredLoggingHook
from .scheduling import DeliverySchedulerService, DeliverySchedulerWorker

__all__ = [
    # Config
    "DeliverySettings",
    # Domain
    "Actor",
    "Message",
    "MessageCreated",
    "MessageDelivered",
    "MessageDeliveryFailed",
    "MessageQueued",
    "MessageRetrying",
    "MessageScheduled",
    "MessageSnapshot",
    "MessageStatus",
    "MessageUpdated",
    "SagaContext",
    # Persistence
    "MessageRepository",
    "StreamName",
    # Delivery
    "DeliveryJob",
    "DeliveryOrchestrator",
    "DeliveryOutcome",
    "DeliveryPolicy",
    "DeliveryPriority",
    "ErrorClassification",
    "MessageRenderer",
    "MustacheTemplateRenderer",
    "OutcomeKind",
    # Consumption
    "ConsumeResult",
    "EventMeta",
    "EventSubscriptionWorker",
    "LedgerGuard",
    "MessageCreatedConsumer",
    "RetryPolicy",
    # Scheduling
    "DeliverySchedulerService",
    "DeliverySchedulerWorker",
    # Correlation / instrumentation
    "BackgroundTasks",
    "HookRegistry",
    "StructuredLoggingHook",
    "correlation_scope",
    "generate_correlation_id",
    "get_causation_id",
    "get_correlation_id",
    "get_hook_registry",
    "set_correlation_id",
    "set_hook_registry",
    # Exceptions
    "AlreadyClaimedError",
    "ConcurrentModificationError",
    "CredentialsNotFoundError",
    "DeliveryError",
    "DomainError",
    "InvalidScheduleError",
    "InvalidStatusTransitionError",
    "InvariantViolationError",
    "LedgerError",
    "MessageLifecycleError",
    "MessageNotFoundError",
    "PermanentDeliveryError",
    "PersistenceError",
    "RetryableDeliveryError",
    "TemplateNotFoundError",
    "UnauthorizedOperationError",
    "ValidationError",
]
