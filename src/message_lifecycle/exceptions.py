"""Exception hierarchy for the message lifecycle engine."""

from __future__ import annotations


class MessageLifecycleError(Exception):
    """Root exception for the whole package."""


# ── Domain ───────────────────────────────────────────────────────────


class DomainError(MessageLifecycleError):
    """Base class for all domain-related errors."""


class UnauthorizedOperationError(DomainError):
    """Raised when a mutating operation is attempted without an actor."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"An actor is required to perform '{operation}'")


class InvalidStatusTransitionError(DomainError):
    """Raised when a status change has no entry in the transition table."""

    def __init__(self, previous: str, new: str) -> None:
        self.previous = previous
        self.new = new
        super().__init__(f"Transition {previous} -> {new} is not allowed")


class InvariantViolationError(DomainError):
    """Raised when a domain invariant is violated."""


class NotFoundError(DomainError):
    """Raised when an aggregate or resource is not found."""


class EntityNotFoundError(NotFoundError):
    """Raised when a specific entity cannot be found by ID."""

    def __init__(self, entity_type: str, entity_id: object) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} with id={entity_id!r} not found")


class MessageNotFoundError(EntityNotFoundError):
    """Raised when no snapshot and no events exist for a message stream."""

    def __init__(self, message_id: object) -> None:
        super().__init__("Message", message_id)


class ValidationError(MessageLifecycleError):
    """Raised when input validation fails.

    Carries structured errors: ``{field: [messages]}``.
    """

    def __init__(self, errors: dict[str, list[str]] | str | None = None) -> None:
        if isinstance(errors, str):
            self.errors: dict[str, list[str]] = {"__root__": [errors]}
        elif errors is None:
            self.errors = {}
        else:
            self.errors = errors
        super().__init__(str(self.errors))


class InvalidScheduleError(ValidationError):
    """Raised when a scheduled time is not strictly in the future."""


# ── Concurrency ──────────────────────────────────────────────────────


class ConcurrencyError(MessageLifecycleError):
    """Base class for concurrency conflicts."""


class AlreadyClaimedError(ConcurrencyError):
    """Raised when a ledger entry for ``(stream, revision)`` already exists."""

    def __init__(self, stream: str, revision: int) -> None:
        self.stream = stream
        self.revision = revision
        super().__init__(f"Event {stream}@{revision} is already claimed")


# ── Infrastructure ───────────────────────────────────────────────────


class InfrastructureError(MessageLifecycleError):
    """Base class for all infrastructure-related errors."""


class PersistenceError(InfrastructureError):
    """Base class for all persistence-related errors."""


class ConcurrentModificationError(ConcurrencyError, PersistenceError):
    """Raised when a stream's revision advanced since the aggregate was loaded.

    Retryable by reloading the aggregate and re-applying the change.
    """

    def __init__(self, stream: str, expected: int, actual: int | None) -> None:
        self.stream = stream
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Stream {stream} expected version {expected}, found {actual}"
        )


class EventStoreError(PersistenceError):
    """Raised when event-store operations fail."""


class LedgerError(PersistenceError):
    """Raised when processed-event ledger operations fail."""


class DeliveryError(InfrastructureError):
    """Base class for transport failures carrying a transport error code."""

    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or code)


class PermanentDeliveryError(DeliveryError):
    """Transport failure that must never be retried."""


class RetryableDeliveryError(DeliveryError):
    """Transport failure that may succeed on a later attempt."""


class CredentialsNotFoundError(InfrastructureError):
    """Raised when no transport credentials exist for a config code."""

    def __init__(self, config_code: str, tenant: str) -> None:
        self.config_code = config_code
        self.tenant = tenant
        super().__init__(
            f"No transport credentials for config {config_code!r} "
            f"(tenant {tenant!r})"
        )


# ── Templates ────────────────────────────────────────────────────────


class TemplateError(MessageLifecycleError):
    """Base class for rendering errors."""


class TemplateNotFoundError(TemplateError):
    """Raised when no template is registered for a template code."""

    def __init__(self, template_code: str) -> None:
        self.template_code = template_code
        super().__init__(f"No template registered for {template_code!r}")
