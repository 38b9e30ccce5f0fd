from .job import DeliveryJob, DeliveryPriority
from .orchestrator import DeliveryOrchestrator, DeliveryOutcome, OutcomeKind
from .policy import (
    PERMANENT_ERROR_CODES,
    RETRYABLE_ERROR_CODES,
    DeliveryPolicy,
    ErrorClassification,
)
from .rendering import MISSING_VALUE, MessageRenderer, MustacheTemplateRenderer

__all__ = [
    "MISSING_VALUE",
    "PERMANENT_ERROR_CODES",
    "RETRYABLE_ERROR_CODES",
    "DeliveryJob",
    "DeliveryOrchestrator",
    "DeliveryOutcome",
    "DeliveryPolicy",
    "DeliveryPriority",
    "ErrorClassification",
    "MessageRenderer",
    "MustacheTemplateRenderer",
    "OutcomeKind",
]
