"""Delayed delivery: due jobs are queued on the message and handed to the orchestrator."""

from .service import DeliverySchedulerService
from .worker import DeliverySchedulerWorker

__all__ = ["DeliverySchedulerService", "DeliverySchedulerWorker"]
