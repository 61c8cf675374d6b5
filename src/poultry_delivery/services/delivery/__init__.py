"""Delivery orchestration, re-dispatch scheduling and webhook handling."""

from .container import DeliveryServices, build_delivery_services
from .orchestrator import DeliveryNotFoundError, DeliveryOrchestrator, OrderNotFoundError
from .placement import OrderPlacementService
from .scheduler import DeferredTask, TaskScheduler
from .webhooks import WebhookDispatcher, WebhookEvent, WebhookVerifier

__all__ = [
    "DeliveryServices",
    "build_delivery_services",
    "DeliveryOrchestrator",
    "DeliveryNotFoundError",
    "OrderNotFoundError",
    "OrderPlacementService",
    "DeferredTask",
    "TaskScheduler",
    "WebhookDispatcher",
    "WebhookEvent",
    "WebhookVerifier",
]
