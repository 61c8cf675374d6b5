"""Inbound Lalamove webhook verification and dispatch."""

from __future__ import annotations

import hashlib
import hmac
import logging
from dataclasses import asdict, dataclass
from typing import Optional

from ...models.domain import DeliveryStatus, Driver, Location, MarketplaceOrder
from ...persistence.orders import OrderRepository
from ..lalamove.errors import ConfigurationError, ValidationError
from ..lalamove.normalizer import normalize_location
from ..notifications import EventBroadcaster
from .state import apply_delivery_update, notify_delivery_update, notify_order_update, subscriber_channels

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "X-Lalamove-Signature"


class WebhookVerifier:
    """Checks ``X-Lalamove-Signature`` against an HMAC-SHA256 of the raw body."""

    def __init__(self, secret: str | None) -> None:
        if not secret:
            raise ConfigurationError("LALAMOVE_WEBHOOK_SECRET (or LALAMOVE_API_SECRET) must be set.")
        self._secret = secret.encode("utf-8")

    def expected_signature(self, raw_body: bytes) -> str:
        return hmac.new(self._secret, raw_body, hashlib.sha256).hexdigest()

    def verify(self, signature_header: str | None, raw_body: bytes) -> bool:
        if not signature_header:
            return False
        candidate = signature_header.strip().lower()
        return hmac.compare_digest(candidate, self.expected_signature(raw_body))


@dataclass(slots=True)
class WebhookEvent:
    """The ``data`` object of a webhook body."""

    order_id: str
    status: Optional[str] = None
    driver: Optional[Driver] = None
    location: Optional[Location] = None
    reason: Optional[str] = None


class WebhookDispatcher:
    """Applies provider events to marketplace orders.

    Each handler returns the updated order, or ``None`` when no order carries
    the provider order id. Webhooks never create orders.
    """

    def __init__(self, repository: OrderRepository, broadcaster: EventBroadcaster) -> None:
        self.repository = repository
        self.broadcaster = broadcaster

    def _location(self, event: WebhookEvent) -> Location | None:
        """Validated driver location, or None when absent or out of range."""
        if event.location is None:
            return None
        try:
            return normalize_location(event.location.lat, event.location.lng)
        except ValidationError as exc:
            logger.warning(f"Dropping invalid location on webhook for Lalamove order {event.order_id}: {exc}")
            return None

    def _find(self, event: WebhookEvent) -> MarketplaceOrder | None:
        order = self.repository.find_by_provider_order_id(event.order_id)
        if order is None or order.delivery is None:
            logger.warning(f"Webhook for unknown Lalamove order {event.order_id} ignored")
            return None
        return order

    async def handle_delivery_update(self, event: WebhookEvent) -> MarketplaceOrder | None:
        order = self._find(event)
        if order is None:
            return None
        if event.status:
            status = DeliveryStatus.from_provider(event.status)
        elif event.driver is not None and order.delivery.status is DeliveryStatus.PENDING:
            status = DeliveryStatus.ASSIGNED
        else:
            status = order.delivery.status

        order_changed = apply_delivery_update(order, status, event.driver, self._location(event))
        self.repository.save(order)
        logger.info(f"Order {order.id} delivery status is now {status.value}")

        await notify_delivery_update(self.broadcaster, order)
        if order_changed:
            await notify_order_update(self.broadcaster, order)
        return order

    async def handle_cancellation(self, event: WebhookEvent) -> MarketplaceOrder | None:
        order = self._find(event)
        if order is None:
            return None
        apply_delivery_update(order, DeliveryStatus.CANCELLED)
        order.notes = f"Delivery cancelled: {event.reason or 'no reason given'}"
        self.repository.save(order)
        logger.info(f"Order {order.id} delivery cancelled by provider: {event.reason}")

        await self.broadcaster.publish_many(
            subscriber_channels(order),
            "deliveryCancelled",
            {"orderId": order.id, "reason": event.reason},
        )
        return order

    async def handle_driver_assignment(self, event: WebhookEvent) -> MarketplaceOrder | None:
        order = self._find(event)
        if order is None:
            return None
        if event.driver is None:
            raise ValueError("Driver assignment webhook without driver details.")
        apply_delivery_update(order, DeliveryStatus.ASSIGNED, event.driver, self._location(event))
        self.repository.save(order)
        logger.info(f"Order {order.id} assigned to driver {event.driver.name}")

        await self.broadcaster.publish_many(
            subscriber_channels(order),
            "driverAssigned",
            {"orderId": order.id, "driver": asdict(event.driver)},
        )
        return order
