"""Bridges marketplace orders to Lalamove deliveries."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from ...config import lalamove_settings
from ...models.domain import (
    Address,
    Contact,
    DeliveryRecord,
    DeliveryStatus,
    Driver,
    Location,
    MarketplaceOrder,
    OrderStatus,
    Party,
    Price,
    ServiceType,
    Stop,
    StopContact,
)
from ...persistence.orders import OrderRepository
from ..lalamove.client import LalamoveClient
from ..lalamove.errors import DeliveryError, ProviderError, ValidationError
from ..lalamove.normalizer import normalize_location, normalize_phone
from ..notifications import EventBroadcaster
from .scheduler import TaskScheduler
from .state import apply_delivery_update, notify_delivery_update, notify_order_update, subscriber_channels

logger = logging.getLogger(__name__)

_CLOSED_ORDER_STATUSES = (OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.COMPLETED)


class OrderNotFoundError(LookupError):
    """No marketplace order with the given id."""


class DeliveryNotFoundError(LookupError):
    """The marketplace order has no delivery attached."""


class DeliveryOrchestrator:
    """Quote, place, cancel and poll deliveries for marketplace orders.

    Only configuration-class provider failures are absorbed (logged, ``None``
    returned); every other delivery error reaches the caller.
    """

    def __init__(
        self,
        client: LalamoveClient,
        repository: OrderRepository,
        broadcaster: EventBroadcaster | None = None,
        scheduler: TaskScheduler | None = None,
        service_type: ServiceType | str | None = None,
        language: str | None = None,
        redispatch_delay: float | None = None,
        default_sender_phone: str | None = None,
    ) -> None:
        self.client = client
        self.repository = repository
        self.broadcaster = broadcaster if broadcaster is not None else EventBroadcaster()
        self.scheduler = scheduler if scheduler is not None else TaskScheduler()
        self.service_type = ServiceType(service_type or lalamove_settings.service_type)
        self.language = language or lalamove_settings.language
        self.redispatch_delay = (
            redispatch_delay if redispatch_delay is not None else lalamove_settings.redispatch_delay_seconds
        )
        self.default_sender_phone = default_sender_phone or lalamove_settings.api_user

    def _load(self, order_id: str) -> MarketplaceOrder:
        order = self.repository.get(order_id)
        if order is None:
            raise OrderNotFoundError(f"Order '{order_id}' not found.")
        return order

    def _load_with_delivery(self, order_id: str) -> MarketplaceOrder:
        order = self._load(order_id)
        if order.delivery is None:
            raise DeliveryNotFoundError(f"Order '{order_id}' has no delivery information.")
        return order

    def _stop_for(self, party: Party, role: str, fallback_phone: str | None = None) -> Stop:
        address: Address = party.address
        if address.lat is None or address.lng is None:
            raise ValidationError(f"The {role} address has no coordinates.", field=f"{role}.address")
        phone = party.phone or fallback_phone
        if not phone:
            raise ValidationError(f"The {role} has no phone number.", field=f"{role}.phone")
        return Stop(
            location=normalize_location(address.lat, address.lng),
            address=address.full_address,
            contacts=[Contact(name=party.name, phone=normalize_phone(phone))],
        )

    async def dispatch(self, order: MarketplaceOrder | str) -> DeliveryRecord | None:
        """Quote and place a delivery for ``order`` and persist it on the order."""
        if isinstance(order, str):
            order = self._load(order)
        if order.status in _CLOSED_ORDER_STATUSES:
            raise ValidationError(f"Order {order.id} is {order.status.value}; nothing to dispatch.", field="status")
        if order.delivery is not None and not order.delivery.status.is_terminal:
            logger.info(
                f"Order {order.id} already has active delivery {order.delivery.provider_order_id}; not dispatching again"
            )
            return order.delivery

        pickup = self._stop_for(order.seller, "seller", fallback_phone=self.default_sender_phone)
        dropoff = self._stop_for(order.buyer, "buyer")

        try:
            route = [Stop(location=stop.location, address=stop.address) for stop in (pickup, dropoff)]
            quote = await self.client.get_quote(self.service_type, route, language=self.language)
            if len(quote.stops) < 2:
                raise ProviderError(200, "Quotation returned fewer than two stops.")
            pickup.stop_id = quote.stops[0].stop_id
            dropoff.stop_id = quote.stops[-1].stop_id

            sender = pickup.contacts[0]
            recipient = dropoff.contacts[0]
            delivery_order = await self.client.create_order(
                quote.quotation_id,
                StopContact(stop_id=pickup.stop_id, name=sender.name, phone=sender.phone),
                [
                    StopContact(
                        stop_id=dropoff.stop_id,
                        name=recipient.name,
                        phone=recipient.phone,
                        remarks=f"Order #{order.id}",
                    )
                ],
                metadata={"reference": order.id},
            )
        except ProviderError as exc:
            if exc.is_configuration_error:
                logger.error(f"Lalamove configuration problem, delivery for order {order.id} skipped: {exc}")
                return None
            raise

        now = datetime.now(timezone.utc)
        record = DeliveryRecord(
            provider_order_id=delivery_order.order_id,
            status=delivery_order.status,
            # the quote is the authoritative price
            price=Price(amount=quote.total_fee, currency=quote.currency),
            service_type=self.service_type.value,
            stops=[pickup, dropoff],
            quote_id=quote.quotation_id,
            driver=delivery_order.driver,
            share_link=delivery_order.share_link,
            created_at=now,
            updated_at=now,
        )
        order.delivery = record
        if order.status is OrderStatus.PENDING:
            order.status = OrderStatus.PROCESSING
        self.repository.save(order)
        logger.info(f"Order {order.id} dispatched as Lalamove order {record.provider_order_id}")
        await notify_delivery_update(self.broadcaster, order)
        return record

    async def cancel(self, order_id: str) -> DeliveryRecord:
        """Cancel the provider order and schedule exactly one re-dispatch."""
        order = self._load_with_delivery(order_id)
        delivery = order.delivery
        if delivery.status is DeliveryStatus.COMPLETED:
            raise ValidationError(f"Delivery for order {order_id} is already completed.", field="status")

        if delivery.status is DeliveryStatus.CANCELLED:
            logger.info(f"Delivery for order {order_id} is already cancelled")
            return delivery

        await self.client.cancel_order(delivery.provider_order_id)
        apply_delivery_update(order, DeliveryStatus.CANCELLED)
        self.repository.save(order)
        await self.broadcaster.publish_many(
            subscriber_channels(order),
            "deliveryCancelled",
            {"orderId": order.id, "reason": "cancelled by marketplace"},
        )

        self.scheduler.schedule(order.id, self.redispatch_delay, lambda: self.redispatch(order.id))
        logger.info(f"Re-dispatch for order {order.id} scheduled in {self.redispatch_delay}s")
        return delivery

    async def redispatch(self, order_id: str) -> DeliveryRecord | None:
        """Single re-dispatch attempt; failures are logged and not retried."""
        order = self.repository.get(order_id)
        if order is None:
            logger.info(f"Re-dispatch skipped: order {order_id} no longer exists")
            return None
        if order.status in _CLOSED_ORDER_STATUSES:
            logger.info(f"Re-dispatch skipped: order {order_id} is {order.status.value}")
            return None
        if order.delivery is not None and order.delivery.status is not DeliveryStatus.CANCELLED:
            logger.info(f"Re-dispatch skipped: order {order_id} already has delivery {order.delivery.provider_order_id}")
            return None
        try:
            return await self.dispatch(order)
        except DeliveryError as exc:
            logger.error(f"Re-dispatch for order {order_id} failed, giving up: {exc}")
            return None

    async def refresh_status(self, order_id: str) -> DeliveryRecord:
        """Poll the provider and write the latest status onto the order."""
        order = self._load_with_delivery(order_id)
        latest = await self.client.get_order_status(order.delivery.provider_order_id)
        order_changed = apply_delivery_update(order, latest.status, latest.driver, latest.tracking_location)
        if latest.share_link:
            order.delivery.share_link = latest.share_link
        self.repository.save(order)
        await notify_delivery_update(self.broadcaster, order)
        if order_changed:
            await notify_order_update(self.broadcaster, order)
        return order.delivery

    async def driver_info(self, order_id: str) -> Driver:
        order = self._load_with_delivery(order_id)
        return await self.client.get_driver_info(order.delivery.provider_order_id)

    async def driver_location(self, order_id: str) -> Location:
        order = self._load_with_delivery(order_id)
        return await self.client.get_driver_location(order.delivery.provider_order_id)
