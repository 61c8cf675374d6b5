"""Delivery state transitions shared by polling and webhook paths."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone

from ...models.domain import (
    DeliveryStatus,
    Driver,
    Location,
    MarketplaceOrder,
    OrderStatus,
)
from ..notifications import EventBroadcaster, order_channel, user_channel


def apply_delivery_update(
    order: MarketplaceOrder,
    status: DeliveryStatus,
    driver: Driver | None = None,
    location: Location | None = None,
) -> bool:
    """Overwrite delivery fields on ``order``.

    Updates are assignments only, so applying the same event twice leaves the
    order unchanged. Returns True when the marketplace order status changed.
    """
    if order.delivery is None:
        raise ValueError(f"Order {order.id} has no delivery to update.")
    delivery = order.delivery
    delivery.status = status
    if driver is not None:
        delivery.driver = driver
    if location is not None:
        delivery.current_location = location
    delivery.updated_at = datetime.now(timezone.utc)

    # "completed" is set by the buyer after delivery; never move back from it
    if status is DeliveryStatus.COMPLETED and order.status not in (OrderStatus.DELIVERED, OrderStatus.COMPLETED):
        order.status = OrderStatus.DELIVERED
        return True
    return False


def delivery_payload(order: MarketplaceOrder) -> dict:
    delivery = order.delivery
    return {
        "orderId": order.id,
        "deliveryStatus": delivery.status.value if delivery else None,
        "driver": asdict(delivery.driver) if delivery and delivery.driver else None,
        "currentLocation": asdict(delivery.current_location) if delivery and delivery.current_location else None,
    }


def subscriber_channels(order: MarketplaceOrder) -> list[str]:
    channels = [order_channel(order.id)]
    if order.buyer.id:
        channels.append(user_channel(order.buyer.id))
    return channels


async def notify_delivery_update(broadcaster: EventBroadcaster, order: MarketplaceOrder) -> None:
    await broadcaster.publish_many(subscriber_channels(order), "deliveryUpdate", delivery_payload(order))


async def notify_order_update(broadcaster: EventBroadcaster, order: MarketplaceOrder) -> None:
    await broadcaster.publish_many(
        subscriber_channels(order),
        "orderUpdate",
        {"orderId": order.id, "status": order.status.value},
    )
