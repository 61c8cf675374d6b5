import pytest

from conftest import RecordingListener
from poultry_delivery.services.notifications import EventBroadcaster, order_channel, user_channel


def test_channel_names() -> None:
    assert order_channel("ORD-1") == "order:ORD-1"
    assert user_channel("buyer-1") == "user:buyer-1"


@pytest.mark.asyncio
async def test_publish_reaches_channel_and_wildcard_listeners() -> None:
    broadcaster = EventBroadcaster()
    channel_listener, wildcard = RecordingListener(), RecordingListener()
    broadcaster.subscribe("order:ORD-1", channel_listener)
    broadcaster.subscribe("*", wildcard)

    await broadcaster.publish("order:ORD-1", "deliveryUpdate", {"orderId": "ORD-1"})
    await broadcaster.publish("order:ORD-2", "deliveryUpdate", {"orderId": "ORD-2"})

    assert channel_listener.events == [("order:ORD-1", "deliveryUpdate", {"orderId": "ORD-1"})]
    assert len(wildcard.events) == 2


@pytest.mark.asyncio
async def test_async_listeners_are_awaited_and_failures_isolated() -> None:
    broadcaster = EventBroadcaster()
    received = []

    async def async_listener(channel, event, payload) -> None:
        received.append(event)

    def broken(channel, event, payload) -> None:
        raise RuntimeError("socket closed")

    broadcaster.subscribe("user:buyer-1", broken)
    broadcaster.subscribe("user:buyer-1", async_listener)

    await broadcaster.publish_many(["user:buyer-1"], "orderUpdate", {"orderId": "ORD-1", "status": "delivered"})

    assert received == ["orderUpdate"]


@pytest.mark.asyncio
async def test_unsubscribe() -> None:
    broadcaster = EventBroadcaster()
    listener = RecordingListener()
    unsubscribe = broadcaster.subscribe("order:ORD-1", listener)

    unsubscribe()
    await broadcaster.publish("order:ORD-1", "deliveryUpdate", {})

    assert listener.events == []
