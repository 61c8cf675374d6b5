import asyncio

import httpx
import pytest

from conftest import make_config, make_order
from poultry_delivery.models.domain import DeliveryStatus, OrderStatus
from poultry_delivery.services.delivery import DeliveryNotFoundError, OrderNotFoundError, build_delivery_services
from poultry_delivery.services.lalamove.errors import ProviderError, ValidationError


@pytest.mark.asyncio
async def test_dispatch_places_quoted_delivery_and_persists_it(services, fake_provider, recorder) -> None:
    services.repository.save(make_order())

    record = await services.orchestrator.dispatch("ORD-1")

    assert record.provider_order_id == "LM1001"
    assert record.quote_id == "QUO-1"
    assert record.status is DeliveryStatus.PENDING
    assert [stop.stop_id for stop in record.stops] == ["QUO-1-STOP-1", "QUO-1-STOP-2"]
    # price comes from the quote, not the order creation response
    assert record.price.amount == 149.0
    assert record.price.currency == "PHP"

    stored = services.repository.get("ORD-1")
    assert stored.status is OrderStatus.PROCESSING
    assert stored.delivery.provider_order_id == "LM1001"
    assert services.repository.find_by_provider_order_id("LM1001").id == "ORD-1"

    quote_body = fake_provider.body(fake_provider.calls("POST", "/v3/quotations")[0])["data"]
    assert [stop["coordinates"] for stop in quote_body["stops"]] == [
        {"lat": "14.5838", "lng": "121.0565"},
        {"lat": "14.5515", "lng": "121.0244"},
    ]
    order_body = fake_provider.body(fake_provider.calls("POST", "/v3/orders")[0])["data"]
    assert order_body["quotationId"] == "QUO-1"
    assert order_body["sender"]["phone"] == "+639171234567"
    assert order_body["recipients"] == [
        {"stopId": "QUO-1-STOP-2", "name": "Maria Santos", "phone": "+639187654321", "remarks": "Order #ORD-1"}
    ]
    assert order_body["metadata"] == {"reference": "ORD-1"}

    channels = [channel for channel, _, _ in recorder.named("deliveryUpdate")]
    assert channels == ["order:ORD-1", "user:buyer-1"]
    assert recorder.named("deliveryUpdate")[0][2]["deliveryStatus"] == "pending"


@pytest.mark.asyncio
async def test_dispatch_is_idempotent_while_a_delivery_is_active(services, fake_provider) -> None:
    services.repository.save(make_order())

    first = await services.orchestrator.dispatch("ORD-1")
    second = await services.orchestrator.dispatch("ORD-1")

    assert second.provider_order_id == first.provider_order_id
    assert len(fake_provider.calls("POST", "/v3/orders")) == 1


@pytest.mark.asyncio
async def test_seller_without_phone_falls_back_to_api_user(services, fake_provider) -> None:
    services.repository.save(make_order(seller_phone=None))

    await services.orchestrator.dispatch("ORD-1")

    order_body = fake_provider.body(fake_provider.calls("POST", "/v3/orders")[0])["data"]
    assert order_body["sender"]["phone"] == "+639990001111"


@pytest.mark.asyncio
async def test_buyer_without_coordinates_is_rejected_before_any_request(services, fake_provider) -> None:
    services.repository.save(make_order(buyer_coordinates=None))

    with pytest.raises(ValidationError) as exc_info:
        await services.orchestrator.dispatch("ORD-1")

    assert exc_info.value.field == "buyer.address"
    assert fake_provider.requests == []


@pytest.mark.asyncio
async def test_closed_orders_are_not_dispatched(services) -> None:
    services.repository.save(make_order(status=OrderStatus.DELIVERED))

    with pytest.raises(ValidationError):
        await services.orchestrator.dispatch("ORD-1")


@pytest.mark.asyncio
async def test_unknown_order_raises_not_found(services) -> None:
    services.repository.save(make_order())

    with pytest.raises(OrderNotFoundError):
        await services.orchestrator.dispatch("ORD-404")
    with pytest.raises(DeliveryNotFoundError):
        await services.orchestrator.refresh_status("ORD-1")


@pytest.mark.asyncio
async def test_invalid_market_leaves_order_placed_without_delivery(services, fake_provider, recorder) -> None:
    fake_provider.fail("POST", "/v3/orders", 422, "Invalid market configuration", "ERR_INVALID_MARKET")

    placed = await services.placement.place(make_order())

    assert placed.id == "ORD-1"
    assert placed.delivery is None
    assert placed.status is OrderStatus.PENDING
    assert services.repository.get("ORD-1") is not None
    assert recorder.named("deliveryUpdate") == []


@pytest.mark.asyncio
async def test_other_provider_failures_propagate_from_dispatch_but_not_placement(services, fake_provider) -> None:
    fake_provider.fail("POST", "/v3/quotations", 500, "Internal server error")
    services.repository.save(make_order("ORD-2"))

    with pytest.raises(ProviderError):
        await services.orchestrator.dispatch("ORD-2")

    placed = await services.placement.place(make_order("ORD-3"))
    assert placed.delivery is None


@pytest.mark.asyncio
async def test_placement_dispatches_new_orders(services) -> None:
    placed = await services.placement.place(make_order())

    assert placed.status is OrderStatus.PROCESSING
    assert placed.delivery.provider_order_id == "LM1001"


@pytest.mark.asyncio
async def test_cancel_schedules_exactly_one_redispatch(services, fake_provider, recorder) -> None:
    services.repository.save(make_order())
    await services.orchestrator.dispatch("ORD-1")

    cancelled = await services.orchestrator.cancel("ORD-1")

    assert cancelled.status is DeliveryStatus.CANCELLED
    assert len(fake_provider.calls("PUT", "/v3/orders/LM1001/cancel")) == 1
    assert recorder.named("deliveryCancelled")[0][2]["orderId"] == "ORD-1"

    task = services.scheduler.pending("ORD-1")
    assert task is not None
    await task.wait()

    stored = services.repository.get("ORD-1")
    assert stored.delivery.provider_order_id == "LM1002"
    assert stored.delivery.status is DeliveryStatus.PENDING
    assert len(fake_provider.calls("POST", "/v3/orders")) == 2


@pytest.mark.asyncio
async def test_cancelling_twice_does_not_schedule_again(services, fake_provider) -> None:
    services.repository.save(make_order())
    await services.orchestrator.dispatch("ORD-1")
    await services.orchestrator.cancel("ORD-1")
    first_task = services.scheduler.pending("ORD-1")

    again = await services.orchestrator.cancel("ORD-1")

    assert again.status is DeliveryStatus.CANCELLED
    assert services.scheduler.pending("ORD-1") is first_task
    assert len(fake_provider.calls("PUT", "/v3/orders/LM1001/cancel")) == 1
    await first_task.wait()


@pytest.mark.asyncio
async def test_failed_redispatch_is_not_retried(services, fake_provider) -> None:
    services.repository.save(make_order())
    await services.orchestrator.dispatch("ORD-1")
    await services.orchestrator.cancel("ORD-1")
    fake_provider.fail("POST", "/v3/quotations", 503, "Service unavailable")

    await services.scheduler.pending("ORD-1").wait()
    await asyncio.sleep(0.05)

    assert len(fake_provider.calls("POST", "/v3/quotations")) == 2
    assert services.repository.get("ORD-1").delivery.status is DeliveryStatus.CANCELLED
    assert len(services.scheduler) == 0


@pytest.mark.asyncio
async def test_redispatch_rechecks_order_eligibility(services, fake_provider) -> None:
    services.repository.save(make_order())
    await services.orchestrator.dispatch("ORD-1")
    await services.orchestrator.cancel("ORD-1")

    stored = services.repository.get("ORD-1")
    stored.status = OrderStatus.CANCELLED
    services.repository.save(stored)

    await services.scheduler.pending("ORD-1").wait()

    assert len(fake_provider.calls("POST", "/v3/quotations")) == 1


@pytest.mark.asyncio
async def test_completed_delivery_cannot_be_cancelled(services, fake_provider) -> None:
    services.repository.save(make_order())
    await services.orchestrator.dispatch("ORD-1")
    fake_provider.orders["LM1001"]["status"] = "COMPLETED"
    await services.orchestrator.refresh_status("ORD-1")

    with pytest.raises(ValidationError):
        await services.orchestrator.cancel("ORD-1")


@pytest.mark.asyncio
async def test_refresh_status_marks_completed_orders_delivered(services, fake_provider, recorder) -> None:
    services.repository.save(make_order())
    await services.orchestrator.dispatch("ORD-1")
    fake_provider.orders["LM1001"]["status"] = "COMPLETED"

    record = await services.orchestrator.refresh_status("ORD-1")

    assert record.status is DeliveryStatus.COMPLETED
    assert services.repository.get("ORD-1").status is OrderStatus.DELIVERED
    assert recorder.named("orderUpdate")[0][2] == {"orderId": "ORD-1", "status": "delivered"}


@pytest.mark.asyncio
async def test_driver_lookups_use_the_provider_order_id(services, fake_provider) -> None:
    services.repository.save(make_order())
    await services.orchestrator.dispatch("ORD-1")

    driver = await services.orchestrator.driver_info("ORD-1")
    location = await services.orchestrator.driver_location("ORD-1")

    assert driver.phone == "+639171112222"
    assert location.lat == "14.5702"
    assert fake_provider.calls("GET", "/v3/orders/LM1001/driver")
    assert fake_provider.calls("GET", "/v3/orders/LM1001/driver-location")


@pytest.mark.asyncio
async def test_orchestrator_uses_the_shared_scheduler_and_broadcaster(services) -> None:
    # an empty scheduler is falsy; it must still be the one that gets used
    assert len(services.scheduler) == 0
    assert services.orchestrator.scheduler is services.scheduler
    assert services.orchestrator.broadcaster is services.broadcaster


@pytest.mark.asyncio
async def test_aclose_cancels_pending_redispatch(fake_provider, repository, broadcaster) -> None:
    built = build_delivery_services(
        make_config(redispatch_delay_seconds=30),
        repository=repository,
        broadcaster=broadcaster,
        transport=fake_provider.transport,
    )
    repository.save(make_order())
    await built.orchestrator.dispatch("ORD-1")
    await built.orchestrator.cancel("ORD-1")
    task = built.scheduler.pending("ORD-1")

    await built.aclose()

    assert task is not None
    assert task.cancelled
    assert len(fake_provider.calls("POST", "/v3/quotations")) == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "quote_body",
    [
        {"quotationId": "QUO-1", "stops": [], "priceBreakdown": {"total": "N/A", "currency": "PHP"}},
        {"quotationId": "QUO-1", "stops": ["x", "y"], "priceBreakdown": {"total": "149", "currency": "PHP"}},
    ],
)
async def test_malformed_quote_does_not_fail_placement(services, fake_provider, quote_body) -> None:
    fake_provider._quote = lambda request: httpx.Response(201, json={"data": quote_body})

    services.repository.save(make_order("ORD-2"))
    with pytest.raises(ProviderError):
        await services.orchestrator.dispatch("ORD-2")

    placed = await services.placement.place(make_order())
    assert placed.delivery is None
    assert placed.status is OrderStatus.PENDING
    assert services.repository.get("ORD-1") is not None
