from __future__ import annotations

import hashlib
import hmac
import itertools
import json
from typing import AsyncGenerator

import httpx
import pytest
import pytest_asyncio

from poultry_delivery.config import LalamoveSettings
from poultry_delivery.models.domain import Address, MarketplaceOrder, OrderItem, OrderStatus, Party
from poultry_delivery.persistence.orders import InMemoryOrderRepository
from poultry_delivery.services.delivery import DeliveryServices, build_delivery_services
from poultry_delivery.services.lalamove.signer import signing_string
from poultry_delivery.services.notifications import EventBroadcaster

API_KEY = "pk_test_key"
API_SECRET = "sk_test_secret"
WEBHOOK_SECRET = "whsec_test"

# Ortigas (seller) -> Makati (buyer)
PICKUP = (14.5838, 121.0565)
DROPOFF = (14.5515, 121.0244)


def make_config(**overrides) -> LalamoveSettings:
    values = {
        "api_key": API_KEY,
        "api_secret": API_SECRET,
        "market": "PH",
        "api_user": "09990001111",
        "webhook_secret": WEBHOOK_SECRET,
        "sandbox_url": "https://rest.sandbox.lalamove.com",
        "redispatch_delay_seconds": 0.01,
        "rate_limit_per_minute": 50,
    }
    values.update(overrides)
    return LalamoveSettings(_env_file=None, **values)


def make_order(
    order_id: str = "ORD-1",
    status: OrderStatus = OrderStatus.PENDING,
    seller_phone: str | None = "09171234567",
    buyer_phone: str | None = "0918 765 4321",
    buyer_coordinates: tuple[float, float] | None = DROPOFF,
) -> MarketplaceOrder:
    buyer_lat, buyer_lng = buyer_coordinates if buyer_coordinates else (None, None)
    return MarketplaceOrder(
        id=order_id,
        buyer=Party(
            id="buyer-1",
            name="Maria Santos",
            phone=buyer_phone,
            address=Address(street="6750 Ayala Ave", city="Makati", lat=buyer_lat, lng=buyer_lng),
        ),
        seller=Party(
            id="seller-1",
            name="Reyes Poultry Farm",
            phone=seller_phone,
            address=Address(street="ADB Ave", city="Pasig", lat=PICKUP[0], lng=PICKUP[1]),
        ),
        items=[OrderItem(product_id="whole-chicken", quantity=10, price=210.0)],
        status=status,
    )


def sign_webhook(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class RecordingListener:
    """Collects every broadcast event."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict]] = []

    def __call__(self, channel: str, event: str, payload: dict) -> None:
        self.events.append((channel, event, payload))

    def named(self, event: str) -> list[tuple[str, str, dict]]:
        return [entry for entry in self.events if entry[1] == event]


def _errors(status: int, error_id: str, message: str) -> httpx.Response:
    return httpx.Response(status, json={"errors": [{"id": error_id, "message": message}]})


class FakeLalamove:
    """In-process stand-in for the Lalamove v3 API.

    Rejects requests whose HMAC signature does not verify and orders whose
    quotation id or stop ids were never issued.
    """

    def __init__(self, api_key: str = API_KEY, api_secret: str = API_SECRET) -> None:
        self.api_key = api_key
        self.api_secret = api_secret
        self.requests: list[httpx.Request] = []
        self.quotations: dict[str, dict] = {}
        self.orders: dict[str, dict] = {}
        self.failures: dict[tuple[str, str], tuple[int, str, str]] = {}
        self.unreachable = False
        self._quote_ids = itertools.count(1)
        self._order_ids = itertools.count(1001)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def fail(self, method: str, path: str, status: int, message: str, error_id: str = "ERR_UNKNOWN") -> None:
        self.failures[(method, path)] = (status, error_id, message)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def body(self, request: httpx.Request) -> dict:
        return json.loads(request.content.decode("utf-8"))

    def _signature_ok(self, request: httpx.Request) -> bool:
        scheme, _, credentials = request.headers.get("Authorization", "").partition(" ")
        parts = credentials.split(":")
        if scheme != "hmac" or len(parts) != 3:
            return False
        key, timestamp, signature = parts
        raw = signing_string(request.method, request.url.path, request.content.decode("utf-8"), timestamp)
        expected = hmac.new(self.api_secret.encode("utf-8"), raw.encode("utf-8"), hashlib.sha256).hexdigest()
        return key == self.api_key and hmac.compare_digest(signature, expected)

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.unreachable:
            raise httpx.ConnectError("Connection refused", request=request)
        if not self._signature_ok(request):
            return _errors(401, "ERR_UNAUTHORIZED", "Unauthorized")
        if request.headers.get("Market") != "PH":
            return _errors(422, "ERR_INVALID_MARKET", "Invalid market")

        method, path = request.method, request.url.path
        if (method, path) in self.failures:
            return _errors(*self.failures[(method, path)])
        if method == "POST" and path == "/v3/quotations":
            return self._quote(request)
        if method == "POST" and path == "/v3/orders":
            return self._create_order(request)

        parts = path.strip("/").split("/")
        if len(parts) >= 3 and parts[:2] == ["v3", "orders"]:
            order = self.orders.get(parts[2])
            if order is None:
                return _errors(404, "ERR_ORDER_NOT_FOUND", "Order not found")
            tail = parts[3:]
            if method == "GET" and not tail:
                return httpx.Response(200, json={"data": order})
            if method == "PUT" and tail == ["cancel"]:
                order["status"] = "CANCELED"
                return httpx.Response(204)
            if method == "GET" and tail == ["driver"]:
                return httpx.Response(
                    200,
                    json={
                        "data": {
                            "driverId": "80557",
                            "name": "Juan Dela Cruz",
                            "phone": "+639171112222",
                            "plateNumber": "NBC 1234",
                            "photo": "",
                        }
                    },
                )
            if method == "GET" and tail == ["driver-location"]:
                return httpx.Response(
                    200,
                    json={"data": {"coordinates": {"lat": "14.5702", "lng": "121.0401"}}},
                )
        return _errors(404, "ERR_NOT_FOUND", f"No route for {method} {path}")

    def _quote(self, request: httpx.Request) -> httpx.Response:
        data = self.body(request)["data"]
        quotation_id = f"QUO-{next(self._quote_ids)}"
        stops = [
            {
                "stopId": f"{quotation_id}-STOP-{index}",
                "coordinates": stop["coordinates"],
                "address": stop["address"],
            }
            for index, stop in enumerate(data["stops"], start=1)
        ]
        quotation = {
            "quotationId": quotation_id,
            "serviceType": data["serviceType"],
            "language": data["language"],
            "expiresAt": "2026-10-19T10:05:00.00Z",
            "stops": stops,
            "priceBreakdown": {"base": "100", "extraMileage": "49", "total": "149", "currency": "PHP"},
        }
        self.quotations[quotation_id] = quotation
        return httpx.Response(201, json={"data": quotation})

    def _create_order(self, request: httpx.Request) -> httpx.Response:
        data = self.body(request)["data"]
        quotation = self.quotations.get(data.get("quotationId"))
        if quotation is None:
            return _errors(422, "ERR_INVALID_QUOTATION_ID", "Invalid quotation id")
        issued = {stop["stopId"] for stop in quotation["stops"]}
        contacts = [data["sender"], *data["recipients"]]
        if any(contact["stopId"] not in issued for contact in contacts):
            return _errors(422, "ERR_INVALID_STOP_ID", "Invalid stop id")
        if any(not contact["phone"].startswith("+63") for contact in contacts):
            return _errors(422, "ERR_INVALID_PHONE_NUMBER", "Invalid phone number")

        order_id = f"LM{next(self._order_ids)}"
        order = {
            "orderId": order_id,
            "quotationId": quotation["quotationId"],
            "status": "ASSIGNING_DRIVER",
            "shareLink": f"https://share.sandbox.lalamove.com/?{order_id}",
            # differs from the quoted total on purpose
            "priceBreakdown": {"total": "155", "currency": "PHP"},
            "metadata": data.get("metadata", {}),
        }
        self.orders[order_id] = order
        return httpx.Response(201, json={"data": order})


@pytest.fixture
def fake_provider() -> FakeLalamove:
    return FakeLalamove()


@pytest.fixture
def recorder() -> RecordingListener:
    return RecordingListener()


@pytest.fixture
def broadcaster(recorder: RecordingListener) -> EventBroadcaster:
    broadcaster = EventBroadcaster()
    broadcaster.subscribe("*", recorder)
    return broadcaster


@pytest.fixture
def repository() -> InMemoryOrderRepository:
    return InMemoryOrderRepository()


@pytest_asyncio.fixture
async def services(
    fake_provider: FakeLalamove,
    repository: InMemoryOrderRepository,
    broadcaster: EventBroadcaster,
) -> AsyncGenerator[DeliveryServices, None]:
    built = build_delivery_services(
        make_config(),
        repository=repository,
        broadcaster=broadcaster,
        transport=fake_provider.transport,
    )
    try:
        yield built
    finally:
        await built.aclose()
