"""Domain models for delivery stops, provider orders and marketplace orders."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, List, Optional


class ServiceType(str, Enum):
    MOTORCYCLE = "MOTORCYCLE"
    SEDAN = "SEDAN"
    MPV = "MPV"
    VAN = "VAN"
    TRUCK330 = "TRUCK330"
    CAR = "CAR"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    ASSIGNED = "assigned"
    PICKED_UP = "picked_up"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (DeliveryStatus.COMPLETED, DeliveryStatus.CANCELLED)

    @classmethod
    def from_provider(cls, raw: str | None) -> "DeliveryStatus":
        """Map a Lalamove v3 status code (or our own vocabulary) onto DeliveryStatus."""
        if not raw:
            return cls.PENDING
        key = str(raw).strip()
        if key.upper() in _PROVIDER_STATUS_MAP:
            return _PROVIDER_STATUS_MAP[key.upper()]
        try:
            return cls(key.lower())
        except ValueError as exc:
            raise ValueError(f"Unknown delivery status '{raw}'.") from exc


_PROVIDER_STATUS_MAP = {
    "ASSIGNING_DRIVER": DeliveryStatus.PENDING,
    "ON_GOING": DeliveryStatus.ASSIGNED,
    "PICKED_UP": DeliveryStatus.PICKED_UP,
    "IN_TRANSIT": DeliveryStatus.IN_TRANSIT,
    "COMPLETED": DeliveryStatus.COMPLETED,
    "CANCELED": DeliveryStatus.CANCELLED,
    "CANCELLED": DeliveryStatus.CANCELLED,
    "REJECTED": DeliveryStatus.CANCELLED,
    "EXPIRED": DeliveryStatus.CANCELLED,
}


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass(slots=True)
class Location:
    """Coordinates as the decimal strings the provider expects."""

    lat: str
    lng: str


@dataclass(slots=True)
class Contact:
    name: str
    phone: str


@dataclass(slots=True)
class Stop:
    """A pickup or dropoff waypoint."""

    location: Location
    address: str
    contacts: List[Contact] = field(default_factory=list)
    stop_id: Optional[str] = None


@dataclass(slots=True)
class StopContact:
    """Sender or recipient bound to a quoted stop for order creation."""

    stop_id: str
    name: str
    phone: str
    remarks: Optional[str] = None


@dataclass(slots=True)
class Price:
    amount: float
    currency: str


@dataclass(slots=True)
class DeliveryQuote:
    quotation_id: str
    stops: List[Stop]
    total_fee: float
    currency: str
    expires_at: Optional[str] = None


@dataclass(slots=True)
class Driver:
    name: Optional[str] = None
    phone: Optional[str] = None
    plate: Optional[str] = None
    photo: Optional[str] = None
    driver_id: Optional[str] = None


@dataclass(slots=True)
class DeliveryOrder:
    order_id: str
    status: DeliveryStatus
    quotation_id: Optional[str] = None
    driver: Optional[Driver] = None
    tracking_location: Optional[Location] = None
    share_link: Optional[str] = None
    price: Optional[Price] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return _utcnow()


def _stop_from_dict(data: dict) -> Stop:
    location = data.get("location") or {}
    return Stop(
        location=Location(lat=str(location.get("lat", "")), lng=str(location.get("lng", ""))),
        address=data.get("address", ""),
        contacts=[Contact(name=c.get("name", ""), phone=c.get("phone", "")) for c in data.get("contacts") or []],
        stop_id=data.get("stop_id"),
    )


def _driver_from_dict(data: dict | None) -> Optional[Driver]:
    if not data:
        return None
    return Driver(
        name=data.get("name"),
        phone=data.get("phone"),
        plate=data.get("plate"),
        photo=data.get("photo"),
        driver_id=data.get("driver_id"),
    )


@dataclass(slots=True)
class DeliveryRecord:
    """The ``delivery`` sub-document persisted on a marketplace order."""

    provider_order_id: str
    status: DeliveryStatus
    price: Price
    service_type: str
    stops: List[Stop]
    quote_id: str
    driver: Optional[Driver] = None
    current_location: Optional[Location] = None
    share_link: Optional[str] = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "DeliveryRecord":
        price = data.get("price") or {}
        location = data.get("current_location")
        return cls(
            provider_order_id=data["provider_order_id"],
            status=DeliveryStatus.from_provider(data.get("status")),
            price=Price(amount=float(price.get("amount", 0.0)), currency=price.get("currency", "")),
            service_type=data.get("service_type", ""),
            stops=[_stop_from_dict(stop) for stop in data.get("stops") or []],
            quote_id=data.get("quote_id", ""),
            driver=_driver_from_dict(data.get("driver")),
            current_location=Location(lat=str(location["lat"]), lng=str(location["lng"])) if location else None,
            share_link=data.get("share_link"),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


@dataclass(slots=True)
class Address:
    street: str
    city: str
    state: str = ""
    zip_code: str = ""
    country: str = "Philippines"
    lat: Optional[float] = None
    lng: Optional[float] = None

    @property
    def full_address(self) -> str:
        parts = [self.street, self.city, self.state, self.zip_code, self.country]
        return ", ".join(p for p in parts if p)


@dataclass(slots=True)
class Party:
    """Buyer or seller as seen by the delivery integration."""

    id: str
    name: str
    phone: Optional[str]
    address: Address


@dataclass(slots=True)
class OrderItem:
    product_id: str
    quantity: int
    price: float


def _party_from_dict(data: dict) -> Party:
    address = data.get("address") or {}
    return Party(
        id=str(data.get("id", "")),
        name=data.get("name", ""),
        phone=data.get("phone"),
        address=Address(
            street=address.get("street", ""),
            city=address.get("city", ""),
            state=address.get("state", ""),
            zip_code=address.get("zip_code", ""),
            country=address.get("country", "Philippines"),
            lat=address.get("lat"),
            lng=address.get("lng"),
        ),
    )


@dataclass(slots=True)
class MarketplaceOrder:
    """Order record owned by the order subsystem; only ``delivery`` is ours to write."""

    id: str
    buyer: Party
    seller: Party
    items: List[OrderItem] = field(default_factory=list)
    status: OrderStatus = OrderStatus.PENDING
    notes: Optional[str] = None
    delivery: Optional[DeliveryRecord] = None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["delivery"] = self.delivery.to_dict() if self.delivery else None
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "MarketplaceOrder":
        delivery = data.get("delivery")
        return cls(
            id=str(data["id"]),
            buyer=_party_from_dict(data.get("buyer") or {}),
            seller=_party_from_dict(data.get("seller") or {}),
            items=[
                OrderItem(
                    product_id=str(item.get("product_id", "")),
                    quantity=int(item.get("quantity", 1)),
                    price=float(item.get("price", 0.0)),
                )
                for item in data.get("items") or []
            ],
            status=OrderStatus(data.get("status") or OrderStatus.PENDING.value),
            notes=data.get("notes"),
            delivery=DeliveryRecord.from_dict(delivery) if delivery else None,
        )
