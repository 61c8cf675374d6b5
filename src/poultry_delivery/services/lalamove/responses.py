"""Typed views over Lalamove v3 response bodies.

Each endpoint family gets its own variant so a provider schema change fails
loudly in ``parse_*`` instead of leaking ``None`` into the order record.
"""

from __future__ import annotations

import functools
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, TypeVar

from ...models.domain import (
    DeliveryOrder,
    DeliveryQuote,
    DeliveryStatus,
    Driver,
    Location,
    Price,
    Stop,
)
from .errors import ProviderError


@dataclass(slots=True)
class ErrorResponse:
    status: int
    message: str
    details: List[Any]

    def to_exception(self) -> ProviderError:
        return ProviderError(self.status, self.message, self.details)


@dataclass(slots=True)
class QuoteResponse:
    quote: DeliveryQuote


@dataclass(slots=True)
class OrderResponse:
    order: DeliveryOrder


@dataclass(slots=True)
class DriverResponse:
    driver: Driver
    location: Optional[Location] = None


@dataclass(slots=True)
class LocationResponse:
    location: Location


def parse_error(status: int, payload: Any, fallback: str = "") -> ErrorResponse:
    """Build an ErrorResponse from whatever error shape the provider sent."""
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            first = errors[0] if isinstance(errors[0], dict) else {"message": str(errors[0])}
            message = first.get("message") or first.get("id") or fallback
            return ErrorResponse(status=status, message=str(message), details=errors)
        message = payload.get("message") or payload.get("error") or fallback
        details = payload.get("details") or []
        if not isinstance(details, list):
            details = [details]
        return ErrorResponse(status=status, message=str(message or f"HTTP {status}"), details=details)
    return ErrorResponse(status=status, message=fallback or f"HTTP {status}", details=[])


def _data(status: int, payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ProviderError(status, "Unexpected response body: expected a JSON object.")
    data = payload.get("data", payload)
    if not isinstance(data, dict):
        raise ProviderError(status, "Unexpected response body: 'data' is not an object.")
    return data


def _require(status: int, data: dict, key: str, context: str) -> Any:
    value = data.get(key)
    if value in (None, ""):
        raise ProviderError(status, f"Malformed {context} response: missing '{key}'.")
    return value


def _location(raw: Any) -> Optional[Location]:
    if not isinstance(raw, dict) or raw.get("lat") is None or raw.get("lng") is None:
        return None
    return Location(lat=str(raw["lat"]), lng=str(raw["lng"]))


def _price(raw: Any, default_currency: str) -> Optional[Price]:
    if not isinstance(raw, dict) or raw.get("total") is None:
        return None
    return Price(amount=float(raw["total"]), currency=raw.get("currency") or default_currency)


def _driver(raw: Any) -> Optional[Driver]:
    if not isinstance(raw, dict) or not raw:
        return None
    return Driver(
        name=raw.get("name"),
        phone=raw.get("phone"),
        plate=raw.get("plateNumber") or raw.get("plate"),
        photo=raw.get("photo"),
        driver_id=str(raw["driverId"]) if raw.get("driverId") else None,
    )


Parser = TypeVar("Parser", bound=Callable[..., Any])


def _malformed(context: str) -> Callable[[Parser], Parser]:
    """Turn shape errors inside a parser into ProviderError for ``context``."""

    def decorator(parse: Parser) -> Parser:
        @functools.wraps(parse)
        def wrapper(status: int, *args: Any, **kwargs: Any) -> Any:
            try:
                return parse(status, *args, **kwargs)
            except (TypeError, ValueError, AttributeError, KeyError) as exc:
                raise ProviderError(status, f"Malformed {context} response: {exc}") from exc

        return wrapper  # type: ignore[return-value]

    return decorator


@_malformed("quotation")
def parse_quote(status: int, payload: Any, default_currency: str) -> QuoteResponse:
    data = _data(status, payload)
    quotation_id = str(_require(status, data, "quotationId", "quotation"))
    raw_stops = _require(status, data, "stops", "quotation")
    stops: list[Stop] = []
    for raw in raw_stops:
        location = _location(raw.get("coordinates") or raw.get("location"))
        if location is None:
            raise ProviderError(status, "Malformed quotation response: stop without coordinates.")
        stops.append(
            Stop(
                location=location,
                address=raw.get("address", ""),
                stop_id=str(_require(status, raw, "stopId", "quotation stop")),
            )
        )
    price = _price(data.get("priceBreakdown"), default_currency)
    if price is None:
        raise ProviderError(status, "Malformed quotation response: missing 'priceBreakdown.total'.")
    return QuoteResponse(
        quote=DeliveryQuote(
            quotation_id=quotation_id,
            stops=stops,
            total_fee=price.amount,
            currency=price.currency,
            expires_at=data.get("expiresAt"),
        )
    )


@_malformed("order")
def parse_order(status: int, payload: Any, default_currency: str) -> OrderResponse:
    data = _data(status, payload)
    order_id = str(_require(status, data, "orderId", "order"))
    try:
        delivery_status = DeliveryStatus.from_provider(data.get("status"))
    except ValueError as exc:
        raise ProviderError(status, f"Malformed order response: {exc}") from exc
    driver = _driver(data.get("driver"))
    if driver is None and data.get("driverId"):
        driver = Driver(driver_id=str(data["driverId"]))
    return OrderResponse(
        order=DeliveryOrder(
            order_id=order_id,
            status=delivery_status,
            quotation_id=data.get("quotationId"),
            driver=driver,
            tracking_location=_location(data.get("location") or data.get("coordinates")),
            share_link=data.get("shareLink"),
            price=_price(data.get("priceBreakdown"), default_currency),
        )
    )


@_malformed("driver")
def parse_driver(status: int, payload: Any) -> DriverResponse:
    data = _data(status, payload)
    driver = _driver(data)
    if driver is None or not (driver.name or driver.driver_id):
        raise ProviderError(status, "Malformed driver response: no driver details.")
    return DriverResponse(driver=driver, location=_location(data.get("coordinates")))


@_malformed("driver location")
def parse_location(status: int, payload: Any) -> LocationResponse:
    data = _data(status, payload)
    location = _location(data.get("coordinates") or data.get("location") or data)
    if location is None:
        raise ProviderError(status, "Malformed driver location response: missing coordinates.")
    return LocationResponse(location=location)
