"""Async HTTP client for the Lalamove v3 delivery API."""

from __future__ import annotations

import logging
import time
from collections import deque
from typing import Any, Callable, Mapping, Sequence

import httpx

from ...config import LalamoveSettings, lalamove_settings
from ...models.domain import (
    DeliveryOrder,
    DeliveryQuote,
    Driver,
    Location,
    ServiceType,
    Stop,
    StopContact,
)
from .errors import RateLimitExceeded, TransportError, ValidationError
from .normalizer import normalize_phone, validate_stops
from .responses import parse_driver, parse_error, parse_location, parse_order, parse_quote
from .serializer import canonical_json
from .signer import RequestSigner, canonical_path

logger = logging.getLogger(__name__)

QUOTATIONS_PATH = "/v3/quotations"
ORDERS_PATH = "/v3/orders"

_MASKED_HEADERS = {"authorization", "x-lalamove-signature"}


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Copy of ``headers`` with the signature part of secret-bearing values masked."""
    redacted = {}
    for key, value in headers.items():
        if key.lower() in _MASKED_HEADERS:
            # keep "hmac <key>:<ts>" so requests stay traceable, drop the signature
            head, _, _ = value.rpartition(":")
            redacted[key] = f"{head}:***" if head else "***"
        else:
            redacted[key] = value
    return redacted


def redact_payload(value: Any) -> Any:
    """Mask phone numbers down to their last four digits."""
    if isinstance(value, dict):
        return {
            key: (_mask_phone(item) if key.lower() == "phone" and isinstance(item, str) else redact_payload(item))
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact_payload(item) for item in value]
    return value


def _mask_phone(phone: str) -> str:
    if len(phone) <= 4:
        return "****"
    return "*" * (len(phone) - 4) + phone[-4:]


class RateLimiter:
    """Rolling one-minute request budget."""

    def __init__(self, limit: int, window_seconds: float = 60.0, clock: Callable[[], float] | None = None) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock or time.monotonic
        self._calls: deque[float] = deque()

    def acquire(self) -> None:
        now = self._clock()
        while self._calls and now - self._calls[0] >= self.window_seconds:
            self._calls.popleft()
        if len(self._calls) >= self.limit:
            raise RateLimitExceeded("Rate limit exceeded. Please try again later.")
        self._calls.append(now)


def _stop_payload(stop: Stop) -> dict:
    return {
        "coordinates": {"lat": stop.location.lat, "lng": stop.location.lng},
        "address": stop.address,
    }


def _contact_payload(contact: StopContact, with_remarks: bool) -> dict:
    if not contact.stop_id:
        raise ValidationError("Every sender/recipient needs the stopId returned by the quotation.", field="stopId")
    name = (contact.name or "").strip()
    if not name:
        raise ValidationError("Contact name must not be empty.", field="name")
    payload = {"stopId": contact.stop_id, "name": name, "phone": normalize_phone(contact.phone)}
    if with_remarks:
        payload["remarks"] = contact.remarks
    return payload


class LalamoveClient:
    """Typed wrapper over the provider operations.

    Calls are not retried here; retry policy belongs to the caller.
    """

    def __init__(
        self,
        signer: RequestSigner,
        base_url: str | None = None,
        timeout: float | None = None,
        language: str | None = None,
        currency: str | None = None,
        rate_limit_per_minute: int | None = None,
        log_bodies: bool | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.signer = signer
        self.base_url = (base_url or lalamove_settings.sandbox_url).rstrip("/")
        self.timeout = timeout if timeout is not None else lalamove_settings.timeout_seconds
        self.language = language or lalamove_settings.language
        self.currency = currency or lalamove_settings.currency
        self.log_bodies = log_bodies if log_bodies is not None else lalamove_settings.log_bodies
        self._rate_limiter = RateLimiter(
            rate_limit_per_minute if rate_limit_per_minute is not None else lalamove_settings.rate_limit_per_minute
        )
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(self.timeout, connect=10.0),
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        config: LalamoveSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "LalamoveClient":
        """Build a client and signer; raises ConfigurationError on missing credentials."""
        config = config or lalamove_settings
        signer = RequestSigner(config.api_key, config.api_secret, config.market)
        return cls(
            signer,
            base_url=config.sandbox_url,
            timeout=config.timeout_seconds,
            language=config.language,
            currency=config.currency,
            rate_limit_per_minute=config.rate_limit_per_minute,
            log_bodies=config.log_bodies,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "LalamoveClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, payload: Any = None) -> tuple[int, Any]:
        """Sign and send one request. Every operation goes through here."""
        method = method.upper()
        path = canonical_path(path)
        body = canonical_json(payload)
        headers = self.signer.headers(method, path, body)

        self._rate_limiter.acquire()
        logger.info(f"Lalamove {method} {path} (request id {headers['Request-ID']})")
        if self.log_bodies:
            logger.debug(
                f"Lalamove request headers={redact_headers(headers)} "
                f"body={redact_payload(payload) if payload else ''}"
            )

        try:
            response = await self._client.request(
                method,
                path,
                content=body.encode("utf-8") if body else None,
                headers=headers,
            )
        except httpx.TimeoutException as exc:
            logger.warning(f"Lalamove {method} {path} timed out after {self.timeout}s: {exc}")
            raise TransportError(f"Lalamove {method} {path} timed out after {self.timeout}s") from exc
        except httpx.TransportError as exc:
            logger.warning(f"Lalamove {method} {path} failed to connect: {exc}")
            raise TransportError(f"Failed to reach Lalamove at {self.base_url}: {exc}") from exc
        except httpx.HTTPError as exc:
            # decoding failures, redirect loops
            logger.warning(f"Lalamove {method} {path} failed: {type(exc).__name__}: {exc}")
            raise TransportError(f"Lalamove {method} {path} failed: {exc}") from exc

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = None

        logger.info(f"Lalamove {method} {path} -> {response.status_code}")
        if self.log_bodies:
            logger.debug(f"Lalamove response body={redact_payload(data)}")

        if response.status_code >= 400:
            error = parse_error(response.status_code, data, fallback=response.text[:200])
            logger.warning(f"Lalamove {method} {path} rejected: {error.status} {error.message}")
            raise error.to_exception()
        return response.status_code, data

    async def get_quote(
        self,
        service_type: ServiceType | str,
        stops: Sequence[Stop],
        language: str | None = None,
    ) -> DeliveryQuote:
        """Request a quotation. Contacts are stripped; the quote step takes none."""
        cleaned = validate_stops(stops)
        service = service_type.value if isinstance(service_type, ServiceType) else str(service_type).upper()
        payload = {
            "data": {
                "serviceType": service,
                "language": language or self.language,
                "stops": [_stop_payload(stop) for stop in cleaned],
            }
        }
        status, data = await self._request("POST", QUOTATIONS_PATH, payload)
        return parse_quote(status, data, self.currency).quote

    async def create_order(
        self,
        quotation_id: str,
        sender: StopContact,
        recipients: Sequence[StopContact],
        metadata: Mapping[str, Any] | None = None,
        is_pod_enabled: bool = True,
    ) -> DeliveryOrder:
        """Place an order against a quotation obtained from :meth:`get_quote`."""
        if not quotation_id:
            raise ValidationError("A quotationId from a prior quotation is required.", field="quotationId")
        if not recipients:
            raise ValidationError("At least one recipient is required.", field="recipients")
        payload = {
            "data": {
                "quotationId": quotation_id,
                "sender": _contact_payload(sender, with_remarks=False),
                "recipients": [_contact_payload(recipient, with_remarks=True) for recipient in recipients],
                "isPODEnabled": is_pod_enabled,
                "metadata": dict(metadata or {}),
            }
        }
        status, data = await self._request("POST", ORDERS_PATH, payload)
        return parse_order(status, data, self.currency).order

    async def get_order_status(self, order_id: str) -> DeliveryOrder:
        status, data = await self._request("GET", f"{ORDERS_PATH}/{order_id}")
        return parse_order(status, data, self.currency).order

    async def cancel_order(self, order_id: str) -> None:
        await self._request("PUT", f"{ORDERS_PATH}/{order_id}/cancel")

    async def get_driver_info(self, order_id: str) -> Driver:
        status, data = await self._request("GET", f"{ORDERS_PATH}/{order_id}/driver")
        return parse_driver(status, data).driver

    async def get_driver_location(self, order_id: str) -> Location:
        status, data = await self._request("GET", f"{ORDERS_PATH}/{order_id}/driver-location")
        return parse_location(status, data).location
