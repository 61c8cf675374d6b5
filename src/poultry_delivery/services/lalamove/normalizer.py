"""Phone, coordinate and stop validation for the Lalamove schema.

Everything here fails closed: an input that does not match a known shape is
rejected with :class:`ValidationError` instead of being passed through.
"""

from __future__ import annotations

import math
import re
from typing import Any, Sequence

from ...models.domain import Contact, Location, Stop
from .errors import ValidationError

COUNTRY_CODE = "63"
SUBSCRIBER_DIGITS = 10
# Philippine mobile subscriber numbers all start with 9.
MOBILE_PREFIX = "9"

_AXIS_LIMITS = {"lat": 90.0, "lng": 180.0}
_NON_DIGITS = re.compile(r"\D")


def normalize_phone(raw: Any) -> str:
    """Return ``raw`` as ``+63`` followed by exactly ten digits."""
    digits = _NON_DIGITS.sub("", str(raw or ""))
    cc = COUNTRY_CODE

    if len(digits) == len(cc) + SUBSCRIBER_DIGITS and digits.startswith(cc):
        subscriber = digits[len(cc):]
    elif len(digits) == SUBSCRIBER_DIGITS + 1 and digits.startswith("0"):
        subscriber = digits[1:]
    elif len(digits) == SUBSCRIBER_DIGITS and digits.startswith(MOBILE_PREFIX):
        subscriber = digits
    elif len(digits) == SUBSCRIBER_DIGITS - 1:
        subscriber = MOBILE_PREFIX + digits
    else:
        raise ValidationError(f"Unrecognized phone number format: {raw!r}", field="phone")

    return f"+{cc}{subscriber}"


def validate_coordinate(value: Any, axis: str) -> bool:
    """True when ``value`` is a finite number inside the range for ``axis``."""
    if axis not in _AXIS_LIMITS:
        raise ValueError(f"Unknown coordinate axis '{axis}'. Expected 'lat' or 'lng'.")
    if isinstance(value, bool) or value is None:
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    if not math.isfinite(number):
        return False
    limit = _AXIS_LIMITS[axis]
    return -limit <= number <= limit


def _format_coordinate(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    return repr(float(value))


def normalize_location(lat: Any, lng: Any) -> Location:
    if not validate_coordinate(lat, "lat"):
        raise ValidationError(f"Invalid latitude: {lat!r}", field="lat")
    if not validate_coordinate(lng, "lng"):
        raise ValidationError(f"Invalid longitude: {lng!r}", field="lng")
    return Location(lat=_format_coordinate(lat), lng=_format_coordinate(lng))


def validate_contact(contact: Contact) -> Contact:
    name = (contact.name or "").strip()
    if not name:
        raise ValidationError("Contact name must not be empty.", field="name")
    return Contact(name=name, phone=normalize_phone(contact.phone))


def validate_stop(stop: Stop, require_contacts: bool = False) -> Stop:
    """Return a cleaned copy of ``stop`` or raise ValidationError."""
    address = (stop.address or "").strip()
    if not address:
        raise ValidationError("Stop address must not be empty.", field="address")
    location = normalize_location(stop.location.lat, stop.location.lng)
    if require_contacts and not stop.contacts:
        raise ValidationError(f"Stop '{address}' needs at least one contact.", field="contacts")
    contacts = [validate_contact(contact) for contact in stop.contacts]
    return Stop(location=location, address=address, contacts=contacts, stop_id=stop.stop_id)


def validate_stops(stops: Sequence[Stop], require_contacts: bool = False) -> list[Stop]:
    """Validate a whole route; any bad stop rejects the request."""
    if len(stops) < 2:
        raise ValidationError("At least two stops (pickup and dropoff) are required.", field="stops")
    return [validate_stop(stop, require_contacts=require_contacts) for stop in stops]
