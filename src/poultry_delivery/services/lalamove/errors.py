"""Error taxonomy for the Lalamove delivery integration."""

from __future__ import annotations

from typing import Any, Sequence

# Markers in provider error ids/messages that point at our own setup rather
# than at the submitted delivery.
_CONFIGURATION_MARKERS = (
    "invalid market",
    "err_invalid_market",
    "market configuration",
    "unauthorized",
    "err_unauthorized",
    "invalid signature",
    "err_invalid_signature",
    "authentication",
)


class DeliveryError(Exception):
    """Base class for every delivery integration failure."""


class ConfigurationError(DeliveryError):
    """Credentials or settings are missing or invalid."""


class ValidationError(DeliveryError):
    """A stop, contact or coordinate was rejected before any network call."""

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class ProviderError(DeliveryError):
    """The provider answered with an HTTP status >= 400."""

    def __init__(self, status: int, message: str, details: Sequence[Any] | None = None) -> None:
        super().__init__(f"Lalamove responded {status}: {message}")
        self.status = status
        self.message = message
        self.details = list(details or [])

    @property
    def is_configuration_error(self) -> bool:
        """True when the failure comes from a bad market or bad credentials."""
        if self.status in (401, 403):
            return True
        haystack = [self.message]
        for detail in self.details:
            if isinstance(detail, dict):
                haystack.extend(str(value) for value in detail.values())
            else:
                haystack.append(str(detail))
        lowered = " ".join(haystack).lower()
        return any(marker in lowered for marker in _CONFIGURATION_MARKERS)

    def to_dict(self) -> dict:
        return {"status": self.status, "message": self.message, "details": self.details}


class TransportError(DeliveryError):
    """The request never produced a provider response (timeout, DNS, refused)."""


class RateLimitExceeded(DeliveryError):
    """Client-side request budget for the current minute is used up."""
