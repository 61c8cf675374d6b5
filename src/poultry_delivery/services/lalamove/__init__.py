"""Lalamove delivery provider integration."""

from .client import LalamoveClient
from .errors import (
    ConfigurationError,
    DeliveryError,
    ProviderError,
    RateLimitExceeded,
    TransportError,
    ValidationError,
)
from .normalizer import normalize_phone, validate_coordinate, validate_stop, validate_stops
from .serializer import canonical_json
from .signer import RequestSigner

__all__ = [
    "LalamoveClient",
    "RequestSigner",
    "canonical_json",
    "normalize_phone",
    "validate_coordinate",
    "validate_stop",
    "validate_stops",
    "ConfigurationError",
    "DeliveryError",
    "ProviderError",
    "RateLimitExceeded",
    "TransportError",
    "ValidationError",
]
