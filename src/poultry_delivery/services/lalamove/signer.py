"""HMAC request signing for the Lalamove v3 API."""

from __future__ import annotations

import hashlib
import hmac
import time
import uuid
from typing import Callable

from .errors import ConfigurationError


def _now_ms() -> int:
    return int(time.time() * 1000)


def canonical_path(path: str) -> str:
    """Return the request path without query string or trailing slash."""
    bare = path.split("?", 1)[0].strip()
    if not bare.startswith("/"):
        bare = "/" + bare
    if len(bare) > 1:
        bare = bare.rstrip("/")
    return bare


def signing_string(method: str, path: str, body: str, timestamp: int | str) -> str:
    """Build the raw string covered by the signature."""
    return f"{timestamp}\r\n{method.upper()}\r\n{path}\r\n\r\n{body}"


class RequestSigner:
    """Builds ``Authorization`` and sibling headers for provider requests.

    Configuration is read-only after construction, so one instance can serve
    any number of concurrent requests.
    """

    def __init__(
        self,
        api_key: str | None,
        api_secret: str | None,
        market: str | None,
        clock: Callable[[], int] | None = None,
    ) -> None:
        missing = [
            name
            for name, value in (
                ("LALAMOVE_API_KEY", api_key),
                ("LALAMOVE_API_SECRET", api_secret),
                ("LALAMOVE_MARKET", market),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(
                f"{', '.join(missing)} must be set either as arguments or in a .env file."
            )
        self.api_key = api_key
        self._secret = api_secret.encode("utf-8")
        self.market = market.upper()
        self._clock = clock or _now_ms

    def signature(self, method: str, path: str, body: str, timestamp: int | str) -> str:
        """Hex HMAC-SHA256 over the signing string. Pure."""
        raw = signing_string(method, path, body, timestamp)
        return hmac.new(self._secret, raw.encode("utf-8"), hashlib.sha256).hexdigest()

    def authorization(self, method: str, path: str, body: str, timestamp: int | str) -> str:
        return f"hmac {self.api_key}:{timestamp}:{self.signature(method, path, body, timestamp)}"

    def headers(self, method: str, path: str, body: str = "", request_id: str | None = None) -> dict[str, str]:
        """Headers for one request, with a fresh timestamp and request id."""
        timestamp = self._clock()
        return {
            "Authorization": self.authorization(method, path, body, timestamp),
            "Market": self.market,
            "Request-ID": request_id or str(uuid.uuid4()),
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
