import hashlib
import hmac

import pytest

from poultry_delivery.services.lalamove.errors import ConfigurationError
from poultry_delivery.services.lalamove.signer import RequestSigner, canonical_path, signing_string

TIMESTAMP = 1760868000000


def _signer() -> RequestSigner:
    return RequestSigner("pk_test_key", "sk_test_secret", "ph", clock=lambda: TIMESTAMP)


def test_signing_string_layout() -> None:
    assert signing_string("post", "/v3/quotations", '{"a":1}', TIMESTAMP) == (
        f'{TIMESTAMP}\r\nPOST\r\n/v3/quotations\r\n\r\n{{"a":1}}'
    )


def test_signature_is_hmac_sha256_of_signing_string() -> None:
    body = '{"data":{"quotationId":"QUO-1"}}'
    expected = hmac.new(
        b"sk_test_secret",
        f"{TIMESTAMP}\r\nPOST\r\n/v3/orders\r\n\r\n{body}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()

    assert _signer().signature("POST", "/v3/orders", body, TIMESTAMP) == expected


def test_signature_is_reproducible_and_body_sensitive() -> None:
    signer = _signer()
    first = signer.signature("GET", "/v3/orders/LM1001", "", TIMESTAMP)

    assert first == signer.signature("GET", "/v3/orders/LM1001", "", TIMESTAMP)
    assert first != signer.signature("GET", "/v3/orders/LM1002", "", TIMESTAMP)
    assert first != signer.signature("GET", "/v3/orders/LM1001", "", TIMESTAMP + 1)
    assert len(first) == 64


def test_headers_carry_authorization_market_and_request_id() -> None:
    headers = _signer().headers("PUT", "/v3/orders/LM1001/cancel", request_id="req-1")
    signature = _signer().signature("PUT", "/v3/orders/LM1001/cancel", "", TIMESTAMP)

    assert headers["Authorization"] == f"hmac pk_test_key:{TIMESTAMP}:{signature}"
    assert headers["Market"] == "PH"
    assert headers["Request-ID"] == "req-1"
    assert headers["Content-Type"] == "application/json"


def test_each_request_gets_a_fresh_request_id() -> None:
    signer = _signer()

    assert signer.headers("GET", "/v3/orders/1")["Request-ID"] != signer.headers("GET", "/v3/orders/1")["Request-ID"]


@pytest.mark.parametrize(
    "api_key,api_secret,market,missing",
    [
        (None, "secret", "PH", "LALAMOVE_API_KEY"),
        ("key", "", "PH", "LALAMOVE_API_SECRET"),
        ("key", "secret", None, "LALAMOVE_MARKET"),
    ],
)
def test_missing_credentials_fail_fast(api_key, api_secret, market, missing) -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        RequestSigner(api_key, api_secret, market)

    assert missing in str(exc_info.value)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("/v3/quotations", "/v3/quotations"),
        ("/v3/quotations/", "/v3/quotations"),
        ("v3/orders/LM1001?lang=en", "/v3/orders/LM1001"),
        ("/", "/"),
    ],
)
def test_canonical_path(raw: str, expected: str) -> None:
    assert canonical_path(raw) == expected
