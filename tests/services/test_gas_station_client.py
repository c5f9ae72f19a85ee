from __future__ import annotations

import json
import logging
import threading
from collections.abc import Iterator
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from decimal import Decimal
from typing import Any, cast
from unittest.mock import Mock

import pytest
import requests

from services.gas_station_client import (
    DEFIPULSE_GAS_STATION_URL,
    ETH_GAS_STATION_URL,
    GasStationAPIError,
    GasStationClient,
    GasStationDecodeError,
    GasStationEndpoint,
    GasStationTransportError,
)
from tests.helpers.gas_station_stubs import StubSession

SAMPLE_PAYLOAD: dict[str, Any] = {
    "fast": 400,
    "fastest": 500.0,
    "safeLow": 50,
    "average": 200,
    "block_time": 13.5,
    "blockNum": 12345678,
}


def _mock_response(payload: Any, status_code: int = 200) -> Mock:
    response = Mock()
    response.status_code = status_code
    response.json.return_value = payload
    response.text = "payload"
    response.raise_for_status.return_value = None
    return response


def test_fetch_quotes_parses_public_payload() -> None:
    stub_session = StubSession(payload=SAMPLE_PAYLOAD)
    client = GasStationClient(session=cast(requests.Session, stub_session))

    quotes = client.fetch_quotes()

    assert quotes.fast == Decimal("400")
    assert quotes.fastest == Decimal("500.0")
    assert quotes.safe_low == Decimal("50")
    assert quotes.average == Decimal("200")
    assert stub_session.last_request == {
        "method": "GET",
        "url": ETH_GAS_STATION_URL,
        "params": None,
        "timeout": 10.0,
    }


def test_fetch_quotes_uses_key_authenticated_endpoint() -> None:
    stub_session = StubSession(payload=SAMPLE_PAYLOAD)
    client = GasStationClient(
        endpoint=GasStationEndpoint.with_key("secret"),
        timeout=3.0,
        session=cast(requests.Session, stub_session),
    )

    client.fetch_quotes()

    assert stub_session.last_request == {
        "method": "GET",
        "url": DEFIPULSE_GAS_STATION_URL,
        "params": {"api-key": "secret"},
        "timeout": 3.0,
    }


def test_endpoint_requires_api_key() -> None:
    with pytest.raises(ValueError):
        GasStationEndpoint.with_key("")


def test_endpoint_repr_hides_api_key() -> None:
    endpoint = GasStationEndpoint.with_key("secret")

    assert "secret" not in repr(endpoint)


def test_client_rejects_non_positive_timeout() -> None:
    with pytest.raises(ValueError):
        GasStationClient(timeout=0)


def test_request_wraps_http_errors() -> None:
    session = Mock()
    response = _mock_response({"error": "rate limited"}, status_code=429)
    response.raise_for_status.side_effect = requests.HTTPError(response=response)
    session.request.return_value = response

    client = GasStationClient(session=session)

    with pytest.raises(GasStationTransportError) as exc_info:
        client.fetch_quotes()
    assert exc_info.value.status_code == 429
    assert exc_info.value.payload == {"error": "rate limited"}


def test_request_wraps_connection_errors() -> None:
    session = Mock()
    session.request.side_effect = requests.ConnectionError("boom")

    client = GasStationClient(session=session)

    with pytest.raises(GasStationTransportError) as exc_info:
        client.fetch_quotes()
    assert exc_info.value.status_code is None
    assert isinstance(exc_info.value.__cause__, requests.ConnectionError)


def test_invalid_json_raises_decode_error() -> None:
    session = Mock()
    response = _mock_response(None)
    response.json.side_effect = ValueError("no json")
    session.request.return_value = response

    client = GasStationClient(session=session)

    with pytest.raises(GasStationDecodeError) as exc_info:
        client.fetch_quotes()
    assert exc_info.value.payload == "payload"


def test_non_object_payload_raises_decode_error() -> None:
    session = Mock()
    session.request.return_value = _mock_response([400, 500, 50, 200])

    client = GasStationClient(session=session)

    with pytest.raises(GasStationDecodeError):
        client.fetch_quotes()


@pytest.mark.parametrize(
    "payload",
    [
        {"fast": 400, "fastest": 500, "average": 200},
        {"fast": "400", "fastest": 500, "safeLow": 50, "average": 200},
        {"fast": True, "fastest": 500, "safeLow": 50, "average": 200},
        {"fast": float("nan"), "fastest": 500, "safeLow": 50, "average": 200},
    ],
)
def test_unusable_fields_raise_decode_error(payload: dict[str, Any]) -> None:
    session = Mock()
    session.request.return_value = _mock_response(payload)

    client = GasStationClient(session=session)

    with pytest.raises(GasStationDecodeError):
        client.fetch_quotes()


def test_decode_and_transport_errors_share_base() -> None:
    assert issubclass(GasStationDecodeError, GasStationAPIError)
    assert issubclass(GasStationTransportError, GasStationAPIError)


class _GasStationHandler(BaseHTTPRequestHandler):
    def do_GET(self) -> None:  # noqa: N802
        body = json.dumps(SAMPLE_PAYLOAD).encode()
        self.send_response(200)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        return None


@pytest.fixture
def local_gas_station() -> Iterator[str]:
    server = ThreadingHTTPServer(("127.0.0.1", 0), _GasStationHandler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://127.0.0.1:{server.server_address[1]}/json/ethgasAPI.json"
    finally:
        server.shutdown()
        server.server_close()


def test_keyed_fetch_does_not_log_api_key(local_gas_station: str, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG)
    session = requests.Session()
    session.trust_env = False
    client = GasStationClient(
        endpoint=GasStationEndpoint.with_key("SUPERSECRET", url=local_gas_station),
        session=session,
    )

    quotes = client.fetch_quotes()

    assert quotes.fast == Decimal("400")
    assert caplog.records
    assert not [record for record in caplog.records if "SUPERSECRET" in record.getMessage()]


def test_transport_request_lines_are_redacted(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.DEBUG)
    GasStationClient(endpoint=GasStationEndpoint.with_key("key with/space"), session=Mock())

    logging.getLogger("urllib3.connectionpool").debug(
        '%s://%s:%s "%s %s %s" %s %s',
        "https",
        "data-api.defipulse.com",
        443,
        "GET",
        "/api/v1/egs/api/ethgasAPI.json?api-key=key+with%2Fspace",
        "HTTP/1.1",
        200,
        60,
    )

    messages = [record.getMessage() for record in caplog.records if record.name == "urllib3.connectionpool"]
    assert messages == [
        'https://data-api.defipulse.com:443 "GET /api/v1/egs/api/ethgasAPI.json?api-key=<redacted> HTTP/1.1" 200 60'
    ]
