from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from urllib.parse import quote_plus

import requests

from domain.gas import GasPriceQuotes, GasPriority

logger = logging.getLogger(__name__)

# API docs: https://ethgasstation.info
ETH_GAS_STATION_URL = "https://ethgasstation.info/json/ethgasAPI.json"
DEFIPULSE_GAS_STATION_URL = "https://data-api.defipulse.com/api/v1/egs/api/ethgasAPI.json"


class GasStationAPIError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None, payload: Any | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


class GasStationTransportError(GasStationAPIError):
    """The request could not be completed or returned an error status."""


class GasStationDecodeError(GasStationAPIError):
    """The response body is not a usable gas price payload."""


@dataclass(frozen=True)
class GasStationEndpoint:
    url: str
    api_key: str | None = None

    @classmethod
    def public(cls) -> GasStationEndpoint:
        return cls(url=ETH_GAS_STATION_URL)

    @classmethod
    def with_key(cls, api_key: str, *, url: str = DEFIPULSE_GAS_STATION_URL) -> GasStationEndpoint:
        if not api_key:
            msg = "api_key must be provided"
            raise ValueError(msg)
        return cls(url=url, api_key=api_key)

    @property
    def params(self) -> dict[str, str] | None:
        if self.api_key is None:
            return None
        return {"api-key": self.api_key}

    def __repr__(self) -> str:
        key = "<redacted>" if self.api_key else None
        return f"GasStationEndpoint(url={self.url!r}, api_key={key!r})"


class _SecretRedactingFilter(logging.Filter):
    """Replaces registered secrets in records emitted by the HTTP transport."""

    def __init__(self) -> None:
        super().__init__()
        self._secrets: set[str] = set()
        self._lock = threading.Lock()

    def add(self, secret: str) -> None:
        with self._lock:
            self._secrets.update({secret, quote_plus(secret)})

    def filter(self, record: logging.LogRecord) -> bool:
        with self._lock:
            secrets = tuple(self._secrets)
        if not secrets:
            return True
        message = record.getMessage()
        redacted = message
        for secret in secrets:
            redacted = redacted.replace(secret, "<redacted>")
        if redacted != message:
            record.msg = redacted
            record.args = ()
        return True


# urllib3 logs the full request line, query string included, at DEBUG
_transport_log_filter = _SecretRedactingFilter()
logging.getLogger("urllib3.connectionpool").addFilter(_transport_log_filter)


class GasStationClient:
    """Fetches the current gas price quotes from ETH Gas Station."""

    def __init__(
        self,
        *,
        endpoint: GasStationEndpoint | None = None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        if timeout <= 0:
            msg = "timeout must be > 0"
            raise ValueError(msg)

        self.endpoint = endpoint or GasStationEndpoint.public()
        if self.endpoint.api_key:
            _transport_log_filter.add(self.endpoint.api_key)
        self.timeout = timeout
        self._session = session or requests.Session()

    def fetch_quotes(self) -> GasPriceQuotes:
        payload = self._request()
        quotes = GasPriceQuotes(
            fast=self._field(payload, GasPriority.FAST),
            fastest=self._field(payload, GasPriority.FASTEST),
            safe_low=self._field(payload, GasPriority.SAFE_LOW),
            average=self._field(payload, GasPriority.AVERAGE),
        )
        logger.debug("Fetched gas price quotes from %s: %s", self.endpoint.url, quotes)
        return quotes

    def _request(self) -> dict[str, Any]:
        try:
            response = self._session.request(
                "GET",
                self.endpoint.url,
                params=self.endpoint.params,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            resp = exc.response
            status_code = getattr(resp, "status_code", None)
            payload: Any | None = None
            if resp is not None:
                try:
                    payload = resp.json()
                except ValueError:
                    payload = resp.text
            raise GasStationTransportError(
                "ETH Gas Station request failed", status_code=status_code, payload=payload
            ) from exc
        except requests.RequestException as exc:
            status_code = getattr(getattr(exc, "response", None), "status_code", None)
            raise GasStationTransportError("ETH Gas Station request failed", status_code=status_code) from exc

        try:
            payload_raw = response.json()
        except ValueError as exc:
            raise GasStationDecodeError("ETH Gas Station returned invalid JSON", payload=response.text) from exc

        if not isinstance(payload_raw, dict):
            raise GasStationDecodeError("ETH Gas Station returned unexpected payload type", payload=payload_raw)

        return payload_raw

    @staticmethod
    def _field(payload: dict[str, Any], priority: GasPriority) -> Decimal:
        value = payload.get(priority.value)
        if value is None:
            raise GasStationDecodeError(f"ETH Gas Station payload missing {priority.value!r} field", payload=payload)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise GasStationDecodeError(f"ETH Gas Station payload has non-numeric {priority.value!r}", payload=payload)
        quote = Decimal(str(value))
        if not quote.is_finite():
            raise GasStationDecodeError(f"ETH Gas Station payload has non-finite {priority.value!r}", payload=payload)
        return quote


__all__ = [
    "DEFIPULSE_GAS_STATION_URL",
    "ETH_GAS_STATION_URL",
    "GasStationAPIError",
    "GasStationClient",
    "GasStationDecodeError",
    "GasStationEndpoint",
    "GasStationTransportError",
]
