"""Convenience entry points for gas price suggestions.

`suggest_gas_price` and `suggest_fast_gas_price` always contact the oracle.
Use `new_gas_price_suggester` to reuse quotes for a period of time.

Every function accepts an explicit `client`; without one the module's default
client is used. The default follows `config()` unless `set_key` switched it
to the key-authenticated endpoint. A suggester keeps the client it was built
with, so later `set_key` calls only affect new suggesters and uncached calls.
"""

from __future__ import annotations

import threading
from datetime import timedelta

from config import config
from domain.gas import GasPriority, suggested_wei

from .gas_price_suggester import GasPriceSuggester, GasQuotesSource
from .gas_station_client import GasStationClient, GasStationEndpoint

_default_lock = threading.Lock()
_default_client: GasStationClient | None = None


def set_key(api_key: str) -> None:
    """Use the key-authenticated endpoint for the default client."""
    endpoint = GasStationEndpoint.with_key(api_key)
    client = GasStationClient(endpoint=endpoint, timeout=config().gas_station_timeout)
    global _default_client
    with _default_lock:
        _default_client = client


def default_client() -> GasStationClient:
    global _default_client
    with _default_lock:
        if _default_client is None:
            _default_client = build_client_from_config()
        return _default_client


def reset_default_client() -> None:
    global _default_client
    with _default_lock:
        _default_client = None


def build_client_from_config() -> GasStationClient:
    settings = config()
    if settings.gas_station_api_key:
        endpoint = GasStationEndpoint.with_key(settings.gas_station_api_key)
    else:
        endpoint = GasStationEndpoint.public()
    return GasStationClient(endpoint=endpoint, timeout=settings.gas_station_timeout)


def suggest_gas_price(priority: GasPriority | str, *, client: GasQuotesSource | None = None) -> int:
    """Return a suggested gas price in wei, always fetching fresh quotes."""
    source = client if client is not None else default_client()
    return suggested_wei(priority, source.fetch_quotes())


def suggest_fast_gas_price(*, client: GasQuotesSource | None = None) -> int:
    return suggest_gas_price(GasPriority.FAST, client=client)


def new_gas_price_suggester(
    max_result_age: timedelta | float | None = None,
    *,
    client: GasQuotesSource | None = None,
) -> GasPriceSuggester:
    """Build a suggester that reuses quotes younger than max_result_age.

    Defaults to `gas_price_max_age_seconds` from the settings.
    """
    if max_result_age is None:
        max_result_age = config().gas_price_max_age_seconds
    source = client if client is not None else default_client()
    return GasPriceSuggester(source, max_result_age)


__all__ = [
    "build_client_from_config",
    "default_client",
    "new_gas_price_suggester",
    "reset_default_client",
    "set_key",
    "suggest_fast_gas_price",
    "suggest_gas_price",
]
