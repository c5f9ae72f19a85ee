from typing import Generator

import pytest

from config import config
from services.gas_price import reset_default_client
from tests.helpers.gas_station_stubs import FakeClock, StubGasStationClient, make_quotes


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.delenv("GAS_STATION_API_KEY", raising=False)
    monkeypatch.delenv("GAS_STATION_TIMEOUT", raising=False)
    monkeypatch.delenv("GAS_PRICE_MAX_AGE_SECONDS", raising=False)
    config.cache_clear()
    reset_default_client()
    yield
    config.cache_clear()
    reset_default_client()


@pytest.fixture(scope="function")
def stub_client() -> StubGasStationClient:
    return StubGasStationClient(responses=[make_quotes()])


@pytest.fixture(scope="function")
def clock() -> FakeClock:
    return FakeClock()
