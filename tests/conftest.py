"""
Common fixtures.
"""

import pytest

from src.infrastructure.storage import InMemoryBacktestStore, InMemoryProgressSink
from tests.helpers import FakeMarketData, make_candles


@pytest.fixture
def rising_closes() -> list[float]:
    """Ten closes rising from 100 to 109."""
    return [100.0 + i for i in range(10)]


@pytest.fixture
def market_data(rising_closes) -> FakeMarketData:
    """Market data with BTCUSDT and ETHUSDT over the same ten days."""
    return FakeMarketData(
        {
            "BTCUSDT": make_candles(rising_closes),
            "ETHUSDT": make_candles([c / 10 for c in rising_closes]),
        }
    )


@pytest.fixture
def store() -> InMemoryBacktestStore:
    return InMemoryBacktestStore()


@pytest.fixture
def progress_sink() -> InMemoryProgressSink:
    return InMemoryProgressSink()
