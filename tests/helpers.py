"""
Shared builders and fakes for the test suite.
"""

from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime, timedelta
from typing import Any

from src.core.enums import Timeframe
from src.core.exceptions.backtest import DataUnavailableError
from src.core.interfaces.data import IIndicatorEngine, IMarketDataProvider
from src.core.interfaces.strategy import IStrategy, StrategyCallable
from src.core.models.backtest import BacktestConfig
from src.core.models.market import Candle

START = datetime(2024, 1, 1, tzinfo=UTC)


def make_candles(
    closes: Sequence[float], start: datetime = START, step: timedelta = timedelta(days=1)
) -> list[Candle]:
    """Daily candles whose open/high/low equal the close."""
    return [
        Candle(
            timestamp=start + i * step,
            open=close,
            high=close,
            low=close,
            close=close,
            volume=1000.0,
        )
        for i, close in enumerate(closes)
    ]


def make_config(
    strategy: IStrategy | StrategyCallable,
    symbols: Sequence[str] = ("BTCUSDT",),
    **overrides: Any,
) -> BacktestConfig:
    """Backtest config over 2024 with cost-free defaults."""
    values: dict[str, Any] = {
        "strategy": strategy,
        "symbols": symbols,
        "timeframe": Timeframe.D1,
        "start_date": START,
        "end_date": START + timedelta(days=365),
        "initial_capital": 10000.0,
        "commission_rate": 0.0,
        "slippage_rate": 0.0,
    }
    values.update(overrides)
    return BacktestConfig(**values)


def no_signals(context):
    """Strategy that never trades."""
    return None


class FakeMarketData(IMarketDataProvider):
    """Returns preset candles regardless of the requested range."""

    def __init__(self, candles: Mapping[str, list[Candle]]) -> None:
        self.candles = dict(candles)
        self.calls: list[str] = []

    async def get_candles(self, symbol, timeframe, start, end):
        self.calls.append(symbol)
        if symbol not in self.candles:
            raise DataUnavailableError(f"No data for {symbol}", symbol)
        return list(self.candles[symbol])


class FailingMarketData(IMarketDataProvider):
    """Raises a non-domain error on every fetch."""

    async def get_candles(self, symbol, timeframe, start, end):
        raise ConnectionError("exchange unreachable")


class FakeIndicatorEngine(IIndicatorEngine):
    """Returns ``compute(params, candles)`` for every indicator type."""

    def __init__(self, compute: Callable[[Mapping[str, Any], Sequence[Candle]], list] | None = None):
        self.compute = compute or (lambda params, candles: [c.close for c in candles])
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def calculate(self, indicator_type, params, candles):
        self.calls.append((indicator_type, dict(params)))
        return self.compute(params, candles)
