"""
Built-in strategies.

Each strategy keeps its per-run state (price windows, last crossover state)
and resets it in ``initialize``, so one instance can be reused across the
runs of an optimization. Parameters are read from the backtest params.
"""

import math
from collections import deque
from collections.abc import Mapping
from typing import Any

from src.core.exceptions.backtest import ConfigurationError
from src.core.interfaces.strategy import IStrategy
from src.core.models.market import BarContext, Signal


def _int_param(params: Mapping[str, Any], key: str, default: int) -> int:
    value = params.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int | float) or int(value) != value:
        raise ConfigurationError(f"Parameter {key} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(f"Parameter {key} must be at least 1, got {value}")
    return int(value)


def _allocation(params: Mapping[str, Any]) -> float:
    value = params.get("allocation", 1.0)
    if isinstance(value, bool) or not isinstance(value, int | float) or not 0 < value <= 1:
        raise ConfigurationError(f"Parameter allocation must be in (0, 1], got {value!r}")
    return float(value)


def entry_size(context: BarContext, symbol: str, allocation: float) -> float:
    """Whole units of ``symbol`` bought with an equal share of ``allocation`` of the cash.

    Costs are not included; the ledger clips a buy the cash cannot cover.
    """
    flat_symbols = [s for s in context.bars if context.position_size(s) == 0] or [symbol]
    budget = context.cash * allocation / len(flat_symbols)
    price = context.close(symbol)
    if price <= 0:
        return 0.0
    return float(math.floor(budget / price))


class BuyAndHold(IStrategy):
    """Buy every symbol on the first bar and hold to the end."""

    description = "Buys each symbol on the first bar and never sells"
    default_params = {"allocation": 1.0}

    def __init__(self) -> None:
        self._allocation = 1.0
        self._bought: set[str] = set()

    def initialize(self, params: Mapping[str, Any]) -> None:
        self._allocation = _allocation(params)
        self._bought = set()

    def evaluate(self, context: BarContext) -> list[Signal]:
        signals = []
        for symbol in context.bars:
            if symbol in self._bought:
                continue
            size = entry_size(context, symbol, self._allocation)
            if size > 0:
                signals.append(Signal.buy(symbol, context.close(symbol), size))
                self._bought.add(symbol)
        return signals


class SmaCrossover(IStrategy):
    """Long when the fast SMA of the close crosses above the slow SMA, flat when below."""

    description = "Enters on a fast/slow SMA golden cross, exits on the death cross"
    default_params = {"fast_period": 10, "slow_period": 30, "allocation": 1.0}

    def __init__(self) -> None:
        self._fast = 10
        self._slow = 30
        self._allocation = 1.0
        self._closes: dict[str, deque[float]] = {}
        self._above: dict[str, bool] = {}

    def initialize(self, params: Mapping[str, Any]) -> None:
        self._fast = _int_param(params, "fast_period", 10)
        self._slow = _int_param(params, "slow_period", 30)
        if self._fast >= self._slow:
            raise ConfigurationError(
                f"fast_period ({self._fast}) must be below slow_period ({self._slow})"
            )
        self._allocation = _allocation(params)
        self._closes = {}
        self._above = {}

    def evaluate(self, context: BarContext) -> list[Signal]:
        signals = []
        for symbol in context.bars:
            closes = self._closes.setdefault(symbol, deque(maxlen=self._slow))
            closes.append(context.close(symbol))
            if len(closes) < self._slow:
                continue

            window = list(closes)
            fast_sma = sum(window[-self._fast :]) / self._fast
            slow_sma = sum(window) / self._slow
            above = fast_sma > slow_sma
            previous = self._above.get(symbol)
            self._above[symbol] = above
            if previous is None or previous == above:
                continue

            held = context.position_size(symbol)
            if above and held == 0:
                size = entry_size(context, symbol, self._allocation)
                if size > 0:
                    signals.append(Signal.buy(symbol, context.close(symbol), size))
            elif not above and held > 0:
                signals.append(Signal.sell(symbol, context.close(symbol), held))
        return signals


class RsiThreshold(IStrategy):
    """Buy when RSI drops below ``lower``, sell the position when it rises above ``upper``."""

    description = "Mean reversion on RSI oversold/overbought thresholds"
    default_params = {"period": 14, "lower": 30, "upper": 70, "allocation": 1.0}

    def __init__(self) -> None:
        self._period = 14
        self._lower = 30.0
        self._upper = 70.0
        self._allocation = 1.0
        self._closes: dict[str, deque[float]] = {}

    def initialize(self, params: Mapping[str, Any]) -> None:
        self._period = _int_param(params, "period", 14)
        self._lower = float(params.get("lower", 30))
        self._upper = float(params.get("upper", 70))
        if not 0 <= self._lower < self._upper <= 100:
            raise ConfigurationError(
                f"RSI thresholds must satisfy 0 <= lower < upper <= 100, "
                f"got {self._lower} and {self._upper}"
            )
        self._allocation = _allocation(params)
        self._closes = {}

    def rsi(self, symbol: str) -> float | None:
        """Simple-average RSI over the last ``period`` changes, None during warm-up."""
        closes = list(self._closes.get(symbol, ()))
        if len(closes) <= self._period:
            return None
        deltas = [later - earlier for earlier, later in zip(closes, closes[1:], strict=False)]
        gain = sum(d for d in deltas if d > 0) / self._period
        loss = sum(-d for d in deltas if d < 0) / self._period
        if loss == 0:
            return 100.0 if gain > 0 else 50.0
        return 100 - 100 / (1 + gain / loss)

    def evaluate(self, context: BarContext) -> list[Signal]:
        signals = []
        for symbol in context.bars:
            closes = self._closes.setdefault(symbol, deque(maxlen=self._period + 1))
            closes.append(context.close(symbol))
            value = self.rsi(symbol)
            if value is None:
                continue

            held = context.position_size(symbol)
            if value < self._lower and held == 0:
                size = entry_size(context, symbol, self._allocation)
                if size > 0:
                    signals.append(Signal.buy(symbol, context.close(symbol), size))
            elif value > self._upper and held > 0:
                signals.append(Signal.sell(symbol, context.close(symbol), held))
        return signals
