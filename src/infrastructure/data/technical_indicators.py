"""
Technical Indicators Engine.

This module calculates technical indicator series over candle sequences.
Implements the Strategy Pattern: one calculation strategy per indicator type,
each returning a pandas Series aligned with the input candles.
"""

import math
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

import numpy as np
import pandas as pd
from loguru import logger

from src.core.exceptions.backtest import ConfigurationError, DataError
from src.core.interfaces.data import IIndicatorEngine
from src.core.models.market import Candle


class IndicatorStrategy(Protocol):
    """Protocol for technical indicator calculation strategies."""

    def calculate(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.Series:
        """Calculate the indicator series for the given OHLCV data."""
        ...


def _period(params: Mapping[str, Any], key: str, default: int) -> int:
    value = params.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int | float) or int(value) != value:
        raise ConfigurationError(f"Indicator parameter {key} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigurationError(f"Indicator parameter {key} must be at least 1, got {value}")
    return int(value)


class SMAStrategy:
    """Simple moving average of the close."""

    def calculate(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.Series:
        period = _period(params, "period", 20)
        return data["close"].rolling(window=period).mean()


class EMAStrategy:
    """Exponential moving average of the close."""

    def calculate(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.Series:
        period = _period(params, "period", 12)
        return data["close"].ewm(span=period).mean()


class MACDStrategy:
    """Strategy for calculating MACD (Moving Average Convergence Divergence) series.

    ``output`` selects the ``macd`` line (default), the ``signal`` line or
    the ``histogram``.
    """

    OUTPUTS = ("macd", "signal", "histogram")

    def calculate(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.Series:
        fast = _period(params, "fast", 12)
        slow = _period(params, "slow", 26)
        signal_span = _period(params, "signal", 9)
        output = params.get("output", "macd")
        if output not in self.OUTPUTS:
            raise ConfigurationError(f"Unknown MACD output: {output!r}")

        macd = data["close"].ewm(span=fast).mean() - data["close"].ewm(span=slow).mean()
        if output == "macd":
            return macd
        signal = macd.ewm(span=signal_span).mean()
        if output == "signal":
            return signal
        return macd - signal


class RSIStrategy:
    """Strategy for calculating RSI (Relative Strength Index)."""

    def calculate(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.Series:
        period = _period(params, "period", 14)

        delta = data["close"].diff()
        gain = delta.clip(lower=0).rolling(window=period).mean()
        loss = (-delta).clip(lower=0).rolling(window=period).mean()

        # A window without losses reads 100
        rs = gain / loss.replace(0, np.nan)
        rsi = 100 - (100 / (1 + rs))
        return rsi.where(~(loss == 0) | gain.isna(), 100.0)


class BollingerBandsStrategy:
    """Strategy for calculating Bollinger Bands.

    ``band`` selects ``upper``, ``middle`` (default) or ``lower``.
    """

    BANDS = ("upper", "middle", "lower")

    def calculate(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.Series:
        period = _period(params, "period", 20)
        std_multiplier = float(params.get("std_multiplier", 2.0))
        band = params.get("band", "middle")
        if band not in self.BANDS:
            raise ConfigurationError(f"Unknown Bollinger band: {band!r}")

        bb_middle = data["close"].rolling(window=period).mean()
        if band == "middle":
            return bb_middle
        bb_std = data["close"].rolling(window=period).std()
        if band == "upper":
            return bb_middle + (std_multiplier * bb_std)
        return bb_middle - (std_multiplier * bb_std)


class VWAPStrategy:
    """Strategy for calculating cumulative VWAP (Volume Weighted Average Price)."""

    def calculate(self, data: pd.DataFrame, params: Mapping[str, Any]) -> pd.Series:
        typical_price = (data["high"] + data["low"] + data["close"]) / 3
        cumulative_volume = data["volume"].cumsum().replace(0, np.nan)
        return (typical_price * data["volume"]).cumsum() / cumulative_volume


def candles_to_frame(candles: Sequence[Candle]) -> pd.DataFrame:
    """OHLCV DataFrame with one row per candle, in order."""
    return pd.DataFrame(
        {
            "timestamp": [candle.timestamp for candle in candles],
            "open": [candle.open for candle in candles],
            "high": [candle.high for candle in candles],
            "low": [candle.low for candle in candles],
            "close": [candle.close for candle in candles],
            "volume": [candle.volume for candle in candles],
        }
    )


class TechnicalIndicatorEngine(IIndicatorEngine):
    """
    Indicator engine using the Strategy Pattern.

    Every series it returns has exactly one entry per input candle; warm-up
    bars without a value are None.
    """

    def __init__(self) -> None:
        """Initialize engine with default strategies."""
        self._strategies: dict[str, IndicatorStrategy] = {
            "sma": SMAStrategy(),
            "ema": EMAStrategy(),
            "rsi": RSIStrategy(),
            "macd": MACDStrategy(),
            "bollinger": BollingerBandsStrategy(),
            "vwap": VWAPStrategy(),
        }
        self._failure_counts: dict[str, int] = {}

    def add_strategy(self, name: str, strategy: IndicatorStrategy) -> None:
        """Add a new indicator calculation strategy."""
        self._strategies[name] = strategy

    def get_available_indicators(self) -> list[str]:
        """Get list of available indicator types."""
        return list(self._strategies.keys())

    def get_failure_statistics(self) -> dict[str, int]:
        """Get failure counts for each indicator type."""
        return self._failure_counts.copy()

    async def calculate(
        self, indicator_type: str, params: Mapping[str, Any], candles: Sequence[Candle]
    ) -> list[float | None]:
        """
        Calculate one indicator series.

        Args:
            indicator_type: Registered indicator name (e.g. ``sma``)
            params: Indicator parameters such as ``period``
            candles: Ordered candles of one symbol

        Returns:
            Values aligned with ``candles``; None where undefined

        Raises:
            ConfigurationError: If the type is unknown or parameters are invalid
            DataError: If the calculation itself fails
        """
        strategy = self._strategies.get(indicator_type)
        if strategy is None:
            raise ConfigurationError(f"Unknown indicator type: {indicator_type}")
        if not candles:
            return []

        data = candles_to_frame(candles)
        logger.debug(f"Calculating {indicator_type} over {len(data)} candles")
        try:
            series = strategy.calculate(data, params)
        except ConfigurationError:
            raise
        except (ValueError, TypeError, KeyError) as e:
            self._failure_counts[indicator_type] = self._failure_counts.get(indicator_type, 0) + 1
            logger.warning(
                f"Failed {indicator_type} (failure #{self._failure_counts[indicator_type]}): {e}"
            )
            raise DataError(f"Technical indicator calculation failed for {indicator_type}") from e

        return [
            None if value is None or math.isnan(value) or math.isinf(value) else float(value)
            for value in series.tolist()
        ]


def create_indicator_engine() -> TechnicalIndicatorEngine:
    """Factory function to create an indicator engine with default strategies."""
    return TechnicalIndicatorEngine()
