"""
Performance metrics for a completed backtest.

Pure functions of the trade log and equity curve; no I/O.
"""

import math
from collections.abc import Sequence
from typing import Any

import numpy as np

from src.core.exceptions.backtest import ConfigurationError
from src.core.models.portfolio import EquityPoint
from src.core.models.trade import Trade
from src.core.types.financial import round_amount


class ResultsAnalyzer:
    """Turns a trade log and an equity curve into performance metrics."""

    def compute_metrics(
        self,
        trades: Sequence[Trade],
        equity: Sequence[EquityPoint],
        initial_capital: float,
        bars_per_year: float,
        expected_bars: int | None = None,
    ) -> dict[str, Any]:
        """Compute the metric set of a backtest.

        Args:
            trades: Ordered trade log
            equity: Equity curve including the point before the first bar
            initial_capital: Starting cash
            bars_per_year: Annualisation factor for the Sharpe ratio
            expected_bars: Bar count the equity curve must cover, when known

        Returns:
            Dictionary with total_return, sharpe_ratio, max_drawdown, win_rate,
            profit_factor and trade statistics

        Raises:
            ConfigurationError: If the inputs are malformed
        """
        self._validate_inputs(equity, initial_capital, bars_per_year, expected_bars)

        values = np.array([point.total_value for point in equity], dtype=float)
        returns = self.period_returns(values)
        win_rate, profit_factor = self.trade_statistics(trades)

        return {
            "total_return": float(values[-1] / initial_capital - 1.0),
            "sharpe_ratio": self.sharpe_ratio(returns, bars_per_year),
            "max_drawdown": self.max_drawdown(values),
            "win_rate": win_rate,
            "profit_factor": profit_factor,
            "total_trades": len(trades),
            "closed_trades": sum(1 for trade in trades if trade.is_closing),
            "clipped_trades": sum(1 for trade in trades if trade.clipped),
            "total_commission": round_amount(sum(trade.commission for trade in trades)),
            "realized_pnl": round_amount(sum(trade.realized_pnl or 0.0 for trade in trades)),
            "final_equity": float(values[-1]),
        }

    @staticmethod
    def _validate_inputs(
        equity: Sequence[EquityPoint],
        initial_capital: float,
        bars_per_year: float,
        expected_bars: int | None,
    ) -> None:
        if not equity:
            raise ConfigurationError("Equity curve must contain at least one point")
        if initial_capital <= 0:
            raise ConfigurationError(f"initial_capital must be positive, got {initial_capital}")
        if bars_per_year <= 0:
            raise ConfigurationError(f"bars_per_year must be positive, got {bars_per_year}")
        if expected_bars is not None and len(equity) != expected_bars + 1:
            raise ConfigurationError(
                f"Equity curve has {len(equity)} points, expected {expected_bars + 1} "
                f"for {expected_bars} bars"
            )

    @staticmethod
    def period_returns(values: np.ndarray) -> np.ndarray:
        """Bar-over-bar returns; a period starting from zero value counts as 0."""
        if len(values) < 2:
            return np.array([], dtype=float)
        previous = values[:-1]
        current = values[1:]
        with np.errstate(divide="ignore", invalid="ignore"):
            returns = np.where(previous > 0, current / previous - 1.0, 0.0)
        return returns

    @staticmethod
    def sharpe_ratio(returns: np.ndarray, bars_per_year: float) -> float:
        """Annualised mean/stdev of period returns (sample stdev).

        Defined as 0 when fewer than two returns exist or they do not vary.
        """
        if len(returns) < 2:
            return 0.0
        std = float(np.std(returns, ddof=1))
        if std == 0.0 or not math.isfinite(std):
            return 0.0
        return float(np.mean(returns) / std * math.sqrt(bars_per_year))

    @staticmethod
    def max_drawdown(values: np.ndarray) -> float:
        """Largest peak-to-trough decline as a fraction of the running peak."""
        running_peak = np.maximum.accumulate(values)
        with np.errstate(divide="ignore", invalid="ignore"):
            drawdowns = np.where(running_peak > 0, (running_peak - values) / running_peak, 0.0)
        return float(max(drawdowns.max(initial=0.0), 0.0))

    @staticmethod
    def trade_statistics(trades: Sequence[Trade]) -> tuple[float, float | None]:
        """Win rate and profit factor over closing trades.

        Returns:
            (win_rate, profit_factor); win_rate is 0 without sells, profit_factor
            is inf when there are gains but no losses and None when there are
            neither
        """
        pnls = [trade.realized_pnl or 0.0 for trade in trades if trade.is_closing]
        if not pnls:
            return 0.0, None

        wins = [pnl for pnl in pnls if pnl > 0]
        gross_profit = sum(wins)
        gross_loss = abs(sum(pnl for pnl in pnls if pnl < 0))
        win_rate = len(wins) / len(pnls)

        if gross_loss == 0:
            profit_factor = math.inf if gross_profit > 0 else None
        else:
            profit_factor = gross_profit / gross_loss
        return win_rate, profit_factor


def compute_metrics(
    trades: Sequence[Trade],
    equity: Sequence[EquityPoint],
    initial_capital: float,
    bars_per_year: float,
    expected_bars: int | None = None,
) -> dict[str, Any]:
    """Convenience wrapper around ``ResultsAnalyzer.compute_metrics``."""
    return ResultsAnalyzer().compute_metrics(
        trades, equity, initial_capital, bars_per_year, expected_bars
    )
