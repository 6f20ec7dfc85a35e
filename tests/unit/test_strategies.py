"""
Unit tests for the built-in strategies and their registry.
"""

import pytest

from src.backtest.runner import BacktestRun, StrategyRunner
from src.core.enums import Side
from src.core.exceptions.backtest import ConfigurationError
from src.strategies.builtin import BuyAndHold, RsiThreshold, SmaCrossover
from src.strategies.registry import available_strategies, create_strategy
from tests.helpers import FakeMarketData, make_candles, make_config


async def run_strategy(strategy, closes, symbols=("BTCUSDT",), params=None):
    market_data = FakeMarketData({symbol: make_candles(closes) for symbol in symbols})
    config = make_config(strategy, symbols=symbols, params=params or {})
    return await StrategyRunner(market_data).run(BacktestRun("bt", config))


class TestBuyAndHold:
    """Test suite for BuyAndHold."""

    @pytest.mark.asyncio
    async def test_should_invest_all_cash_on_first_bar(self, rising_closes) -> None:
        result = await run_strategy(BuyAndHold(), rising_closes)

        assert len(result.trades) == 1
        assert result.trades[0].filled_size == 100.0
        assert result.metrics["final_equity"] == pytest.approx(10900.0)

    @pytest.mark.asyncio
    async def test_should_split_cash_across_symbols(self, rising_closes) -> None:
        result = await run_strategy(BuyAndHold(), rising_closes, symbols=("BTCUSDT", "ETHUSDT"))

        assert [trade.filled_size for trade in result.trades] == [50.0, 50.0]

    @pytest.mark.asyncio
    async def test_should_reset_state_between_runs(self, rising_closes) -> None:
        strategy = BuyAndHold()

        first = await run_strategy(strategy, rising_closes)
        second = await run_strategy(strategy, rising_closes)

        assert len(first.trades) == len(second.trades) == 1

    @pytest.mark.asyncio
    async def test_should_respect_allocation(self, rising_closes) -> None:
        result = await run_strategy(BuyAndHold(), rising_closes, params={"allocation": 0.5})

        assert result.trades[0].filled_size == 50.0


class TestSmaCrossover:
    """Test suite for SmaCrossover."""

    @pytest.mark.asyncio
    async def test_should_enter_on_golden_cross_and_exit_on_death_cross(self) -> None:
        # Arrange
        closes = [10, 9, 8, 7, 8, 9, 10, 9, 8, 7]

        # Act
        result = await run_strategy(
            SmaCrossover(), closes, params={"fast_period": 2, "slow_period": 3}
        )

        # Assert
        assert [trade.side for trade in result.trades] == [Side.BUY, Side.SELL]
        assert result.trades[0].effective_price == 9.0
        assert result.trades[1].effective_price == 8.0
        assert result.trades[1].realized_pnl == pytest.approx(-1111.0)

    @pytest.mark.asyncio
    async def test_should_fail_when_fast_period_is_not_below_slow(self, rising_closes) -> None:
        result = await run_strategy(
            SmaCrossover(), rising_closes, params={"fast_period": 5, "slow_period": 5}
        )

        assert result.error_kind == "StrategyExecutionError"
        assert "fast_period" in result.error


class TestRsiThreshold:
    """Test suite for RsiThreshold."""

    @pytest.mark.asyncio
    async def test_should_buy_oversold_and_sell_overbought(self) -> None:
        result = await run_strategy(
            RsiThreshold(), [10, 9, 8, 9, 10, 11], params={"period": 2}
        )

        assert [trade.side for trade in result.trades] == [Side.BUY, Side.SELL]
        assert result.trades[0].filled_size == 1250.0
        assert result.metrics["realized_pnl"] == pytest.approx(2500.0)
        assert result.metrics["final_equity"] == pytest.approx(12500.0)

    @pytest.mark.asyncio
    async def test_should_reject_inverted_thresholds(self, rising_closes) -> None:
        result = await run_strategy(
            RsiThreshold(), rising_closes, params={"lower": 80, "upper": 20}
        )

        assert result.error_kind == "StrategyExecutionError"


class TestStrategyRegistry:
    """Test suite for the strategy registry."""

    def test_should_create_fresh_instances_by_name(self) -> None:
        first = create_strategy("sma_crossover")
        second = create_strategy("sma_crossover")

        assert isinstance(first, SmaCrossover)
        assert first is not second

    def test_should_reject_unknown_names(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown strategy"):
            create_strategy("martingale")

    def test_should_describe_available_strategies(self) -> None:
        catalog = {entry["name"]: entry for entry in available_strategies()}

        assert set(catalog) == {"buy_and_hold", "sma_crossover", "rsi_threshold"}
        assert catalog["rsi_threshold"]["default_params"]["period"] == 14
