"""
Unit tests for OptimizationCoordinator.
"""

import math

import pytest

from src.backtest.optimizer import OptimizationCoordinator, RankedResult, stable_stringify
from src.backtest.queue import BacktestQueue
from src.backtest.runner import StrategyRunner
from src.core.enums import BacktestStatus
from src.core.exceptions.backtest import ConfigurationError
from src.core.models.backtest import BacktestResult
from src.core.models.market import Signal
from src.core.settings import EngineSettings
from tests.helpers import make_config

DAY_SECONDS = 24 * 60 * 60


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def sized_buyer(context):
    """Buy ``size`` units on the first bar and hold."""
    if context.index == 0:
        return [Signal.buy("BTCUSDT", context.close("BTCUSDT"), context.params["size"])]
    return None


def fragile(context):
    """Like sized_buyer, but raises on bar 3 when mode is 'boom'."""
    if context.params.get("mode") == "boom" and context.index == 3:
        raise RuntimeError("exploded")
    return sized_buyer(context)


def ranked(params, **metrics) -> RankedResult:
    return RankedResult(params=params, result=BacktestResult.completed([], [], metrics))


class TestOptimizationCoordinator:
    """Test suite for grid-search optimization."""

    @pytest.fixture
    def clock(self) -> FakeClock:
        return FakeClock()

    @pytest.fixture
    def make_coordinator(self, market_data, clock):
        def factory(**options) -> OptimizationCoordinator:
            settings = EngineSettings.from_options(options)
            return OptimizationCoordinator(
                StrategyRunner(market_data), BacktestQueue(), settings, timer=clock
            )

        return factory

    @pytest.mark.asyncio
    async def test_should_run_every_combination_once(self, make_coordinator, market_data) -> None:
        # Arrange
        coordinator = make_coordinator()

        # Act
        result = await coordinator.optimize(
            "bt-1", make_config(sized_buyer), {"size": {"min": 1, "max": 3, "step": 1}}
        )

        # Assert
        assert result.total_combinations == 3
        assert len(result.ranked) == 3
        assert result.failed_combos == []
        assert coordinator.runs_executed == 3
        assert len(market_data.calls) == 3

    @pytest.mark.asyncio
    async def test_should_reuse_cached_results_within_ttl(self, make_coordinator, clock) -> None:
        # Arrange
        coordinator = make_coordinator()
        ranges = {"size": {"values": [1, 2]}}
        config = make_config(sized_buyer)

        # Act
        await coordinator.optimize("bt-1", config, ranges)
        clock.now += DAY_SECONDS - 1
        second = await coordinator.optimize("bt-1", config, ranges)

        # Assert
        assert coordinator.runs_executed == 2
        assert second.cache_hits == 2
        assert coordinator.cache_size == 2

    @pytest.mark.asyncio
    async def test_should_rerun_combinations_after_ttl_expires(
        self, make_coordinator, clock
    ) -> None:
        coordinator = make_coordinator()
        ranges = {"size": {"values": [1]}}
        config = make_config(sized_buyer)

        await coordinator.optimize("bt-1", config, ranges)
        clock.now += DAY_SECONDS + 1
        second = await coordinator.optimize("bt-1", config, ranges)

        assert coordinator.runs_executed == 2
        assert second.cache_hits == 0

    @pytest.mark.asyncio
    async def test_should_scope_cache_by_test_id(self, make_coordinator) -> None:
        coordinator = make_coordinator()
        ranges = {"size": {"values": [1]}}
        config = make_config(sized_buyer)

        await coordinator.optimize("bt-1", config, ranges)
        await coordinator.optimize("bt-2", config, ranges)

        assert coordinator.runs_executed == 2

    @pytest.mark.asyncio
    async def test_should_bypass_cache_when_disabled(self, make_coordinator) -> None:
        coordinator = make_coordinator(enable_cache=False)
        ranges = {"size": {"values": [1]}}
        config = make_config(sized_buyer)

        await coordinator.optimize("bt-1", config, ranges)
        await coordinator.optimize("bt-1", config, ranges)

        assert coordinator.runs_executed == 2
        assert coordinator.cache_size == 0

    @pytest.mark.asyncio
    async def test_should_record_failing_combination_and_continue(self, make_coordinator) -> None:
        # Arrange
        coordinator = make_coordinator()
        ranges = {"mode": {"values": ["ok", "boom"]}, "size": {"values": [1, 2]}}

        # Act
        result = await coordinator.optimize("bt-1", make_config(fragile), ranges)

        # Assert
        assert len(result.ranked) == 2
        assert [combo.params for combo in result.failed_combos] == [
            {"mode": "boom", "size": 1},
            {"mode": "boom", "size": 2},
        ]
        failure = result.failed_combos[0]
        assert failure.error_kind == "StrategyExecutionError"
        assert "bar 3" in failure.error and "exploded" in failure.error
        assert all(r.result.status == BacktestStatus.COMPLETED for r in result.ranked)

    @pytest.mark.asyncio
    async def test_should_not_cache_failed_combinations(self, make_coordinator) -> None:
        coordinator = make_coordinator()
        ranges = {"mode": {"values": ["boom"]}, "size": {"values": [1]}}
        config = make_config(fragile)

        await coordinator.optimize("bt-1", config, ranges)
        await coordinator.optimize("bt-1", config, ranges)

        assert coordinator.runs_executed == 2

    @pytest.mark.asyncio
    async def test_should_rank_by_metric_and_keep_top_results(self, make_coordinator) -> None:
        # Arrange
        coordinator = make_coordinator(ranking_metric="total_return", top_results=2)

        # Act
        result = await coordinator.optimize(
            "bt-1", make_config(sized_buyer), {"size": {"values": [1, 10, 5, 2]}}
        )

        # Assert
        assert [r.params["size"] for r in result.ranked] == [10, 5]
        assert result.best.params == {"size": 10}
        assert result.ranking_metric == "total_return"

    @pytest.mark.asyncio
    async def test_should_report_progress_per_combination(self, make_coordinator) -> None:
        coordinator = make_coordinator()
        progress: list[float] = []

        await coordinator.optimize(
            "bt-1", make_config(sized_buyer), {"size": {"values": [1, 2, 3, 4]}}, progress.append
        )

        assert progress == [25.0, 50.0, 75.0, 100.0]

    @pytest.mark.asyncio
    async def test_should_refuse_space_above_ceiling_before_running(self, make_coordinator) -> None:
        coordinator = make_coordinator(max_combinations=3)

        with pytest.raises(ConfigurationError):
            await coordinator.optimize(
                "bt-1", make_config(sized_buyer), {"size": {"min": 1, "max": 4, "step": 1}}
            )
        assert coordinator.runs_executed == 0

    def test_should_sort_missing_and_nan_metrics_last_keeping_ties(self, make_coordinator) -> None:
        # Arrange
        coordinator = make_coordinator()
        results = [
            ranked({"id": 1}, sharpe_ratio=None),
            ranked({"id": 2}, sharpe_ratio=1.5),
            ranked({"id": 3}, sharpe_ratio=math.nan),
            ranked({"id": 4}, sharpe_ratio=2.0),
            ranked({"id": 5}, sharpe_ratio=1.5),
        ]

        # Act
        order = [r.params["id"] for r in coordinator.rank(results)]

        # Assert
        assert order[:3] == [4, 2, 5]
        assert set(order[3:]) == {1, 3}

    def test_should_build_order_independent_cache_keys(self) -> None:
        assert OptimizationCoordinator.cache_key("t", {"a": 1, "b": 2}) == (
            OptimizationCoordinator.cache_key("t", {"b": 2, "a": 1})
        )
        assert stable_stringify({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_should_memoise_expanded_space(self, make_coordinator) -> None:
        coordinator = make_coordinator()
        ranges = {"a": {"values": [1, 2]}}

        first = coordinator.combinations(ranges)
        first.append({"a": 99})

        assert coordinator.combinations(ranges) == [{"a": 1}, {"a": 2}]

    @pytest.mark.asyncio
    async def test_should_serialise_result(self, make_coordinator) -> None:
        coordinator = make_coordinator()

        result = await coordinator.optimize(
            "bt-1", make_config(sized_buyer), {"size": {"values": [1]}}
        )
        data = result.to_dict()

        assert data["total_combinations"] == 1
        assert data["ranked"][0]["params"] == {"size": 1}
        assert data["ranked"][0]["status"] == "completed"
