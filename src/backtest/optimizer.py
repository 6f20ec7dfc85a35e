"""
Grid-search optimization over strategy parameters.

Runs one backtest per parameter combination through the BacktestQueue,
reusing cached results for combinations seen within the cache TTL, and
ranks the successful runs by a metric (Sharpe ratio by default).
"""

import json
import math
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from cachetools import LRUCache, TTLCache
from loguru import logger

from src.backtest.parameter_space import ParameterRange, ParameterSpaceGenerator
from src.backtest.queue import BacktestQueue
from src.backtest.runner import BacktestRun, StrategyRunner
from src.core.enums import RequestKind
from src.core.exceptions.backtest import BacktestException
from src.core.models.backtest import BacktestConfig, BacktestResult
from src.core.settings import EngineSettings
from src.core.types.financial import HUNDRED

SPACE_CACHE_SIZE = 128

ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class RankedResult:
    """A successful combination and its backtest result."""

    params: dict[str, Any]
    result: BacktestResult

    def to_dict(self) -> dict[str, Any]:
        return {"params": self.params, **self.result.to_dict()}


@dataclass(frozen=True)
class FailedCombination:
    """A combination whose backtest failed; the sweep carried on without it."""

    params: dict[str, Any]
    error: str | None
    error_kind: str | None

    def to_dict(self) -> dict[str, Any]:
        return {"params": self.params, "error": self.error, "error_kind": self.error_kind}


@dataclass
class OptimizationResult:
    """Ranked successes plus the combinations that failed."""

    ranked: list[RankedResult]
    failed_combos: list[FailedCombination] = field(default_factory=list)
    total_combinations: int = 0
    cache_hits: int = 0
    ranking_metric: str = "sharpe_ratio"

    @property
    def best(self) -> RankedResult | None:
        """Top-ranked combination, if any succeeded."""
        return self.ranked[0] if self.ranked else None

    def to_dict(self) -> dict[str, Any]:
        """Convert optimization result to dictionary."""
        return {
            "ranking_metric": self.ranking_metric,
            "total_combinations": self.total_combinations,
            "cache_hits": self.cache_hits,
            "ranked": [ranked.to_dict() for ranked in self.ranked],
            "failed_combos": [failed.to_dict() for failed in self.failed_combos],
        }


def stable_stringify(value: Any) -> str:
    """Deterministic JSON used for cache keys (dict keys sorted, compact)."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


class OptimizationCoordinator:
    """Drives the parameter grid through the strategy runner with caching."""

    def __init__(
        self,
        runner: StrategyRunner,
        queue: BacktestQueue,
        settings: EngineSettings | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.runner = runner
        self.queue = queue
        self.settings = settings or EngineSettings()
        self._result_cache: TTLCache[str, BacktestResult] = TTLCache(
            maxsize=self.settings.cache_max_entries,
            ttl=self.settings.cache_ttl_seconds,
            timer=timer,
        )
        self._space_cache: LRUCache[str, list[dict[str, Any]]] = LRUCache(
            maxsize=SPACE_CACHE_SIZE
        )
        self.runs_executed = 0

    @staticmethod
    def cache_key(test_id: str, params: Mapping[str, Any]) -> str:
        """Cache key of one combination of one backtest."""
        return stable_stringify([test_id, dict(params)])

    @property
    def cache_size(self) -> int:
        """Number of live (non-expired) cached results."""
        self._result_cache.expire()
        return len(self._result_cache)

    def clear_cache(self) -> None:
        """Drop every cached result and expanded parameter space."""
        self._result_cache.clear()
        self._space_cache.clear()

    def combinations(
        self, param_ranges: Mapping[str, ParameterRange | Mapping[str, Any]]
    ) -> list[dict[str, Any]]:
        """Expanded parameter space, memoised per distinct set of ranges.

        Raises:
            ConfigurationError: If a range is invalid or the space is too large
        """
        ranges = {name: ParameterRange.from_value(r) for name, r in param_ranges.items()}
        # A list of pairs keeps the parameter order that drives iteration
        key = stable_stringify(
            [self.settings.max_combinations, [[name, r.to_dict()] for name, r in ranges.items()]]
        )
        cached = self._space_cache.get(key)
        if cached is not None:
            return [dict(params) for params in cached]

        combos = list(ParameterSpaceGenerator(ranges, self.settings.max_combinations))
        self._space_cache[key] = combos
        return [dict(params) for params in combos]

    async def optimize(
        self,
        test_id: str,
        base_config: BacktestConfig,
        param_ranges: Mapping[str, ParameterRange | Mapping[str, Any]],
        on_progress: ProgressCallback | None = None,
    ) -> OptimizationResult:
        """Sweep every combination and rank the successful runs.

        A failing combination is recorded in ``failed_combos`` and never
        aborts the sweep.

        Raises:
            ConfigurationError: If the parameter space is invalid or too large
        """
        combos = self.combinations(param_ranges)
        total = len(combos)
        logger.info(f"Optimizing {test_id}: {total} combinations")

        successes: list[RankedResult] = []
        failed: list[FailedCombination] = []
        cache_hits = 0

        for index, params in enumerate(combos):
            key = self.cache_key(test_id, params)
            cached = self._result_cache.get(key) if self.settings.enable_cache else None

            if cached is not None:
                cache_hits += 1
                logger.debug(f"Cache hit for {test_id} {params}")
                successes.append(RankedResult(params=params, result=cached))
            else:
                result = await self._run_combination(test_id, index, base_config, params)
                if result.is_completed:
                    if self.settings.enable_cache:
                        self._result_cache[key] = result
                    successes.append(RankedResult(params=params, result=result))
                else:
                    logger.warning(f"Combination {params} failed: {result.error}")
                    failed.append(
                        FailedCombination(
                            params=params, error=result.error, error_kind=result.error_kind
                        )
                    )

            if on_progress is not None:
                on_progress((index + 1) / total * HUNDRED)

        ranked = self.rank(successes)[: self.settings.top_results]
        logger.info(
            f"Optimization {test_id} finished: {len(successes)} succeeded, "
            f"{len(failed)} failed, {cache_hits} from cache"
        )
        return OptimizationResult(
            ranked=ranked,
            failed_combos=failed,
            total_combinations=total,
            cache_hits=cache_hits,
            ranking_metric=self.settings.ranking_metric,
        )

    def rank(self, successes: list[RankedResult]) -> list[RankedResult]:
        """Sort descending by the ranking metric; missing or NaN values sort last.

        Ties keep generation order.
        """
        metric = self.settings.ranking_metric

        def sort_key(ranked: RankedResult) -> tuple[int, float]:
            value = ranked.result.metric(metric)
            if value is None or (isinstance(value, float) and math.isnan(value)):
                return (0, 0.0)
            return (1, float(value))

        return sorted(successes, key=sort_key, reverse=True)

    async def _run_combination(
        self, test_id: str, index: int, base_config: BacktestConfig, params: dict[str, Any]
    ) -> BacktestResult:
        run = BacktestRun(
            backtest_id=f"{test_id}:combo-{index}",
            config=base_config.with_params(params),
            tracked=False,
        )
        self.runs_executed += 1
        try:
            return await self.queue.submit(
                run.backtest_id, lambda: self.runner.run(run), kind=RequestKind.OPTIMIZATION
            )
        except BacktestException as e:
            # Cancelled while still queued
            return BacktestResult.failed(e)
