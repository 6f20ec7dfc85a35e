"""
Strategy runner - executes one backtest from configuration to metrics.

Lifecycle: pending -> running -> completed | failed.

The runner validates the configuration, fetches aligned candle and indicator
series, walks the bars in order invoking the strategy and applying its signals
to a fresh PortfolioLedger, and finally hands the trade log and equity curve
to the ResultsAnalyzer.
"""

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from loguru import logger

from src.backtest.analyzer import ResultsAnalyzer
from src.core.enums import BacktestStatus, Side
from src.core.exceptions.backtest import (
    BacktestCancelledError,
    BacktestException,
    DataUnavailableError,
    StrategyExecutionError,
    ValidationError,
)
from src.core.interfaces.data import IIndicatorEngine, IMarketDataProvider
from src.core.interfaces.store import IBacktestStore, IProgressSink
from src.core.interfaces.strategy import IStrategy, resolve_signals
from src.core.models.backtest import BacktestConfig, BacktestResult
from src.core.models.costs import CostModel
from src.core.models.market import BarContext, Candle, Signal
from src.core.models.portfolio import PortfolioLedger
from src.core.types.financial import HUNDRED

IndicatorSeries = dict[str, dict[str, Sequence[float | None]]]


@dataclass
class BacktestRun:
    """Mutable state of one backtest execution."""

    backtest_id: str
    config: BacktestConfig
    status: BacktestStatus = BacktestStatus.PENDING
    progress: float = 0.0
    result: BacktestResult | None = None
    error: BaseException | None = None
    tracked: bool = True
    cancel_requested: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def request_cancel(self) -> None:
        """Ask the runner to stop at the next bar boundary."""
        self.cancel_requested = True


class StrategyRunner:
    """Runs backtests against external market data and indicator collaborators."""

    def __init__(
        self,
        market_data: IMarketDataProvider,
        indicator_engine: IIndicatorEngine | None = None,
        store: IBacktestStore | None = None,
        progress_sink: IProgressSink | None = None,
        analyzer: ResultsAnalyzer | None = None,
    ) -> None:
        self.market_data = market_data
        self.indicator_engine = indicator_engine
        self.store = store
        self.progress_sink = progress_sink
        self.analyzer = analyzer or ResultsAnalyzer()

    async def run(self, run: BacktestRun) -> BacktestResult:
        """Execute ``run`` to a terminal state and return its result.

        Failures never raise: they produce a failed BacktestResult and are kept
        on ``run.error``. Partial trades and equity of a failed run are discarded.
        """
        if run.status != BacktestStatus.PENDING:
            raise ValidationError(f"Backtest {run.backtest_id} is already {run.status.value}")

        config = run.config
        try:
            config.validate()
            if run.cancel_requested:
                raise BacktestCancelledError(run.backtest_id)

            await self._start(run)
            candles = await self._fetch_candles(config)
            indicators = await self._fetch_indicators(config, candles)
            ledger, bar_count = await self._simulate(run, candles, indicators)

            metrics = self.analyzer.compute_metrics(
                ledger.trades,
                ledger.equity_curve,
                config.initial_capital,
                config.bars_per_year,
                expected_bars=bar_count,
            )
            result = BacktestResult.completed(ledger.trades, ledger.equity_curve, metrics)
        except BacktestException as e:
            run.error = e
            result = BacktestResult.failed(e)

        await self._finish(run, result)
        return result

    async def _start(self, run: BacktestRun) -> None:
        run.status = BacktestStatus.RUNNING
        run.started_at = datetime.now(UTC)
        logger.info(
            f"Backtest {run.backtest_id} running: {list(run.config.symbols)} "
            f"{run.config.timeframe.value} params={dict(run.config.params)}"
        )
        if run.tracked and self.store is not None:
            await self.store.update(run.backtest_id, status=run.status.value, progress=0.0)

    async def _finish(self, run: BacktestRun, result: BacktestResult) -> None:
        run.status = result.status
        run.result = result
        run.finished_at = datetime.now(UTC)

        if result.is_completed:
            run.progress = HUNDRED
            logger.info(
                f"Backtest {run.backtest_id} completed: "
                f"return={result.metrics['total_return']:.4%} "
                f"sharpe={result.metrics['sharpe_ratio']:.3f} trades={len(result.trades)}"
            )
        else:
            logger.error(f"Backtest {run.backtest_id} failed ({result.error_kind}): {result.error}")

        if not run.tracked or self.store is None:
            return
        if result.is_completed:
            await self.store.update(
                run.backtest_id,
                status=result.status.value,
                progress=run.progress,
                results=result.to_dict(),
            )
        else:
            await self.store.update(
                run.backtest_id,
                status=result.status.value,
                progress=run.progress,
                error=result.error,
                error_kind=result.error_kind,
            )

    async def _fetch_candles(self, config: BacktestConfig) -> dict[str, list[Candle]]:
        """Fetch every symbol's candles and check that the series align.

        Raises:
            DataUnavailableError: On fetch failure, empty or misaligned series
        """
        series = await asyncio.gather(*(self._fetch_symbol(config, s) for s in config.symbols))
        candles = dict(zip(config.symbols, series, strict=True))

        lengths = {symbol: len(bars) for symbol, bars in candles.items()}
        if len(set(lengths.values())) > 1:
            raise DataUnavailableError(f"Candle series lengths differ across symbols: {lengths}")

        first, *others = config.symbols
        for index, candle in enumerate(candles[first]):
            for symbol in others:
                other = candles[symbol][index].timestamp
                if other != candle.timestamp:
                    raise DataUnavailableError(
                        f"Candle {index} of {symbol} is at {other}, "
                        f"{first} is at {candle.timestamp}",
                        symbol,
                    )
        logger.debug(f"Fetched {next(iter(lengths.values()))} bars for {list(lengths)}")
        return candles

    async def _fetch_symbol(self, config: BacktestConfig, symbol: str) -> list[Candle]:
        try:
            bars = list(
                await self.market_data.get_candles(
                    symbol, config.timeframe, config.start_date, config.end_date
                )
            )
        except DataUnavailableError:
            raise
        except Exception as e:
            raise DataUnavailableError(f"Failed to fetch candles for {symbol}: {e}", symbol) from e

        if not bars:
            raise DataUnavailableError(f"No candles available for {symbol}", symbol)
        for previous, current in zip(bars, bars[1:], strict=False):
            if current.timestamp < previous.timestamp:
                raise DataUnavailableError(f"Candles for {symbol} are not time-ordered", symbol)
        return bars

    async def _fetch_indicators(
        self, config: BacktestConfig, candles: Mapping[str, list[Candle]]
    ) -> IndicatorSeries:
        """Fetch each requested indicator for each symbol, aligned with its candles.

        Raises:
            DataUnavailableError: On calculation failure or misaligned series
        """
        if not config.indicator_specs:
            return {}
        if self.indicator_engine is None:
            raise DataUnavailableError("Indicators requested but no indicator engine configured")

        indicators: IndicatorSeries = {}
        for spec in config.indicator_specs:
            per_symbol: dict[str, Sequence[float | None]] = {}
            for symbol, bars in candles.items():
                try:
                    values = list(
                        await self.indicator_engine.calculate(spec.type, spec.params, bars)
                    )
                except DataUnavailableError:
                    raise
                except Exception as e:
                    raise DataUnavailableError(
                        f"Failed to calculate {spec.name} for {symbol}: {e}", symbol
                    ) from e
                if len(values) != len(bars):
                    raise DataUnavailableError(
                        f"Indicator {spec.name} for {symbol} has {len(values)} values "
                        f"for {len(bars)} candles",
                        symbol,
                    )
                per_symbol[symbol] = values
            indicators[spec.name] = per_symbol
        return indicators

    async def _simulate(
        self,
        run: BacktestRun,
        candles: Mapping[str, list[Candle]],
        indicators: IndicatorSeries,
    ) -> tuple[PortfolioLedger, int]:
        """Walk the bars in order, applying signals and marking to market."""
        config = run.config
        strategy = config.resolved_strategy()
        cost_model = config.cost_model()
        ledger = PortfolioLedger(config.initial_capital, cost_model)
        ledger.record_equity(config.start_date, config.initial_capital)

        self._initialize_strategy(strategy, config.params)

        symbols = list(config.symbols)
        bar_count = len(candles[symbols[0]])
        for index in range(bar_count):
            if run.cancel_requested:
                raise BacktestCancelledError(run.backtest_id, index)

            bars = {symbol: candles[symbol][index] for symbol in symbols}
            timestamp = bars[symbols[0]].timestamp
            context = BarContext(
                index=index,
                timestamp=timestamp,
                bars=MappingProxyType(bars),
                indicators=MappingProxyType(
                    {
                        name: MappingProxyType({s: values[index] for s, values in series.items()})
                        for name, series in indicators.items()
                    }
                ),
                positions=ledger.positions_snapshot(),
                cash=ledger.cash,
                params=config.params,
            )

            for signal in await self._evaluate(strategy, context):
                self._apply_signal(ledger, cost_model, signal, timestamp)

            ledger.mark_to_market({s: bar.close for s, bar in bars.items()}, timestamp)
            run.progress = (index + 1) / bar_count * HUNDRED
            self._report_progress(run)

            # Let queued cancellations and other tasks run between bars
            await asyncio.sleep(0)

        return ledger, bar_count

    @staticmethod
    def _initialize_strategy(strategy: IStrategy, params: Mapping[str, Any]) -> None:
        try:
            strategy.initialize(params)
        except Exception as e:
            raise StrategyExecutionError(f"Strategy initialization failed: {e}") from e

    @staticmethod
    async def _evaluate(strategy: IStrategy, context: BarContext) -> list[Signal]:
        """Invoke the strategy for one bar and coerce its output into signals.

        Raises:
            StrategyExecutionError: If the strategy raises or emits an invalid signal
        """
        try:
            raw_signals = await resolve_signals(strategy.evaluate(context))
            signals = [Signal.coerce(item) for item in raw_signals]
        except Exception as e:
            raise StrategyExecutionError(
                f"Strategy {strategy.name} failed on bar {context.index}: {e}",
                bar_index=context.index,
            ) from e

        for signal in signals:
            if signal.symbol not in context.bars:
                raise StrategyExecutionError(
                    f"Strategy {strategy.name} emitted a signal for unknown symbol "
                    f"{signal.symbol!r} on bar {context.index}",
                    bar_index=context.index,
                )
        return signals

    @staticmethod
    def _apply_signal(
        ledger: PortfolioLedger, cost_model: CostModel, signal: Signal, timestamp: datetime
    ) -> None:
        effective_price = cost_model.effective_price(signal.side, signal.price)
        commission = cost_model.commission(signal.size * effective_price)
        if signal.side == Side.BUY:
            ledger.apply_buy(signal.symbol, signal.size, effective_price, commission, timestamp)
        else:
            ledger.apply_sell(signal.symbol, signal.size, effective_price, commission, timestamp)

    def _report_progress(self, run: BacktestRun) -> None:
        if not run.tracked or self.progress_sink is None:
            return
        try:
            self.progress_sink.report(run.backtest_id, run.progress)
        except Exception as e:
            logger.warning(f"Progress sink failed for {run.backtest_id}: {e}")
