#!/usr/bin/env python3
"""
Command-line backtest runner.

Runs one built-in strategy over CSV data (``{SYMBOL}_{timeframe}.csv`` files)
and optionally grid-searches its parameters.
"""

import argparse
import asyncio
import json
import sys
from datetime import UTC, datetime

from loguru import logger

from src.backtest.service import BacktestService
from src.core.enums import Timeframe
from src.core.exceptions.backtest import BacktestException
from src.core.models.backtest import BacktestConfig
from src.core.settings import EngineSettings
from src.infrastructure.data import DataFrameMarketDataProvider, TechnicalIndicatorEngine
from src.strategies.registry import STRATEGIES, create_strategy


def setup_logging(debug: bool = False) -> None:
    """Configure logging with loguru."""
    logger.remove()

    level = "DEBUG" if debug else "INFO"
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        level=level,
    )


def parse_date(value: str) -> datetime:
    """ISO date or datetime, taken as UTC when naive."""
    parsed = datetime.fromisoformat(value)
    return parsed.replace(tzinfo=UTC) if parsed.tzinfo is None else parsed


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Backtest a built-in strategy over CSV market data",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  backtest --data-dir data --symbols BTCUSDT --timeframe 1d --start 2024-01-01 --end 2024-12-31
  backtest --data-dir data --symbols BTCUSDT --strategy sma_crossover \\
      --start 2024-01-01 --end 2024-12-31 \\
      --optimize '{"fast_period": {"min": 5, "max": 15, "step": 5}, "slow_period": {"values": [30, 50]}}'
        """,
    )
    parser.add_argument("--data-dir", required=True, help="Directory of OHLCV CSV files")
    parser.add_argument("--symbols", nargs="+", required=True, help="Symbols to trade")
    parser.add_argument(
        "--timeframe",
        choices=[timeframe.value for timeframe in Timeframe],
        default=Timeframe.D1.value,
        help="Candle timeframe (default: 1d)",
    )
    parser.add_argument("--start", type=parse_date, required=True, help="Start date (ISO)")
    parser.add_argument("--end", type=parse_date, required=True, help="End date (ISO)")
    parser.add_argument(
        "--strategy", choices=sorted(STRATEGIES), default="buy_and_hold", help="Strategy name"
    )
    parser.add_argument("--capital", type=float, default=10000.0, help="Initial capital")
    parser.add_argument("--params", type=json.loads, default={}, help="Strategy params as JSON")
    parser.add_argument(
        "--optimize", type=json.loads, default=None, help="Parameter ranges as JSON"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


async def run(args: argparse.Namespace) -> dict:
    settings = EngineSettings.from_env()
    service = BacktestService(
        DataFrameMarketDataProvider.from_csv_directory(args.data_dir),
        indicator_engine=TechnicalIndicatorEngine(),
        settings=settings,
    )
    config = BacktestConfig(
        strategy=create_strategy(args.strategy),
        symbols=args.symbols,
        timeframe=Timeframe(args.timeframe),
        start_date=args.start,
        end_date=args.end,
        initial_capital=args.capital,
        commission_rate=settings.commission_rate,
        slippage_rate=settings.slippage_rate,
        params=args.params,
        name=args.strategy,
    )

    backtest_id = await service.create_backtest(config)
    result = await service.run_backtest(backtest_id)
    output: dict = {"backtest_id": backtest_id, "metrics": result.to_dict()["metrics"]}

    if args.optimize:
        optimization = await service.optimize_strategy(backtest_id, args.optimize)
        output["optimization"] = optimization.to_dict()
        for ranked in output["optimization"]["ranked"]:
            ranked.pop("trades", None)
            ranked.pop("equity_curve", None)
    return output


def main() -> int:
    args = build_parser().parse_args()
    setup_logging(args.debug)

    try:
        output = asyncio.run(run(args))
    except BacktestException as e:
        logger.error(f"Backtest failed ({e.kind}): {e}")
        return 1

    print(json.dumps(output, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(main())
