"""
pandas-backed market data provider.

Holds one OHLCV DataFrame per (symbol, timeframe) and serves candles for a
date range. Frames can be registered directly or loaded from a directory of
``{SYMBOL}_{timeframe}.csv`` files.
"""

from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path

import pandas as pd
from loguru import logger

from src.core.enums import Timeframe
from src.core.exceptions.backtest import DataError, DataUnavailableError
from src.core.interfaces.data import IMarketDataProvider
from src.core.models.market import Candle

REQUIRED_COLUMNS = ["timestamp", "open", "high", "low", "close", "volume"]


def _to_utc(value: datetime) -> pd.Timestamp:
    """Timestamp in UTC; naive values are taken to be UTC already."""
    timestamp = pd.Timestamp(value)
    if timestamp.tzinfo is None:
        return timestamp.tz_localize(UTC)
    return timestamp.tz_convert(UTC)


def normalize_ohlcv(data: pd.DataFrame) -> pd.DataFrame:
    """Validate columns, parse timestamps to UTC and sort by time.

    Integer timestamps are read as epoch milliseconds. Duplicate timestamps
    keep the last row.

    Raises:
        DataError: If required columns are missing or values are not numeric
    """
    missing = [column for column in REQUIRED_COLUMNS if column not in data.columns]
    if missing:
        raise DataError(f"Missing required columns: {missing}")

    result = data[REQUIRED_COLUMNS].copy()
    if pd.api.types.is_numeric_dtype(result["timestamp"]):
        result["timestamp"] = pd.to_datetime(result["timestamp"], unit="ms", utc=True)
    else:
        result["timestamp"] = pd.to_datetime(result["timestamp"], utc=True)

    try:
        for column in REQUIRED_COLUMNS[1:]:
            result[column] = pd.to_numeric(result[column]).astype(float)
    except (ValueError, TypeError) as e:
        raise DataError(f"Non-numeric OHLCV values: {e}") from e

    result = result.drop_duplicates(subset="timestamp", keep="last")
    return result.sort_values("timestamp").reset_index(drop=True)


class DataFrameMarketDataProvider(IMarketDataProvider):
    """Serves candles from in-memory DataFrames."""

    def __init__(self) -> None:
        self._frames: dict[tuple[str, Timeframe], pd.DataFrame] = {}

    def add_frame(self, symbol: str, timeframe: Timeframe | str, data: pd.DataFrame) -> None:
        """Register OHLCV data for a symbol and timeframe."""
        if isinstance(timeframe, str) and not isinstance(timeframe, Timeframe):
            timeframe = Timeframe.from_string(timeframe)
        self._frames[(symbol, timeframe)] = normalize_ohlcv(data)
        logger.debug(f"Registered {len(data)} rows for {symbol} {timeframe.value}")

    @property
    def available(self) -> list[tuple[str, str]]:
        """Registered (symbol, timeframe) pairs."""
        return [(symbol, timeframe.value) for symbol, timeframe in self._frames]

    async def get_candles(
        self, symbol: str, timeframe: Timeframe, start: datetime, end: datetime
    ) -> Sequence[Candle]:
        frame = self._frames.get((symbol, timeframe))
        if frame is None:
            raise DataUnavailableError(f"No data for {symbol} {timeframe.value}", symbol)

        mask = (frame["timestamp"] >= _to_utc(start)) & (frame["timestamp"] <= _to_utc(end))
        window = frame.loc[mask]
        return [
            Candle(
                timestamp=row.timestamp.to_pydatetime(),
                open=row.open,
                high=row.high,
                low=row.low,
                close=row.close,
                volume=row.volume,
            )
            for row in window.itertuples(index=False)
        ]

    @classmethod
    def from_csv_directory(cls, directory: Path | str) -> "DataFrameMarketDataProvider":
        """Load every ``{SYMBOL}_{timeframe}.csv`` file in ``directory``.

        Files whose name does not end in a known timeframe are skipped.

        Raises:
            DataError: If the directory does not exist or a file is malformed
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise DataError(f"Data directory not found: {directory}")

        provider = cls()
        for file_path in sorted(directory.glob("*.csv")):
            symbol, _, timeframe_value = file_path.stem.rpartition("_")
            try:
                timeframe = Timeframe.from_string(timeframe_value)
            except ValueError:
                logger.warning(f"Skipping {file_path.name}: unknown timeframe {timeframe_value!r}")
                continue
            if not symbol:
                logger.warning(f"Skipping {file_path.name}: missing symbol")
                continue

            try:
                data = pd.read_csv(file_path)
            except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
                raise DataError(f"Failed to read {file_path.name}: {e}") from e
            provider.add_frame(symbol, timeframe, data)

        logger.info(f"Loaded {len(provider._frames)} data files from {directory}")
        return provider
