"""
Data access interfaces.

Market data and indicator series are supplied by external collaborators;
the engine only depends on these abstractions.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sequence
from datetime import datetime
from typing import Any

from src.core.enums import Timeframe
from src.core.models.market import Candle


class IMarketDataProvider(ABC):
    """Abstract interface for historical candle retrieval."""

    @abstractmethod
    async def get_candles(
        self, symbol: str, timeframe: Timeframe, start: datetime, end: datetime
    ) -> Sequence[Candle]:
        """Load the ordered candles of ``symbol`` between ``start`` and ``end``."""
        pass


class IIndicatorEngine(ABC):
    """Abstract interface for indicator calculation."""

    @abstractmethod
    async def calculate(
        self, indicator_type: str, params: Mapping[str, Any], candles: Sequence[Candle]
    ) -> Sequence[float | None]:
        """Calculate an indicator series aligned 1:1 with ``candles``."""
        pass
