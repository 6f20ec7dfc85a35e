"""
Data infrastructure.

This module provides market data loading and technical indicator
calculation for historical candle data.
"""

from .dataframe_provider import DataFrameMarketDataProvider
from .technical_indicators import TechnicalIndicatorEngine

__all__ = ["DataFrameMarketDataProvider", "TechnicalIndicatorEngine"]
