"""
Unit tests for core enumerations.
"""

import pytest

from src.core.enums import BacktestStatus, Side, Timeframe


class TestTimeframe:
    """Test suite for Timeframe enum."""

    @pytest.mark.parametrize(
        ("timeframe", "expected"),
        [
            (Timeframe.D1, 365),
            (Timeframe.H1, 8760),
            (Timeframe.H4, 2190),
            (Timeframe.W1, 52),
            (Timeframe.M1, 525600),
        ],
    )
    def test_should_derive_bars_per_year_from_365_day_year(self, timeframe, expected) -> None:
        assert timeframe.bars_per_year == expected

    def test_should_parse_timeframe_case_insensitively(self) -> None:
        assert Timeframe.from_string("1H") == Timeframe.H1

    def test_should_reject_unknown_timeframe(self) -> None:
        with pytest.raises(ValueError, match="Unsupported timeframe"):
            Timeframe.from_string("2d")

    def test_should_identify_intraday_timeframes(self) -> None:
        assert Timeframe.M15.is_intraday
        assert not Timeframe.D1.is_intraday


class TestSide:
    """Test suite for Side enum."""

    def test_should_parse_side_from_string(self) -> None:
        assert Side.from_string(" BUY ") == Side.BUY
        assert Side.from_string("sell") == Side.SELL

    def test_should_reject_unknown_side(self) -> None:
        with pytest.raises(ValueError, match="Unsupported side"):
            Side.from_string("short")

    def test_should_return_opposite_side(self) -> None:
        assert Side.BUY.opposite() == Side.SELL
        assert Side.SELL.opposite() == Side.BUY
        assert Side.BUY.is_buy and Side.SELL.is_sell


class TestBacktestStatus:
    """Test suite for BacktestStatus enum."""

    def test_should_mark_only_completed_and_failed_as_terminal(self) -> None:
        assert BacktestStatus.COMPLETED.is_terminal
        assert BacktestStatus.FAILED.is_terminal
        assert not BacktestStatus.PENDING.is_terminal
        assert not BacktestStatus.RUNNING.is_terminal
