"""
Unit tests for CostModel.
"""

import pytest

from src.core.enums import Side
from src.core.exceptions.backtest import ConfigurationError
from src.core.models.costs import CostModel


class TestCostModel:
    """Test suite for commission and slippage."""

    def test_should_apply_adverse_slippage_per_side(self) -> None:
        costs = CostModel(commission_rate=0.0, slippage_rate=0.01)

        assert costs.effective_price(Side.BUY, 100.0) == pytest.approx(101.0)
        assert costs.effective_price(Side.SELL, 100.0) == pytest.approx(99.0)

    def test_should_charge_commission_on_notional(self) -> None:
        costs = CostModel(commission_rate=0.01, slippage_rate=0.0)

        assert costs.commission(150.0) == pytest.approx(1.5)

    def test_should_leave_price_and_cost_untouched_with_zero_rates(self) -> None:
        costs = CostModel(commission_rate=0.0, slippage_rate=0.0)

        assert costs.effective_price(Side.BUY, 100.0) == 100.0
        assert costs.commission(100.0) == 0.0

    def test_should_include_commission_in_unit_cost(self) -> None:
        costs = CostModel(commission_rate=0.01, slippage_rate=0.0)

        assert costs.unit_cost(100.0) == pytest.approx(101.0)

    @pytest.mark.parametrize("rates", [(-0.1, 0.0), (0.0, -0.01), (1.0, 0.0)])
    def test_should_reject_invalid_rates(self, rates) -> None:
        with pytest.raises(ConfigurationError):
            CostModel(*rates)

    def test_should_reject_negative_price_and_cost(self) -> None:
        costs = CostModel()

        with pytest.raises(ConfigurationError):
            costs.effective_price(Side.BUY, -1.0)
        with pytest.raises(ConfigurationError):
            costs.commission(-5.0)
