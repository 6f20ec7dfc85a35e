"""
Unit tests for parameter ranges and the parameter space generator.
"""

import pytest

from src.backtest.parameter_space import (
    ParameterRange,
    ParameterSpaceGenerator,
    generate_parameter_combinations,
)
from src.core.exceptions.backtest import ConfigurationError


class TestParameterRange:
    """Test suite for ParameterRange."""

    def test_should_include_max_when_reachable(self) -> None:
        assert ParameterRange.numeric(0, 2, 1).expand() == [0, 1, 2]

    def test_should_stop_below_max_when_not_reachable(self) -> None:
        assert ParameterRange.numeric(0, 5, 2).expand() == [0, 2, 4]

    def test_should_expand_float_steps_without_drift(self) -> None:
        values = ParameterRange.numeric(0.1, 0.3, 0.1).expand()

        assert values == [0.1, 0.2, 0.3]

    def test_should_yield_ints_for_integer_ranges(self) -> None:
        values = ParameterRange.numeric(5, 15, 5).expand()

        assert all(isinstance(value, int) for value in values)

    def test_should_yield_single_value_when_min_equals_max(self) -> None:
        assert ParameterRange.numeric(3, 3, 1).expand() == [3]

    def test_should_keep_discrete_values_in_order(self) -> None:
        assert ParameterRange.discrete(["x", "y"]).expand() == ["x", "y"]

    @pytest.mark.parametrize(
        "value",
        [
            {"min": 0, "max": 2, "step": 0},
            {"min": 0, "max": 2, "step": -1},
            {"min": 3, "max": 2, "step": 1},
            {"min": 0, "max": 2},
            {"values": []},
            {"values": "xy"},
            {"min": 0, "max": float("inf"), "step": 1},
            "not a range",
        ],
    )
    def test_should_reject_invalid_ranges(self, value) -> None:
        with pytest.raises(ConfigurationError):
            ParameterRange.from_value(value)


class TestParameterSpaceGenerator:
    """Test suite for ParameterSpaceGenerator."""

    def test_should_vary_leftmost_parameter_slowest(self) -> None:
        # Arrange
        ranges = {"a": {"min": 0, "max": 2, "step": 1}, "b": {"values": ["x", "y"]}}

        # Act
        combos = list(ParameterSpaceGenerator(ranges))

        # Assert
        assert combos == [
            {"a": 0, "b": "x"},
            {"a": 0, "b": "y"},
            {"a": 1, "b": "x"},
            {"a": 1, "b": "y"},
            {"a": 2, "b": "x"},
            {"a": 2, "b": "y"},
        ]

    def test_should_be_restartable(self) -> None:
        generator = ParameterSpaceGenerator({"a": {"values": [1, 2]}})

        assert list(generator) == list(generator)

    def test_should_count_combinations_up_front(self) -> None:
        generator = ParameterSpaceGenerator(
            {"a": {"min": 0, "max": 9, "step": 1}, "b": {"values": [1, 2, 3]}}
        )

        assert len(generator) == 30
        assert generator.names == ["a", "b"]

    def test_should_refuse_spaces_above_the_ceiling(self) -> None:
        ranges = {"a": {"min": 0, "max": 99, "step": 1}, "b": {"min": 0, "max": 99, "step": 1}}

        with pytest.raises(ConfigurationError, match="10000 combinations"):
            ParameterSpaceGenerator(ranges, max_combinations=9999)

    def test_should_accept_space_exactly_at_the_ceiling(self) -> None:
        ranges = {"a": {"min": 0, "max": 99, "step": 1}, "b": {"min": 0, "max": 99, "step": 1}}

        assert len(ParameterSpaceGenerator(ranges, max_combinations=10000)) == 10000

    def test_should_produce_single_empty_combination_without_ranges(self) -> None:
        assert generate_parameter_combinations({}) == [{}]
