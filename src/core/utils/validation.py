"""
Validation utilities for core domain models.

Provides consistent validation across the application.
"""

import math
from collections.abc import Iterable
from typing import Any

from src.core.exceptions.backtest import BacktestException, ValidationError


def validate_finite(
    value: Any, param_name: str, error_cls: type[BacktestException] = ValidationError
) -> float:
    """Validate that a value is a finite real number.

    Args:
        value: Value to validate
        param_name: Parameter name for error messages
        error_cls: Exception type raised on failure

    Returns:
        The value converted to float

    Raises:
        error_cls: If value is not numeric, NaN or infinite
    """
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise error_cls(f"{param_name} must be a number, got {type(value).__name__}")
    if not math.isfinite(value):
        raise error_cls(f"{param_name} must be finite, got {value}")
    return float(value)


def validate_positive(
    value: float, param_name: str, error_cls: type[BacktestException] = ValidationError
) -> float:
    """Validate that a numeric value is positive.

    Args:
        value: Value to validate
        param_name: Parameter name for error messages
        error_cls: Exception type raised on failure

    Returns:
        The validated value

    Raises:
        error_cls: If value is not positive
    """
    value = validate_finite(value, param_name, error_cls)
    if value <= 0:
        raise error_cls(f"{param_name} must be positive, got {value}")
    return value


def validate_non_negative(
    value: float, param_name: str, error_cls: type[BacktestException] = ValidationError
) -> float:
    """Validate that a numeric value is zero or positive."""
    value = validate_finite(value, param_name, error_cls)
    if value < 0:
        raise error_cls(f"{param_name} must be non-negative, got {value}")
    return value


def validate_rate(
    rate: float, param_name: str = "rate", error_cls: type[BacktestException] = ValidationError
) -> float:
    """Validate that a fractional rate is within [0, 1).

    Args:
        rate: Rate to validate
        param_name: Parameter name for error messages
        error_cls: Exception type raised on failure

    Returns:
        The validated rate

    Raises:
        error_cls: If rate is negative or not below 1
    """
    rate = validate_non_negative(rate, param_name, error_cls)
    if rate >= 1:
        raise error_cls(f"{param_name} must be below 1, got {rate}")
    return rate


def validate_symbols(
    symbols: Any, error_cls: type[BacktestException] = ValidationError
) -> tuple[str, ...]:
    """Validate and normalise a collection of symbols.

    Order is preserved and duplicates are dropped.

    Raises:
        error_cls: If symbols is empty or holds non-string / blank entries
    """
    if isinstance(symbols, str):
        symbols = [symbols]
    if not isinstance(symbols, Iterable):
        raise error_cls(f"symbols must be a collection, got {type(symbols).__name__}")

    normalised: list[str] = []
    for symbol in symbols:
        if not isinstance(symbol, str) or not symbol.strip():
            raise error_cls(f"Invalid symbol: {symbol!r}")
        if symbol not in normalised:
            normalised.append(symbol)

    if not normalised:
        raise error_cls("At least one symbol is required")
    return tuple(normalised)
