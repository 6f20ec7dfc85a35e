"""
Utility decorators for input validation and common functionality.
"""

import functools
import inspect
from collections.abc import Callable
from typing import Any, TypeVar

from src.core.exceptions.backtest import ValidationError
from src.core.utils.validation import validate_positive

# Parameters checked by ``validate_inputs`` when present in a signature
_POSITIVE_PARAMS = ("size", "effective_price", "price")
_NON_NEGATIVE_PARAMS = ("commission",)

F = TypeVar("F", bound=Callable[..., Any])


def _validate_fill_parameter(param_name: str, value: Any) -> None:
    """Validate a single fill parameter."""
    if value is None:
        return

    if param_name == "symbol":
        if not isinstance(value, str) or not value:
            raise ValidationError(f"Invalid symbol: {value!r}")

    elif param_name in _POSITIVE_PARAMS:
        validate_positive(value, param_name)

    elif param_name in _NON_NEGATIVE_PARAMS:
        if isinstance(value, bool) or not isinstance(value, int | float) or value < 0:
            raise ValidationError(f"{param_name} must be non-negative, got {value}")


def _bind_arguments(
    func: Callable[..., Any], args: tuple[Any, ...], kwargs: dict[str, Any]
) -> inspect.BoundArguments:
    sig = inspect.signature(func)
    bound_args = sig.bind(*args, **kwargs)
    bound_args.apply_defaults()
    return bound_args


def validate_inputs(func: F) -> F:
    """Decorator to validate fill inputs (symbol, size, price, commission)."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        bound_args = _bind_arguments(func, args, kwargs)
        for param_name, value in bound_args.arguments.items():
            if param_name != "self":
                _validate_fill_parameter(param_name, value)
        return func(*bound_args.args, **bound_args.kwargs)

    return wrapper  # type: ignore


def _serialize_parameter_value(value: Any) -> Any:
    """Serialize parameter value for logging."""
    if hasattr(value, "value"):
        return str(value.value)  # Handle enum values
    elif hasattr(value, "isoformat"):
        return value.isoformat()
    else:
        return value


def log_fills(func: F) -> F:
    """Decorator to log ledger fill operations and their outcome at debug level."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        from loguru import logger

        bound_args = _bind_arguments(func, args, kwargs)
        context = {
            name: _serialize_parameter_value(value)
            for name, value in bound_args.arguments.items()
            if name in ("symbol", "size", "effective_price", "commission")
        }

        result = func(*args, **kwargs)
        if result is None:
            logger.debug(f"Fill rejected: {func.__name__} {context}")
        else:
            logger.debug(
                f"Fill applied: {func.__name__} {context} "
                f"filled={result.filled_size} clipped={result.clipped}"
            )
        return result

    return wrapper  # type: ignore
