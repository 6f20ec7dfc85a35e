"""
Strategy interface definition.

A strategy is a capability with one operation, ``evaluate(context)``, that
returns the signals for the current bar. It may complete synchronously or
return an awaitable; the engine awaits both uniformly.
"""

import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from src.core.models.market import BarContext, Signal

SignalBatch = Iterable[Signal | Mapping[str, Any]] | None
StrategyOutput = SignalBatch | Awaitable[SignalBatch]
StrategyCallable = Callable[[BarContext], StrategyOutput]


class IStrategy(ABC):
    """Abstract interface for trading strategies."""

    def initialize(self, params: Mapping[str, Any]) -> None:
        """Called once at the start of every backtest, before the first bar."""
        return None

    @abstractmethod
    def evaluate(self, context: BarContext) -> StrategyOutput:
        """Return zero or more signals for the bar described by ``context``."""
        pass

    @property
    def name(self) -> str:
        """Human-readable strategy name."""
        return type(self).__name__


class FunctionStrategy(IStrategy):
    """Adapts a plain (sync or async) callable to the strategy interface."""

    def __init__(self, func: StrategyCallable) -> None:
        if not callable(func):
            raise TypeError(f"Strategy must be callable, got {type(func).__name__}")
        self._func = func

    def evaluate(self, context: BarContext) -> StrategyOutput:
        return self._func(context)

    @property
    def name(self) -> str:
        return getattr(self._func, "__name__", type(self._func).__name__)


def is_strategy(value: Any) -> bool:
    """Check if a value can act as a strategy."""
    return isinstance(value, IStrategy) or callable(value)


def as_strategy(value: IStrategy | StrategyCallable) -> IStrategy:
    """Normalise a strategy instance or callable to ``IStrategy``."""
    if isinstance(value, IStrategy):
        return value
    return FunctionStrategy(value)


async def resolve_signals(output: StrategyOutput) -> list[Signal | Mapping[str, Any]]:
    """Await the strategy output if needed and materialise it as a list."""
    if inspect.isawaitable(output):
        output = await output
    if output is None:
        return []
    if isinstance(output, Signal | Mapping):
        return [output]
    return list(output)
