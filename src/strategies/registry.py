"""Registry of built-in strategies addressable by name."""

from typing import Any

from src.core.exceptions.backtest import ConfigurationError
from src.core.interfaces.strategy import IStrategy
from src.strategies.builtin import BuyAndHold, RsiThreshold, SmaCrossover

STRATEGIES: dict[str, type[IStrategy]] = {
    "buy_and_hold": BuyAndHold,
    "sma_crossover": SmaCrossover,
    "rsi_threshold": RsiThreshold,
}


def create_strategy(name: str) -> IStrategy:
    """New instance of the named built-in strategy.

    Raises:
        ConfigurationError: If no strategy has that name
    """
    strategy_cls = STRATEGIES.get(name)
    if strategy_cls is None:
        raise ConfigurationError(
            f"Unknown strategy: {name}. Available: {', '.join(sorted(STRATEGIES))}"
        )
    return strategy_cls()


def available_strategies() -> list[dict[str, Any]]:
    """Name, description and default params of every built-in strategy."""
    return [
        {
            "name": name,
            "description": getattr(strategy_cls, "description", ""),
            "default_params": dict(getattr(strategy_cls, "default_params", {})),
        }
        for name, strategy_cls in STRATEGIES.items()
    ]
