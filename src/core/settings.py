"""
Engine settings.

Defaults come from ``src.core.constants``; instances can be built from keyword
options or from ``BACKTEST_*`` environment variables.
"""

import os
from collections.abc import Mapping
from dataclasses import dataclass, fields
from typing import Any

from src.core.constants import (
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CACHE_TTL_MS,
    DEFAULT_COMMISSION_RATE,
    DEFAULT_MAX_COMBINATIONS,
    DEFAULT_MAX_HISTORY_SIZE,
    DEFAULT_RANKING_METRIC,
    DEFAULT_SLIPPAGE_RATE,
    DEFAULT_TOP_RESULTS,
    SETTINGS_ENV_PREFIX,
)
from src.core.exceptions.backtest import ConfigurationError
from src.core.utils.validation import validate_positive, validate_rate

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class EngineSettings:
    """Tunable options recognised by the engine, optimizer and service."""

    commission_rate: float = DEFAULT_COMMISSION_RATE
    slippage_rate: float = DEFAULT_SLIPPAGE_RATE
    max_combinations: int = DEFAULT_MAX_COMBINATIONS
    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    cache_max_entries: int = DEFAULT_CACHE_MAX_ENTRIES
    top_results: int = DEFAULT_TOP_RESULTS
    ranking_metric: str = DEFAULT_RANKING_METRIC
    max_history_size: int = DEFAULT_MAX_HISTORY_SIZE
    enable_cache: bool = True
    enable_optimization: bool = True

    def __post_init__(self) -> None:
        """Validate option values."""
        validate_rate(self.commission_rate, "commission_rate", ConfigurationError)
        validate_rate(self.slippage_rate, "slippage_rate", ConfigurationError)
        for name in ("max_combinations", "cache_ttl_ms", "cache_max_entries", "top_results"):
            validate_positive(getattr(self, name), name, ConfigurationError)
        if self.max_history_size < 0:
            raise ConfigurationError(
                f"max_history_size must be non-negative, got {self.max_history_size}"
            )
        if not self.ranking_metric:
            raise ConfigurationError("ranking_metric must not be empty")

    @property
    def cache_ttl_seconds(self) -> float:
        """Cache TTL expressed in seconds."""
        return self.cache_ttl_ms / 1000.0

    @classmethod
    def from_options(cls, options: Mapping[str, Any] | None = None, **overrides: Any) -> "EngineSettings":
        """Build settings from an options mapping, ignoring ``None`` values.

        Raises:
            ConfigurationError: If an option is unknown or invalid
        """
        merged = {**(options or {}), **overrides}
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(merged) - known)
        if unknown:
            raise ConfigurationError(f"Unknown settings: {', '.join(unknown)}")
        return cls(**{k: v for k, v in merged.items() if v is not None})

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, prefix: str = SETTINGS_ENV_PREFIX
    ) -> "EngineSettings":
        """Build settings from environment variables such as ``BACKTEST_COMMISSION_RATE``."""
        environ = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for f in fields(cls):
            raw = environ.get(f"{prefix}{f.name.upper()}")
            if raw is None:
                continue
            values[f.name] = _coerce(f.name, raw, f.default)
        return cls(**values)


def _coerce(name: str, raw: str, default: Any) -> Any:
    """Convert an environment string to the type of the field default."""
    try:
        if isinstance(default, bool):
            lowered = raw.strip().lower()
            if lowered in _TRUE_VALUES:
                return True
            if lowered in _FALSE_VALUES:
                return False
            raise ValueError(raw)
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
        return raw
    except ValueError as e:
        raise ConfigurationError(f"Invalid value for {name}: {raw!r}") from e
