"""
Parameter space expansion for grid-search optimization.

Expands an ordered map of parameter ranges into the Cartesian product of
their values, leftmost parameter varying slowest.
"""

import itertools
import math
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from src.core.constants import DEFAULT_MAX_COMBINATIONS, RANGE_EPSILON
from src.core.exceptions.backtest import ConfigurationError


@dataclass(frozen=True)
class ParameterRange:
    """Either an inclusive numeric range {min, max, step} or discrete {values}."""

    min: float | None = None
    max: float | None = None
    step: float | None = None
    values: tuple[Any, ...] | None = None

    def __post_init__(self) -> None:
        """Validate the range after initialization."""
        if self.values is not None:
            if any(v is not None for v in (self.min, self.max, self.step)):
                raise ConfigurationError("A range is either numeric or discrete, not both")
            object.__setattr__(self, "values", tuple(self.values))
            if not self.values:
                raise ConfigurationError("Discrete range must contain at least one value")
            return

        for name in ("min", "max", "step"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int | float):
                raise ConfigurationError(f"Numeric range requires a numeric {name}, got {value!r}")
            if not math.isfinite(value):
                raise ConfigurationError(f"Numeric range {name} must be finite, got {value}")
        if self.step <= 0:
            raise ConfigurationError(f"Range step must be positive, got {self.step}")
        if self.max < self.min:
            raise ConfigurationError(f"Range max {self.max} is below min {self.min}")

    @property
    def is_discrete(self) -> bool:
        """Check if the range lists explicit values."""
        return self.values is not None

    def __len__(self) -> int:
        if self.values is not None:
            return len(self.values)
        return int(math.floor((self.max - self.min) / self.step + RANGE_EPSILON)) + 1

    def expand(self) -> list[Any]:
        """Concrete values of the range, in order.

        Integer-only ranges yield ints; max is included only when it is
        reachable by a whole number of steps.
        """
        if self.values is not None:
            return list(self.values)

        integral = all(isinstance(v, int) for v in (self.min, self.max, self.step))
        if integral:
            return [self.min + i * self.step for i in range(len(self))]
        return [round(self.min + i * self.step, 10) for i in range(len(self))]

    @classmethod
    def numeric(cls, min: float, max: float, step: float) -> "ParameterRange":
        """Factory method for a numeric range."""
        return cls(min=min, max=max, step=step)

    @classmethod
    def discrete(cls, values: Sequence[Any]) -> "ParameterRange":
        """Factory method for a discrete range."""
        return cls(values=tuple(values))

    @classmethod
    def from_value(cls, value: "ParameterRange | Mapping[str, Any]") -> "ParameterRange":
        """Accept a range or a mapping such as ``{"min": 0, "max": 2, "step": 1}``."""
        if isinstance(value, ParameterRange):
            return value
        if not isinstance(value, Mapping):
            raise ConfigurationError(f"Invalid parameter range: {value!r}")
        if "values" in value:
            values = value["values"]
            if isinstance(values, str) or not isinstance(values, Sequence):
                raise ConfigurationError(f"Range values must be a list, got {values!r}")
            return cls.discrete(values)
        missing = [key for key in ("min", "max", "step") if key not in value]
        if missing:
            raise ConfigurationError(f"Numeric range is missing {', '.join(missing)}")
        return cls.numeric(value["min"], value["max"], value["step"])

    def to_dict(self) -> dict[str, Any]:
        """Convert range to dictionary."""
        if self.values is not None:
            return {"values": list(self.values)}
        return {"min": self.min, "max": self.max, "step": self.step}


class ParameterSpaceGenerator:
    """Deterministic, restartable sequence of concrete parameter sets.

    The total number of combinations is computed up front; spaces larger than
    ``max_combinations`` are refused before any value is produced.
    """

    def __init__(
        self,
        param_ranges: Mapping[str, ParameterRange | Mapping[str, Any]],
        max_combinations: int = DEFAULT_MAX_COMBINATIONS,
    ) -> None:
        """Initialize the generator.

        Raises:
            ConfigurationError: If a range is invalid or the space is too large
        """
        self._names = list(param_ranges.keys())
        self._ranges = [ParameterRange.from_value(param_ranges[name]) for name in self._names]
        self.max_combinations = max_combinations

        self.total = math.prod(len(r) for r in self._ranges)
        if self.total > max_combinations:
            raise ConfigurationError(
                f"Parameter space has {self.total} combinations, "
                f"exceeding the limit of {max_combinations}"
            )
        self._values = [r.expand() for r in self._ranges]

    @property
    def names(self) -> list[str]:
        """Parameter names in iteration order."""
        return list(self._names)

    def __len__(self) -> int:
        return self.total

    def __iter__(self) -> Iterator[dict[str, Any]]:
        for combo in itertools.product(*self._values):
            yield dict(zip(self._names, combo, strict=True))


def generate_parameter_combinations(
    param_ranges: Mapping[str, ParameterRange | Mapping[str, Any]],
    max_combinations: int = DEFAULT_MAX_COMBINATIONS,
) -> list[dict[str, Any]]:
    """Expand parameter ranges into the full ordered list of combinations."""
    return list(ParameterSpaceGenerator(param_ranges, max_combinations))
