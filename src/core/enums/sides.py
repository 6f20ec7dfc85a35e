"""
Order side enumerations.

This module defines the sides a strategy signal can take.
"""

from enum import StrEnum


class Side(StrEnum):
    """
    Allowed signal sides.

    The engine is long-only: a buy opens or grows a position and a
    sell reduces or closes it.
    """

    BUY = "buy"
    SELL = "sell"

    @property
    def is_buy(self) -> bool:
        """Check if side is a buy."""
        return self == self.BUY

    @property
    def is_sell(self) -> bool:
        """Check if side is a sell."""
        return self == self.SELL

    def opposite(self) -> "Side":
        """Get the opposite side."""
        return self.SELL if self.is_buy else self.BUY  # type: ignore[return-value]

    @classmethod
    def from_string(cls, value: str) -> "Side":
        """
        Convert string to Side enum, with case-insensitive matching.

        Args:
            value: String representation of the side

        Returns:
            Corresponding Side enum value

        Raises:
            ValueError: If side is not supported
        """
        value_lower = str(value).strip().lower()
        for side in cls:
            if side.value == value_lower:
                return side

        raise ValueError(
            f"Unsupported side: {value}. Supported sides: {', '.join([s.value for s in cls])}"
        )
