"""
Currency rounding.

Every monetary value that is stored, compared or displayed goes through a
CurrencyRounder so all components share the same rounding semantics.
"""
from __future__ import annotations
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable

from .errors import ValidationError

CENT = Decimal("0.01")
# Largest amount a NUMERIC(14,2) column holds
MAX_AMOUNT = Decimal("999999999999.99")


def to_decimal(value: float | int | str | Decimal) -> Decimal:
    """
    Convert a number to Decimal using its shortest repr.

    Going through repr() means 2.675 becomes Decimal("2.675") rather than the
    binary approximation 2.67499999..., so half-cent values round up as written.
    """
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise TypeError("bool is not a monetary value")
    return Decimal(repr(value)) if isinstance(value, float) else Decimal(value)


class CurrencyRounder:
    """
    Rounds monetary amounts to exactly 2 decimal places.

    Rounding is half away from zero on Decimal values, which removes float
    accumulation drift such as 0.1 + 0.2.
    """

    def __init__(self, places: int = 2):
        self.places = places
        self.quantum = Decimal(1).scaleb(-places)

    def round_decimal(self, value: float | int | str | Decimal) -> Decimal:
        try:
            return to_decimal(value).quantize(self.quantum, rounding=ROUND_HALF_UP)
        except InvalidOperation as e:
            raise ValidationError(f"Amount {value!r} cannot be represented in currency") from e

    def round2(self, value: float | int | str | Decimal) -> float:
        """Round to 2 decimals and return a float."""
        return float(self.round_decimal(value))

    def total(self, values: Iterable[float | Decimal]) -> float:
        """Sum exactly, then round once."""
        return self.round2(sum((to_decimal(v) for v in values), Decimal(0)))


default_rounder = CurrencyRounder()


def round2(value: float | int | str | Decimal) -> float:
    """Round a monetary value to 2 decimals with the default rounder."""
    return default_rounder.round2(value)
