"""
GST rate policy.

Holds the default rate applied when a line carries none, and the list of
standard GST slabs. The default is an explicit business setting, never zero by
accident.
"""
from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Optional
from loguru import logger

from ..errors import ValidationError

# Standard GST slabs under Indian tax law
ALLOWED_GST_RATES = (0.0, 0.25, 3.0, 5.0, 12.0, 18.0, 28.0)

_RATE_LABELS = {
    0.0: "Exempt",
    0.25: "Precious stones",
    3.0: "Gold/Silver",
    5.0: "Essential goods",
    12.0: "Standard",
    18.0: "Standard",
    28.0: "Luxury",
}


def _fmt_rate(rate: float) -> str:
    return f"{rate:g}%"


def gst_rate_label(rate: float) -> str:
    """Display name for a GST rate, e.g. '18% (Standard)' or '7.5% (Custom)'."""
    label = _RATE_LABELS.get(float(rate), "Custom")
    return f"{_fmt_rate(rate)} ({label})"


def validate_gst_rate(rate: float) -> float:
    """Reject rates outside [0, 100]; return the rate as float."""
    if rate is None or isinstance(rate, bool):
        raise ValidationError("GST rate is required")
    rate = float(rate)
    if math.isnan(rate) or not 0 <= rate <= 100:
        raise ValidationError(f"GST rate must be between 0 and 100, got {rate}")
    return rate


@dataclass(frozen=True)
class GstRatePolicy:
    """Resolves the GST rate of a line, applying the default when none is given."""

    default_rate: float = 18.0
    standard_rates: tuple[float, ...] = ALLOWED_GST_RATES

    def __post_init__(self):
        validate_gst_rate(self.default_rate)

    @classmethod
    def from_config(cls, config) -> "GstRatePolicy":
        return cls(default_rate=config.default_gst_rate)

    def is_standard(self, rate: float) -> bool:
        return float(rate) in self.standard_rates

    def resolve(self, rate: Optional[float]) -> float:
        """
        Return the effective rate for a line.

        None falls back to the default rate. Non-standard rates inside [0, 100]
        are accepted with a warning.
        """
        if rate is None:
            logger.debug(f"No GST rate on line, applying default {_fmt_rate(self.default_rate)}")
            return float(self.default_rate)

        rate = validate_gst_rate(rate)
        if not self.is_standard(rate):
            logger.warning(
                f"Non-standard GST rate used: {_fmt_rate(rate)}. "
                f"Standard rates are: {', '.join(_fmt_rate(r) for r in self.standard_rates)}"
            )
        return rate
