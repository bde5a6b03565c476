"""
Per-line GST computation.

Turns a LineInput and a resolved TaxClassification into an InvoiceLine with
its taxable value and CGST/SGST or IGST split.
"""
from __future__ import annotations
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional
from loguru import logger

from ..errors import ValidationError
from ..models import InvoiceLine, LineInput, TaxClassification
from ..money import MAX_AMOUNT, CurrencyRounder, default_rounder, to_decimal
from .policy import validate_gst_rate

HUNDRED = Decimal(100)
TWO = Decimal(2)


@dataclass(frozen=True)
class LineTaxComponents:
    """
    Tax heads of one line before the final per-head rounding.

    ``taxable_value`` and ``tax_amount`` are already rounded to paise; the
    CGST/SGST halves are kept unrounded so an invoice can sum them exactly and
    round once.
    """
    taxable_value: Decimal
    tax_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal


def validate_line_input(line: LineInput) -> None:
    """Raise ValidationError for a quantity, rate or GST rate out of range."""
    qty = line.quantity
    if isinstance(qty, bool) or not isinstance(qty, int):
        raise ValidationError(f"Quantity must be a whole number, got {qty!r}")
    if qty <= 0:
        raise ValidationError(f"Quantity must be positive, got {qty}")

    rate = line.unit_rate
    if rate is None or math.isnan(rate) or math.isinf(rate):
        raise ValidationError(f"Unit rate must be a finite number, got {rate!r}")
    if rate < 0:
        raise ValidationError(f"Unit rate must be non-negative, got {rate}")
    if to_decimal(qty) * to_decimal(rate) > MAX_AMOUNT:
        raise ValidationError(f"Line value {qty} x {rate} exceeds the largest invoice amount")

    if line.gst_rate is not None:
        validate_gst_rate(line.gst_rate)


def line_tax_components(
    quantity: int,
    unit_rate: float,
    gst_rate: float,
    classification: TaxClassification,
    rounder: CurrencyRounder = default_rounder,
) -> LineTaxComponents:
    taxable = rounder.round_decimal(to_decimal(quantity) * to_decimal(unit_rate))
    tax_amount = rounder.round_decimal(taxable * to_decimal(gst_rate) / HUNDRED)

    zero = Decimal(0)
    classification = TaxClassification(classification)
    if classification is TaxClassification.EXEMPT:
        return LineTaxComponents(taxable, zero, zero, zero, zero)
    if classification is TaxClassification.INTRA_STATE:
        half = tax_amount / TWO
        return LineTaxComponents(taxable, tax_amount, half, half, zero)
    return LineTaxComponents(taxable, tax_amount, zero, zero, tax_amount)


def compute_line(
    line: LineInput,
    classification: TaxClassification,
    rounder: CurrencyRounder = default_rounder,
    gst_rate: Optional[float] = None,
) -> InvoiceLine:
    """
    Compute the taxable value and GST split of one line.

    ``gst_rate`` overrides the rate on the line; one of the two must be set
    (the aggregator resolves missing rates through GstRatePolicy first).

    For intra-state lines CGST and SGST each round half of the tax amount on
    their own, so they are always equal even when the tax has an odd paisa.

    Raises:
        ValidationError: invalid quantity, unit rate or GST rate.
    """
    validate_line_input(line)
    classification = TaxClassification(classification)
    rate = gst_rate if gst_rate is not None else line.gst_rate
    if rate is None:
        raise ValidationError("GST rate is required; resolve it through a GstRatePolicy")
    rate = validate_gst_rate(rate)

    parts = line_tax_components(line.quantity, line.unit_rate, rate, classification, rounder)
    cgst = rounder.round_decimal(parts.cgst)
    sgst = rounder.round_decimal(parts.sgst)
    igst = rounder.round_decimal(parts.igst)
    line_total = rounder.round_decimal(parts.taxable_value + cgst + sgst + igst)

    logger.debug(
        f"Line {line.description or '<no description>'}: taxable={parts.taxable_value} "
        f"cgst={cgst} sgst={sgst} igst={igst} ({classification.value})"
    )

    return InvoiceLine(
        description=line.description,
        hsn_code=line.hsn_code,
        quantity=line.quantity,
        unit_rate=line.unit_rate,
        gst_rate=rate,
        taxable_value=float(parts.taxable_value),
        cgst=float(cgst),
        sgst=float(sgst),
        igst=float(igst),
        line_total=float(line_total),
    )
