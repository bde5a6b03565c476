"""
Invoice aggregation.

Folds the lines of an invoice into its taxable value, CGST, SGST, IGST and
grand total.
"""
from __future__ import annotations
from decimal import Decimal
from typing import Optional, Sequence
from loguru import logger

from ..models import InvoiceTotals, LineInput, TaxClassification
from ..money import CurrencyRounder, default_rounder
from .line import compute_line, line_tax_components
from .policy import GstRatePolicy


def aggregate_invoice(
    lines: Sequence[LineInput],
    classification: TaxClassification,
    policy: Optional[GstRatePolicy] = None,
    rounder: CurrencyRounder = default_rounder,
) -> InvoiceTotals:
    """
    Compute every line and the invoice totals.

    Lines without a GST rate get ``policy.default_rate``. The four aggregate
    heads are summed exactly (Decimal, before the per-line head rounding) and
    rounded once at the end, so the result does not depend on line order.
    An empty list gives a zero-valued draft.

    Raises:
        ValidationError: any line is invalid; nothing is returned in that case.
    """
    policy = policy or GstRatePolicy()
    classification = TaxClassification(classification)

    computed = []
    subtotal = cgst = sgst = igst = Decimal(0)

    for line in lines:
        rate = policy.resolve(line.gst_rate)
        computed.append(compute_line(line, classification, rounder, gst_rate=rate))

        parts = line_tax_components(line.quantity, line.unit_rate, rate, classification, rounder)
        subtotal += parts.taxable_value
        cgst += parts.cgst
        sgst += parts.sgst
        igst += parts.igst

    subtotal_r = rounder.round_decimal(subtotal)
    cgst_r = rounder.round_decimal(cgst)
    sgst_r = rounder.round_decimal(sgst)
    igst_r = rounder.round_decimal(igst)
    total = rounder.round_decimal(subtotal_r + cgst_r + sgst_r + igst_r)

    if not computed:
        logger.debug("Aggregated empty line list into a draft invoice")

    return InvoiceTotals(
        subtotal=float(subtotal_r),
        cgst=float(cgst_r),
        sgst=float(sgst_r),
        igst=float(igst_r),
        total_amount=float(total),
        lines=computed,
    )
