"""
GST computation: region classification, per-line tax, invoice aggregation
and proportional re-distribution for exports.
"""

from .aggregate import aggregate_invoice
from .classifier import classify, normalize_jurisdiction, region_for_customer
from .line import compute_line, line_tax_components, validate_line_input
from .policy import ALLOWED_GST_RATES, GstRatePolicy, gst_rate_label, validate_gst_rate
from .redistribute import (
    build_export_rows,
    build_export_rows_for_invoices,
    redistribute,
    summarize_export_rows,
)

__all__ = [
    "ALLOWED_GST_RATES",
    "GstRatePolicy",
    "aggregate_invoice",
    "build_export_rows",
    "build_export_rows_for_invoices",
    "classify",
    "compute_line",
    "gst_rate_label",
    "line_tax_components",
    "normalize_jurisdiction",
    "redistribute",
    "region_for_customer",
    "summarize_export_rows",
    "validate_gst_rate",
    "validate_line_input",
]
