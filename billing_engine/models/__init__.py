"""
Data models for the billing engine.

Pydantic records passed between the tax, settlement and store layers, plus the
PostgreSQL schema used by the Postgres store.
"""
from pathlib import Path

from .records import (
    Customer,
    ExportRow,
    ExportSummary,
    Invoice,
    InvoiceLine,
    InvoiceTotals,
    LineInput,
    Outlet,
    Payment,
    PaymentMethod,
    PaymentStatus,
    SummaryBucket,
    SweepResult,
    TaxClassification,
    TaxRegion,
)

# Path to schema file
SCHEMA_FILE = Path(__file__).parent / "schema.sql"


def get_schema_sql(schema: str = "billing") -> str:
    """Get the full schema SQL for the given database schema name."""
    return SCHEMA_FILE.read_text(encoding="utf-8").replace("{schema}", schema)


__all__ = [
    "Customer",
    "ExportRow",
    "ExportSummary",
    "Invoice",
    "InvoiceLine",
    "InvoiceTotals",
    "LineInput",
    "Outlet",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "SummaryBucket",
    "SweepResult",
    "TaxClassification",
    "TaxRegion",
    "SCHEMA_FILE",
    "get_schema_sql",
]
