"""
Proportional tax re-distribution for GST reports and exports.

The persisted invoice-level CGST/SGST/IGST are authoritative; each line gets
its share in proportion to its taxable value. Independent rounding of shares
means per-line sums can drift from the invoice heads by up to
(number_of_lines - 1) paise per head. That drift is accepted unless
``balance_last_line`` asks for an exact split.
"""
from __future__ import annotations
from collections import defaultdict
from datetime import date
from decimal import ROUND_FLOOR, Decimal
from typing import Iterable, Mapping, Optional

from ..models import Customer, ExportRow, ExportSummary, Invoice, InvoiceLine, SummaryBucket
from ..money import CurrencyRounder, default_rounder, to_decimal

TAX_HEADS = ("cgst", "sgst", "igst")


def redistribute(
    invoice: Invoice,
    rounder: CurrencyRounder = default_rounder,
    balance_last_line: bool = False,
) -> list[InvoiceLine]:
    """
    Re-derive per-line tax heads from the invoice totals.

    With ``balance_last_line`` each head is split by largest remainder: every
    line gets its share rounded down to the paisa and the leftover paise go to
    the lines with the largest dropped fractions (the later line on a tie). The
    lines then sum exactly to the invoice head, no share is negative, and a
    zero-value line carries no tax.
    """
    if not invoice.lines:
        return []

    subtotal = to_decimal(invoice.subtotal)
    heads = {head: to_decimal(getattr(invoice, head)) for head in TAX_HEADS}
    weights = [to_decimal(line.taxable_value) for line in invoice.lines]

    if balance_last_line and subtotal:
        shares = {
            head: _allocate(amount, weights, subtotal, rounder) for head, amount in heads.items()
        }
    else:
        shares = {
            head: [
                rounder.round_decimal(amount * w / subtotal) if subtotal else Decimal(0)
                for w in weights
            ]
            for head, amount in heads.items()
        }

    return [
        _with_tax(line, {head: shares[head][i] for head in TAX_HEADS}, rounder)
        for i, line in enumerate(invoice.lines)
    ]


def _allocate(
    amount: Decimal, weights: list[Decimal], total: Decimal, rounder: CurrencyRounder
) -> list[Decimal]:
    quantum = rounder.quantum
    amount = rounder.round_decimal(amount)
    exact = [amount * w / total for w in weights]
    allocated = [e.quantize(quantum, rounding=ROUND_FLOOR) for e in exact]
    leftover = int((amount - sum(allocated, Decimal(0))) / quantum)
    by_fraction = sorted(
        range(len(exact)), key=lambda i: (exact[i] - allocated[i], i), reverse=True
    )
    for i in by_fraction[:leftover]:
        allocated[i] += quantum
    return allocated


def _with_tax(line: InvoiceLine, values: dict, rounder: CurrencyRounder) -> InvoiceLine:
    taxable = to_decimal(line.taxable_value)
    line_total = rounder.round_decimal(taxable + sum(values.values(), Decimal(0)))
    return line.model_copy(
        update={
            "cgst": float(values["cgst"]),
            "sgst": float(values["sgst"]),
            "igst": float(values["igst"]),
            "line_total": float(line_total),
        }
    )


def format_export_date(d: date) -> str:
    return d.strftime("%d/%m/%Y")


def build_export_rows(
    invoice: Invoice,
    customer: Optional[Customer] = None,
    invoice_number: Optional[str] = None,
    default_hsn_code: Optional[str] = None,
    rounder: CurrencyRounder = default_rounder,
    balance_last_line: bool = False,
) -> list[ExportRow]:
    """
    Flatten an invoice into one export row per line.

    Tax columns come from ``redistribute`` so the rows always reconcile to the
    stored invoice (within the documented drift).
    """
    lines = redistribute(invoice, rounder, balance_last_line=balance_last_line)
    rows = []
    for line in lines:
        rows.append(
            ExportRow(
                invoice_number=invoice_number or invoice.id,
                invoice_date=format_export_date(invoice.invoice_date),
                customer_name=customer.name if customer else "Unknown Customer",
                customer_gstin=customer.gstin if customer else None,
                description=line.description,
                hsn_code=line.hsn_code or default_hsn_code,
                quantity=line.quantity,
                rate=line.unit_rate,
                taxable_value=line.taxable_value,
                gst_rate=line.gst_rate,
                cgst=line.cgst,
                sgst=line.sgst,
                igst=line.igst,
                total_amount=line.line_total,
            )
        )
    return rows


def build_export_rows_for_invoices(
    invoices: Iterable[Invoice],
    customers: Optional[Mapping[str, Customer]] = None,
    invoice_numbers: Optional[Mapping[str, str]] = None,
    default_hsn_code: Optional[str] = None,
    rounder: CurrencyRounder = default_rounder,
    balance_last_line: bool = False,
) -> list[ExportRow]:
    customers = customers or {}
    invoice_numbers = invoice_numbers or {}
    rows: list[ExportRow] = []
    for invoice in invoices:
        rows.extend(
            build_export_rows(
                invoice,
                customers.get(invoice.customer_id),
                invoice_numbers.get(invoice.id),
                default_hsn_code=default_hsn_code,
                rounder=rounder,
                balance_last_line=balance_last_line,
            )
        )
    return rows


def summarize_export_rows(
    rows: Iterable[ExportRow],
    rounder: CurrencyRounder = default_rounder,
) -> ExportSummary:
    """
    Totals over export rows with per-GST-rate and per-HSN breakdowns.

    Sums are exact and every figure is rounded once at the end.
    """
    rows = list(rows)
    totals = defaultdict(Decimal)
    by_rate: dict[float, dict] = defaultdict(lambda: {"count": 0, "taxable": Decimal(0), "tax": Decimal(0)})
    by_hsn: dict[str, dict] = defaultdict(lambda: {"count": 0, "taxable": Decimal(0), "tax": Decimal(0)})

    for row in rows:
        tax = to_decimal(row.cgst) + to_decimal(row.sgst) + to_decimal(row.igst)
        totals["taxable"] += to_decimal(row.taxable_value)
        totals["cgst"] += to_decimal(row.cgst)
        totals["sgst"] += to_decimal(row.sgst)
        totals["igst"] += to_decimal(row.igst)
        totals["amount"] += to_decimal(row.total_amount)

        for bucket in (by_rate[row.gst_rate], by_hsn[row.hsn_code or "No HSN"]):
            bucket["count"] += 1
            bucket["taxable"] += to_decimal(row.taxable_value)
            bucket["tax"] += tax

    def _bucket(data: dict) -> SummaryBucket:
        return SummaryBucket(
            count=data["count"],
            taxable_value=rounder.round2(data["taxable"]),
            tax_amount=rounder.round2(data["tax"]),
        )

    return ExportSummary(
        total_invoices=len({row.invoice_number for row in rows}),
        total_items=len(rows),
        total_taxable_value=rounder.round2(totals["taxable"]),
        total_cgst=rounder.round2(totals["cgst"]),
        total_sgst=rounder.round2(totals["sgst"]),
        total_igst=rounder.round2(totals["igst"]),
        total_amount=rounder.round2(totals["amount"]),
        gst_rate_breakdown={rate: _bucket(data) for rate, data in by_rate.items()},
        hsn_breakdown={hsn: _bucket(data) for hsn, data in by_hsn.items()},
    )
