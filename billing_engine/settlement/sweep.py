"""
Overdue sweep.

Batch job, triggered externally (cron), that marks invoices past their due
date with an open balance as overdue. Each invoice is updated in its own
transaction with a conditional write, so a concurrent payment that settles the
invoice is never overwritten. A failing row is logged and skipped.
"""
from __future__ import annotations
from datetime import date
from typing import Optional
from loguru import logger

from ..models import Invoice, SweepResult
from ..stores.base import InvoiceStore


def is_overdue_candidate(invoice: Invoice, today: date) -> bool:
    return invoice.is_overdue_candidate(today)


def sweep_overdue(store: InvoiceStore, today: Optional[date] = None) -> SweepResult:
    """Mark overdue invoices; returns how many were updated and how many failed."""
    today = today or date.today()
    candidates = store.list_overdue_candidates(today)
    logger.info(f"Overdue sweep for {today}: {len(candidates)} candidate invoices")

    updated = 0
    failed = 0
    for invoice_id in candidates:
        try:
            with store.transaction():
                if store.mark_overdue(invoice_id, today):
                    updated += 1
                else:
                    logger.debug(f"  Invoice {invoice_id} changed since selection, skipped")
        except Exception as e:
            failed += 1
            logger.error(f"  Failed to mark invoice {invoice_id} overdue: {e}")

    logger.info(f"Overdue sweep complete: {updated} marked overdue, {failed} failed")
    return SweepResult(updated_count=updated, failed_count=failed)
