"""
In-process invoice store.

Thread-safe: one re-entrant lock serializes transactions, and a failed
transaction restores the snapshot taken when it started.
"""
from __future__ import annotations
import threading
from contextlib import contextmanager
from datetime import date
from typing import Generator

from ..errors import DuplicateInvoiceError
from ..models import Invoice, Payment, PaymentStatus


class InMemoryInvoiceStore:

    def __init__(self):
        self._lock = threading.RLock()
        self._invoices: dict[str, Invoice] = {}
        self._payments: list[Payment] = []
        self._depth = 0

    @contextmanager
    def transaction(self) -> Generator:
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                snapshot = (dict(self._invoices), list(self._payments))
            self._depth += 1
            try:
                yield
            except BaseException:
                if outermost:
                    self._invoices, self._payments = snapshot
                raise
            finally:
                self._depth -= 1

    def insert_invoice(self, invoice: Invoice) -> Invoice:
        with self._lock:
            if invoice.id in self._invoices:
                raise DuplicateInvoiceError(f"Invoice {invoice.id} already exists")
            self._invoices[invoice.id] = invoice.model_copy(deep=True)
            return invoice

    def get_invoice(self, invoice_id: str) -> Invoice | None:
        with self._lock:
            invoice = self._invoices.get(invoice_id)
            return invoice.model_copy(deep=True) if invoice else None

    def get_invoice_for_update(self, invoice_id: str) -> Invoice | None:
        # the caller already holds the lock through transaction()
        return self.get_invoice(invoice_id)

    def insert_payment(self, payment: Payment) -> Payment:
        with self._lock:
            self._payments.append(payment)
            return payment

    def update_settlement(
        self, invoice_id: str, payment_received: float, payment_status: PaymentStatus
    ) -> None:
        with self._lock:
            invoice = self._invoices[invoice_id]
            self._invoices[invoice_id] = invoice.model_copy(
                update={"payment_received": payment_received, "payment_status": payment_status}
            )

    def list_payments(self, invoice_id: str) -> list[Payment]:
        with self._lock:
            return [p for p in self._payments if p.invoice_id == invoice_id]

    def list_overdue_candidates(self, today: date) -> list[str]:
        with self._lock:
            rows = [
                inv for inv in self._invoices.values()
                if inv.is_overdue_candidate(today)
            ]
            return [inv.id for inv in sorted(rows, key=lambda inv: inv.due_date)]

    def mark_overdue(self, invoice_id: str, today: date) -> bool:
        with self._lock:
            invoice = self._invoices.get(invoice_id)
            if invoice is None or not invoice.is_overdue_candidate(today):
                return False
            self._invoices[invoice_id] = invoice.model_copy(
                update={"payment_status": PaymentStatus.OVERDUE}
            )
            return True

    def close(self) -> None:
        pass
