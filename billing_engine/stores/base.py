from __future__ import annotations
from datetime import date
from typing import ContextManager, Protocol

from ..models import Invoice, Payment, PaymentStatus


class InvoiceStore(Protocol):
    """
    Datastore collaborator for invoices and the payment ledger.

    Reads and writes made inside ``transaction()`` commit together or not at
    all. ``get_invoice_for_update`` must block concurrent writers on the same
    invoice until the transaction ends.
    """

    def transaction(self) -> ContextManager: ...
    def insert_invoice(self, invoice: Invoice) -> Invoice: ...
    def get_invoice(self, invoice_id: str) -> Invoice | None: ...
    def get_invoice_for_update(self, invoice_id: str) -> Invoice | None: ...
    def insert_payment(self, payment: Payment) -> Payment: ...
    def update_settlement(
        self, invoice_id: str, payment_received: float, payment_status: PaymentStatus
    ) -> None: ...
    def list_payments(self, invoice_id: str) -> list[Payment]: ...
    def list_overdue_candidates(self, today: date) -> list[str]: ...
    def mark_overdue(self, invoice_id: str, today: date) -> bool: ...
    def close(self) -> None: ...
