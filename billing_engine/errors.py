"""Exceptions raised by the billing engine."""
from __future__ import annotations


class BillingError(Exception):
    """Base class for all billing engine errors."""
    pass


class ValidationError(BillingError):
    """Raised when a line item, payment or setting fails validation."""
    pass


class IndeterminateJurisdiction(ValidationError):
    """Raised when the outlet or customer jurisdiction needed to classify tax is missing."""

    def __init__(self, outlet_jurisdiction: str | None, customer_jurisdiction: str | None):
        self.outlet_jurisdiction = outlet_jurisdiction
        self.customer_jurisdiction = customer_jurisdiction
        missing = []
        if not outlet_jurisdiction:
            missing.append("outlet")
        if not customer_jurisdiction:
            missing.append("customer")
        super().__init__(
            f"Cannot determine tax jurisdiction: {' and '.join(missing)} jurisdiction missing"
        )


class ExcessPaymentError(BillingError):
    """Raised when a payment would push the invoice beyond its total plus tolerance."""

    def __init__(self, amount: float, balance_due: float, tolerance: float):
        self.amount = amount
        self.balance_due = balance_due
        self.tolerance = tolerance
        super().__init__(
            f"Payment amount (₹{amount:.2f}) exceeds balance due (₹{balance_due:.2f})"
        )


class InvoiceNotFoundError(BillingError):
    """Raised when an operation references an invoice the store does not have."""
    pass


class DraftInvoiceError(BillingError):
    """Raised when a payment is recorded against an invoice with no lines."""
    pass


class StoreConflictError(BillingError):
    """Raised by a store when a transaction lost a race and may be retried."""
    pass


class DuplicateInvoiceError(BillingError):
    """Raised when an invoice id is already present in the store."""
    pass
