"""
Payment status rules and payment application.

Status is derived from payment_received against total_amount:

- pending: nothing received
- partial: something received, balance still open
- paid: received >= total - tolerance
- overdue: set only by the overdue sweep; cleared by full settlement, kept on
  partial payment
"""
from __future__ import annotations
import math
import uuid
from datetime import date
from typing import Optional
from loguru import logger

from ..errors import DraftInvoiceError, ExcessPaymentError, ValidationError
from ..models import Invoice, Payment, PaymentMethod, PaymentStatus
from ..money import MAX_AMOUNT, CurrencyRounder, default_rounder, to_decimal

DEFAULT_TOLERANCE = 0.01


def is_settled(balance: float, tolerance: float = DEFAULT_TOLERANCE) -> bool:
    """True when the balance is within tolerance of zero."""
    return abs(to_decimal(balance)) <= to_decimal(tolerance)


def settle_balance(
    balance: float,
    tolerance: float = DEFAULT_TOLERANCE,
    rounder: CurrencyRounder = default_rounder,
) -> float:
    """Round a balance; a balance within tolerance reads as 0."""
    rounded = rounder.round2(balance)
    return 0.0 if is_settled(rounded, tolerance) else rounded


def balance_due(invoice: Invoice, rounder: CurrencyRounder = default_rounder) -> float:
    return rounder.round2(to_decimal(invoice.total_amount) - to_decimal(invoice.payment_received))


def derive_payment_status(
    payment_received: float,
    total_amount: float,
    tolerance: float = DEFAULT_TOLERANCE,
    current: Optional[PaymentStatus] = None,
) -> PaymentStatus:
    """
    Recompute the status from the amounts.

    An overdue invoice stays overdue until it is fully settled.
    """
    received = to_decimal(payment_received)
    total = to_decimal(total_amount)

    if received > 0 and received >= total - to_decimal(tolerance):
        return PaymentStatus.PAID
    if current is not None and PaymentStatus(current) is PaymentStatus.OVERDUE:
        return PaymentStatus.OVERDUE
    if received <= 0:
        return PaymentStatus.PENDING
    return PaymentStatus.PARTIAL


def validate_payment(
    amount: float,
    method: PaymentMethod | str,
    payment_date: date,
    today: Optional[date] = None,
) -> PaymentMethod:
    """Check payment input; returns the method as a PaymentMethod."""
    if amount is None or isinstance(amount, bool) or not amount > 0:
        raise ValidationError("Payment amount must be greater than zero")
    if not math.isfinite(amount) or to_decimal(amount) > MAX_AMOUNT:
        raise ValidationError(f"Payment amount is out of range: {amount!r}")
    if not method:
        raise ValidationError("Payment method is required")
    try:
        method = PaymentMethod(method)
    except ValueError as e:
        valid = ", ".join(m.value for m in PaymentMethod)
        raise ValidationError(f"Unknown payment method {method!r}. Valid: {valid}") from e
    if payment_date is None:
        raise ValidationError("Payment date is required")
    today = today or date.today()
    if payment_date > today:
        raise ValidationError("Payment date cannot be in the future")
    return method


def apply_payment(
    invoice: Invoice,
    amount: float,
    method: PaymentMethod | str,
    payment_date: date,
    reference_number: Optional[str] = None,
    tolerance: float = DEFAULT_TOLERANCE,
    rounder: CurrencyRounder = default_rounder,
    today: Optional[date] = None,
    payment_id: Optional[str] = None,
) -> tuple[Invoice, Payment]:
    """
    Validate a payment against an invoice and return the updated invoice and
    the new ledger row. The input invoice is not modified.

    Raises:
        ValidationError: bad amount, method or date.
        DraftInvoiceError: the invoice has no lines.
        ExcessPaymentError: amount exceeds the balance plus tolerance.
    """
    method = validate_payment(amount, method, payment_date, today)
    if invoice.is_draft:
        raise DraftInvoiceError(
            f"Cannot record payment for draft invoice {invoice.id}. Issue the invoice first."
        )

    amount_d = rounder.round_decimal(amount)
    if amount_d <= 0:
        raise ValidationError("Payment amount must be at least 0.01")
    balance = to_decimal(balance_due(invoice, rounder))
    # paid is terminal: the tolerance absorbs rounding on the settling payment,
    # it does not admit a further payment once the invoice is settled
    settled = invoice.payment_status is PaymentStatus.PAID or (
        invoice.payment_received > 0 and is_settled(balance, tolerance)
    )
    if settled or amount_d > balance + to_decimal(tolerance):
        raise ExcessPaymentError(float(amount_d), float(balance), tolerance)

    received = rounder.round2(to_decimal(invoice.payment_received) + amount_d)
    status = derive_payment_status(
        received, invoice.total_amount, tolerance, current=invoice.payment_status
    )

    payment = Payment(
        id=payment_id or uuid.uuid4().hex,
        invoice_id=invoice.id,
        amount=float(amount_d),
        method=method,
        payment_date=payment_date,
        reference_number=reference_number or None,
    )
    updated = invoice.model_copy(update={"payment_received": received, "payment_status": status})

    if status is not invoice.payment_status:
        logger.info(
            f"Invoice {invoice.id}: {invoice.payment_status.value} -> {status.value} "
            f"(received {received:.2f} of {invoice.total_amount:.2f})"
        )
    return updated, payment
