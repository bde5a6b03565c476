"""
Billing engine orchestration.

Ties the tax computation, settlement rules and overdue sweep to an invoice
store:

- create_invoice: classify, compute and persist an invoice with its lines
- record_payment: apply a payment atomically, retrying store conflicts
- sweep_overdue: mark past-due unsettled invoices overdue
- export_rows: per-line GST rows for the report writers
"""
from __future__ import annotations
import sys
import uuid
from datetime import date
from typing import Iterable, Mapping, Optional, Sequence
from loguru import logger
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import BillingEngineConfig
from .errors import BillingError, InvoiceNotFoundError, StoreConflictError, ValidationError
from .models import (
    Customer,
    ExportRow,
    Invoice,
    InvoiceLine,
    InvoiceTotals,
    LineInput,
    Outlet,
    PaymentMethod,
    PaymentStatus,
    SweepResult,
    TaxClassification,
    TaxRegion,
)
from .money import CurrencyRounder, default_rounder
from .settlement import apply_payment, sweep_overdue
from .stores import InvoiceStore, PostgresInvoiceStore
from .tax import (
    GstRatePolicy,
    aggregate_invoice,
    build_export_rows_for_invoices,
    classify,
    compute_line,
    redistribute,
    region_for_customer,
)


class BillingEngine:
    """
    Invoice tax and settlement engine.

    Usage:
        engine = BillingEngine()

        invoice = engine.create_invoice(customer, outlet, lines, date.today())
        engine.record_payment(invoice.id, 500.0, "upi", date.today())
        engine.sweep_overdue()
    """

    def __init__(
        self,
        config: Optional[BillingEngineConfig] = None,
        store: Optional[InvoiceStore] = None,
        rounder: Optional[CurrencyRounder] = None,
    ):
        self.config = config or BillingEngineConfig.from_env()
        self.store = store if store is not None else PostgresInvoiceStore(self.config)
        self.rounder = rounder or default_rounder
        self.policy = GstRatePolicy.from_config(self.config)
        self.tolerance = self.config.settlement_tolerance
        self.jurisdiction_fallback = (
            TaxClassification(self.config.jurisdiction_fallback)
            if self.config.jurisdiction_fallback
            else None
        )

    # Tax computation

    def classify_for(
        self,
        customer: Customer,
        outlet: Outlet,
        region: Optional[TaxRegion] = None,
    ) -> TaxClassification:
        """Classify an invoice; the region defaults to the customer's GST classification."""
        region = TaxRegion(region) if region is not None else region_for_customer(customer)
        return classify(
            outlet.jurisdiction,
            customer.jurisdiction,
            region,
            fallback=self.jurisdiction_fallback,
        )

    def compute_line(self, line: LineInput, classification: TaxClassification) -> InvoiceLine:
        rate = self.policy.resolve(line.gst_rate)
        return compute_line(line, classification, self.rounder, gst_rate=rate)

    def aggregate_invoice(
        self, lines: Sequence[LineInput], classification: TaxClassification
    ) -> InvoiceTotals:
        return aggregate_invoice(lines, classification, self.policy, self.rounder)

    def create_invoice(
        self,
        customer: Customer,
        outlet: Outlet,
        lines: Sequence[LineInput],
        invoice_date: date,
        due_date: Optional[date] = None,
        region: Optional[TaxRegion] = None,
        invoice_id: Optional[str] = None,
    ) -> Invoice:
        """
        Compute and persist a new invoice.

        Everything is computed before the store is touched, and the invoice and
        its lines are written in one transaction, so a validation or
        jurisdiction error never leaves a partial invoice behind.

        Raises:
            ValidationError: bad line input or due date before invoice date.
            IndeterminateJurisdiction: jurisdiction missing and no fallback configured.
            DuplicateInvoiceError: invoice_id is already taken.
        """
        if due_date is not None and due_date < invoice_date:
            raise ValidationError("Due date cannot be before invoice date")

        region = TaxRegion(region) if region is not None else region_for_customer(customer)
        classification = self.classify_for(customer, outlet, region)
        totals = self.aggregate_invoice(lines, classification)

        invoice = Invoice(
            id=invoice_id or uuid.uuid4().hex,
            customer_id=customer.customer_id,
            outlet_id=outlet.outlet_id,
            invoice_date=invoice_date,
            due_date=due_date,
            region=region,
            subtotal=totals.subtotal,
            cgst=totals.cgst,
            sgst=totals.sgst,
            igst=totals.igst,
            total_amount=totals.total_amount,
            payment_received=0.0,
            payment_status=PaymentStatus.PENDING,
            lines=totals.lines,
        )

        with self.store.transaction():
            self.store.insert_invoice(invoice)

        if invoice.is_draft:
            logger.info(f"Created draft invoice {invoice.id} (no lines)")
        else:
            logger.info(
                f"Created invoice {invoice.id} for {customer.customer_id}: "
                f"{len(invoice.lines)} lines, total {invoice.total_amount:.2f} "
                f"({classification.value})"
            )
        return invoice

    # Reports

    def redistribute(self, invoice: Invoice, balance_last_line: bool = False) -> list[InvoiceLine]:
        return redistribute(invoice, self.rounder, balance_last_line=balance_last_line)

    def export_rows(
        self,
        invoices: Iterable[Invoice],
        customers: Optional[Mapping[str, Customer]] = None,
        invoice_numbers: Optional[Mapping[str, str]] = None,
        balance_last_line: bool = False,
    ) -> list[ExportRow]:
        return build_export_rows_for_invoices(
            invoices,
            customers,
            invoice_numbers,
            default_hsn_code=self.config.default_hsn_code,
            rounder=self.rounder,
            balance_last_line=balance_last_line,
        )

    # Settlement

    def record_payment(
        self,
        invoice_id: str,
        amount: float,
        method: PaymentMethod | str,
        payment_date: date,
        reference_number: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Invoice:
        """
        Record a payment and return the updated invoice.

        The ledger row and the invoice update commit together. Store conflicts
        are retried; validation and excess-payment errors are not. Calling this
        twice records two payments.

        Raises:
            InvoiceNotFoundError: unknown invoice id.
            ValidationError: bad amount, method or date.
            DraftInvoiceError: invoice has no lines.
            ExcessPaymentError: amount exceeds the balance plus tolerance.
        """
        retrying = Retrying(
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            retry=retry_if_exception_type(StoreConflictError),
            reraise=True,
            before_sleep=lambda retry_state: logger.warning(
                f"Retrying payment on invoice {invoice_id} "
                f"(attempt {retry_state.attempt_number})..."
            ),
        )
        for attempt in retrying:
            with attempt:
                return self._record_payment_once(
                    invoice_id, amount, method, payment_date, reference_number, today
                )

    def _record_payment_once(
        self,
        invoice_id: str,
        amount: float,
        method: PaymentMethod | str,
        payment_date: date,
        reference_number: Optional[str],
        today: Optional[date],
    ) -> Invoice:
        with self.store.transaction():
            invoice = self.store.get_invoice_for_update(invoice_id)
            if invoice is None:
                raise InvoiceNotFoundError(f"Invoice not found: {invoice_id}")

            updated, payment = apply_payment(
                invoice,
                amount,
                method,
                payment_date,
                reference_number,
                tolerance=self.tolerance,
                rounder=self.rounder,
                today=today,
            )
            self.store.insert_payment(payment)
            self.store.update_settlement(
                invoice_id, updated.payment_received, updated.payment_status
            )

        logger.info(
            f"Recorded {payment.method.value} payment {payment.amount:.2f} on invoice "
            f"{invoice_id}; status {updated.payment_status.value}"
        )
        return updated

    def sweep_overdue(self, today: Optional[date] = None) -> SweepResult:
        return sweep_overdue(self.store, today)

    def close(self):
        """Close the store."""
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def run_sweep(
    today: Optional[date] = None,
    config: Optional[BillingEngineConfig] = None,
) -> SweepResult:
    """Convenience function for the scheduled overdue sweep."""
    with BillingEngine(config) as engine:
        return engine.sweep_overdue(today)


def configure_logging(config: BillingEngineConfig, verbose: bool = False):
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else config.log_level)
    if config.log_file:
        logger.add(config.log_file, level="DEBUG" if verbose else config.log_level, rotation="10 MB")


def main(argv: Optional[list[str]] = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(
        prog="billing_engine",
        description="Rental billing engine - invoice GST and settlement jobs",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_sweep = sub.add_parser("sweep", help="Mark past-due unsettled invoices overdue")
    p_sweep.add_argument(
        "--today",
        type=lambda s: date.fromisoformat(s),
        help="Run as of this date (YYYY-MM-DD, default: today)",
    )
    sub.add_parser("init-schema", help="Create the billing schema and tables")
    sub.add_parser("check-config", help="Validate configuration and exit")

    args = parser.parse_args(argv)

    config = BillingEngineConfig.from_env()
    configure_logging(config, args.verbose)

    errors = config.validate()
    if args.command == "check-config":
        for err in errors:
            print(f"  {err}")
        print("Configuration OK" if not errors else f"{len(errors)} configuration problem(s)")
        return 0 if not errors else 1
    if errors:
        for err in errors:
            logger.error(f"Config error: {err}")
        return 1

    try:
        if args.command == "init-schema":
            with PostgresInvoiceStore(config) as store:
                store.initialize_schema()
            print("Schema initialized successfully")
            return 0

        result = run_sweep(args.today, config)
        print(f"Overdue sweep: {result.updated_count} updated, {result.failed_count} failed")
        return 0
    except BillingError as e:
        logger.error(f"Billing error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
