from __future__ import annotations
from datetime import date
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class TaxRegion(str, Enum):
    DOMESTIC = "DOMESTIC"
    SEZ = "SEZ"
    EXPORT = "EXPORT"


class TaxClassification(str, Enum):
    INTRA_STATE = "intra_state"
    INTER_STATE = "inter_state"
    EXEMPT = "exempt"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


class PaymentMethod(str, Enum):
    CASH = "cash"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    CARD = "card"
    CHEQUE = "cheque"
    ONLINE = "online"


class Customer(BaseModel):
    customer_id: str
    name: str
    jurisdiction: str | None = None   # state code, e.g. "KA"
    gst_classification: str = "regular"  # regular / unregistered / sez / export
    gstin: str | None = None


class Outlet(BaseModel):
    outlet_id: str
    name: str | None = None
    jurisdiction: str | None = None


class LineInput(BaseModel):
    model_config = ConfigDict(frozen=True)

    quantity: int
    unit_rate: float
    gst_rate: float | None = None    # None -> GstRatePolicy default
    description: str = ""
    hsn_code: str | None = None


class InvoiceLine(BaseModel):
    description: str = ""
    hsn_code: str | None = None
    quantity: int
    unit_rate: float
    gst_rate: float
    taxable_value: float
    cgst: float = 0.0
    sgst: float = 0.0
    igst: float = 0.0
    line_total: float


class InvoiceTotals(BaseModel):
    subtotal: float = 0.0
    cgst: float = 0.0
    sgst: float = 0.0
    igst: float = 0.0
    total_amount: float = 0.0
    lines: list[InvoiceLine] = Field(default_factory=list)

    @property
    def is_draft(self) -> bool:
        """An invoice with no lines is a draft, even though its zero totals are valid."""
        return not self.lines


class Invoice(BaseModel):
    id: str
    customer_id: str
    outlet_id: str
    invoice_date: date
    due_date: date | None = None
    region: TaxRegion = TaxRegion.DOMESTIC
    subtotal: float = 0.0
    cgst: float = 0.0
    sgst: float = 0.0
    igst: float = 0.0
    total_amount: float = 0.0
    payment_received: float = 0.0
    payment_status: PaymentStatus = PaymentStatus.PENDING
    lines: list[InvoiceLine] = Field(default_factory=list)

    @property
    def is_draft(self) -> bool:
        return not self.lines

    def is_overdue_candidate(self, today: date) -> bool:
        """Past due, still pending or partial, and an open balance."""
        return (
            self.due_date is not None
            and self.due_date < today
            and self.payment_status in (PaymentStatus.PENDING, PaymentStatus.PARTIAL)
            and self.payment_received < self.total_amount
        )


class Payment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    invoice_id: str
    amount: float
    method: PaymentMethod
    payment_date: date
    reference_number: str | None = None


class ExportRow(BaseModel):
    """Flat per-line row handed to the CSV/Excel writers."""
    invoice_number: str
    invoice_date: str           # DD/MM/YYYY
    customer_name: str
    customer_gstin: str | None = None
    description: str
    hsn_code: str | None = None
    quantity: int
    rate: float
    taxable_value: float
    gst_rate: float
    cgst: float
    sgst: float
    igst: float
    total_amount: float


class SweepResult(BaseModel):
    updated_count: int = 0
    failed_count: int = 0


class SummaryBucket(BaseModel):
    count: int = 0
    taxable_value: float = 0.0
    tax_amount: float = 0.0


class ExportSummary(BaseModel):
    total_invoices: int = 0
    total_items: int = 0
    total_taxable_value: float = 0.0
    total_cgst: float = 0.0
    total_sgst: float = 0.0
    total_igst: float = 0.0
    total_amount: float = 0.0
    gst_rate_breakdown: dict[float, SummaryBucket] = Field(default_factory=dict)
    hsn_breakdown: dict[str, SummaryBucket] = Field(default_factory=dict)
