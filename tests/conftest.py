from datetime import date
import pytest
from billing_engine import BillingEngine, BillingEngineConfig
from billing_engine.models import Customer, Invoice, InvoiceLine, LineInput, Outlet
from billing_engine.stores import InMemoryInvoiceStore


@pytest.fixture
def config():
    return BillingEngineConfig(
        db_url="postgresql://test@localhost/test",
        db_schema="billing",
        default_gst_rate=18.0,
        jurisdiction_fallback=None,
        default_hsn_code="9985",
        settlement_tolerance=0.01,
        retry_attempts=3,
        log_level="INFO",
        log_file=None,
    )


@pytest.fixture
def store():
    return InMemoryInvoiceStore()


@pytest.fixture
def engine(config, store):
    return BillingEngine(config, store=store)


@pytest.fixture
def customer():
    return Customer(customer_id="cust-1", name="Sharma Caterers", jurisdiction="KA", gstin="29ABCDE1234F1Z5")


@pytest.fixture
def outlet():
    return Outlet(outlet_id="out-1", name="Bengaluru", jurisdiction="KA")


@pytest.fixture
def issued_invoice(engine, customer, outlet):
    """Two intra-state lines, total 1298.00."""
    return engine.create_invoice(
        customer,
        outlet,
        [
            LineInput(quantity=50, unit_rate=12, gst_rate=18, description="Chairs"),
            LineInput(quantity=20, unit_rate=25, gst_rate=18, description="Tables"),
        ],
        invoice_date=date(2024, 1, 1),
        due_date=date(2024, 1, 31),
        invoice_id="inv-1298",
    )


def make_invoice(invoice_id, due_date, total=1000.0, status="pending", received=0.0):
    line = InvoiceLine(
        description="Tent",
        quantity=1,
        unit_rate=total,
        gst_rate=0,
        taxable_value=total,
        line_total=total,
    )
    return Invoice(
        id=invoice_id,
        customer_id="cust-1",
        outlet_id="out-1",
        invoice_date=date(2024, 1, 1),
        due_date=due_date,
        subtotal=total,
        total_amount=total,
        payment_received=received,
        payment_status=status,
        lines=[line],
    )
