from datetime import date
import pytest
from billing_engine import BillingEngine
from billing_engine.engine import main
from billing_engine.errors import DuplicateInvoiceError, IndeterminateJurisdiction, ValidationError
from billing_engine.models import Customer, LineInput, Outlet, PaymentStatus, TaxRegion

LINES = [
    LineInput(quantity=50, unit_rate=12, gst_rate=18, description="Chairs"),
    LineInput(quantity=20, unit_rate=25, gst_rate=18, description="Tables"),
]


def test_create_invoice_persists_totals_and_lines(engine, store, customer, outlet):
    invoice = engine.create_invoice(
        customer, outlet, LINES, date(2024, 1, 1), due_date=date(2024, 1, 31)
    )
    stored = store.get_invoice(invoice.id)
    assert stored == invoice
    assert stored.payment_status is PaymentStatus.PENDING
    assert (stored.subtotal, stored.cgst, stored.sgst, stored.igst) == (1100.0, 99.0, 99.0, 0.0)
    assert stored.total_amount == 1298.0
    assert len(stored.lines) == 2


def test_inter_state_customer_pays_igst(engine, outlet):
    customer = Customer(customer_id="c2", name="Pune Events", jurisdiction="MH")
    invoice = engine.create_invoice(customer, outlet, LINES, date(2024, 1, 1))
    assert invoice.igst == 198.0
    assert invoice.cgst == invoice.sgst == 0.0


def test_sez_customer_is_exempt(engine, outlet):
    customer = Customer(customer_id="c3", name="SEZ Unit", jurisdiction="KA", gst_classification="sez")
    invoice = engine.create_invoice(customer, outlet, LINES, date(2024, 1, 1))
    assert invoice.region is TaxRegion.SEZ
    assert invoice.total_amount == invoice.subtotal == 1100.0


def test_missing_jurisdiction_stores_nothing(engine, store, outlet):
    customer = Customer(customer_id="c4", name="Walk-in")
    with pytest.raises(IndeterminateJurisdiction):
        engine.create_invoice(customer, outlet, LINES, date(2024, 1, 1), invoice_id="never")
    assert store.get_invoice("never") is None


def test_configured_fallback_is_used(config, store, outlet):
    config.jurisdiction_fallback = "inter_state"
    engine = BillingEngine(config, store=store)
    customer = Customer(customer_id="c4", name="Walk-in")
    invoice = engine.create_invoice(customer, outlet, LINES, date(2024, 1, 1))
    assert invoice.igst == 198.0


def test_due_date_before_invoice_date(engine, customer, outlet):
    with pytest.raises(ValidationError, match="Due date"):
        engine.create_invoice(
            customer, outlet, LINES, date(2024, 2, 1), due_date=date(2024, 1, 1)
        )


def test_duplicate_invoice_id_is_rejected(engine, customer, outlet, issued_invoice):
    with pytest.raises(DuplicateInvoiceError):
        engine.create_invoice(customer, outlet, LINES, date(2024, 1, 1), invoice_id=issued_invoice.id)


def test_export_rows_use_default_hsn(engine, customer, issued_invoice):
    rows = engine.export_rows(
        [issued_invoice], {customer.customer_id: customer}, {issued_invoice.id: "RB/24/001"}
    )
    assert [r.hsn_code for r in rows] == ["9985", "9985"]
    assert [r.invoice_number for r in rows] == ["RB/24/001", "RB/24/001"]
    assert rows[0].invoice_date == "01/01/2024"
    assert sum(r.total_amount for r in rows) == pytest.approx(issued_invoice.total_amount)


def test_redistribute_matches_stored_lines(engine, issued_invoice):
    assert [l.line_total for l in engine.redistribute(issued_invoice)] == [708.0, 590.0]


def test_engine_closes_store(config, store):
    with BillingEngine(config, store=store) as engine:
        assert engine.store is store


def test_check_config_cli(monkeypatch, capsys):
    monkeypatch.setenv("DB_URL", "postgresql://test@localhost/test")
    monkeypatch.delenv("GST_JURISDICTION_FALLBACK", raising=False)
    monkeypatch.setenv("SETTLEMENT_TOLERANCE", "0.01")
    assert main(["check-config"]) == 0
    assert "Configuration OK" in capsys.readouterr().out


def test_check_config_cli_reports_problems(monkeypatch, capsys):
    monkeypatch.setenv("DB_URL", "postgresql://test@localhost/test")
    monkeypatch.setenv("GST_JURISDICTION_FALLBACK", "guess")
    assert main(["check-config"]) == 1
    assert "GST_JURISDICTION_FALLBACK" in capsys.readouterr().out
