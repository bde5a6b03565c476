from itertools import permutations
import pytest
from billing_engine.errors import ValidationError
from billing_engine.models import LineInput, TaxClassification
from billing_engine.tax import GstRatePolicy, aggregate_invoice, gst_rate_label

INTRA = TaxClassification.INTRA_STATE
INTER = TaxClassification.INTER_STATE


def test_two_intra_state_lines():
    lines = [
        LineInput(quantity=50, unit_rate=12, gst_rate=18),
        LineInput(quantity=20, unit_rate=25, gst_rate=18),
    ]
    totals = aggregate_invoice(lines, INTRA)
    assert totals.subtotal == 1100.00
    assert totals.cgst == 99.00
    assert totals.sgst == 99.00
    assert totals.igst == 0.00
    assert totals.total_amount == 1298.00
    assert [l.line_total for l in totals.lines] == [708.00, 590.00]


def test_totals_invariant():
    lines = [
        LineInput(quantity=3, unit_rate=33.33, gst_rate=5),
        LineInput(quantity=7, unit_rate=0.99, gst_rate=28),
        LineInput(quantity=1, unit_rate=1499.5, gst_rate=12),
    ]
    totals = aggregate_invoice(lines, INTER)
    assert totals.subtotal == round(sum(l.taxable_value for l in totals.lines), 2)
    assert totals.total_amount == round(totals.subtotal + totals.cgst + totals.sgst + totals.igst, 2)


def test_default_rate_applied_when_line_has_none():
    totals = aggregate_invoice([LineInput(quantity=1, unit_rate=100)], INTRA)
    assert totals.lines[0].gst_rate == 18
    assert totals.cgst == 9.00
    assert totals.sgst == 9.00


def test_default_rate_comes_from_policy():
    totals = aggregate_invoice([LineInput(quantity=1, unit_rate=100)], INTER, GstRatePolicy(default_rate=5))
    assert totals.lines[0].gst_rate == 5
    assert totals.igst == 5.00


def test_explicit_zero_rate_is_not_replaced_by_default():
    totals = aggregate_invoice([LineInput(quantity=1, unit_rate=100, gst_rate=0)], INTRA)
    assert totals.total_amount == 100.00


def test_heads_are_rounded_once_not_summed_from_rounded_lines():
    # each line: tax 0.07, halves 0.035 -> 0.04 per line, but 3 * 0.035 = 0.105 -> 0.11
    lines = [LineInput(quantity=1, unit_rate=0.37, gst_rate=18)] * 3
    totals = aggregate_invoice(lines, INTRA)
    assert sum(l.cgst for l in totals.lines) == pytest.approx(0.12)
    assert totals.cgst == 0.11
    assert totals.sgst == 0.11
    assert totals.subtotal == 1.11
    assert totals.total_amount == 1.33


def test_aggregation_is_order_independent():
    lines = [
        LineInput(quantity=1, unit_rate=0.37, gst_rate=18),
        LineInput(quantity=3, unit_rate=19.99, gst_rate=5),
        LineInput(quantity=2, unit_rate=7.77, gst_rate=28),
        LineInput(quantity=9, unit_rate=0.15, gst_rate=12),
    ]
    reference = aggregate_invoice(lines, INTRA).model_dump(exclude={"lines"})
    for perm in permutations(lines):
        assert aggregate_invoice(list(perm), INTRA).model_dump(exclude={"lines"}) == reference


def test_empty_line_list_is_a_zero_draft():
    totals = aggregate_invoice([], INTRA)
    assert totals.is_draft
    assert totals.subtotal == totals.cgst == totals.sgst == totals.igst == totals.total_amount == 0


def test_invalid_line_blocks_aggregation():
    lines = [
        LineInput(quantity=1, unit_rate=100, gst_rate=18),
        LineInput(quantity=-2, unit_rate=100, gst_rate=18),
    ]
    with pytest.raises(ValidationError):
        aggregate_invoice(lines, INTRA)


def test_non_standard_rate_is_accepted():
    policy = GstRatePolicy()
    assert policy.resolve(7.5) == 7.5
    assert not policy.is_standard(7.5)
    assert policy.is_standard(18)


def test_policy_rejects_out_of_range_default():
    with pytest.raises(ValidationError):
        GstRatePolicy(default_rate=120)


@pytest.mark.parametrize(
    "rate,label",
    [(0, "0% (Exempt)"), (18, "18% (Standard)"), (28, "28% (Luxury)"), (7.5, "7.5% (Custom)")],
)
def test_gst_rate_label(rate, label):
    assert gst_rate_label(rate) == label
