import pytest
from billing_engine.errors import IndeterminateJurisdiction, ValidationError
from billing_engine.models import Customer, TaxClassification, TaxRegion
from billing_engine.tax import classify, region_for_customer


def test_same_state_is_intra_state():
    assert classify("KA", "KA", TaxRegion.DOMESTIC) == TaxClassification.INTRA_STATE


def test_different_state_is_inter_state():
    assert classify("KA", "MH", TaxRegion.DOMESTIC) == TaxClassification.INTER_STATE


def test_jurisdictions_are_normalized():
    assert classify(" ka", "KA ") == TaxClassification.INTRA_STATE


@pytest.mark.parametrize("region", [TaxRegion.SEZ, TaxRegion.EXPORT, "SEZ", "EXPORT"])
def test_sez_and_export_are_exempt_regardless_of_jurisdiction(region):
    assert classify("KA", "KA", region) == TaxClassification.EXEMPT
    assert classify("KA", "MH", region) == TaxClassification.EXEMPT
    assert classify(None, None, region) == TaxClassification.EXEMPT


@pytest.mark.parametrize("outlet,customer", [("KA", None), (None, "KA"), ("KA", "  "), (None, None)])
def test_missing_jurisdiction_is_indeterminate(outlet, customer):
    with pytest.raises(IndeterminateJurisdiction) as exc:
        classify(outlet, customer, TaxRegion.DOMESTIC)
    assert isinstance(exc.value, ValidationError)
    assert "jurisdiction missing" in str(exc.value)


def test_indeterminate_carries_jurisdictions():
    with pytest.raises(IndeterminateJurisdiction) as exc:
        classify("ka", None)
    assert exc.value.outlet_jurisdiction == "KA"
    assert exc.value.customer_jurisdiction is None


def test_explicit_fallback_is_used_when_jurisdiction_missing():
    result = classify("KA", None, TaxRegion.DOMESTIC, fallback=TaxClassification.INTRA_STATE)
    assert result == TaxClassification.INTRA_STATE
    result = classify("KA", None, TaxRegion.DOMESTIC, fallback="inter_state")
    assert result == TaxClassification.INTER_STATE


def test_fallback_does_not_override_known_jurisdictions():
    result = classify("KA", "MH", fallback=TaxClassification.INTRA_STATE)
    assert result == TaxClassification.INTER_STATE


@pytest.mark.parametrize(
    "classification,region",
    [
        ("regular", TaxRegion.DOMESTIC),
        ("unregistered", TaxRegion.DOMESTIC),
        ("SEZ", TaxRegion.SEZ),
        ("export", TaxRegion.EXPORT),
        ("overseas", TaxRegion.EXPORT),
        ("something-else", TaxRegion.DOMESTIC),
    ],
)
def test_region_for_customer(classification, region):
    customer = Customer(customer_id="c1", name="Acme", gst_classification=classification)
    assert region_for_customer(customer) == region
