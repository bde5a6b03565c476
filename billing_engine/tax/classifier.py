"""
Tax region classification.

Decides whether a line is taxed intra-state (CGST + SGST), inter-state (IGST)
or not at all (SEZ / export supplies).
"""
from __future__ import annotations
from typing import Optional
from loguru import logger

from ..errors import IndeterminateJurisdiction
from ..models import Customer, TaxClassification, TaxRegion

_REGION_BY_CLASSIFICATION = {
    "regular": TaxRegion.DOMESTIC,
    "unregistered": TaxRegion.DOMESTIC,
    "composition": TaxRegion.DOMESTIC,
    "sez": TaxRegion.SEZ,
    "export": TaxRegion.EXPORT,
    "overseas": TaxRegion.EXPORT,
}


def normalize_jurisdiction(value: str | None) -> str | None:
    """Uppercase and strip a state code; blank strings count as missing."""
    if value is None:
        return None
    value = str(value).strip().upper()
    return value or None


def region_for_customer(customer: Customer) -> TaxRegion:
    """
    Map a customer's GST classification to the invoice region.

    Unknown classifications are treated as domestic supplies.
    """
    key = (customer.gst_classification or "regular").strip().lower()
    region = _REGION_BY_CLASSIFICATION.get(key)
    if region is None:
        logger.warning(
            f"Unknown GST classification {customer.gst_classification!r} for customer "
            f"{customer.customer_id}, treating as domestic"
        )
        return TaxRegion.DOMESTIC
    return region


def classify(
    outlet_jurisdiction: str | None,
    customer_jurisdiction: str | None,
    invoice_region: TaxRegion = TaxRegion.DOMESTIC,
    fallback: Optional[TaxClassification] = None,
) -> TaxClassification:
    """
    Classify the tax regime for an invoice.

    SEZ and EXPORT invoices are exempt whatever the jurisdictions are. For a
    domestic invoice both jurisdictions must be known: equal means intra-state,
    different means inter-state.

    Raises:
        IndeterminateJurisdiction: a jurisdiction is missing and no fallback was
            given. Passing ``fallback`` is the caller's explicit opt-in.
    """
    region = TaxRegion(invoice_region)
    if region in (TaxRegion.SEZ, TaxRegion.EXPORT):
        return TaxClassification.EXEMPT

    outlet = normalize_jurisdiction(outlet_jurisdiction)
    customer = normalize_jurisdiction(customer_jurisdiction)

    if outlet and customer:
        if outlet == customer:
            return TaxClassification.INTRA_STATE
        return TaxClassification.INTER_STATE

    if fallback is None:
        raise IndeterminateJurisdiction(outlet, customer)

    fallback = TaxClassification(fallback)
    logger.warning(
        f"Jurisdiction missing (outlet={outlet}, customer={customer}); "
        f"using configured fallback {fallback.value}"
    )
    return fallback
