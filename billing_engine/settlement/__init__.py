"""Payment settlement: status rules, payment application and the overdue sweep."""

from .status import (
    DEFAULT_TOLERANCE,
    apply_payment,
    balance_due,
    derive_payment_status,
    is_settled,
    settle_balance,
    validate_payment,
)
from .sweep import is_overdue_candidate, sweep_overdue

__all__ = [
    "DEFAULT_TOLERANCE",
    "apply_payment",
    "balance_due",
    "derive_payment_status",
    "is_overdue_candidate",
    "is_settled",
    "settle_balance",
    "sweep_overdue",
    "validate_payment",
]
