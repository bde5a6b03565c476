"""
Rental Billing Engine - GST invoice computation and payment settlement.

Computes legally-split GST invoices for a rental business, reconciles partial
payments against them and tracks collection status over time.

Key Features:
- Tax region classification (intra-state, inter-state, SEZ/export exempt)
- Per-line CGST/SGST/IGST computation with paise-exact rounding
- Invoice aggregation that rounds each tax head once
- Proportional re-distribution of invoice tax for GST exports
- Atomic payment settlement with a rounding tolerance
- Scheduled overdue sweep that never overwrites a settled invoice

Usage:
    # Overdue sweep (cron)
    python -m billing_engine sweep

    # Create tables
    python -m billing_engine init-schema
"""

__version__ = "1.0.0"

from .config import BillingEngineConfig
from .engine import BillingEngine, run_sweep
from .money import CurrencyRounder, round2

__all__ = [
    "BillingEngineConfig",
    "BillingEngine",
    "CurrencyRounder",
    "round2",
    "run_sweep",
    "__version__",
]
