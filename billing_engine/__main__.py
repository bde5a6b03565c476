"""
Main entry point for running billing_engine as a module.

Usage:
    python -m billing_engine sweep [--today YYYY-MM-DD]
    python -m billing_engine init-schema
    python -m billing_engine check-config
"""
import sys
from .engine import main

if __name__ == "__main__":
    sys.exit(main())
