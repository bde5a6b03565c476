"""
Invoice stores.

- InvoiceStore: the protocol the engine depends on
- PostgresInvoiceStore: psycopg-backed store used in production
- InMemoryInvoiceStore: thread-safe in-process store
"""

from .base import InvoiceStore
from .memory import InMemoryInvoiceStore
from .postgres import PostgresInvoiceStore, create_pool

__all__ = [
    "InvoiceStore",
    "InMemoryInvoiceStore",
    "PostgresInvoiceStore",
    "create_pool",
]
