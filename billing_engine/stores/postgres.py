"""
PostgreSQL invoice store.

Provides connection pooling and the transactional reads and writes the
settlement engine and overdue sweep rely on.
"""
from __future__ import annotations
import threading
from contextlib import contextmanager
from datetime import date
from typing import Generator, Optional
from psycopg import errors as pg_errors
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool
from loguru import logger

from ..config import BillingEngineConfig
from ..errors import DuplicateInvoiceError, StoreConflictError
from ..models import Invoice, InvoiceLine, Payment, PaymentStatus, get_schema_sql

INVOICE_COLUMNS = (
    "id, customer_id, outlet_id, invoice_date, due_date, region, subtotal, cgst, sgst, "
    "igst, total_amount, payment_received, payment_status"
)
LINE_COLUMNS = (
    "description, hsn_code, quantity, unit_rate, gst_rate, taxable_value, cgst, sgst, "
    "igst, line_total"
)
MONEY_FIELDS = ("subtotal", "cgst", "sgst", "igst", "total_amount", "payment_received")
LINE_MONEY_FIELDS = ("unit_rate", "gst_rate", "taxable_value", "cgst", "sgst", "igst", "line_total")


def create_pool(config: Optional[BillingEngineConfig] = None) -> ConnectionPool:
    """
    Create a connection pool.

    Pooled connections run in autocommit; multi-statement work goes through
    ``PostgresInvoiceStore.transaction()``.
    """
    config = config or BillingEngineConfig.from_env()
    return ConnectionPool(
        config.db_url,
        min_size=1,
        max_size=config.db_pool_size,
        kwargs={"autocommit": True, "row_factory": dict_row},
        open=True,
    )


def _floats(row: dict, fields: tuple[str, ...]) -> dict:
    row = dict(row)
    for name in fields:
        if row.get(name) is not None:
            row[name] = float(row[name])
    return row


class PostgresInvoiceStore:
    """
    Invoice store backed by PostgreSQL (psycopg 3).

    Every ``transaction()`` checks out its own pooled connection and the
    calling thread uses it until the block ends, so concurrent callers sharing
    one store run in separate database sessions. Payments serialize per
    invoice through ``SELECT ... FOR UPDATE``; the overdue sweep writes with a
    conditional ``UPDATE`` so it never overwrites a concurrent settlement.
    """

    def __init__(self, config: Optional[BillingEngineConfig] = None):
        self.config = config or BillingEngineConfig.from_env()
        self.schema = self.config.db_schema
        self._pool = None
        self._pool_lock = threading.Lock()
        self._local = threading.local()

    @property
    def pool(self) -> ConnectionPool:
        """Get or create the connection pool."""
        with self._pool_lock:
            if self._pool is None:
                self._pool = create_pool(self.config)
            return self._pool

    def close(self):
        """Close the connection pool."""
        with self._pool_lock:
            if self._pool is not None:
                self._pool.close()
                self._pool = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    @contextmanager
    def _connection(self) -> Generator:
        """The current transaction's connection, or a pooled one for a single statement."""
        conn = getattr(self._local, "conn", None)
        if conn is not None:
            yield conn
            return
        with self.pool.connection() as conn:
            yield conn

    @contextmanager
    def transaction(self) -> Generator:
        """
        Run the enclosed statements in one transaction on one connection.

        A nested call on the same thread becomes a savepoint. Serialization
        failures and deadlocks surface as StoreConflictError so callers can
        retry.
        """
        outer = getattr(self._local, "conn", None)
        try:
            if outer is not None:
                with outer.transaction():
                    yield
                return
            with self.pool.connection() as conn, conn.transaction():
                self._local.conn = conn
                try:
                    yield
                finally:
                    self._local.conn = None
        except (pg_errors.SerializationFailure, pg_errors.DeadlockDetected) as e:
            logger.warning(f"Transaction conflict: {e}")
            raise StoreConflictError(str(e)) from e

    def initialize_schema(self):
        """Create schema and tables if they don't exist."""
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(get_schema_sql(self.schema))
        logger.info(f"Initialized billing schema {self.schema}")

    def insert_invoice(self, invoice: Invoice) -> Invoice:
        row = invoice.model_dump(exclude={"lines"})
        row["region"] = invoice.region.value
        row["payment_status"] = invoice.payment_status.value
        columns = ", ".join(row.keys())
        placeholders = ", ".join(f"%({c})s" for c in row.keys())

        try:
            with self._connection() as conn, conn.cursor() as cur:
                cur.execute(
                    f"INSERT INTO {self.schema}.invoice ({columns}) VALUES ({placeholders})",
                    row,
                )
                if invoice.lines:
                    line_rows = [
                        {"invoice_id": invoice.id, "line_no": i, **line.model_dump()}
                        for i, line in enumerate(invoice.lines, start=1)
                    ]
                    line_columns = ", ".join(line_rows[0].keys())
                    line_placeholders = ", ".join(f"%({c})s" for c in line_rows[0].keys())
                    cur.executemany(
                        f"INSERT INTO {self.schema}.invoice_item ({line_columns}) "
                        f"VALUES ({line_placeholders})",
                        line_rows,
                    )
        except pg_errors.UniqueViolation as e:
            raise DuplicateInvoiceError(f"Invoice {invoice.id} already exists") from e
        logger.debug(f"Inserted invoice {invoice.id} with {len(invoice.lines)} lines")
        return invoice

    def _load_invoice(self, invoice_id: str, for_update: bool) -> Invoice | None:
        lock = " FOR UPDATE" if for_update else ""
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"SELECT {INVOICE_COLUMNS} FROM {self.schema}.invoice WHERE id = %s{lock}",
                (invoice_id,),
            )
            row = cur.fetchone()
            if row is None:
                return None
            cur.execute(
                f"""
                SELECT {LINE_COLUMNS}
                FROM {self.schema}.invoice_item
                WHERE invoice_id = %s
                ORDER BY line_no
                """,
                (invoice_id,),
            )
            lines = [InvoiceLine(**_floats(r, LINE_MONEY_FIELDS)) for r in cur.fetchall()]
        return Invoice(**_floats(row, MONEY_FIELDS), lines=lines)

    def get_invoice(self, invoice_id: str) -> Invoice | None:
        return self._load_invoice(invoice_id, for_update=False)

    def get_invoice_for_update(self, invoice_id: str) -> Invoice | None:
        """Load an invoice and lock its row until the transaction ends."""
        return self._load_invoice(invoice_id, for_update=True)

    def insert_payment(self, payment: Payment) -> Payment:
        row = payment.model_dump()
        row["method"] = payment.method.value
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"""
                INSERT INTO {self.schema}.payment
                    (id, invoice_id, amount, method, payment_date, reference_number)
                VALUES (%(id)s, %(invoice_id)s, %(amount)s, %(method)s,
                        %(payment_date)s, %(reference_number)s)
                """,
                row,
            )
        return payment

    def update_settlement(
        self, invoice_id: str, payment_received: float, payment_status: PaymentStatus
    ) -> None:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"""
                UPDATE {self.schema}.invoice
                SET payment_received = %s, payment_status = %s, updated_at = NOW()
                WHERE id = %s
                """,
                (payment_received, PaymentStatus(payment_status).value, invoice_id),
            )

    def list_payments(self, invoice_id: str) -> list[Payment]:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT id, invoice_id, amount, method, payment_date, reference_number
                FROM {self.schema}.payment
                WHERE invoice_id = %s
                ORDER BY payment_date, created_at
                """,
                (invoice_id,),
            )
            return [Payment(**_floats(r, ("amount",))) for r in cur.fetchall()]

    def list_overdue_candidates(self, today: date) -> list[str]:
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"""
                SELECT id FROM {self.schema}.invoice
                WHERE due_date IS NOT NULL
                  AND due_date < %s
                  AND payment_status IN ('pending', 'partial')
                  AND payment_received < total_amount
                ORDER BY due_date
                """,
                (today,),
            )
            return [r["id"] for r in cur.fetchall()]

    def mark_overdue(self, invoice_id: str, today: date) -> bool:
        """
        Mark one invoice overdue if it is still past due and unsettled.

        Status and balance are re-checked at write time; returns False when a
        concurrent payment got there first.
        """
        with self._connection() as conn, conn.cursor() as cur:
            cur.execute(
                f"""
                UPDATE {self.schema}.invoice
                SET payment_status = 'overdue', updated_at = NOW()
                WHERE id = %s
                  AND due_date IS NOT NULL
                  AND due_date < %s
                  AND payment_status IN ('pending', 'partial')
                  AND payment_received < total_amount
                """,
                (invoice_id, today),
            )
            return cur.rowcount == 1
