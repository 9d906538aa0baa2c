"""Relational storage of invoice line items.

One table, ``invoice_items``. Rows written by a single ``commit_invoice`` call
share an ``invoice_id`` allocated inside the same transaction as
``MAX(invoice_id) + 1``.

Concurrency note: the allocation is a read-then-use. On MySQL/MariaDB the
aggregate read is issued ``FOR UPDATE`` so InnoDB next-key locks hold off a
concurrent writer until commit. On SQLite every transaction opens with
``BEGIN IMMEDIATE``, so a second writer waits for the first to commit before
it reads ``MAX``.
Any other backend must be configured with SERIALIZABLE isolation
(``DB_ISOLATION_LEVEL``) or two concurrent commits may receive the same id.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    Column,
    Date,
    Float,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    create_engine,
    event,
    func,
    insert,
    select,
)
from sqlalchemy.engine import URL, Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError

from qrledger.domain.invoice import InvoiceItem, NewItem, resolve_item_dates
from qrledger.runtime.config import AppConfig
from qrledger.runtime.logging import get_logger

logger = get_logger(__name__)

metadata = MetaData()

invoice_items = Table(
    "invoice_items",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("invoice_id", Integer, nullable=False, index=True),
    Column("name", String(255), nullable=False),
    Column("category", String(255), nullable=False),
    Column("unit", String(255), nullable=False),
    Column("unit_price", Numeric(10, 2), nullable=False),
    Column("quantity", Float, nullable=False),
    Column("price", Numeric(10, 2), nullable=False),
    Column("date", Date, nullable=False),
)

# Dialects where SELECT MAX(...) FOR UPDATE locks out concurrent inserts
_LOCKING_DIALECTS = {"mysql", "mariadb"}


class StorageError(RuntimeError):
    """Raised when the backing store fails; any open transaction is rolled back first."""


def create_store_engine(url: str | URL, isolation_level: str | None = None) -> Engine:
    """Create the SQLAlchemy engine (connection pool) for the store."""
    kwargs: dict[str, Any] = {"pool_pre_ping": True}
    if isolation_level:
        kwargs["isolation_level"] = isolation_level

    is_sqlite = make_url(url).get_backend_name() == "sqlite"
    if is_sqlite:
        # Request handlers run on worker threads
        kwargs["connect_args"] = {"check_same_thread": False}

    engine = create_engine(url, **kwargs)
    if is_sqlite:
        _take_write_lock_on_begin(engine)
    return engine


def _take_write_lock_on_begin(engine: Engine) -> None:
    """
    Make SQLite transactions start with ``BEGIN IMMEDIATE``.

    pysqlite defers BEGIN until the first write, which would leave the
    ``MAX(invoice_id)`` read outside the transaction.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn: Connection) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _row_to_item(row: Any) -> InvoiceItem:
    return InvoiceItem(
        id=row.id,
        invoice_id=row.invoice_id,
        name=row.name,
        category=row.category,
        unit=row.unit,
        unit_price=Decimal(row.unit_price),
        quantity=float(row.quantity),
        price=Decimal(row.price),
        date=row.date,
    )


class InvoiceStore:
    """Read-all and transactional batch write over ``invoice_items``."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @classmethod
    def from_config(cls, config: AppConfig) -> InvoiceStore:
        return cls(create_store_engine(config.database_url, config.db_isolation_level))

    def init_schema(self) -> None:
        """Create ``invoice_items`` if it does not exist."""
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create tables: {e}") from e
        logger.info("Tables are ready")

    def dispose(self) -> None:
        self.engine.dispose()

    def list_items(self) -> list[InvoiceItem]:
        """
        Return every stored item in storage order.

        Raises:
            StorageError: If the query fails.
        """
        query = select(invoice_items).order_by(invoice_items.c.id)
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(query).all()
        except SQLAlchemyError as e:
            logger.error("Failed to read invoice items: %s", e)
            raise StorageError(f"Failed to read invoice items: {e}") from e

        return [_row_to_item(row) for row in rows]

    def _next_invoice_id(self, conn: Connection) -> int:
        query = select(func.coalesce(func.max(invoice_items.c.invoice_id), 0) + 1)
        if conn.dialect.name in _LOCKING_DIALECTS:
            query = query.with_for_update()
        return int(conn.execute(query).scalar_one())

    def commit_invoice(self, items: Sequence[NewItem], invoice_date: date | None = None) -> int:
        """
        Allocate the next invoice id and insert ``items`` under it atomically.

        An empty ``items`` still allocates and returns an id but writes nothing,
        so the same id is handed out again by the next commit.

        Args:
            items: Line items to write; items without a date get ``invoice_date``
                   (or today).
            invoice_date: Calendar date of the invoice, if known.

        Returns:
            The invoice id stamped on every written row.

        Raises:
            InvoiceValidationError: If item dates disagree (nothing is written).
            StorageError: If any step fails; the whole batch is rolled back.
        """
        resolved = resolve_item_dates(items, invoice_date)

        try:
            # begin() commits on success, rolls back on any exception and
            # returns the connection to the pool on every path
            with self.engine.begin() as conn:
                invoice_id = self._next_invoice_id(conn)

                if resolved:
                    conn.execute(
                        insert(invoice_items),
                        [
                            {
                                "invoice_id": invoice_id,
                                "name": item.name,
                                "category": item.category,
                                "unit": item.unit,
                                "unit_price": item.unit_price,
                                "quantity": item.quantity,
                                "price": item.price,
                                "date": item.date,
                            }
                            for item in resolved
                        ],
                    )
        except SQLAlchemyError as e:
            logger.error("Invoice commit rolled back: %s", e)
            raise StorageError(f"Failed to save invoice: {e}") from e

        logger.info("Committed invoice %d with %d items", invoice_id, len(resolved))
        return invoice_id
