"""
SQLite implementation of the backend access interface.

The order core talks to storage only through four generic operations
(select / insert / update / delete) and a transaction scope:

    backend = Backend(Path("data/amg.db"))
    rows = backend.select("amg_supplier_orders", filters=[("status", "eq", "draft")]).rows

    with backend.transaction() as tx:
        [order] = tx.insert("amg_supplier_orders", [{...}])
        tx.insert("amg_supplier_order_items", [{...}, {...}])

Every plain call runs in its own short transaction on its own connection.
A transaction scope holds one connection opened with BEGIN IMMEDIATE, so
the write lock is taken before the first read and concurrent writers queue
behind it.  Leaving the scope commits; any exception rolls back and is
re-raised.

Money columns are stored as TEXT decimal strings so values round-trip
exactly; dates are stored as ISO-8601 strings.

Filters
-------
  (column, op, value) tuples, op one of:
    eq  neq  gt  gte  lt  lte  ilike  in
  ``filters`` are AND-ed; ``any_of`` is one OR-group AND-ed onto them.
"""
import logging
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterator, Optional, Sequence

from .errors import BackendError, ConflictError

logger = logging.getLogger(__name__)

Filter = tuple[str, str, Any]
OrderBy = tuple[str, bool]          # (column, ascending)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS amg_suppliers (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    contact     TEXT,
    email       TEXT,
    phone       TEXT,
    address     TEXT,
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE TABLE IF NOT EXISTS amg_products (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    reference   TEXT,
    price       TEXT,
    image_url   TEXT,
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE TABLE IF NOT EXISTS amg_company_settings (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    company_name  TEXT NOT NULL,
    logo_url      TEXT,
    address       TEXT,
    siret         TEXT,
    email         TEXT,
    phone         TEXT
);

CREATE TABLE IF NOT EXISTS amg_supplier_orders (
    id                      INTEGER PRIMARY KEY AUTOINCREMENT,
    order_number            TEXT NOT NULL UNIQUE,       -- CMDYYMMNNN
    supplier_id             INTEGER NOT NULL REFERENCES amg_suppliers (id),
    order_date              TEXT NOT NULL,              -- YYYY-MM-DD
    expected_delivery_date  TEXT,
    status                  TEXT NOT NULL DEFAULT 'draft'
                            CHECK (status IN ('draft', 'pending', 'confirmed', 'shipped',
                                              'partially_delivered', 'delivered', 'cancelled')),
    currency                TEXT NOT NULL,
    shipping_cost           TEXT NOT NULL DEFAULT '0.00',
    tax_amount              TEXT NOT NULL DEFAULT '0.00',
    payment_terms           TEXT,
    notes                   TEXT,
    total_amount            TEXT NOT NULL DEFAULT '0.00',
    created_at              TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    updated_at              TEXT
);

CREATE INDEX IF NOT EXISTS idx_orders_status     ON amg_supplier_orders (status);
CREATE INDEX IF NOT EXISTS idx_orders_supplier   ON amg_supplier_orders (supplier_id);
CREATE INDEX IF NOT EXISTS idx_orders_order_date ON amg_supplier_orders (order_date DESC);

CREATE TABLE IF NOT EXISTS amg_supplier_order_items (
    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
    order_id           INTEGER NOT NULL REFERENCES amg_supplier_orders (id) ON DELETE CASCADE,
    product_id         INTEGER NOT NULL REFERENCES amg_products (id),
    quantity           INTEGER NOT NULL CHECK (quantity >= 1),
    unit_price         TEXT NOT NULL,
    total_price        TEXT NOT NULL,
    received_quantity  INTEGER NOT NULL DEFAULT 0 CHECK (received_quantity >= 0),
    status             TEXT NOT NULL DEFAULT 'pending'
                       CHECK (status IN ('pending', 'partially_received', 'received'))
);

CREATE INDEX IF NOT EXISTS idx_items_order ON amg_supplier_order_items (order_id);

CREATE TABLE IF NOT EXISTS amg_users (
    id             INTEGER PRIMARY KEY AUTOINCREMENT,
    email          TEXT NOT NULL UNIQUE,
    password_hash  TEXT NOT NULL,
    created_at     TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
);

CREATE TABLE IF NOT EXISTS amg_sessions (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    token       TEXT NOT NULL UNIQUE,
    user_id     INTEGER NOT NULL REFERENCES amg_users (id) ON DELETE CASCADE,
    created_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now')),
    expires_at  TEXT NOT NULL
);
"""

# Whitelist of tables and columns accepted in any query
TABLES: dict[str, tuple[str, ...]] = {
    "amg_suppliers": ("id", "name", "contact", "email", "phone", "address", "created_at"),
    "amg_products": ("id", "name", "reference", "price", "image_url", "created_at"),
    "amg_company_settings": ("id", "company_name", "logo_url", "address", "siret", "email", "phone"),
    "amg_supplier_orders": (
        "id", "order_number", "supplier_id", "order_date", "expected_delivery_date",
        "status", "currency", "shipping_cost", "tax_amount", "payment_terms", "notes",
        "total_amount", "created_at", "updated_at",
    ),
    "amg_supplier_order_items": (
        "id", "order_id", "product_id", "quantity", "unit_price", "total_price",
        "received_quantity", "status",
    ),
    "amg_users": ("id", "email", "password_hash", "created_at"),
    "amg_sessions": ("id", "token", "user_id", "created_at", "expires_at"),
}

# TEXT money columns: sorted numerically, not lexically
MONEY_COLUMNS = {"shipping_cost", "tax_amount", "total_amount", "unit_price", "total_price", "price"}

_OPERATORS = {
    "eq":  "{col} = ?",
    "neq": "{col} != ?",
    "gt":  "{col} > ?",
    "gte": "{col} >= ?",
    "lt":  "{col} < ?",
    "lte": "{col} <= ?",
    "ilike": "LOWER({col}) LIKE LOWER(?) ESCAPE '\\'",
}


def escape_like(text: str) -> str:
    """Escape LIKE wildcards in user-supplied search text."""
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _adapt(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return value


@dataclass
class SelectResult:
    rows: list[dict] = field(default_factory=list)
    count: Optional[int] = None      # exact match count, when requested


def _check_table(table: str) -> tuple[str, ...]:
    columns = TABLES.get(table)
    if columns is None:
        raise BackendError(f"Unknown table {table!r}")
    return columns


def _check_column(table: str, column: str) -> str:
    if column not in _check_table(table):
        raise BackendError(f"Unknown column {table}.{column}")
    return column


def _condition(table: str, flt: Filter) -> tuple[str, list]:
    column, op, value = flt
    col = _check_column(table, column)
    if op == "in":
        values = list(value)
        if not values:
            return "0", []          # IN () matches nothing
        placeholders = ", ".join("?" for _ in values)
        return f"{col} IN ({placeholders})", [_adapt(v) for v in values]
    if op == "eq" and value is None:
        return f"{col} IS NULL", []
    template = _OPERATORS.get(op)
    if template is None:
        raise BackendError(f"Unknown filter operator {op!r}")
    return template.format(col=col), [_adapt(value)]


def _where(table: str, filters: Sequence[Filter], any_of: Sequence[Filter]) -> tuple[str, list]:
    clauses: list[str] = []
    params: list = []
    for flt in filters:
        sql, args = _condition(table, flt)
        clauses.append(sql)
        params.extend(args)
    if any_of:
        parts = []
        for flt in any_of:
            sql, args = _condition(table, flt)
            parts.append(sql)
            params.extend(args)
        clauses.append(f"({' OR '.join(parts)})")
    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return where, params


def _translate(exc: sqlite3.Error, action: str) -> BackendError:
    if isinstance(exc, sqlite3.IntegrityError):
        return ConflictError(f"{action} rejected: {exc}")
    return BackendError(f"{action} failed: {exc}")


class _Executor:
    """The four data operations, run against whatever connection _connection() yields."""

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        raise NotImplementedError
        yield  # pragma: no cover

    def _write_connection(self):
        return self._connection()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def select(
        self,
        table: str,
        columns: Optional[Sequence[str]] = None,
        filters: Sequence[Filter] = (),
        any_of: Sequence[Filter] = (),
        order: Sequence[OrderBy] = (),
        limit: Optional[int] = None,
        offset: int = 0,
        count: bool = False,
    ) -> SelectResult:
        """
        Return matching rows as dicts.

        Args:
            columns: Columns to return, or None for all.
            order:   (column, ascending) pairs.
            limit:   Max rows, or None for no limit.
            count:   Also return the exact number of matching rows,
                     ignoring limit/offset.
        """
        _check_table(table)
        cols = ", ".join(_check_column(table, c) for c in columns) if columns else "*"
        where, params = _where(table, filters, any_of)

        order_parts = []
        for column, ascending in order:
            col = _check_column(table, column)
            expr = f"CAST({col} AS REAL)" if col in MONEY_COLUMNS else col
            order_parts.append(f"{expr} {'ASC' if ascending else 'DESC'}")
        order_sql = f"ORDER BY {', '.join(order_parts)}" if order_parts else ""

        page_sql = ""
        page_params: list = []
        if limit is not None:
            page_sql = "LIMIT ? OFFSET ?"
            page_params = [limit, offset]

        try:
            with self._connection() as conn:
                rows = conn.execute(
                    f"SELECT {cols} FROM {table} {where} {order_sql} {page_sql}",
                    params + page_params,
                ).fetchall()
                total = None
                if count:
                    total = conn.execute(
                        f"SELECT COUNT(*) FROM {table} {where}", params
                    ).fetchone()[0]
        except sqlite3.Error as exc:
            raise _translate(exc, f"select from {table}") from exc

        return SelectResult(rows=[dict(r) for r in rows], count=total)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def insert(self, table: str, rows: Sequence[dict]) -> list[dict]:
        """Insert rows and return them as stored (with backend-assigned ids)."""
        if not rows:
            return []
        _check_table(table)
        inserted_ids: list[int] = []
        try:
            with self._write_connection() as conn:
                for row in rows:
                    names = [_check_column(table, c) for c in row]
                    placeholders = ", ".join("?" for _ in names)
                    cur = conn.execute(
                        f"INSERT INTO {table} ({', '.join(names)}) VALUES ({placeholders})",
                        [_adapt(v) for v in row.values()],
                    )
                    inserted_ids.append(cur.lastrowid)
                stored = self._fetch_ids(conn, table, inserted_ids)
        except sqlite3.Error as exc:
            raise _translate(exc, f"insert into {table}") from exc
        return stored

    def update(self, table: str, patch: dict, filters: Sequence[Filter]) -> list[dict]:
        """Apply patch to every matching row; return the updated rows."""
        _check_table(table)
        if not patch:
            raise BackendError(f"Empty update on {table}")
        if not filters:
            raise BackendError(f"Refusing unfiltered update on {table}")
        where, params = _where(table, filters, ())
        assignments = ", ".join(f"{_check_column(table, c)} = ?" for c in patch)
        try:
            with self._write_connection() as conn:
                ids = [r[0] for r in conn.execute(f"SELECT id FROM {table} {where}", params)]
                if not ids:
                    return []
                id_marks = ", ".join("?" for _ in ids)
                conn.execute(
                    f"UPDATE {table} SET {assignments} WHERE id IN ({id_marks})",
                    [_adapt(v) for v in patch.values()] + ids,
                )
                updated = self._fetch_ids(conn, table, ids)
        except sqlite3.Error as exc:
            raise _translate(exc, f"update of {table}") from exc
        return updated

    def delete(self, table: str, filters: Sequence[Filter]) -> int:
        """Delete matching rows; return how many were removed."""
        _check_table(table)
        if not filters:
            raise BackendError(f"Refusing unfiltered delete on {table}")
        where, params = _where(table, filters, ())
        try:
            with self._write_connection() as conn:
                cur = conn.execute(f"DELETE FROM {table} {where}", params)
                return cur.rowcount
        except sqlite3.Error as exc:
            raise _translate(exc, f"delete from {table}") from exc

    @staticmethod
    def _fetch_ids(conn: sqlite3.Connection, table: str, ids: list[int]) -> list[dict]:
        if not ids:
            return []
        marks = ", ".join("?" for _ in ids)
        rows = conn.execute(
            f"SELECT * FROM {table} WHERE id IN ({marks}) ORDER BY id", ids
        ).fetchall()
        return [dict(r) for r in rows]


class TransactionScope(_Executor):
    """Executor bound to the single connection of an open transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        yield self._conn


class Backend(_Executor):
    """Thin wrapper around an SQLite database file holding all back-office tables."""

    def __init__(self, db_path: Path, timeout: float = 30.0) -> None:
        self.db_path = db_path
        self.timeout = timeout
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self, immediate: bool = False) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.timeout, isolation_level=None)
        except sqlite3.Error as exc:
            raise BackendError(f"Cannot open database {self.db_path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        try:
            conn.execute("PRAGMA foreign_keys=ON")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute("BEGIN IMMEDIATE" if immediate else "BEGIN")
        except sqlite3.Error as exc:
            conn.close()
            raise BackendError(f"Cannot start transaction: {exc}") from exc
        try:
            yield conn
            conn.commit()
        except Exception:
            if conn.in_transaction:
                conn.rollback()
            raise
        finally:
            conn.close()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        with self._conn() as conn:
            yield conn

    def _write_connection(self):
        # Take the write lock up front; a deferred BEGIN that reads first
        # cannot wait for it in WAL mode.
        return self._conn(immediate=True)

    def _init_schema(self) -> None:
        try:
            conn = sqlite3.connect(str(self.db_path), timeout=self.timeout)
            try:
                conn.execute("PRAGMA journal_mode=WAL")
                conn.executescript(_SCHEMA)
            finally:
                conn.close()
        except sqlite3.Error as exc:
            raise BackendError(f"Cannot initialise schema in {self.db_path}: {exc}") from exc
        logger.debug("Database schema ready: %s", self.db_path)

    @contextmanager
    def transaction(self) -> Iterator[TransactionScope]:
        """
        One server-side transaction for a multi-table write.

        The write lock is taken up front (BEGIN IMMEDIATE).  Any exception
        inside the block rolls back every write made through the scope.
        """
        try:
            with self._conn(immediate=True) as conn:
                yield TransactionScope(conn)
        except sqlite3.Error as exc:
            logger.warning("Transaction rolled back: %s", exc)
            raise _translate(exc, "commit") from exc
        except Exception as exc:
            logger.warning("Transaction rolled back: %s", exc)
            raise

    def table_counts(self) -> dict[str, int]:
        """Row count per table, for setup checks."""
        counts = {}
        with self._conn() as conn:
            for table in TABLES:
                counts[table] = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
        return counts
