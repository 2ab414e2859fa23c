# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Database layer for SMB Ledger.

This module is the ledger store and the Ledger Accessor of the engine. It
is responsible for:

- Initializing the SQLite schema.
- Recording source records (accounts, transactions, expenses, projects,
  payments, products, sales, fixed assets, inventory) the way the business
  flows create them, including the cash effect on the settling account.
- Loading a read-only, tenant-scoped, as-of-date snapshot
  (:class:`~smb_ledger.models.Ledger`) for the report engine.
- Posting validated journal entries atomically.

------------------------------------------------------------------------------
Schema Overview
------------------------------------------------------------------------------

Every business table carries a ``company_id`` (tenant). No query of this
module ever reads across tenants.

- companies        id, name, created_at
- accounts         id, company_id, name, type, balance_cents, is_active
- transactions     id, company_id, type, amount_cents, transaction_date,
                   description, category, kind, account_id, project_id,
                   customer_id, vendor_id, expense_id, journal_entry_id
- expenses         id, company_id, category, sub_category, amount_cents,
                   payment_status, kind, project_id, customer_id, vendor_id,
                   description, expense_date
- projects         id, company_id, name, status, agreement_cents,
                   advance_cents, customer_id, created_at, completed_at
- payments         id, company_id, project_id, amount_cents, payment_date
- products         id, company_id, name, cost_price_cents
- sales            id, company_id, subtotal_cents, tax_cents, total_cents,
                   paid_cents, payment_status, status, created_at
- sale_items       id, sale_id, product_id, quantity
- fixed_assets     id, company_id, name, value_cents, purchase_date
- inventory_items  id, company_id, name, in_stock, purchase_price_cents
- journal_entries  id, company_id, entry_date, reference, notes, status,
                   created_at
- journal_lines    id, journal_entry_id, account_id, description,
                   debit_cents, credit_cents

------------------------------------------------------------------------------
SQLite Notes
------------------------------------------------------------------------------

- Money is stored as signed integer cents; quantities as decimal text.
- Timestamps are ISO-8601 text with millisecond precision
  (``YYYY-MM-DDTHH:MM:SS.mmm``), so that the as-of bound
  ``YYYY-MM-DDT23:59:59.999`` compares correctly as plain text.
- Foreign key enforcement is explicitly enabled.
- Journal posting opens its transaction with ``BEGIN IMMEDIATE``: writers
  are serialized and a failing line rolls back the whole entry.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from pathlib import Path

from .accounts import AccountClass, account_class, balance_delta
from .classification import infer_expense_kind, infer_transaction_kind
from .errors import InactiveAccountError, JournalValidationError, MissingAccountError
from .journal import JournalEntry, JournalStatus, PostedJournal
from .models import (
    Account,
    Expense,
    ExpenseKind,
    FixedAsset,
    InventoryItem,
    Ledger,
    PaymentStatus,
    Payment,
    Product,
    Project,
    ProjectStatus,
    Sale,
    SaleItem,
    Transaction,
    TransactionType,
)
from .money import from_cents, to_cents, to_decimal
from .periods import end_of_day, from_iso_timestamp, to_iso_timestamp
from .receivables import cash_effect

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for SMB Ledger.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


@dataclass(frozen=True)
class NewSaleItem:
    product_id: int | None
    quantity: Decimal


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection with foreign keys enabled.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    conn = sqlite3.connect(cfg.path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


@contextmanager
def _write(cfg: DatabaseConfig) -> Iterator[sqlite3.Cursor]:
    """Cursor of a write transaction: committed on success, rolled back on error."""
    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        yield cur
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def _now_iso() -> str:
    return to_iso_timestamp(datetime.now())


def _enum_or_none(enum_cls, value, *, record: str):
    if value is None:
        return None
    try:
        return enum_cls(value)
    except ValueError:
        logger.warning("Unknown %s value %r on %s, ignored", enum_cls.__name__, value, record)
        return None


def _require_company_row(cur: sqlite3.Cursor, company_id: int) -> None:
    cur.execute("SELECT 1 FROM companies WHERE id = ?;", (company_id,))
    if cur.fetchone() is None:
        raise ValueError(f"Unknown company: {company_id!r}.")


def _apply_account_delta(
    cur: sqlite3.Cursor, company_id: int, account_id: int, delta: Decimal
) -> None:
    """Add ``delta`` to the stored balance of a company account."""
    cur.execute(
        """
        UPDATE accounts
           SET balance_cents = balance_cents + ?
         WHERE id = ? AND company_id = ?;
        """,
        (to_cents(delta), account_id, company_id),
    )
    if cur.rowcount != 1:
        raise ValueError(f"Account {account_id!r} not found for company {company_id!r}.")


def _insert_transaction(
    cur: sqlite3.Cursor,
    company_id: int,
    tx_type: TransactionType,
    amount: Decimal,
    when: date | datetime | str,
    *,
    description: str | None = None,
    category: str | None = None,
    kind: ExpenseKind | None = None,
    account_id: int | None = None,
    project_id: int | None = None,
    customer_id: int | None = None,
    vendor_id: int | None = None,
    expense_id: int | None = None,
    journal_entry_id: int | None = None,
) -> int:
    cur.execute(
        """
        INSERT INTO transactions (
            company_id, type, amount_cents, transaction_date,
            description, category, kind,
            account_id, project_id, customer_id, vendor_id,
            expense_id, journal_entry_id
        )
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
        """,
        (
            company_id,
            tx_type.value,
            to_cents(amount),
            to_iso_timestamp(when),
            description,
            category,
            kind.value if kind is not None else None,
            account_id,
            project_id,
            customer_id,
            vendor_id,
            expense_id,
            journal_entry_id,
        ),
    )
    return cur.lastrowid


def _settle(
    cur: sqlite3.Cursor,
    company_id: int,
    account_id: int | None,
    amount: Decimal,
    when: date | datetime | str,
    description: str,
    **links,
) -> None:
    """Move ``amount`` (signed) on a settling account as an OTHER transaction."""
    if account_id is None or not amount:
        return
    _apply_account_delta(cur, company_id, account_id, amount)
    _insert_transaction(
        cur,
        company_id,
        TransactionType.OTHER,
        amount,
        when,
        description=description,
        account_id=account_id,
        **links,
    )


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """
    Create tables and indexes if they do not exist yet.

    This function is idempotent and can be called multiple times safely.
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS companies (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            name        TEXT    NOT NULL,
            created_at  TEXT    NOT NULL
        );

        CREATE TABLE IF NOT EXISTS accounts (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id      INTEGER NOT NULL,
            name            TEXT    NOT NULL,
            type            TEXT    NOT NULL,
            balance_cents   INTEGER NOT NULL DEFAULT 0,
            is_active       INTEGER NOT NULL DEFAULT 1,
            FOREIGN KEY (company_id) REFERENCES companies(id)
        );

        CREATE TABLE IF NOT EXISTS projects (
            id               INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id       INTEGER NOT NULL,
            name             TEXT    NOT NULL,
            status           TEXT    NOT NULL DEFAULT 'Active',
            agreement_cents  INTEGER NOT NULL DEFAULT 0,
            advance_cents    INTEGER NOT NULL DEFAULT 0,
            customer_id      INTEGER,
            created_at       TEXT    NOT NULL,
            completed_at     TEXT,
            FOREIGN KEY (company_id) REFERENCES companies(id)
        );

        CREATE TABLE IF NOT EXISTS payments (
            id            INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id    INTEGER NOT NULL,
            project_id    INTEGER NOT NULL,
            amount_cents  INTEGER NOT NULL,
            payment_date  TEXT    NOT NULL,
            FOREIGN KEY (company_id) REFERENCES companies(id),
            FOREIGN KEY (project_id) REFERENCES projects(id)
        );

        CREATE TABLE IF NOT EXISTS expenses (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id      INTEGER NOT NULL,
            category        TEXT    NOT NULL,
            sub_category    TEXT,
            amount_cents    INTEGER NOT NULL,
            payment_status  TEXT    NOT NULL DEFAULT 'PAID',
            kind            TEXT,
            project_id      INTEGER,
            customer_id     INTEGER,
            vendor_id       INTEGER,
            description     TEXT,
            expense_date    TEXT    NOT NULL,
            FOREIGN KEY (company_id) REFERENCES companies(id)
        );

        CREATE TABLE IF NOT EXISTS journal_entries (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id  INTEGER NOT NULL,
            entry_date  TEXT    NOT NULL,
            reference   TEXT,
            notes       TEXT,
            status      TEXT    NOT NULL,
            created_at  TEXT    NOT NULL,
            FOREIGN KEY (company_id) REFERENCES companies(id)
        );

        CREATE TABLE IF NOT EXISTS journal_lines (
            id                INTEGER PRIMARY KEY AUTOINCREMENT,
            journal_entry_id  INTEGER NOT NULL,
            account_id        INTEGER NOT NULL,
            description       TEXT,
            debit_cents       INTEGER NOT NULL DEFAULT 0,
            credit_cents      INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (journal_entry_id) REFERENCES journal_entries(id),
            FOREIGN KEY (account_id) REFERENCES accounts(id)
        );

        CREATE TABLE IF NOT EXISTS transactions (
            id                INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id        INTEGER NOT NULL,
            type              TEXT    NOT NULL,
            amount_cents      INTEGER NOT NULL,
            transaction_date  TEXT    NOT NULL,
            description       TEXT,
            category          TEXT,
            kind              TEXT,
            account_id        INTEGER,
            project_id        INTEGER,
            customer_id       INTEGER,
            vendor_id         INTEGER,
            expense_id        INTEGER,
            journal_entry_id  INTEGER,
            FOREIGN KEY (company_id) REFERENCES companies(id),
            FOREIGN KEY (expense_id) REFERENCES expenses(id),
            FOREIGN KEY (journal_entry_id) REFERENCES journal_entries(id)
        );

        CREATE TABLE IF NOT EXISTS products (
            id                INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id        INTEGER NOT NULL,
            name              TEXT    NOT NULL,
            cost_price_cents  INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (company_id) REFERENCES companies(id)
        );

        CREATE TABLE IF NOT EXISTS sales (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id      INTEGER NOT NULL,
            subtotal_cents  INTEGER NOT NULL,
            tax_cents       INTEGER NOT NULL DEFAULT 0,
            total_cents     INTEGER NOT NULL,
            paid_cents      INTEGER NOT NULL DEFAULT 0,
            payment_status  TEXT    NOT NULL,
            status          TEXT    NOT NULL DEFAULT 'Completed',
            created_at      TEXT    NOT NULL,
            FOREIGN KEY (company_id) REFERENCES companies(id)
        );

        -- product_id is not a foreign key: an item may outlive its product.
        CREATE TABLE IF NOT EXISTS sale_items (
            id          INTEGER PRIMARY KEY AUTOINCREMENT,
            sale_id     INTEGER NOT NULL,
            product_id  INTEGER,
            quantity    TEXT    NOT NULL,
            FOREIGN KEY (sale_id) REFERENCES sales(id)
        );

        CREATE TABLE IF NOT EXISTS fixed_assets (
            id             INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id     INTEGER NOT NULL,
            name           TEXT    NOT NULL,
            value_cents    INTEGER NOT NULL,
            purchase_date  TEXT    NOT NULL,  -- ISO date 'YYYY-MM-DD'
            FOREIGN KEY (company_id) REFERENCES companies(id)
        );

        CREATE TABLE IF NOT EXISTS inventory_items (
            id                    INTEGER PRIMARY KEY AUTOINCREMENT,
            company_id            INTEGER NOT NULL,
            name                  TEXT    NOT NULL,
            in_stock              TEXT    NOT NULL DEFAULT '0',
            purchase_price_cents  INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY (company_id) REFERENCES companies(id)
        );

        CREATE INDEX IF NOT EXISTS idx_transactions_company_date
            ON transactions(company_id, transaction_date);
        CREATE INDEX IF NOT EXISTS idx_expenses_company_date
            ON expenses(company_id, expense_date);
        CREATE INDEX IF NOT EXISTS idx_payments_project
            ON payments(project_id, payment_date);
        CREATE INDEX IF NOT EXISTS idx_sales_company_date
            ON sales(company_id, created_at);
        """
    )
    conn.commit()


# ---------------------------------------------------------------------------
# Public API: schema and tenants
# ---------------------------------------------------------------------------


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file if it does not exist.
    - Creates tables and indexes if they are missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    sqlite3.Error
        If schema creation fails.
    """
    _ensure_sqlite(cfg)
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(cfg)
    try:
        _create_schema_if_needed(conn)
    finally:
        conn.close()


def create_company(cfg: DatabaseConfig, name: str) -> int:
    """Create a tenant and return its id."""
    init_database(cfg)
    with _write(cfg) as cur:
        cur.execute(
            "INSERT INTO companies (name, created_at) VALUES (?, ?);",
            (name, _now_iso()),
        )
        return cur.lastrowid


def company_exists(cfg: DatabaseConfig, company_id: int | None) -> bool:
    if company_id is None or not cfg.path.exists():
        return False
    conn = _connect(cfg)
    try:
        row = conn.execute(
            "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'companies';"
        ).fetchone()
        if row is None:
            return False
        row = conn.execute(
            "SELECT 1 FROM companies WHERE id = ?;", (company_id,)
        ).fetchone()
        return row is not None
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Public API: recording flows
# ---------------------------------------------------------------------------


def insert_account(
    cfg: DatabaseConfig,
    company_id: int,
    name: str,
    account_type: str,
    *,
    balance: Decimal | int | str = 0,
    is_active: bool = True,
) -> int:
    """Create an account with an opening balance and return its id."""
    with _write(cfg) as cur:
        _require_company_row(cur, company_id)
        cur.execute(
            """
            INSERT INTO accounts (company_id, name, type, balance_cents, is_active)
            VALUES (?, ?, ?, ?, ?);
            """,
            (
                company_id,
                name,
                account_type,
                to_cents(to_decimal(balance, field="balance")),
                1 if is_active else 0,
            ),
        )
        return cur.lastrowid


def set_account_active(
    cfg: DatabaseConfig, company_id: int, account_id: int, is_active: bool
) -> None:
    with _write(cfg) as cur:
        cur.execute(
            "UPDATE accounts SET is_active = ? WHERE id = ? AND company_id = ?;",
            (1 if is_active else 0, account_id, company_id),
        )
        if cur.rowcount != 1:
            raise ValueError(
                f"Account {account_id!r} not found for company {company_id!r}."
            )


def record_transaction(
    cfg: DatabaseConfig,
    company_id: int,
    tx_type: TransactionType | str,
    amount: Decimal | int | str,
    transaction_date: date | datetime | str,
    *,
    account_id: int | None = None,
    description: str | None = None,
    category: str | None = None,
    kind: ExpenseKind | None = None,
    project_id: int | None = None,
    customer_id: int | None = None,
    vendor_id: int | None = None,
) -> int:
    """
    Append a ledger transaction and apply its cash effect.

    The stored amount follows the sign convention of the ledger: EXPENSE and
    TRANSFER_OUT are negative, INCOME, TRANSFER_IN and DEBT_* are positive,
    OTHER keeps the sign it was given. When ``account_id`` is set, the
    account balance moves by ``receivables.cash_effect`` in the same SQL
    transaction (a vendor DEBT_REPAID takes cash out, a customer DEBT_REPAID
    brings it in).

    ``kind`` is assigned here once; when omitted it is inferred from the
    category and the links.
    """
    tx_type = TransactionType(tx_type)
    value = to_decimal(amount)
    if tx_type in (TransactionType.EXPENSE, TransactionType.TRANSFER_OUT):
        value = -abs(value)
    elif tx_type != TransactionType.OTHER:
        value = abs(value)

    if kind is None:
        kind = infer_transaction_kind(
            tx_type, category, project_id=project_id, customer_id=customer_id
        )

    with _write(cfg) as cur:
        _require_company_row(cur, company_id)
        tx_id = _insert_transaction(
            cur,
            company_id,
            tx_type,
            value,
            transaction_date,
            description=description,
            category=category,
            kind=kind,
            account_id=account_id,
            project_id=project_id,
            customer_id=customer_id,
            vendor_id=vendor_id,
        )
        if account_id is not None:
            delta = cash_effect(
                tx_type,
                value,
                customer_id=customer_id,
                vendor_id=vendor_id,
                project_id=project_id,
            )
            _apply_account_delta(cur, company_id, account_id, delta)
        return tx_id


def insert_expense(
    cfg: DatabaseConfig,
    company_id: int,
    category: str,
    amount: Decimal | int | str,
    expense_date: date | datetime | str,
    *,
    sub_category: str | None = None,
    payment_status: PaymentStatus | str = PaymentStatus.PAID,
    kind: ExpenseKind | str | None = None,
    project_id: int | None = None,
    customer_id: int | None = None,
    vendor_id: int | None = None,
    description: str | None = None,
    account_id: int | None = None,
) -> int:
    """
    Record an expense and classify it once.

    ``kind`` is stored with the expense; when omitted it is inferred from
    the category keywords and the project/customer links. A paid expense
    settled from ``account_id`` also writes the matching EXPENSE transaction
    (linked through ``expense_id``) and reduces the account balance.
    """
    payment_status = PaymentStatus(payment_status)
    value = abs(to_decimal(amount))
    if kind is None:
        kind = infer_expense_kind(
            category, sub_category, project_id=project_id, customer_id=customer_id
        )
    else:
        kind = ExpenseKind(kind)

    with _write(cfg) as cur:
        _require_company_row(cur, company_id)
        if project_id is not None:
            _require_project(cur, company_id, project_id)
        cur.execute(
            """
            INSERT INTO expenses (
                company_id, category, sub_category, amount_cents,
                payment_status, kind, project_id, customer_id, vendor_id,
                description, expense_date
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                company_id,
                category,
                sub_category,
                to_cents(value),
                payment_status.value,
                kind.value,
                project_id,
                customer_id,
                vendor_id,
                description,
                to_iso_timestamp(expense_date),
            ),
        )
        expense_id = cur.lastrowid

        if account_id is not None and payment_status != PaymentStatus.UNPAID:
            _apply_account_delta(cur, company_id, account_id, -value)
            _insert_transaction(
                cur,
                company_id,
                TransactionType.EXPENSE,
                -value,
                expense_date,
                description=description,
                category=category,
                account_id=account_id,
                project_id=project_id,
                customer_id=customer_id,
                vendor_id=vendor_id,
                expense_id=expense_id,
            )
        return expense_id


def _require_project(cur: sqlite3.Cursor, company_id: int, project_id: int) -> sqlite3.Row:
    cur.execute(
        "SELECT * FROM projects WHERE id = ? AND company_id = ?;",
        (project_id, company_id),
    )
    row = cur.fetchone()
    if row is None:
        raise ValueError(f"Project {project_id!r} not found for company {company_id!r}.")
    return row


def insert_project(
    cfg: DatabaseConfig,
    company_id: int,
    name: str,
    agreement_amount: Decimal | int | str,
    created_at: date | datetime | str,
    *,
    advance_paid: Decimal | int | str = 0,
    customer_id: int | None = None,
    account_id: int | None = None,
) -> int:
    """Open an Active project; the advance is cashed on ``account_id`` if given."""
    advance = to_decimal(advance_paid, field="advance_paid")
    with _write(cfg) as cur:
        _require_company_row(cur, company_id)
        cur.execute(
            """
            INSERT INTO projects (
                company_id, name, status, agreement_cents, advance_cents,
                customer_id, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?);
            """,
            (
                company_id,
                name,
                ProjectStatus.ACTIVE.value,
                to_cents(to_decimal(agreement_amount, field="agreement_amount")),
                to_cents(advance),
                customer_id,
                to_iso_timestamp(created_at),
            ),
        )
        project_id = cur.lastrowid
        _settle(
            cur,
            company_id,
            account_id,
            advance,
            created_at,
            f"Advance for project {name}",
            project_id=project_id,
            customer_id=customer_id,
        )
        return project_id


def _set_project_status(
    cur: sqlite3.Cursor,
    project_id: int,
    status: ProjectStatus,
    completed_at: str | None,
) -> None:
    cur.execute(
        "UPDATE projects SET status = ?, completed_at = ? WHERE id = ?;",
        (status.value, completed_at, project_id),
    )


def record_payment(
    cfg: DatabaseConfig,
    company_id: int,
    project_id: int,
    amount: Decimal | int | str,
    payment_date: date | datetime | str,
    *,
    account_id: int | None = None,
) -> int:
    """
    Record a customer payment against a project.

    An Active project whose payments (advance included) cover the agreement
    is completed at the payment date.
    """
    value = to_decimal(amount)
    with _write(cfg) as cur:
        project = _require_project(cur, company_id, project_id)
        cur.execute(
            """
            INSERT INTO payments (company_id, project_id, amount_cents, payment_date)
            VALUES (?, ?, ?, ?);
            """,
            (company_id, project_id, to_cents(value), to_iso_timestamp(payment_date)),
        )
        payment_id = cur.lastrowid
        _settle(
            cur,
            company_id,
            account_id,
            value,
            payment_date,
            f"Payment for project {project['name']}",
            project_id=project_id,
            customer_id=project["customer_id"],
        )

        cur.execute(
            "SELECT COALESCE(SUM(amount_cents), 0) FROM payments WHERE project_id = ?;",
            (project_id,),
        )
        paid_cents = project["advance_cents"] + cur.fetchone()[0]
        if (
            project["status"] == ProjectStatus.ACTIVE.value
            and project["agreement_cents"] - paid_cents <= 0
        ):
            _set_project_status(
                cur, project_id, ProjectStatus.COMPLETED, to_iso_timestamp(payment_date)
            )
            logger.info("Project %s fully paid, marked Completed", project_id)
        return payment_id


def complete_project(
    cfg: DatabaseConfig,
    company_id: int,
    project_id: int,
    completed_at: date | datetime | str,
) -> None:
    with _write(cfg) as cur:
        _require_project(cur, company_id, project_id)
        _set_project_status(
            cur, project_id, ProjectStatus.COMPLETED, to_iso_timestamp(completed_at)
        )


def cancel_project(cfg: DatabaseConfig, company_id: int, project_id: int) -> None:
    with _write(cfg) as cur:
        _require_project(cur, company_id, project_id)
        _set_project_status(cur, project_id, ProjectStatus.CANCELLED, None)


def insert_product(
    cfg: DatabaseConfig, company_id: int, name: str, cost_price: Decimal | int | str
) -> int:
    with _write(cfg) as cur:
        _require_company_row(cur, company_id)
        cur.execute(
            "INSERT INTO products (company_id, name, cost_price_cents) VALUES (?, ?, ?);",
            (company_id, name, to_cents(to_decimal(cost_price, field="cost_price"))),
        )
        return cur.lastrowid


def insert_sale(
    cfg: DatabaseConfig,
    company_id: int,
    subtotal: Decimal | int | str,
    created_at: date | datetime | str,
    items: Iterable[NewSaleItem] = (),
    *,
    tax: Decimal | int | str = 0,
    paid_amount: Decimal | int | str | None = None,
    status: str = "Completed",
    account_id: int | None = None,
) -> int:
    """
    Record a shop sale (``total = subtotal + tax``).

    ``paid_amount`` defaults to the total. The cash received is moved on
    ``account_id`` if given. Stock levels are not touched: callers keep
    inventory in line with ``set_inventory_stock``.
    """
    sub = to_decimal(subtotal, field="subtotal")
    tax_value = to_decimal(tax, field="tax")
    total = sub + tax_value
    paid = total if paid_amount is None else to_decimal(paid_amount, field="paid_amount")
    if paid >= total:
        payment_status = PaymentStatus.PAID.value
    elif paid > 0:
        payment_status = "PARTIAL"
    else:
        payment_status = PaymentStatus.UNPAID.value

    with _write(cfg) as cur:
        _require_company_row(cur, company_id)
        cur.execute(
            """
            INSERT INTO sales (
                company_id, subtotal_cents, tax_cents, total_cents, paid_cents,
                payment_status, status, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                company_id,
                to_cents(sub),
                to_cents(tax_value),
                to_cents(total),
                to_cents(paid),
                payment_status,
                status,
                to_iso_timestamp(created_at),
            ),
        )
        sale_id = cur.lastrowid
        for item in items:
            cur.execute(
                "INSERT INTO sale_items (sale_id, product_id, quantity) VALUES (?, ?, ?);",
                (sale_id, item.product_id, str(to_decimal(item.quantity, field="quantity"))),
            )
        _settle(cur, company_id, account_id, paid, created_at, f"Sale #{sale_id}")
        return sale_id


def insert_fixed_asset(
    cfg: DatabaseConfig,
    company_id: int,
    name: str,
    value: Decimal | int | str,
    purchase_date: date,
    *,
    account_id: int | None = None,
) -> int:
    """Record a fixed asset purchase, paid from ``account_id`` if given."""
    cost = to_decimal(value, field="value")
    if isinstance(purchase_date, datetime):
        purchase_date = purchase_date.date()
    with _write(cfg) as cur:
        _require_company_row(cur, company_id)
        cur.execute(
            """
            INSERT INTO fixed_assets (company_id, name, value_cents, purchase_date)
            VALUES (?, ?, ?, ?);
            """,
            (company_id, name, to_cents(cost), purchase_date.isoformat()),
        )
        asset_id = cur.lastrowid
        _settle(cur, company_id, account_id, -cost, purchase_date, f"Purchase of {name}")
        return asset_id


def insert_inventory_item(
    cfg: DatabaseConfig,
    company_id: int,
    name: str,
    in_stock: Decimal | int | str,
    purchase_price: Decimal | int | str,
    *,
    purchased_at: date | datetime | str | None = None,
    account_id: int | None = None,
) -> int:
    """Record an inventory item; the initial stock is paid from ``account_id``."""
    stock = to_decimal(in_stock, field="in_stock")
    price = to_decimal(purchase_price, field="purchase_price")
    with _write(cfg) as cur:
        _require_company_row(cur, company_id)
        cur.execute(
            """
            INSERT INTO inventory_items (company_id, name, in_stock, purchase_price_cents)
            VALUES (?, ?, ?, ?);
            """,
            (company_id, name, str(stock), to_cents(price)),
        )
        item_id = cur.lastrowid
        _settle(
            cur,
            company_id,
            account_id,
            -(stock * price),
            purchased_at if purchased_at is not None else datetime.now(),
            f"Stock purchase of {name}",
        )
        return item_id


def set_inventory_stock(
    cfg: DatabaseConfig, company_id: int, item_id: int, in_stock: Decimal | int | str
) -> None:
    with _write(cfg) as cur:
        cur.execute(
            "UPDATE inventory_items SET in_stock = ? WHERE id = ? AND company_id = ?;",
            (str(to_decimal(in_stock, field="in_stock")), item_id, company_id),
        )
        if cur.rowcount != 1:
            raise ValueError(
                f"Inventory item {item_id!r} not found for company {company_id!r}."
            )


# ---------------------------------------------------------------------------
# Public API: Ledger Accessor
# ---------------------------------------------------------------------------


def _row_to_account(row: sqlite3.Row) -> Account:
    return Account(
        id=row["id"],
        company_id=row["company_id"],
        name=row["name"],
        type=row["type"],
        balance=from_cents(row["balance_cents"]),
        is_active=bool(row["is_active"]),
    )


def _row_to_transaction(row: sqlite3.Row) -> Transaction:
    return Transaction(
        id=row["id"],
        company_id=row["company_id"],
        type=TransactionType(row["type"]),
        amount=from_cents(row["amount_cents"]),
        transaction_date=from_iso_timestamp(row["transaction_date"]),
        description=row["description"],
        category=row["category"],
        account_id=row["account_id"],
        project_id=row["project_id"],
        customer_id=row["customer_id"],
        vendor_id=row["vendor_id"],
        expense_id=row["expense_id"],
        journal_entry_id=row["journal_entry_id"],
        kind=_enum_or_none(ExpenseKind, row["kind"], record=f"transaction {row['id']}"),
    )


def _row_to_expense(row: sqlite3.Row) -> Expense:
    return Expense(
        id=row["id"],
        company_id=row["company_id"],
        category=row["category"],
        amount=from_cents(row["amount_cents"]),
        payment_status=PaymentStatus(row["payment_status"]),
        expense_date=from_iso_timestamp(row["expense_date"]),
        sub_category=row["sub_category"],
        kind=_enum_or_none(ExpenseKind, row["kind"], record=f"expense {row['id']}"),
        project_id=row["project_id"],
        customer_id=row["customer_id"],
        vendor_id=row["vendor_id"],
        description=row["description"],
    )


def _load_projects(
    conn: sqlite3.Connection, company_id: int, bound: str
) -> tuple[Project, ...]:
    payments: dict[int, list[Payment]] = {}
    for row in conn.execute(
        """
        SELECT id, project_id, amount_cents, payment_date
          FROM payments
         WHERE company_id = ? AND payment_date <= ?
         ORDER BY payment_date, id;
        """,
        (company_id, bound),
    ):
        payments.setdefault(row["project_id"], []).append(
            Payment(
                id=row["id"],
                project_id=row["project_id"],
                amount=from_cents(row["amount_cents"]),
                payment_date=from_iso_timestamp(row["payment_date"]),
            )
        )

    projects = []
    for row in conn.execute(
        """
        SELECT * FROM projects
         WHERE company_id = ? AND created_at <= ?
         ORDER BY id;
        """,
        (company_id, bound),
    ):
        projects.append(
            Project(
                id=row["id"],
                company_id=row["company_id"],
                name=row["name"],
                status=ProjectStatus(row["status"]),
                agreement_amount=from_cents(row["agreement_cents"]),
                advance_paid=from_cents(row["advance_cents"]),
                created_at=from_iso_timestamp(row["created_at"]),
                completed_at=from_iso_timestamp(row["completed_at"]),
                customer_id=row["customer_id"],
                payments=tuple(payments.get(row["id"], ())),
            )
        )
    return tuple(projects)


def _load_sales(conn: sqlite3.Connection, company_id: int, bound: str) -> tuple[Sale, ...]:
    products = {
        row["id"]: Product(row["id"], row["name"], from_cents(row["cost_price_cents"]))
        for row in conn.execute(
            "SELECT * FROM products WHERE company_id = ?;", (company_id,)
        )
    }

    items: dict[int, list[SaleItem]] = {}
    for row in conn.execute(
        """
        SELECT si.sale_id, si.product_id, si.quantity
          FROM sale_items si
          JOIN sales s ON s.id = si.sale_id
         WHERE s.company_id = ? AND s.created_at <= ?
         ORDER BY si.id;
        """,
        (company_id, bound),
    ):
        items.setdefault(row["sale_id"], []).append(
            SaleItem(
                quantity=to_decimal(row["quantity"], field="quantity"),
                product_id=row["product_id"],
                product=products.get(row["product_id"]),
            )
        )

    sales = []
    for row in conn.execute(
        """
        SELECT * FROM sales
         WHERE company_id = ? AND created_at <= ?
         ORDER BY created_at, id;
        """,
        (company_id, bound),
    ):
        sales.append(
            Sale(
                id=row["id"],
                company_id=row["company_id"],
                subtotal=from_cents(row["subtotal_cents"]),
                tax=from_cents(row["tax_cents"]),
                total=from_cents(row["total_cents"]),
                paid_amount=from_cents(row["paid_cents"]),
                payment_status=row["payment_status"],
                status=row["status"],
                created_at=from_iso_timestamp(row["created_at"]),
                items=tuple(items.get(row["id"], ())),
            )
        )
    return tuple(sales)


def load_ledger(
    cfg: DatabaseConfig,
    company_id: int,
    as_of: date,
    project_id: int | None = None,
) -> Ledger:
    """
    Load the read-only snapshot of one company as of a date.

    Parameters
    ----------
    cfg:
        Database configuration.
    company_id:
        Tenant to read. Records of other companies are never returned.
    as_of:
        Snapshot date. Dated records are kept when their timestamp is at or
        before ``as_of`` 23:59:59.999 (fixed assets: purchase date at or
        before ``as_of``). Accounts and inventory are current values.
    project_id:
        Optional project scope (see ``Ledger.for_project``). An unknown
        project gives an empty scope and a logged warning.

    Returns
    -------
    Ledger
    """
    bound = to_iso_timestamp(end_of_day(as_of))

    conn = _connect(cfg)
    try:
        accounts = tuple(
            _row_to_account(r)
            for r in conn.execute(
                "SELECT * FROM accounts WHERE company_id = ? ORDER BY id;",
                (company_id,),
            )
        )
        transactions = tuple(
            _row_to_transaction(r)
            for r in conn.execute(
                """
                SELECT * FROM transactions
                 WHERE company_id = ? AND transaction_date <= ?
                 ORDER BY transaction_date, id;
                """,
                (company_id, bound),
            )
        )
        expenses = tuple(
            _row_to_expense(r)
            for r in conn.execute(
                """
                SELECT * FROM expenses
                 WHERE company_id = ? AND expense_date <= ?
                 ORDER BY expense_date, id;
                """,
                (company_id, bound),
            )
        )
        projects = _load_projects(conn, company_id, bound)
        sales = _load_sales(conn, company_id, bound)
        fixed_assets = tuple(
            FixedAsset(
                id=r["id"],
                company_id=r["company_id"],
                name=r["name"],
                value=from_cents(r["value_cents"]),
                purchase_date=date.fromisoformat(r["purchase_date"]),
            )
            for r in conn.execute(
                """
                SELECT * FROM fixed_assets
                 WHERE company_id = ? AND purchase_date <= ?
                 ORDER BY id;
                """,
                (company_id, as_of.isoformat()),
            )
        )
        inventory = tuple(
            InventoryItem(
                id=r["id"],
                company_id=r["company_id"],
                name=r["name"],
                in_stock=to_decimal(r["in_stock"], field="in_stock"),
                purchase_price=from_cents(r["purchase_price_cents"]),
            )
            for r in conn.execute(
                "SELECT * FROM inventory_items WHERE company_id = ? ORDER BY id;",
                (company_id,),
            )
        )
    finally:
        conn.close()

    ledger = Ledger(
        company_id=company_id,
        as_of=as_of,
        accounts=accounts,
        transactions=transactions,
        expenses=expenses,
        projects=projects,
        sales=sales,
        fixed_assets=fixed_assets,
        inventory=inventory,
    )
    if project_id is None:
        return ledger

    if project_id not in ledger.project_by_id():
        logger.warning(
            "Project %s not found for company %s as of %s, empty scope",
            project_id,
            company_id,
            as_of,
        )
    return ledger.for_project(project_id)


# ---------------------------------------------------------------------------
# Public API: journal posting
# ---------------------------------------------------------------------------


def _journal_transaction(
    account: sqlite3.Row, debit: Decimal, credit: Decimal
) -> tuple[TransactionType, Decimal, ExpenseKind | None]:
    """(type, signed amount, kind) of the ledger transaction written for a line."""
    cls = account_class(account["type"])
    if cls == AccountClass.INCOME:
        return TransactionType.INCOME, credit - debit, None
    if cls == AccountClass.EXPENSE:
        return TransactionType.EXPENSE, credit - debit, ExpenseKind.OPERATING_EXPENSE
    return TransactionType.OTHER, balance_delta(account["type"], debit, credit), None


def post_journal_lines(
    cfg: DatabaseConfig, company_id: int, entry: JournalEntry
) -> PostedJournal:
    """
    Post a validated journal entry, all or nothing.

    Inside a single ``BEGIN IMMEDIATE`` transaction:

    1. every line's account must exist for ``company_id`` and be active,
    2. the entry and its lines are written,
    3. one ledger transaction is written per line,
    4. each account balance moves by its normal-side delta.

    Any failure rolls the whole entry back; nothing is partially applied.

    Raises
    ------
    JournalValidationError
        If the entry is not VALIDATED.
    MissingAccountError, InactiveAccountError
        If a line references an unusable account.
    sqlite3.Error
        On storage failure (after rollback).
    """
    if entry.status != JournalStatus.VALIDATED:
        raise JournalValidationError(
            f"Only a validated entry can be posted (status {entry.status.value})."
        )

    conn = _connect(cfg)
    conn.isolation_level = None  # explicit BEGIN / COMMIT below
    try:
        conn.execute("BEGIN IMMEDIATE;")
        try:
            cur = conn.cursor()
            accounts: list[sqlite3.Row] = []
            for index, line in enumerate(entry.lines):
                cur.execute(
                    "SELECT * FROM accounts WHERE id = ? AND company_id = ?;",
                    (line.account_id, company_id),
                )
                account = cur.fetchone()
                if account is None:
                    raise MissingAccountError(line.account_id, line_index=index)
                if not account["is_active"]:
                    raise InactiveAccountError(line.account_id, line_index=index)
                accounts.append(account)

            cur.execute(
                """
                INSERT INTO journal_entries (
                    company_id, entry_date, reference, notes, status, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?);
                """,
                (
                    company_id,
                    to_iso_timestamp(entry.entry_date),
                    entry.reference,
                    entry.notes,
                    JournalStatus.POSTED.value,
                    _now_iso(),
                ),
            )
            entry_id = cur.lastrowid

            tx_ids: list[int] = []
            for line, account in zip(entry.lines, accounts):
                cur.execute(
                    """
                    INSERT INTO journal_lines (
                        journal_entry_id, account_id, description,
                        debit_cents, credit_cents
                    )
                    VALUES (?, ?, ?, ?, ?);
                    """,
                    (
                        entry_id,
                        line.account_id,
                        line.description,
                        to_cents(line.debit),
                        to_cents(line.credit),
                    ),
                )
                tx_type, amount, kind = _journal_transaction(
                    account, line.debit, line.credit
                )
                category = (
                    account["name"]
                    if tx_type in (TransactionType.INCOME, TransactionType.EXPENSE)
                    else None
                )
                tx_ids.append(
                    _insert_transaction(
                        cur,
                        company_id,
                        tx_type,
                        amount,
                        entry.entry_date,
                        description=line.description or entry.reference,
                        category=category,
                        kind=kind,
                        account_id=line.account_id,
                        journal_entry_id=entry_id,
                    )
                )
                _apply_account_delta(
                    cur,
                    company_id,
                    line.account_id,
                    balance_delta(account["type"], line.debit, line.credit),
                )

            conn.execute("COMMIT;")
        except Exception:
            conn.execute("ROLLBACK;")
            raise
    finally:
        conn.close()

    logger.info(
        "Posted journal entry %s (%d lines) for company %s",
        entry_id,
        len(entry.lines),
        company_id,
    )
    return PostedJournal(
        entry_id=entry_id,
        entry=entry.mark_posted(),
        transaction_ids=tuple(tx_ids),
    )


def list_journal_lines(cfg: DatabaseConfig, company_id: int, entry_id: int) -> list[dict]:
    """Stored lines of a posted entry (empty if it belongs to another company)."""
    conn = _connect(cfg)
    try:
        rows = conn.execute(
            """
            SELECT jl.account_id, jl.description, jl.debit_cents, jl.credit_cents
              FROM journal_lines jl
              JOIN journal_entries je ON je.id = jl.journal_entry_id
             WHERE je.id = ? AND je.company_id = ?
             ORDER BY jl.id;
            """,
            (entry_id, company_id),
        ).fetchall()
    finally:
        conn.close()
    return [
        {
            "account_id": r["account_id"],
            "description": r["description"],
            "debit": from_cents(r["debit_cents"]),
            "credit": from_cents(r["credit_cents"]),
        }
        for r in rows
    ]


def count_rows(cfg: DatabaseConfig, table: str, company_id: int) -> int:
    """Number of rows of a company in a company-scoped table."""
    allowed = {
        "accounts",
        "transactions",
        "expenses",
        "projects",
        "payments",
        "products",
        "sales",
        "fixed_assets",
        "inventory_items",
        "journal_entries",
    }
    if table not in allowed:
        raise ValueError(f"Unknown table: {table!r}.")
    conn = _connect(cfg)
    try:
        return conn.execute(
            f"SELECT COUNT(*) FROM {table} WHERE company_id = ?;", (company_id,)
        ).fetchone()[0]
    finally:
        conn.close()


def get_account_balance(cfg: DatabaseConfig, company_id: int, account_id: int) -> Decimal:
    conn = _connect(cfg)
    try:
        row = conn.execute(
            "SELECT balance_cents FROM accounts WHERE id = ? AND company_id = ?;",
            (account_id, company_id),
        ).fetchone()
    finally:
        conn.close()
    if row is None:
        raise ValueError(f"Account {account_id!r} not found for company {company_id!r}.")
    return from_cents(row["balance_cents"])

