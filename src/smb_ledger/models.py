# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Ledger records used by the financial-statement engine.

These dataclasses mirror the rows returned by the Ledger Accessor
(``db.load_ledger``). They are immutable: the engine only reads them.

All monetary fields are ``Decimal``. All timestamps are naive ``datetime``
values; the as-of filtering convention is described in ``periods.py``.

The :class:`Ledger` dataclass groups the collections for one company and
one as-of date. It is the only input of the pure engine functions
(revenue, receivables, depreciation, assemblers).
"""

from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


class TransactionType(str, Enum):
    """Type of an append-only ledger transaction."""

    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER_IN = "TRANSFER_IN"
    TRANSFER_OUT = "TRANSFER_OUT"
    DEBT_TAKEN = "DEBT_TAKEN"
    DEBT_REPAID = "DEBT_REPAID"
    OTHER = "OTHER"


class PaymentStatus(str, Enum):
    PAID = "PAID"
    UNPAID = "UNPAID"
    REPAID = "REPAID"


class ProjectStatus(str, Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


class ExpenseKind(str, Enum):
    """Closed classification of a cost record.

    The kind is assigned once, when the expense is created (see
    ``classification.infer_expense_kind``), and then read as-is by every
    report.
    """

    DIRECT_COST = "DIRECT_COST"
    OPERATING_EXPENSE = "OPERATING_EXPENSE"
    DEBT_OR_LOAN = "DEBT_OR_LOAN"
    CAPITAL_OR_WITHDRAWAL = "CAPITAL_OR_WITHDRAWAL"
    CUSTOMER_RECEIVABLE = "CUSTOMER_RECEIVABLE"


@dataclass(frozen=True)
class Account:
    id: int
    company_id: int
    name: str
    type: str
    balance: Decimal
    is_active: bool = True


@dataclass(frozen=True)
class Transaction:
    """
    Append-only ledger movement.

    ``amount`` is signed: EXPENSE amounts are negative, DEBT_TAKEN and
    DEBT_REPAID amounts are positive by convention. ``kind`` is set at
    creation for standalone cost movements and capital movements.
    """

    id: int
    company_id: int
    type: TransactionType
    amount: Decimal
    transaction_date: datetime
    description: Optional[str] = None
    category: Optional[str] = None
    account_id: Optional[int] = None
    project_id: Optional[int] = None
    customer_id: Optional[int] = None
    vendor_id: Optional[int] = None
    expense_id: Optional[int] = None
    journal_entry_id: Optional[int] = None
    kind: Optional[ExpenseKind] = None


@dataclass(frozen=True)
class Expense:
    """A cost record. ``amount`` is always a positive magnitude."""

    id: int
    company_id: int
    category: str
    amount: Decimal
    payment_status: PaymentStatus
    expense_date: datetime
    sub_category: Optional[str] = None
    kind: Optional[ExpenseKind] = None
    project_id: Optional[int] = None
    customer_id: Optional[int] = None
    vendor_id: Optional[int] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class Payment:
    """Cash received against a project agreement."""

    id: int
    project_id: int
    amount: Decimal
    payment_date: datetime


@dataclass(frozen=True)
class Project:
    id: int
    company_id: int
    name: str
    status: ProjectStatus
    agreement_amount: Decimal
    advance_paid: Decimal
    created_at: datetime
    completed_at: Optional[datetime] = None
    customer_id: Optional[int] = None
    payments: tuple[Payment, ...] = ()

    @property
    def total_paid(self) -> Decimal:
        total = self.advance_paid
        for p in self.payments:
            total += p.amount
        return total

    @property
    def remaining_amount(self) -> Decimal:
        return self.agreement_amount - self.total_paid


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    cost_price: Decimal


@dataclass(frozen=True)
class SaleItem:
    quantity: Decimal
    product_id: Optional[int]
    product: Optional[Product] = None


@dataclass(frozen=True)
class Sale:
    id: int
    company_id: int
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    paid_amount: Decimal
    payment_status: str
    status: str
    created_at: datetime
    items: tuple[SaleItem, ...] = ()


@dataclass(frozen=True)
class FixedAsset:
    id: int
    company_id: int
    name: str
    value: Decimal
    purchase_date: date


@dataclass(frozen=True)
class InventoryItem:
    id: int
    company_id: int
    name: str
    in_stock: Decimal
    purchase_price: Decimal


@dataclass(frozen=True)
class Ledger:
    """
    Read-only, as-of-date snapshot of one company's records.

    Attributes
    ----------
    company_id:
        Tenant the snapshot belongs to. No record of another company is
        ever included.
    as_of:
        Calendar date of the snapshot. Dated collections only contain
        records up to the end of that day.
    project_id:
        When set, the snapshot was narrowed to a single project.
    """

    company_id: int
    as_of: date
    accounts: tuple[Account, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    expenses: tuple[Expense, ...] = ()
    projects: tuple[Project, ...] = ()
    sales: tuple[Sale, ...] = ()
    fixed_assets: tuple[FixedAsset, ...] = ()
    inventory: tuple[InventoryItem, ...] = ()
    project_id: Optional[int] = None

    def project_by_id(self) -> dict[int, Project]:
        return {p.id: p for p in self.projects}

    def account_by_id(self) -> dict[int, Account]:
        return {a.id: a for a in self.accounts}

    def payments(self) -> list[Payment]:
        """All payments of the snapshot's projects."""
        return [pay for p in self.projects for pay in p.payments]

    def for_project(self, project_id: int) -> "Ledger":
        """
        Narrow the snapshot to the records linked to one project.

        Company-wide collections that cannot be attributed to a project
        (accounts, sales, fixed assets, inventory) are dropped.
        """
        return replace(
            self,
            project_id=project_id,
            accounts=(),
            sales=(),
            fixed_assets=(),
            inventory=(),
            projects=tuple(p for p in self.projects if p.id == project_id),
            expenses=tuple(e for e in self.expenses if e.project_id == project_id),
            transactions=tuple(
                t for t in self.transactions if t.project_id == project_id
            ),
        )
