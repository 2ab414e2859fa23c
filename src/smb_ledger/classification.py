# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Classification rules for cost records.

Each expense (and each standalone expense-like ledger transaction) falls
into exactly one :class:`~smb_ledger.models.ExpenseKind`:

- DIRECT_COST            : cost of a project (P&L, gross profit level),
- OPERATING_EXPENSE      : company running cost (P&L, operating level),
- DEBT_OR_LOAN           : debt/loan movements (never P&L, never payable),
- CAPITAL_OR_WITHDRAWAL  : owner capital and drawings (equity),
- CUSTOMER_RECEIVABLE    : money spent on behalf of a customer outside any
                           project (an asset, not an expense).

Expenses get their kind once, when they are created, through
:func:`infer_expense_kind`. The keyword matching used there is a migration
and import heuristic only: reports read the stored kind through
:func:`classify_expense` and fall back to the heuristic (with a warning)
only for legacy rows that were never classified.

Inference precedence (case-insensitive substring match on category and
sub-category):

1. project linked and the category is a cost type → DIRECT_COST
2. Debt / Loan / Repayment                        → DEBT_OR_LOAN
   Capital / Withdrawal / Drawing                 → CAPITAL_OR_WITHDRAWAL
3. customer linked, no project                    → CUSTOMER_RECEIVABLE
4. anything else                                  → OPERATING_EXPENSE

A category is a cost type when it contains none of the keywords of rule 2.
An expense linked to both a project and a customer is a DIRECT_COST.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .models import (
    Expense,
    ExpenseKind,
    Ledger,
    PaymentStatus,
    Transaction,
    TransactionType,
)

logger = logging.getLogger(__name__)

DEBT_KEYWORDS = ("debt", "loan", "repayment")
CAPITAL_KEYWORDS = ("capital", "withdrawal", "drawing")


def _matches(keywords: tuple[str, ...], *texts: Optional[str]) -> bool:
    for text in texts:
        if not text:
            continue
        lowered = text.lower()
        if any(k in lowered for k in keywords):
            return True
    return False


def keyword_kind(category: Optional[str], sub_category: Optional[str]) -> Optional[ExpenseKind]:
    """Non-operating kind suggested by category keywords, if any."""
    if _matches(DEBT_KEYWORDS, category, sub_category):
        return ExpenseKind.DEBT_OR_LOAN
    if _matches(CAPITAL_KEYWORDS, category, sub_category):
        return ExpenseKind.CAPITAL_OR_WITHDRAWAL
    return None


def infer_expense_kind(
    category: Optional[str],
    sub_category: Optional[str] = None,
    *,
    project_id: Optional[int] = None,
    customer_id: Optional[int] = None,
) -> ExpenseKind:
    """Assign an ExpenseKind from category text and record linkage.

    Intended to run once per record, at creation or import time.
    """
    non_operating = keyword_kind(category, sub_category)

    if project_id is not None and non_operating is None:
        return ExpenseKind.DIRECT_COST
    if non_operating is not None:
        return non_operating
    if customer_id is not None:
        return ExpenseKind.CUSTOMER_RECEIVABLE
    return ExpenseKind.OPERATING_EXPENSE


def classify_expense(expense: Expense) -> ExpenseKind:
    """Kind of an expense record, as stored at creation."""
    if expense.kind is not None:
        return expense.kind

    logger.warning(
        "Expense %s has no stored kind, inferring it from category %r",
        expense.id,
        expense.category,
    )
    return infer_expense_kind(
        expense.category,
        expense.sub_category,
        project_id=expense.project_id,
        customer_id=expense.customer_id,
    )


def is_capital_transaction(tx: Transaction) -> bool:
    """True for transactions tagged as owner capital movements."""
    return classify_transaction(tx) == ExpenseKind.CAPITAL_OR_WITHDRAWAL


def infer_transaction_kind(
    tx_type: TransactionType,
    category: Optional[str],
    *,
    project_id: Optional[int] = None,
    customer_id: Optional[int] = None,
) -> Optional[ExpenseKind]:
    """Kind stored on a new ledger transaction that no expense record backs.

    EXPENSE movements are classified like expenses. Any other movement is
    only tagged when its category names a capital movement ("Capital
    injection", "Owner drawing"); otherwise it carries no kind.
    """
    if tx_type in (TransactionType.DEBT_TAKEN, TransactionType.DEBT_REPAID):
        return ExpenseKind.DEBT_OR_LOAN
    if tx_type == TransactionType.EXPENSE:
        return infer_expense_kind(
            category, None, project_id=project_id, customer_id=customer_id
        )
    if _matches(CAPITAL_KEYWORDS, category):
        return ExpenseKind.CAPITAL_OR_WITHDRAWAL
    return None


def classify_transaction(tx: Transaction) -> Optional[ExpenseKind]:
    """Kind of a ledger transaction, or None when it is not a cost.

    - DEBT_TAKEN / DEBT_REPAID are always DEBT_OR_LOAN.
    - Movements backed by an expense record (``expense_id`` set) are not
      costs on their own: the expense is.
    - Otherwise the kind stored at creation wins.
    - Legacy EXPENSE rows without a stored kind are classified from their
      category, with a warning.
    """
    if tx.type in (TransactionType.DEBT_TAKEN, TransactionType.DEBT_REPAID):
        return ExpenseKind.DEBT_OR_LOAN
    if tx.expense_id is not None:
        return None
    if tx.kind is not None:
        return tx.kind
    if tx.type != TransactionType.EXPENSE:
        return None

    logger.warning(
        "Transaction %s has no stored kind, inferring it from category %r",
        tx.id,
        tx.category,
    )
    return infer_expense_kind(
        tx.category,
        None,
        project_id=tx.project_id,
        customer_id=tx.customer_id,
    )


@dataclass(frozen=True)
class CostItem:
    """A classified cost, from an expense record or a standalone transaction."""

    kind: ExpenseKind
    amount: Decimal
    category: str
    source: str  # "expense" | "transaction"
    source_id: int
    project_id: Optional[int] = None
    customer_id: Optional[int] = None
    vendor_id: Optional[int] = None
    unpaid: bool = False


def cost_items(ledger: Ledger) -> list[CostItem]:
    """Classify every cost record of a ledger snapshot.

    Expense amounts are positive magnitudes. Standalone EXPENSE
    transactions carry negative amounts, so their cost is the negated
    amount (a credit posted to an expense account reduces the cost).
    """
    items: list[CostItem] = []

    for e in ledger.expenses:
        items.append(
            CostItem(
                kind=classify_expense(e),
                amount=e.amount,
                category=(e.category or "").strip() or "General",
                source="expense",
                source_id=e.id,
                project_id=e.project_id,
                customer_id=e.customer_id,
                vendor_id=e.vendor_id,
                unpaid=e.payment_status == PaymentStatus.UNPAID,
            )
        )

    for t in ledger.transactions:
        if t.type != TransactionType.EXPENSE:
            continue
        kind = classify_transaction(t)
        if kind is None:
            continue
        items.append(
            CostItem(
                kind=kind,
                amount=-t.amount,
                category=(t.category or "").strip() or "General",
                source="transaction",
                source_id=t.id,
                project_id=t.project_id,
                customer_id=t.customer_id,
                vendor_id=t.vendor_id,
            )
        )

    return items
