# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Receivables, payables and loans for SMB Ledger.

Debt movements (DEBT_TAKEN / DEBT_REPAID transactions, and paid expenses
classified DEBT_OR_LOAN) are netted per counterparty:

- customer (or project) side: money the company lent. DEBT_TAKEN sends
  cash out and raises what the customer owes; DEBT_REPAID brings cash
  back and lowers it.
- vendor side: money the company borrowed from a supplier. DEBT_TAKEN
  brings cash in and raises what the company owes; DEBT_REPAID sends
  cash out and lowers it.
- company side (no counterparty at all): bank or owner loans, handled like
  the vendor side and reported as long-term loans.

Each side is netted as a whole (all customers and projects together,
all vendors together) and the side total is floored at zero once: an
over-repaid side is neither a payable nor a receivable. Per-counterparty
balances are only used by the debt statement.

Customer receivables
    = unpaid balances of projects Completed as of the date
      (``max(0, agreement - advance - payments)``)
    + max(0, net customer / project debt)
    + expenses classified CUSTOMER_RECEIVABLE
    + unpaid part of shop sales.

Vendor payables
    = UNPAID expenses (DEBT_OR_LOAN excluded) + max(0, net vendor debt).
"""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional

from .accounts import AccountClass, accounts_of_class
from .classification import CostItem, cost_items
from .models import (
    ExpenseKind,
    Ledger,
    Project,
    ProjectStatus,
    Transaction,
    TransactionType,
)
from .money import ZERO, sum_decimals
from .periods import project_status_as_of

logger = logging.getLogger(__name__)

CUSTOMER = "customer"
VENDOR = "vendor"
PROJECT = "project"
COMPANY = "loan"

# Sides on which a DEBT_TAKEN moves cash out of the company.
LENDING_SIDES = (CUSTOMER, PROJECT)


@dataclass(frozen=True)
class CounterpartyBalance:
    """Net debt position with one counterparty.

    ``drill_type`` / ``drill_id`` identify the counterparty for callers
    (``drill_id`` is None for company loans).
    """

    drill_type: str
    drill_id: Optional[int]
    taken: Decimal = ZERO
    repaid: Decimal = ZERO

    @property
    def net(self) -> Decimal:
        return self.taken - self.repaid

    @property
    def balance(self) -> Decimal:
        return max(ZERO, self.net)


@dataclass(frozen=True)
class ReceivablesResult:
    total: Decimal
    projects: tuple[tuple[int, Decimal], ...] = ()
    debt: Decimal = ZERO
    customer_linked: Decimal = ZERO
    unpaid_sales: Decimal = ZERO


@dataclass(frozen=True)
class PayablesResult:
    total: Decimal
    unpaid_expenses: Decimal = ZERO
    debt: Decimal = ZERO


@dataclass(frozen=True)
class LoansResult:
    total: Decimal
    company_debt: Decimal = ZERO
    liability_accounts: tuple[tuple[int, str, Decimal], ...] = ()


# ---------------------------------------------------------------------------
# Counterparty helpers
# ---------------------------------------------------------------------------


def counterparty(
    customer_id: Optional[int],
    vendor_id: Optional[int],
    project_id: Optional[int],
) -> tuple[str, Optional[int]]:
    """Side of a debt movement: customer wins over vendor, vendor over project."""
    if customer_id is not None:
        return CUSTOMER, customer_id
    if vendor_id is not None:
        return VENDOR, vendor_id
    if project_id is not None:
        return PROJECT, project_id
    return COMPANY, None


def cash_effect(
    tx_type: TransactionType,
    amount: Decimal,
    *,
    customer_id: Optional[int] = None,
    vendor_id: Optional[int] = None,
    project_id: Optional[int] = None,
) -> Decimal:
    """
    Signed change of the linked cash account caused by a transaction.

    INCOME and TRANSFER_IN add ``|amount|``, EXPENSE and TRANSFER_OUT remove
    it, OTHER applies the stored signed amount. DEBT movements depend on the
    counterparty: a vendor repayment is cash out while a customer repayment
    is cash in.
    """
    magnitude = abs(amount)

    if tx_type in (TransactionType.INCOME, TransactionType.TRANSFER_IN):
        return magnitude
    if tx_type in (TransactionType.EXPENSE, TransactionType.TRANSFER_OUT):
        return -magnitude
    if tx_type == TransactionType.OTHER:
        return amount

    side, _ = counterparty(customer_id, vendor_id, project_id)
    lending = side in LENDING_SIDES
    if tx_type == TransactionType.DEBT_TAKEN:
        return -magnitude if lending else magnitude
    # DEBT_REPAID
    return magnitude if lending else -magnitude


def _debt_movements(
    transactions: Iterable[Transaction], items: Iterable[CostItem]
) -> dict[tuple[str, Optional[int]], CounterpartyBalance]:
    totals: dict[tuple[str, Optional[int]], list[Decimal]] = {}

    def add(key: tuple[str, Optional[int]], taken: Decimal, repaid: Decimal) -> None:
        slot = totals.setdefault(key, [ZERO, ZERO])
        slot[0] += taken
        slot[1] += repaid

    for t in transactions:
        if t.type not in (TransactionType.DEBT_TAKEN, TransactionType.DEBT_REPAID):
            continue
        key = counterparty(t.customer_id, t.vendor_id, t.project_id)
        amount = abs(t.amount)
        if t.type == TransactionType.DEBT_TAKEN:
            add(key, amount, ZERO)
        else:
            add(key, ZERO, amount)

    # A paid debt-like expense is cash out: a loan to a customer, or a
    # repayment to a vendor or lender.
    for item in items:
        if item.kind != ExpenseKind.DEBT_OR_LOAN or item.unpaid:
            continue
        key = counterparty(item.customer_id, item.vendor_id, item.project_id)
        if key[0] in LENDING_SIDES:
            add(key, item.amount, ZERO)
        else:
            add(key, ZERO, item.amount)

    return {
        key: CounterpartyBalance(key[0], key[1], taken, repaid)
        for key, (taken, repaid) in totals.items()
    }


def counterparty_balances(ledger: Ledger) -> list[CounterpartyBalance]:
    """Net debt statement of every counterparty, in a stable order."""
    balances = _debt_movements(ledger.transactions, cost_items(ledger))
    return sorted(
        balances.values(),
        key=lambda b: (b.drill_type, b.drill_id if b.drill_id is not None else -1),
    )


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


def _side_debt(
    ledger: Ledger,
    items: list[CostItem],
    sides: tuple[str, ...],
    label: str,
) -> Decimal:
    """Net debt of a whole side, floored at zero once."""
    net = sum_decimals(
        b.net
        for b in _debt_movements(ledger.transactions, items).values()
        if b.drill_type in sides
    )
    if net < 0:
        logger.warning(
            "%s over-repaid by %s as of %s, floored at 0", label, -net, ledger.as_of
        )
        return ZERO
    return net


def project_receivable(project: Project, as_of: date) -> Decimal:
    """Unpaid balance of a project; zero unless it is Completed as of the date."""
    if project_status_as_of(project, as_of) != ProjectStatus.COMPLETED:
        return ZERO
    return max(ZERO, project.agreement_amount - project.total_paid)


def resolve_receivables(ledger: Ledger) -> ReceivablesResult:
    """Everything customers owe the company as of the ledger date."""
    projects: list[tuple[int, Decimal]] = []
    for project in ledger.projects:
        amount = project_receivable(project, ledger.as_of)
        if amount > 0:
            projects.append((project.id, amount))

    items = cost_items(ledger)
    debt = _side_debt(ledger, items, LENDING_SIDES, "Customer debts")

    customer_linked = sum_decimals(
        i.amount for i in items if i.kind == ExpenseKind.CUSTOMER_RECEIVABLE
    )
    unpaid_sales = sum_decimals(max(ZERO, s.total - s.paid_amount) for s in ledger.sales)

    total = (
        sum_decimals(amount for _, amount in projects)
        + debt
        + customer_linked
        + unpaid_sales
    )
    return ReceivablesResult(
        total=total,
        projects=tuple(projects),
        debt=debt,
        customer_linked=customer_linked,
        unpaid_sales=unpaid_sales,
    )


def resolve_payables(ledger: Ledger) -> PayablesResult:
    """Everything the company owes its vendors as of the ledger date."""
    items = cost_items(ledger)
    unpaid = sum_decimals(
        i.amount for i in items if i.unpaid and i.kind != ExpenseKind.DEBT_OR_LOAN
    )
    debt = _side_debt(ledger, items, (VENDOR,), "Vendor debts")

    return PayablesResult(
        total=unpaid + debt,
        unpaid_expenses=unpaid,
        debt=debt,
    )


def long_term_loans(ledger: Ledger) -> LoansResult:
    """Company-level debt: loans with no counterparty plus liability accounts."""
    movements = _debt_movements(ledger.transactions, cost_items(ledger))
    company = movements.get((COMPANY, None))
    company_debt = company.balance if company is not None else ZERO
    if company is not None and company.net < 0:
        logger.warning(
            "Company loans over-repaid by %s as of %s, floored at 0",
            -company.net,
            ledger.as_of,
        )

    liability_accounts = tuple(
        (a.id, a.name, a.balance)
        for a in accounts_of_class(ledger.accounts, AccountClass.LIABILITY)
    )
    return LoansResult(
        total=company_debt + sum_decimals(b for _, _, b in liability_accounts),
        company_debt=company_debt,
        liability_accounts=liability_accounts,
    )
