# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Revenue recognition for SMB Ledger.

The same ledger is read by two reports with different accounting
treatments, so the recognition rule is an explicit strategy parameter
(:class:`RecognitionPolicy`) rather than a hidden default.

CASH
    Revenue is recognized when cash comes in:
    - Project Income : every payment received up to the as-of date, for
      any project whatever its status,
    - Shop Sales     : ``Sale.total`` of sales created up to the as-of date,
    - General Income : INCOME transactions up to the as-of date.

ACCRUAL
    Revenue is recognized on completion:
    - Project Income : ``agreement_amount`` of projects Completed as of the
      date (recognized once); Active projects recognize nothing and all the
      cash they received is Unearned Revenue,
    - Shop Sales     : ``Sale.subtotal`` (tax belongs to the tax authority),
    - General Income : INCOME transactions, as under CASH.

Capital injections booked as INCOME transactions are owner equity, never
revenue, under both policies.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from .classification import is_capital_transaction
from .models import Ledger, ProjectStatus, TransactionType
from .money import ZERO, sum_decimals
from .periods import project_status_as_of

PROJECT_INCOME = "Project Income"
SHOP_SALES = "Shop Sales"
GENERAL_INCOME = "General Income"


class RecognitionPolicy(str, Enum):
    CASH = "cash"
    ACCRUAL = "accrual"

    @classmethod
    def parse(cls, value: "str | RecognitionPolicy") -> "RecognitionPolicy":
        """Accept a policy or its name (case-insensitive)."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            allowed = ", ".join(p.value for p in cls)
            raise ValueError(
                f"Invalid recognition policy: {value!r}. Expected one of: {allowed}."
            ) from exc


@dataclass(frozen=True)
class RevenueResult:
    """
    Recognized revenue for one ledger snapshot.

    Attributes
    ----------
    policy :
        Policy the figures were computed with.
    total :
        Sum of all recognized revenue.
    breakdown :
        ``(label, amount)`` pairs with amount > 0, largest first.
    unearned :
        Cash received for work not recognized yet (ACCRUAL only, else 0).
    unearned_by_project :
        ``(project_id, amount)`` detail of ``unearned``.
    """

    policy: RecognitionPolicy
    total: Decimal
    breakdown: tuple[tuple[str, Decimal], ...]
    unearned: Decimal = ZERO
    unearned_by_project: tuple[tuple[int, Decimal], ...] = ()


def _general_income(ledger: Ledger) -> Decimal:
    return sum_decimals(
        t.amount
        for t in ledger.transactions
        if t.type == TransactionType.INCOME and not is_capital_transaction(t)
    )


def _cash_project_income(ledger: Ledger) -> Decimal:
    return sum_decimals(p.amount for p in ledger.payments())


def _accrual_project_income(ledger: Ledger) -> tuple[Decimal, list[tuple[int, Decimal]]]:
    recognized = ZERO
    unearned: list[tuple[int, Decimal]] = []

    for project in ledger.projects:
        status = project_status_as_of(project, ledger.as_of)
        if status == ProjectStatus.COMPLETED:
            recognized += project.agreement_amount
        elif status == ProjectStatus.ACTIVE:
            received = project.total_paid
            if received:
                unearned.append((project.id, received))

    return recognized, unearned


def sorted_breakdown(items: dict[str, Decimal]) -> tuple[tuple[str, Decimal], ...]:
    """Keep positive amounts and order them from largest to smallest."""
    kept = [(label, amount) for label, amount in items.items() if amount > 0]
    kept.sort(key=lambda item: item[1], reverse=True)
    return tuple(kept)


def recognize_revenue(ledger: Ledger, policy: RecognitionPolicy) -> RevenueResult:
    """Compute recognized revenue of ``ledger`` under ``policy``."""
    policy = RecognitionPolicy.parse(policy)
    general = _general_income(ledger)

    if policy == RecognitionPolicy.CASH:
        components = {
            PROJECT_INCOME: _cash_project_income(ledger),
            SHOP_SALES: sum_decimals(s.total for s in ledger.sales),
            GENERAL_INCOME: general,
        }
        return RevenueResult(
            policy=policy,
            total=sum_decimals(components.values()),
            breakdown=sorted_breakdown(components),
        )

    project_income, unearned = _accrual_project_income(ledger)
    components = {
        PROJECT_INCOME: project_income,
        SHOP_SALES: sum_decimals(s.subtotal for s in ledger.sales),
        GENERAL_INCOME: general,
    }
    return RevenueResult(
        policy=policy,
        total=sum_decimals(components.values()),
        breakdown=sorted_breakdown(components),
        unearned=sum_decimals(amount for _, amount in unearned),
        unearned_by_project=tuple(unearned),
    )
