# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Financial statement assemblers for SMB Ledger.

This module turns a :class:`~smb_ledger.models.Ledger` snapshot into the
two reports of the engine:

1. Profit & Loss
   --------------
   ``build_profit_and_loss(ledger, policy)``:

       GrossProfit     = Revenue - DirectCosts
       OperatingProfit = GrossProfit - OperatingExpenses
       NetProfit       = OperatingProfit - OtherExpenses   (always 0 today)

   - Revenue comes from ``revenue.recognize_revenue`` under the policy.
   - Direct costs are expenses classified DIRECT_COST. Under ACCRUAL only
     the costs of projects no longer Active are expensed (the others are
     Work in Progress) and the cost of goods sold of completed shop sales
     is added. The CASH view never includes COGS.
   - Operating expenses are grouped by category, largest first, and
     include a "Depreciation" line equal to the book-value reduction of
     fixed assets.

2. Balance Sheet
   --------------
   ``build_balance_sheet(ledger, policy)``:

       Assets      = Cash & Bank + Other Asset Accounts + Fixed Assets
                     + Inventory + Work in Progress + Receivables
       Liabilities = Accounts Payable + Tax Payable + Unearned Revenue
                     + Long-term Loans
       Equity      = Capital + Drawings + Retained Earnings

   Retained earnings are the net profit computed under the same policy.
   The assembler always checks ``|Assets - (Liabilities + Equity)| <
   tolerance`` and attaches the result as a :class:`BalanceCheck`
   diagnostic. A mismatch is logged, never raised: it points at the data,
   not at the engine.

Every function here is pure: it only reads the snapshot. The balance
sheet sub-aggregations do not depend on each other and may be fanned out
on an executor supplied by the caller.

Notes
-----
Records that reference something missing from the snapshot (an expense of
an unknown project, a sale item without product) contribute zero and are
logged; one bad record never blanks out a whole statement.
"""

import logging
from collections.abc import Callable, Mapping
from concurrent.futures import Executor
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Optional, Union

from .accounts import (
    AccountClass,
    accounts_of_class,
    cash_accounts,
    other_asset_accounts,
)
from .classification import CostItem, cost_items, is_capital_transaction
from .depreciation import (
    DEFAULT_DEPRECIATION_RATE,
    accumulated_depreciation,
    book_value,
)
from .models import ExpenseKind, Ledger, ProjectStatus, TransactionType
from .money import ZERO, sum_decimals
from .periods import is_historical, project_status_as_of
from .receivables import (
    LoansResult,
    PayablesResult,
    ReceivablesResult,
    cash_effect,
    long_term_loans,
    resolve_payables,
    resolve_receivables,
)
from .revenue import RecognitionPolicy, recognize_revenue, sorted_breakdown

logger = logging.getLogger(__name__)

DEFAULT_BALANCE_TOLERANCE = Decimal("1")

DEPRECIATION_LABEL = "Depreciation"
COGS_LABEL = "Cost of Goods Sold"
COMPLETED_SALE_STATUS = "completed"

DrillId = Union[int, str, None]


# ---------------------------------------------------------------------------
# Report dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineItem:
    """
    One line of a report tree.

    Attributes
    ----------
    label :
        Display label.
    value :
        Amount (Decimal, unrounded).
    drill_type, drill_id :
        Opaque navigation identifiers passed through to callers (for
        example ``("project", 12)`` or ``("accounts", None)``). The engine
        never interprets them.
    breakdown :
        Optional child lines whose values add up to ``value``.
    """

    label: str
    value: Decimal
    drill_type: Optional[str] = None
    drill_id: DrillId = None
    breakdown: tuple["LineItem", ...] = ()


@dataclass(frozen=True)
class Section:
    label: str
    items: tuple[LineItem, ...] = ()

    @property
    def total(self) -> Decimal:
        return sum_decimals(i.value for i in self.items)

    def get(self, label: str) -> Optional[LineItem]:
        """Line of this section with the given label, if any."""
        for item in self.items:
            if item.label == label:
                return item
        return None


@dataclass(frozen=True)
class ProfitAndLoss:
    company_id: int
    as_of: date
    policy: RecognitionPolicy
    revenue: Decimal
    revenue_breakdown: tuple[tuple[str, Decimal], ...]
    direct_costs: Decimal
    direct_cost_breakdown: tuple[tuple[str, Decimal], ...]
    gross_profit: Decimal
    operating_expenses: Decimal
    operating_expense_breakdown: tuple[tuple[str, Decimal], ...]
    operating_profit: Decimal
    other_expenses: Decimal
    net_profit: Decimal


@dataclass(frozen=True)
class BalanceCheck:
    """Outcome of the ``Assets == Liabilities + Equity`` check."""

    difference: Decimal
    tolerance: Decimal
    is_balanced: bool


@dataclass(frozen=True)
class Diagnostics:
    """
    Data-quality information attached to a balance sheet.

    ``account_balances_are_current`` is True when the report is dated in
    the past: account balances are stored as running totals, so the
    current balance stands in for the historical one.
    """

    balance: BalanceCheck
    account_balances_are_current: bool = False
    warnings: tuple[str, ...] = ()


@dataclass(frozen=True)
class BalanceSheet:
    company_id: int
    as_of: date
    policy: RecognitionPolicy
    assets: Section
    liabilities: Section
    equity: Section
    diagnostics: Diagnostics
    project_id: Optional[int] = None
    performance: Optional[ProfitAndLoss] = field(default=None, repr=False)

    @property
    def total_assets(self) -> Decimal:
        return self.assets.total

    @property
    def total_liabilities(self) -> Decimal:
        return self.liabilities.total

    @property
    def total_equity(self) -> Decimal:
        return self.equity.total

    @property
    def check(self) -> BalanceCheck:
        return self.diagnostics.balance


@dataclass(frozen=True)
class FinancialSummary:
    """Performance (P&L) and position (balance sheet) for one as-of date."""

    company_id: int
    as_of: date
    policy: RecognitionPolicy
    performance: ProfitAndLoss
    position: BalanceSheet


# ---------------------------------------------------------------------------
# Fan-out helper
# ---------------------------------------------------------------------------


def _run_all(
    tasks: Mapping[str, Callable[[], Any]],
    executor: Optional[Executor] = None,
) -> dict[str, Any]:
    """Run independent read-only computations, concurrently if possible."""
    if executor is None:
        return {name: fn() for name, fn in tasks.items()}

    futures = {name: executor.submit(fn) for name, fn in tasks.items()}
    return {name: fut.result() for name, fut in futures.items()}


# ---------------------------------------------------------------------------
# Cost helpers
# ---------------------------------------------------------------------------


def _project_label(ledger: Ledger, project_id: Optional[int]) -> str:
    project = ledger.project_by_id().get(project_id) if project_id is not None else None
    if project is None:
        return f"Project #{project_id}" if project_id is not None else "Unassigned"
    return project.name


def _split_direct_costs(
    ledger: Ledger, items: list[CostItem]
) -> tuple[list[CostItem], list[CostItem]]:
    """
    Split DIRECT_COST items into (expensed, work in progress) as of the
    ledger date. Items of Active projects are work in progress; items
    of an unknown project contribute nothing.
    """
    projects = ledger.project_by_id()
    expensed: list[CostItem] = []
    in_progress: list[CostItem] = []

    for item in items:
        if item.kind != ExpenseKind.DIRECT_COST:
            continue
        if item.project_id is None:
            expensed.append(item)
            continue
        project = projects.get(item.project_id)
        if project is None:
            logger.warning(
                "%s %s references missing project %s, ignored",
                item.source.capitalize(),
                item.source_id,
                item.project_id,
            )
            continue
        status = project_status_as_of(project, ledger.as_of)
        if status == ProjectStatus.ACTIVE:
            in_progress.append(item)
        elif status is not None:
            expensed.append(item)

    return expensed, in_progress


def _by_project(ledger: Ledger, items: list[CostItem]) -> dict[Optional[int], Decimal]:
    totals: dict[Optional[int], Decimal] = {}
    for item in items:
        totals[item.project_id] = totals.get(item.project_id, ZERO) + item.amount
    return totals


def cost_of_goods_sold(ledger: Ledger) -> Decimal:
    """Cost of completed shop sales: sum of ``quantity * product.cost_price``."""
    total = ZERO
    for sale in ledger.sales:
        if str(sale.status or "").strip().lower() != COMPLETED_SALE_STATUS:
            continue
        for item in sale.items:
            if item.product is None:
                logger.warning(
                    "Sale %s has an item without product (%s), cost ignored",
                    sale.id,
                    item.product_id,
                )
                continue
            total += item.quantity * item.product.cost_price
    return total


# ---------------------------------------------------------------------------
# Profit & Loss
# ---------------------------------------------------------------------------


def build_profit_and_loss(
    ledger: Ledger,
    policy: RecognitionPolicy,
    *,
    depreciation_rate: Decimal = DEFAULT_DEPRECIATION_RATE,
) -> ProfitAndLoss:
    """Compute the Profit & Loss of ``ledger`` under ``policy``."""
    policy = RecognitionPolicy.parse(policy)
    revenue = recognize_revenue(ledger, policy)
    items = cost_items(ledger)

    # Direct costs
    if policy == RecognitionPolicy.CASH:
        direct = [i for i in items if i.kind == ExpenseKind.DIRECT_COST]
    else:
        direct, _ = _split_direct_costs(ledger, items)

    direct_lines: dict[str, Decimal] = {}
    for project_id, amount in _by_project(ledger, direct).items():
        label = _project_label(ledger, project_id)
        direct_lines[label] = direct_lines.get(label, ZERO) + amount
    if policy == RecognitionPolicy.ACCRUAL:
        direct_lines[COGS_LABEL] = cost_of_goods_sold(ledger)
    direct_costs = sum_decimals(direct_lines.values())

    # Operating expenses
    opex_lines: dict[str, Decimal] = {}
    for item in items:
        if item.kind == ExpenseKind.OPERATING_EXPENSE:
            opex_lines[item.category] = opex_lines.get(item.category, ZERO) + item.amount
    depreciation = sum_decimals(
        accumulated_depreciation(a, ledger.as_of, depreciation_rate)
        for a in ledger.fixed_assets
    )
    if depreciation:
        opex_lines[DEPRECIATION_LABEL] = (
            opex_lines.get(DEPRECIATION_LABEL, ZERO) + depreciation
        )
    operating_expenses = sum_decimals(opex_lines.values())

    gross_profit = revenue.total - direct_costs
    operating_profit = gross_profit - operating_expenses
    other_expenses = ZERO

    return ProfitAndLoss(
        company_id=ledger.company_id,
        as_of=ledger.as_of,
        policy=policy,
        revenue=revenue.total,
        revenue_breakdown=revenue.breakdown,
        direct_costs=direct_costs,
        direct_cost_breakdown=sorted_breakdown(direct_lines),
        gross_profit=gross_profit,
        operating_expenses=operating_expenses,
        operating_expense_breakdown=sorted_breakdown(opex_lines),
        operating_profit=operating_profit,
        other_expenses=other_expenses,
        net_profit=operating_profit - other_expenses,
    )


# ---------------------------------------------------------------------------
# Balance sheet sections
# ---------------------------------------------------------------------------


def _cash_line(ledger: Ledger) -> LineItem:
    accounts = cash_accounts(ledger.accounts)
    children = tuple(LineItem(a.name, a.balance, "account", a.id) for a in accounts)
    return LineItem(
        "Cash & Bank",
        sum_decimals(c.value for c in children),
        "accounts",
        None,
        children,
    )


def _other_accounts_line(ledger: Ledger) -> LineItem:
    accounts = other_asset_accounts(ledger.accounts)
    children = tuple(LineItem(a.name, a.balance, "account", a.id) for a in accounts)
    return LineItem(
        "Other Asset Accounts",
        sum_decimals(c.value for c in children),
        "accounts",
        None,
        children,
    )


def _fixed_assets_line(ledger: Ledger, rate: Decimal) -> LineItem:
    children = tuple(
        LineItem(a.name, book_value(a, ledger.as_of, rate), "fixed_asset", a.id)
        for a in ledger.fixed_assets
    )
    return LineItem(
        "Fixed Assets",
        sum_decimals(c.value for c in children),
        "fixed_assets",
        None,
        children,
    )


def _inventory_line(ledger: Ledger) -> LineItem:
    children = tuple(
        LineItem(i.name, i.in_stock * i.purchase_price, "inventory_item", i.id)
        for i in ledger.inventory
    )
    return LineItem(
        "Inventory",
        sum_decimals(c.value for c in children),
        "inventory",
        None,
        children,
    )


def _wip_line(ledger: Ledger, policy: RecognitionPolicy) -> LineItem:
    children: tuple[LineItem, ...] = ()
    if policy == RecognitionPolicy.ACCRUAL:
        _, in_progress = _split_direct_costs(ledger, cost_items(ledger))
        children = tuple(
            LineItem(_project_label(ledger, pid), amount, "project", pid)
            for pid, amount in sorted(
                _by_project(ledger, in_progress).items(), key=lambda kv: kv[0] or 0
            )
        )
    return LineItem(
        "Work in Progress",
        sum_decimals(c.value for c in children),
        "projects",
        None,
        children,
    )


def _receivables_line(ledger: Ledger, result: ReceivablesResult) -> LineItem:
    children: list[LineItem] = [
        LineItem(_project_label(ledger, pid), amount, "project", pid)
        for pid, amount in result.projects
    ]
    if result.debt:
        children.append(LineItem("Customer debts", result.debt, "debts", "customer"))
    if result.customer_linked:
        children.append(
            LineItem("Customer-linked expenses", result.customer_linked, "expenses", None)
        )
    if result.unpaid_sales:
        children.append(LineItem("Unpaid sales", result.unpaid_sales, "sales", None))

    return LineItem("Receivables", result.total, "receivables", None, tuple(children))


def _payables_line(result: PayablesResult) -> LineItem:
    children: list[LineItem] = []
    if result.unpaid_expenses:
        children.append(
            LineItem("Unpaid expenses", result.unpaid_expenses, "expenses", None)
        )
    if result.debt:
        children.append(LineItem("Vendor debts", result.debt, "debts", "vendor"))
    return LineItem("Accounts Payable", result.total, "payables", None, tuple(children))


def _loans_line(result: LoansResult) -> LineItem:
    children: list[LineItem] = []
    if result.company_debt:
        children.append(LineItem("Company loans", result.company_debt, "loan", None))
    for account_id, name, balance in result.liability_accounts:
        children.append(LineItem(name, balance, "account", account_id))
    return LineItem("Long-term Loans", result.total, "loans", None, tuple(children))


def _unearned_line(ledger: Ledger, policy: RecognitionPolicy) -> LineItem:
    children: tuple[LineItem, ...] = ()
    if policy == RecognitionPolicy.ACCRUAL:
        revenue = recognize_revenue(ledger, policy)
        children = tuple(
            LineItem(_project_label(ledger, pid), amount, "project", pid)
            for pid, amount in revenue.unearned_by_project
        )
    return LineItem(
        "Unearned Revenue",
        sum_decimals(c.value for c in children),
        "projects",
        None,
        children,
    )


def _capital_line(ledger: Ledger) -> LineItem:
    """
    Owner capital: balances of equity accounts plus capital movements
    booked as ledger transactions (capital injections tagged at creation).
    """
    children: list[LineItem] = [
        LineItem(a.name, a.balance, "account", a.id)
        for a in accounts_of_class(ledger.accounts, AccountClass.EQUITY)
    ]
    tagged = sum_decimals(
        cash_effect(
            t.type,
            t.amount,
            customer_id=t.customer_id,
            vendor_id=t.vendor_id,
            project_id=t.project_id,
        )
        for t in ledger.transactions
        if t.type != TransactionType.EXPENSE and is_capital_transaction(t)
    )
    if tagged:
        children.append(LineItem("Capital transactions", tagged, "transactions", None))
    return LineItem(
        "Capital",
        sum_decimals(c.value for c in children),
        "equity",
        None,
        tuple(children),
    )


def _drawings_line(ledger: Ledger) -> LineItem:
    withdrawn = sum_decimals(
        i.amount
        for i in cost_items(ledger)
        if i.kind == ExpenseKind.CAPITAL_OR_WITHDRAWAL
    )
    return LineItem("Drawings", ZERO - withdrawn, "expenses", None)


def check_balance(
    assets: Decimal,
    liabilities: Decimal,
    equity: Decimal,
    tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
) -> BalanceCheck:
    """Compare assets with liabilities plus equity."""
    difference = assets - (liabilities + equity)
    return BalanceCheck(
        difference=difference,
        tolerance=tolerance,
        is_balanced=abs(difference) < tolerance,
    )


# ---------------------------------------------------------------------------
# Balance sheet
# ---------------------------------------------------------------------------


def build_balance_sheet(
    ledger: Ledger,
    policy: RecognitionPolicy,
    *,
    depreciation_rate: Decimal = DEFAULT_DEPRECIATION_RATE,
    tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
    executor: Optional[Executor] = None,
) -> BalanceSheet:
    """
    Assemble the balance sheet of ``ledger`` under ``policy``.

    Parameters
    ----------
    ledger :
        Snapshot to report on (possibly narrowed to one project).
    policy :
        Revenue recognition policy, shared with the retained earnings.
    depreciation_rate :
        Annual straight-line rate for fixed assets.
    tolerance :
        Maximum absolute difference for the balance check.
    executor :
        Optional executor used to compute the independent sections
        concurrently.

    Returns
    -------
    BalanceSheet
        The report, with its :class:`BalanceCheck` diagnostic. A failing
        check is logged as a warning; it is never raised.
    """
    policy = RecognitionPolicy.parse(policy)

    results = _run_all(
        {
            "pnl": lambda: build_profit_and_loss(
                ledger, policy, depreciation_rate=depreciation_rate
            ),
            "cash": lambda: _cash_line(ledger),
            "other_accounts": lambda: _other_accounts_line(ledger),
            "fixed_assets": lambda: _fixed_assets_line(ledger, depreciation_rate),
            "inventory": lambda: _inventory_line(ledger),
            "wip": lambda: _wip_line(ledger, policy),
            "receivables": lambda: resolve_receivables(ledger),
            "payables": lambda: resolve_payables(ledger),
            "loans": lambda: long_term_loans(ledger),
            "unearned": lambda: _unearned_line(ledger, policy),
            "capital": lambda: _capital_line(ledger),
            "drawings": lambda: _drawings_line(ledger),
        },
        executor,
    )
    pnl: ProfitAndLoss = results["pnl"]

    assets = Section(
        "Assets",
        (
            results["cash"],
            results["other_accounts"],
            results["fixed_assets"],
            results["inventory"],
            results["wip"],
            _receivables_line(ledger, results["receivables"]),
        ),
    )
    liabilities = Section(
        "Liabilities",
        (
            _payables_line(results["payables"]),
            LineItem("Tax Payable", sum_decimals(s.tax for s in ledger.sales), "sales", None),
            results["unearned"],
            _loans_line(results["loans"]),
        ),
    )
    equity = Section(
        "Equity",
        (
            results["capital"],
            results["drawings"],
            LineItem("Retained Earnings", pnl.net_profit, "profit_and_loss", None),
        ),
    )

    check = check_balance(assets.total, liabilities.total, equity.total, tolerance)
    warnings: list[str] = []
    if not check.is_balanced:
        msg = (
            f"Balance sheet mismatch for company {ledger.company_id} as of "
            f"{ledger.as_of} ({policy.value}): assets {assets.total} != "
            f"liabilities + equity {liabilities.total + equity.total} "
            f"(difference {check.difference})"
        )
        logger.warning(msg)
        warnings.append(msg)

    historical = is_historical(ledger.as_of)
    if historical:
        msg = (
            f"Account balances are current balances, not balances as of "
            f"{ledger.as_of}"
        )
        logger.warning(msg)
        warnings.append(msg)

    return BalanceSheet(
        company_id=ledger.company_id,
        as_of=ledger.as_of,
        policy=policy,
        project_id=ledger.project_id,
        assets=assets,
        liabilities=liabilities,
        equity=equity,
        diagnostics=Diagnostics(
            balance=check,
            account_balances_are_current=historical,
            warnings=tuple(warnings),
        ),
        performance=pnl,
    )


def build_financial_summary(
    ledger: Ledger,
    policy: RecognitionPolicy,
    *,
    depreciation_rate: Decimal = DEFAULT_DEPRECIATION_RATE,
    tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
    executor: Optional[Executor] = None,
) -> FinancialSummary:
    """P&L and balance sheet of one snapshot, computed under the same policy."""
    position = build_balance_sheet(
        ledger,
        policy,
        depreciation_rate=depreciation_rate,
        tolerance=tolerance,
        executor=executor,
    )
    return FinancialSummary(
        company_id=ledger.company_id,
        as_of=ledger.as_of,
        policy=position.policy,
        performance=position.performance,
        position=position,
    )
