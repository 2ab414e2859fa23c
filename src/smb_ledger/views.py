# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for SMB Ledger.

This module flattens the report trees produced by ``engine.py`` into
pandas DataFrames ready for console display or CSV export. Values are
rounded here, with banker's rounding, and nowhere else.

Every view has the same generic columns:

    display_order, section, level, label, value, drill_type, drill_id

- ``level`` 0 rows are section totals and derived figures (Gross Profit,
  Total Assets, ...),
- ``level`` 1 rows are report lines,
- ``level`` 2 rows are breakdown lines (only when ``detailed=True``).
"""

from collections.abc import Iterable
from decimal import Decimal
from typing import Any, Optional

import pandas as pd

from .engine import BalanceSheet, FinancialSummary, LineItem, ProfitAndLoss, Section
from .money import round_for_display

COLUMNS = ["display_order", "section", "level", "label", "value", "drill_type", "drill_id"]


def _row(
    section: str,
    level: int,
    label: str,
    value: Decimal,
    decimals: int,
    drill_type: Optional[str] = None,
    drill_id: Any = None,
) -> dict[str, object]:
    return {
        "section": section,
        "level": level,
        "label": label,
        "value": round_for_display(value, decimals),
        "drill_type": drill_type,
        "drill_id": drill_id,
    }


def _renumber_display_order(
    df: pd.DataFrame, start: int = 10, step: int = 10
) -> pd.DataFrame:
    """Reassign display_order to be strictly sequential: start, start+step, ...
    Preserves the current order of the lines (as it appears in df).
    """
    df = df.copy()
    df = df.reset_index(drop=True)
    df["display_order"] = [start + i * step for i in range(len(df))]
    return df


def _finalize_view(rows: list[dict[str, object]]) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=COLUMNS)
    df = _renumber_display_order(pd.DataFrame(rows))
    return df[COLUMNS]


def _breakdown_rows(
    section: str,
    pairs: Iterable[tuple[str, Decimal]],
    decimals: int,
) -> list[dict[str, object]]:
    return [_row(section, 2, label, amount, decimals) for label, amount in pairs]


def profit_and_loss_to_dataframe(
    pnl: ProfitAndLoss, decimals: int = 2, *, detailed: bool = True
) -> pd.DataFrame:
    """
    Flatten a Profit & Loss into rows, top to bottom:
    Revenue, Direct Costs, Gross Profit, Operating Expenses, Operating
    Profit, Other Expenses, Net Profit. Breakdowns (largest first) follow
    their total when ``detailed`` is True.
    """
    section = "Profit & Loss"
    rows: list[dict[str, object]] = []

    def block(label: str, value: Decimal, pairs) -> None:
        rows.append(_row(section, 1, label, value, decimals))
        if detailed:
            rows.extend(_breakdown_rows(section, pairs, decimals))

    block("Revenue", pnl.revenue, pnl.revenue_breakdown)
    block("Direct Costs", pnl.direct_costs, pnl.direct_cost_breakdown)
    rows.append(_row(section, 0, "Gross Profit", pnl.gross_profit, decimals))
    block("Operating Expenses", pnl.operating_expenses, pnl.operating_expense_breakdown)
    rows.append(_row(section, 0, "Operating Profit", pnl.operating_profit, decimals))
    rows.append(_row(section, 1, "Other Expenses", pnl.other_expenses, decimals))
    rows.append(_row(section, 0, "Net Profit", pnl.net_profit, decimals))

    return _finalize_view(rows)


def _section_rows(
    section: Section, decimals: int, detailed: bool
) -> list[dict[str, object]]:
    rows: list[dict[str, object]] = []
    for item in section.items:
        rows.append(
            _row(section.label, 1, item.label, item.value, decimals, item.drill_type, item.drill_id)
        )
        if detailed:
            rows.extend(_child_rows(section.label, item, decimals))
    rows.append(_row(section.label, 0, f"Total {section.label}", section.total, decimals))
    return rows


def _child_rows(section: str, item: LineItem, decimals: int) -> list[dict[str, object]]:
    return [
        _row(section, 2, child.label, child.value, decimals, child.drill_type, child.drill_id)
        for child in item.breakdown
    ]


def balance_sheet_to_dataframe(
    sheet: BalanceSheet, decimals: int = 2, *, detailed: bool = True
) -> pd.DataFrame:
    """
    Flatten a balance sheet into rows: assets, liabilities and equity lines
    (with their drill-down identifiers), each followed by its total, then
    the ``Liabilities + Equity`` total and the balance difference.
    """
    rows: list[dict[str, object]] = []
    rows.extend(_section_rows(sheet.assets, decimals, detailed))
    rows.extend(_section_rows(sheet.liabilities, decimals, detailed))
    rows.extend(_section_rows(sheet.equity, decimals, detailed))
    rows.append(
        _row(
            "Check",
            0,
            "Total Liabilities + Equity",
            sheet.total_liabilities + sheet.total_equity,
            decimals,
        )
    )
    rows.append(_row("Check", 0, "Difference", sheet.check.difference, decimals))
    return _finalize_view(rows)


def summary_to_dataframe(summary: FinancialSummary, decimals: int = 2) -> pd.DataFrame:
    """Compact two-part view: performance figures and position totals."""
    pnl = summary.performance
    position = summary.position
    rows = [
        _row("Performance", 1, "Revenue", pnl.revenue, decimals),
        _row("Performance", 1, "Direct Costs", pnl.direct_costs, decimals),
        _row("Performance", 0, "Gross Profit", pnl.gross_profit, decimals),
        _row("Performance", 1, "Operating Expenses", pnl.operating_expenses, decimals),
        _row("Performance", 0, "Operating Profit", pnl.operating_profit, decimals),
        _row("Performance", 0, "Net Profit", pnl.net_profit, decimals),
        _row("Position", 1, "Assets", position.total_assets, decimals),
        _row("Position", 1, "Liabilities", position.total_liabilities, decimals),
        _row("Position", 1, "Equity", position.total_equity, decimals),
    ]
    return _finalize_view(rows)


def counterparty_balances_to_dataframe(balances, decimals: int = 2) -> pd.DataFrame:
    """Debt statement per counterparty (taken, repaid, net, balance)."""
    columns = ["drill_type", "drill_id", "taken", "repaid", "net", "balance"]
    if not balances:
        return pd.DataFrame(columns=columns)
    return pd.DataFrame(
        [
            {
                "drill_type": b.drill_type,
                "drill_id": b.drill_id,
                "taken": round_for_display(b.taken, decimals),
                "repaid": round_for_display(b.repaid, decimals),
                "net": round_for_display(b.net, decimals),
                "balance": round_for_display(b.balance, decimals),
            }
            for b in balances
        ]
    )[columns]
