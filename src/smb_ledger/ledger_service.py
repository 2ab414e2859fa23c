# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
High-level services for financial reports and journal posting.

This module sits between:
- the ledger store in `db.py` and the pure engine (`engine.py`,
  `journal.py`), and
- user-facing layers such as the CLI or an HTTP API.

Every service takes the tenant (``company_id``) and the as-of date as
explicit arguments. Nothing is read from an ambient "current company".

Responsibilities
----------------
1) Report queries
   - `get_financial_summary`: performance (P&L) and position (balance
     sheet) under the summary policy (cash basis by default).
   - `get_balance_sheet`: balance sheet under the balance-sheet policy
     (accrual by default), optionally narrowed to one project.
   - `get_profit_and_loss`, `get_counterparty_balances`.

   The tenant is checked first: a missing or unknown company raises
   `UnauthorizedError` before anything is loaded or computed. The
   independent balance-sheet sections run on a thread pool when
   `[reports].workers` is greater than 1.

2) Journal posting
   - `post_journal_entry`: builds a draft entry, validates it (exact
     debit/credit equality) and posts it atomically. Rejected entries
     produce no write at all.
   - `post_journal_csv`: same, from a CSV file of lines.

3) Bulk expense import
   - `import_expenses_csv`: one expense per row, each classified once at
     import. Rows that fail are reported back and skipped; the others are
     kept.
"""

import logging
import os
from collections.abc import Iterable, Iterator
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional, Union

from .config import AppConfig
from .db import (
    DatabaseConfig,
    company_exists,
    insert_expense,
    load_ledger,
    post_journal_lines,
)
from .engine import (
    BalanceSheet,
    FinancialSummary,
    ProfitAndLoss,
    build_balance_sheet,
    build_financial_summary,
    build_profit_and_loss,
)
from .errors import JournalValidationError, UnauthorizedError
from .io import parse_expense_row, read_expenses_csv, read_journal_lines_csv
from .journal import PostedJournal, make_entry, validate_journal_entry
from .models import Ledger
from .periods import parse_as_of
from .receivables import CounterpartyBalance, counterparty_balances
from .revenue import RecognitionPolicy

logger = logging.getLogger(__name__)

AsOf = Union[date, str, None]


@dataclass(frozen=True)
class ImportResult:
    """
    Outcome of a bulk expense import.

    Attributes
    ----------
    inserted_ids:
        Ids of the expenses created, in file order.
    errors:
        ``(row_number, message)`` for rows that were skipped. Row numbers
        follow the file (the header is row 1).
    """

    inserted_ids: tuple[int, ...]
    errors: tuple[tuple[int, str], ...] = ()

    @property
    def rows_inserted(self) -> int:
        return len(self.inserted_ids)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_db_config(app_config: AppConfig) -> DatabaseConfig:
    return app_config.database


def require_company(app_config: AppConfig, company_id: Optional[int]) -> int:
    """
    Fail fast on a missing or unknown tenant.

    Raises
    ------
    UnauthorizedError
        If ``company_id`` is None or does not exist in the ledger store.
    """
    if company_id is None or not company_exists(_get_db_config(app_config), company_id):
        raise UnauthorizedError(company_id)
    return company_id


def _as_date(as_of: AsOf) -> date:
    if isinstance(as_of, date):
        return as_of
    return parse_as_of(as_of)


@contextmanager
def _report_executor(app_config: AppConfig) -> Iterator[Optional[Executor]]:
    workers = app_config.reports.workers
    if workers <= 1:
        yield None
        return
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="smb-ledger") as pool:
        yield pool


def _load(
    app_config: AppConfig,
    company_id: Optional[int],
    as_of: AsOf,
    project_id: Optional[int] = None,
) -> Ledger:
    company_id = require_company(app_config, company_id)
    return load_ledger(
        _get_db_config(app_config), company_id, _as_date(as_of), project_id
    )


# ---------------------------------------------------------------------------
# Report queries
# ---------------------------------------------------------------------------


def get_financial_summary(
    app_config: AppConfig,
    company_id: Optional[int],
    as_of: AsOf = None,
    policy: Optional[RecognitionPolicy] = None,
) -> FinancialSummary:
    """
    Performance and position of a company as of a date.

    Parameters
    ----------
    app_config:
        Global application configuration.
    company_id:
        Tenant. Required.
    as_of:
        Snapshot date (date or 'YYYY-MM-DD'); today when omitted.
    policy:
        Recognition policy; defaults to ``[reports].summary_policy``.

    Raises
    ------
    UnauthorizedError
        If the company is missing or unknown.
    """
    ledger = _load(app_config, company_id, as_of)
    reports = app_config.reports
    with _report_executor(app_config) as executor:
        return build_financial_summary(
            ledger,
            policy or reports.summary_policy,
            depreciation_rate=reports.depreciation_rate,
            tolerance=reports.balance_tolerance,
            executor=executor,
        )


def get_balance_sheet(
    app_config: AppConfig,
    company_id: Optional[int],
    as_of: AsOf = None,
    project_id: Optional[int] = None,
    policy: Optional[RecognitionPolicy] = None,
) -> BalanceSheet:
    """
    Balance sheet of a company (or of one of its projects) as of a date.

    ``policy`` defaults to ``[reports].balance_sheet_policy``. Every line
    carries ``value``, ``drill_type`` and ``drill_id``; the balance check is
    in ``diagnostics``.

    Raises
    ------
    UnauthorizedError
        If the company is missing or unknown.
    """
    ledger = _load(app_config, company_id, as_of, project_id)
    reports = app_config.reports
    with _report_executor(app_config) as executor:
        return build_balance_sheet(
            ledger,
            policy or reports.balance_sheet_policy,
            depreciation_rate=reports.depreciation_rate,
            tolerance=reports.balance_tolerance,
            executor=executor,
        )


def get_profit_and_loss(
    app_config: AppConfig,
    company_id: Optional[int],
    as_of: AsOf = None,
    policy: Optional[RecognitionPolicy] = None,
) -> ProfitAndLoss:
    ledger = _load(app_config, company_id, as_of)
    reports = app_config.reports
    return build_profit_and_loss(
        ledger,
        policy or reports.summary_policy,
        depreciation_rate=reports.depreciation_rate,
    )


def get_counterparty_balances(
    app_config: AppConfig,
    company_id: Optional[int],
    as_of: AsOf = None,
) -> list[CounterpartyBalance]:
    """Net debt statement per customer, vendor, project and company loan."""
    return counterparty_balances(_load(app_config, company_id, as_of))


# ---------------------------------------------------------------------------
# Journal posting
# ---------------------------------------------------------------------------


def post_journal_entry(
    app_config: AppConfig,
    company_id: Optional[int],
    entry_date: Union[date, str],
    reference: Optional[str],
    notes: Optional[str],
    lines: Iterable[Any],
) -> PostedJournal:
    """
    Validate and post a manual journal entry.

    ``lines`` are ``journal.JournalLine`` objects or mappings with
    ``account_id``, ``debit``, ``credit`` and optional ``description``.

    Returns
    -------
    PostedJournal
        Carries the new ``entry_id``.

    Raises
    ------
    UnauthorizedError
        If the company is missing or unknown.
    UnbalancedJournalError
        If debits and credits differ (with the exact ``delta``).
    JournalValidationError
        For any other rejection, including missing or inactive accounts.
        Nothing is written when an error is raised.
    """
    company_id = require_company(app_config, company_id)
    draft = make_entry(_as_date(entry_date), reference, notes, lines)

    try:
        validated = validate_journal_entry(draft)
    except JournalValidationError as exc:
        logger.warning(
            "Journal entry %r rejected for company %s: %s", reference, company_id, exc
        )
        raise

    return post_journal_lines(_get_db_config(app_config), company_id, validated)


def post_journal_csv(
    app_config: AppConfig,
    company_id: Optional[int],
    path: Union[str, "os.PathLike[str]"],
    entry_date: Union[date, str],
    reference: Optional[str] = None,
    notes: Optional[str] = None,
) -> PostedJournal:
    """Post one journal entry whose lines are read from a CSV file."""
    df = read_journal_lines_csv(path)
    lines = [
        {
            "account_id": row["account_id"],
            "debit": row["debit"],
            "credit": row["credit"],
            "description": row["description"],
        }
        for _, row in df.iterrows()
    ]
    return post_journal_entry(app_config, company_id, entry_date, reference, notes, lines)


# ---------------------------------------------------------------------------
# Bulk expense import
# ---------------------------------------------------------------------------


def import_expenses_csv(
    app_config: AppConfig,
    company_id: Optional[int],
    path: Union[str, "os.PathLike[str]"],
) -> ImportResult:
    """
    Import expenses from a CSV file.

    The file structure is described in ``io.read_expenses_csv``; a file
    with missing columns raises ``ValueError``. Each valid row becomes one
    expense whose kind is assigned now (explicit ``kind`` column, or keyword
    inference). A row with an unparseable value, or referencing an unknown
    project or account, is skipped and reported in ``errors``.
    """
    company_id = require_company(app_config, company_id)
    db_cfg = _get_db_config(app_config)
    df = read_expenses_csv(path)

    inserted: list[int] = []
    errors: list[tuple[int, str]] = []
    for row_number, row in enumerate(df.to_dict("records"), start=2):
        try:
            values = parse_expense_row(row)
            expense_id = insert_expense(
                db_cfg,
                company_id,
                values["category"],
                values["amount"],
                values["date"],
                sub_category=values["sub_category"],
                payment_status=values["payment_status"],
                kind=values["kind"],
                project_id=values["project_id"],
                customer_id=values["customer_id"],
                vendor_id=values["vendor_id"],
                description=values["description"],
                account_id=values["account_id"],
            )
        except ValueError as exc:
            logger.warning("Expense import: row %d skipped: %s", row_number, exc)
            errors.append((row_number, str(exc)))
            continue
        inserted.append(expense_id)

    logger.info(
        "Imported %d expense(s) for company %s from %s (%d skipped)",
        len(inserted),
        company_id,
        path,
        len(errors),
    )
    return ImportResult(inserted_ids=tuple(inserted), errors=tuple(errors))
