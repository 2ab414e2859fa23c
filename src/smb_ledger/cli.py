# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Command-Line Interface (CLI) for SMB Ledger.

This module wires together the main building blocks of SMB Ledger:

- global configuration (database, report options, display options),
- the ledger store (SQLite),
- the report services (financial summary, balance sheet, debts),
- manual journal posting,
- view helpers (tabular rendering and CSV export).

The CLI is intentionally thin: it does not implement accounting logic
itself. It orchestrates the service layer based on command-line arguments
and the configuration file.


Commands
--------

    init-db
        Create the SQLite file and schema if needed.

    company add NAME
        Create a tenant and print its id.

    account add --company ID --name NAME --type TYPE [--balance AMOUNT]
        Create an account with an opening balance.

    import-expenses CSV_PATH --company ID
        Import expenses from a CSV file (see ``io.read_expenses_csv``).

    summary --company ID [--as-of DATE] [--policy cash|accrual]
        Performance and position (cash basis by default).

    balance-sheet --company ID [--as-of DATE] [--project ID]
                  [--policy cash|accrual] [--view simplified|detailed]
        Balance sheet (accrual basis by default), optionally for one
        project.

    debts --company ID [--as-of DATE]
        Net debt statement per counterparty.

    journal post CSV_PATH --company ID --date DATE [--reference REF]
        Validate and post a manual journal entry. Nothing is written when
        the entry is rejected.


Configuration and overrides
---------------------------

By default, the CLI reads ``smb_ledger_config.toml`` in the current
working directory. Use ``--config PATH`` to point elsewhere. The logging
level comes from ``[logging].level`` and can be overridden with
``--log-level``. The display mode (table, csv or both) comes from
``[display].mode`` and can be overridden with ``--display-mode``.

Errors
------

Validation and authorization errors are reported on stderr with their
error code and the process exits with status 1.
"""

import argparse
import logging
import sys
from datetime import date, datetime
from pathlib import Path
from typing import Optional

import pandas as pd

from . import __version__
from .config import DISPLAY_MODES, LOG_LEVELS, AppConfig, load_app_config
from .db import create_company, init_database, insert_account
from .errors import LedgerError
from .ledger_service import (
    get_balance_sheet,
    get_counterparty_balances,
    get_financial_summary,
    import_expenses_csv,
    post_journal_csv,
    require_company,
)
from .periods import parse_as_of
from .revenue import RecognitionPolicy
from .views import (
    balance_sheet_to_dataframe,
    counterparty_balances_to_dataframe,
    summary_to_dataframe,
)

logger = logging.getLogger(__name__)


def _add_company_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--company",
        dest="company_id",
        type=int,
        required=True,
        help="Id of the company (tenant) to work on.",
    )


def _add_as_of_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--as-of",
        dest="as_of",
        help="Snapshot date (YYYY-MM-DD). If omitted, today is used.",
    )


def _add_policy_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--policy",
        choices=[p.value for p in RecognitionPolicy],
        help="Revenue recognition policy. Defaults to the configured one.",
    )


def _build_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the CLI."""
    ap = argparse.ArgumentParser(
        prog="smb-ledger",
        description=(
            "SMB Ledger - Financial statement engine for SMB ledgers. "
            "Records business activity per company and produces financial "
            "summaries and balance sheets as of any date."
        ),
    )

    # Generic options
    ap.add_argument(
        "--version",
        action="store_true",
        help="Show the installed version of smb_ledger and exit.",
    )
    ap.add_argument(
        "--config",
        dest="config_path",
        help=(
            "Path to the main TOML configuration file. "
            "If omitted, 'smb_ledger_config.toml' in the current directory is used."
        ),
    )
    ap.add_argument(
        "--log-level",
        dest="log_level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Override the logging level defined in the configuration.",
    )
    ap.add_argument(
        "--display-mode",
        dest="display_mode",
        choices=DISPLAY_MODES,
        help="Override the display mode defined in the configuration.",
    )
    ap.add_argument(
        "--output-dir",
        dest="output_dir",
        help=(
            "Directory for CSV outputs when the display mode includes 'csv'. "
            "If omitted, 'data/output' is used."
        ),
    )

    subparsers = ap.add_subparsers(dest="command", metavar="command")

    subparsers.add_parser("init-db", help="Create the database schema if needed.")

    # ------------------------------------------------------------------
    # company / account
    # ------------------------------------------------------------------
    company_parser = subparsers.add_parser("company", help="Manage companies.")
    company_sub = company_parser.add_subparsers(
        dest="company_command", metavar="company-command"
    )
    company_add = company_sub.add_parser("add", help="Create a company.")
    company_add.add_argument("name", help="Company name.")

    account_parser = subparsers.add_parser("account", help="Manage accounts.")
    account_sub = account_parser.add_subparsers(
        dest="account_command", metavar="account-command"
    )
    account_add = account_sub.add_parser("add", help="Create an account.")
    _add_company_arg(account_add)
    account_add.add_argument("--name", required=True, help="Account name.")
    account_add.add_argument(
        "--type",
        dest="account_type",
        required=True,
        help="Free-form account type (e.g. 'Bank', 'Cash', 'Loan', 'Owner Equity').",
    )
    account_add.add_argument(
        "--balance", default="0", help="Opening balance. Defaults to 0."
    )

    # ------------------------------------------------------------------
    # import-expenses
    # ------------------------------------------------------------------
    import_parser = subparsers.add_parser(
        "import-expenses", help="Import expenses from a CSV file."
    )
    import_parser.add_argument("csv_path", metavar="CSV_PATH")
    _add_company_arg(import_parser)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    summary_parser = subparsers.add_parser(
        "summary", help="Financial summary (performance and position)."
    )
    _add_company_arg(summary_parser)
    _add_as_of_arg(summary_parser)
    _add_policy_arg(summary_parser)

    bs_parser = subparsers.add_parser("balance-sheet", help="Balance sheet.")
    _add_company_arg(bs_parser)
    _add_as_of_arg(bs_parser)
    _add_policy_arg(bs_parser)
    bs_parser.add_argument(
        "--project",
        dest="project_id",
        type=int,
        help="Restrict the balance sheet to one project.",
    )
    bs_parser.add_argument(
        "--view",
        choices=["simplified", "detailed"],
        default="detailed",
        help="'simplified' hides breakdown lines. Defaults to 'detailed'.",
    )

    debts_parser = subparsers.add_parser(
        "debts", help="Net debt statement per counterparty."
    )
    _add_company_arg(debts_parser)
    _add_as_of_arg(debts_parser)

    # ------------------------------------------------------------------
    # journal post
    # ------------------------------------------------------------------
    journal_parser = subparsers.add_parser("journal", help="Manual journal entries.")
    journal_sub = journal_parser.add_subparsers(
        dest="journal_command", metavar="journal-command"
    )
    journal_post = journal_sub.add_parser(
        "post", help="Validate and post a journal entry from a CSV of lines."
    )
    journal_post.add_argument("csv_path", metavar="CSV_PATH")
    _add_company_arg(journal_post)
    journal_post.add_argument(
        "--date", dest="entry_date", required=True, help="Entry date (YYYY-MM-DD)."
    )
    journal_post.add_argument("--reference", help="Entry reference.")
    journal_post.add_argument("--notes", help="Free-form notes.")

    return ap


def _parse_date_arg(value: Optional[str]) -> date:
    try:
        return parse_as_of(value)
    except ValueError as exc:
        msg = f"Invalid date format: {value!r}. Expected YYYY-MM-DD."
        raise SystemExit(msg) from exc


def _policy_arg(value: Optional[str]) -> Optional[RecognitionPolicy]:
    return RecognitionPolicy.parse(value) if value else None


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _render(
    df: pd.DataFrame,
    title: str,
    file_stem: str,
    mode: str,
    output_dir: Optional[str],
) -> None:
    if mode in {"table", "both"}:
        print()
        print(f"=== {title} ===")
        if df.empty:
            print("(no rows)")
        else:
            print(df.to_string(index=False))

    if mode in {"csv", "both"}:
        out = Path(output_dir) if output_dir else Path("data/output")
        out.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y-%m-%d-%H-%M-%S")
        path = out / f"{file_stem}_{timestamp}.csv"
        df.to_csv(path, index=False)
        print(f"Wrote {path} ({len(df)} rows)")


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _handle_company(args: argparse.Namespace, config: AppConfig) -> None:
    if args.company_command != "add":
        raise SystemExit("Usage: smb-ledger company add NAME")
    company_id = create_company(config.database, args.name)
    print(f"Created company #{company_id}: {args.name}")


def _handle_account(args: argparse.Namespace, config: AppConfig) -> None:
    if args.account_command != "add":
        raise SystemExit("Usage: smb-ledger account add --company ID --name NAME --type TYPE")
    company_id = require_company(config, args.company_id)
    account_id = insert_account(
        config.database,
        company_id,
        args.name,
        args.account_type,
        balance=args.balance,
    )
    print(f"Created account #{account_id}: {args.name} ({args.account_type})")


def _handle_import(args: argparse.Namespace, config: AppConfig) -> None:
    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        raise SystemExit(f"CSV file not found: {csv_path}")

    print(f"Importing expenses from {csv_path}...")
    result = import_expenses_csv(config, args.company_id, csv_path)
    print(f"Imported {result.rows_inserted} expense(s).")
    for row_number, message in result.errors:
        print(f"  row {row_number}: {message}")


def _handle_summary(args: argparse.Namespace, config: AppConfig, mode: str) -> None:
    as_of = _parse_date_arg(args.as_of)
    summary = get_financial_summary(
        config, args.company_id, as_of, _policy_arg(args.policy)
    )
    df = summary_to_dataframe(summary, config.display.decimals)
    title = f"Financial summary as of {as_of.isoformat()} ({summary.policy.value} basis)"
    _render(df, title, "summary", mode, args.output_dir)
    _print_diagnostics(summary.position)


def _handle_balance_sheet(
    args: argparse.Namespace, config: AppConfig, mode: str
) -> None:
    as_of = _parse_date_arg(args.as_of)
    sheet = get_balance_sheet(
        config,
        args.company_id,
        as_of,
        project_id=args.project_id,
        policy=_policy_arg(args.policy),
    )
    df = balance_sheet_to_dataframe(
        sheet, config.display.decimals, detailed=args.view == "detailed"
    )
    title = f"Balance sheet as of {as_of.isoformat()} ({sheet.policy.value} basis)"
    if args.project_id is not None:
        title += f" - project #{args.project_id}"
    _render(df, title, "balance_sheet", mode, args.output_dir)
    _print_diagnostics(sheet)


def _print_diagnostics(sheet) -> None:
    diagnostics = sheet.diagnostics
    if diagnostics.balance.is_balanced and not diagnostics.warnings:
        return
    print()
    for warning in diagnostics.warnings:
        print(f"Warning: {warning}")


def _handle_debts(args: argparse.Namespace, config: AppConfig, mode: str) -> None:
    as_of = _parse_date_arg(args.as_of)
    balances = get_counterparty_balances(config, args.company_id, as_of)
    df = counterparty_balances_to_dataframe(balances, config.display.decimals)
    _render(df, f"Debts as of {as_of.isoformat()}", "debts", mode, args.output_dir)


def _handle_journal(args: argparse.Namespace, config: AppConfig) -> None:
    if args.journal_command != "post":
        raise SystemExit("Usage: smb-ledger journal post CSV_PATH --company ID --date DATE")
    csv_path = Path(args.csv_path)
    if not csv_path.is_file():
        raise SystemExit(f"CSV file not found: {csv_path}")

    posted = post_journal_csv(
        config,
        args.company_id,
        csv_path,
        _parse_date_arg(args.entry_date),
        reference=args.reference,
        notes=args.notes,
    )
    print(
        f"Posted journal entry #{posted.entry_id} "
        f"({len(posted.entry.lines)} lines, total {posted.entry.total_debit:.2f})."
    )


def main(argv: Optional[list[str]] = None) -> None:
    """Entry point for the SMB Ledger CLI.

    Parses command-line arguments, loads the application configuration,
    configures logging, initializes the database and dispatches to the
    requested command. Ledger errors are reported with their code and turn
    into exit status 1.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"smb_ledger version {__version__}")
        return

    if args.command is None:
        parser.print_help()
        return

    try:
        config = load_app_config(args.config_path)
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(f"Configuration error: {exc}") from exc

    _configure_logging(args.log_level or config.log_level)
    logger.debug("Using database %s", config.database.path)
    mode = args.display_mode or config.display.mode

    init_database(config.database)
    if args.command == "init-db":
        print(f"Database ready at {config.database.path}")
        return

    try:
        if args.command == "company":
            _handle_company(args, config)
        elif args.command == "account":
            _handle_account(args, config)
        elif args.command == "import-expenses":
            _handle_import(args, config)
        elif args.command == "summary":
            _handle_summary(args, config, mode)
        elif args.command == "balance-sheet":
            _handle_balance_sheet(args, config, mode)
        elif args.command == "debts":
            _handle_debts(args, config, mode)
        elif args.command == "journal":
            _handle_journal(args, config)
    except (LedgerError, ValueError) as exc:
        code = getattr(exc, "code", "INVALID_INPUT")
        print(f"[{code}] {exc}", file=sys.stderr)
        raise SystemExit(1) from exc


if __name__ == "__main__":
    main()
