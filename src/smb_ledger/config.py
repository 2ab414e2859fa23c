# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for SMB Ledger.

This module is responsible for:
- loading the main application configuration from a TOML file,
- validating report options (recognition policies, depreciation rate,
  balance tolerance, worker count),
- exposing typed dataclasses used by the rest of the application.
"""

import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Optional

from .db import DatabaseConfig
from .depreciation import DEFAULT_DEPRECIATION_RATE
from .engine import DEFAULT_BALANCE_TOLERANCE
from .revenue import RecognitionPolicy

DEFAULT_CONFIG_FILE = "smb_ledger_config.toml"
DISPLAY_MODES = ("table", "csv", "both")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ReportsConfig:
    """
    Report computation options.

    Attributes
    ----------
    summary_policy:
        Recognition policy of the financial summary (cash basis by default).
    balance_sheet_policy:
        Recognition policy of the standalone balance sheet (accrual by
        default).
    depreciation_rate:
        Annual straight-line depreciation rate of fixed assets.
    balance_tolerance:
        Largest accepted ``|Assets - (Liabilities + Equity)|``.
    workers:
        Threads used to compute balance sheet sections; 1 disables the
        fan-out.
    """

    summary_policy: RecognitionPolicy = RecognitionPolicy.CASH
    balance_sheet_policy: RecognitionPolicy = RecognitionPolicy.ACCRUAL
    depreciation_rate: Decimal = DEFAULT_DEPRECIATION_RATE
    balance_tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE
    workers: int = 4


@dataclass(frozen=True)
class DisplayConfig:
    mode: str = "table"
    decimals: int = 2
    currency: str = ""


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for SMB Ledger.

    This aggregates:
    - the database configuration (where the ledger is stored),
    - report computation options,
    - display options for tables,
    - the logging level used by the CLI.
    """

    database: DatabaseConfig
    reports: ReportsConfig
    display: DisplayConfig
    log_level: str = "WARNING"


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        return tomllib.loads(path.read_text(encoding="utf-8"))
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        raise ValueError(f"Invalid [{name}] section in the configuration.")
    return section


def _parse_decimal(value: Any, key: str, default: Decimal) -> Decimal:
    if value is None:
        return default
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(
            f"Invalid value for '{key}' in the configuration. Expected a number."
        ) from exc
    if not result.is_finite() or result < 0:
        raise ValueError(
            f"Invalid value for '{key}' in the configuration. "
            "Expected a non-negative number."
        )
    return result


def _parse_policy(value: Any, key: str, default: RecognitionPolicy) -> RecognitionPolicy:
    if value is None:
        return default
    try:
        return RecognitionPolicy.parse(value)
    except ValueError as exc:
        raise ValueError(f"Invalid value for '{key}' in the configuration. {exc}") from exc


def _parse_reports(section: Mapping[str, Any]) -> ReportsConfig:
    rate = _parse_decimal(
        section.get("depreciation_rate"),
        "reports.depreciation_rate",
        DEFAULT_DEPRECIATION_RATE,
    )
    if rate > 1:
        raise ValueError(
            "Invalid value for 'reports.depreciation_rate' in the configuration. "
            "Expected a rate between 0 and 1."
        )

    raw_workers = section.get("workers", 4)
    try:
        workers = int(raw_workers)
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid value for 'reports.workers' in the configuration. "
            "Expected an integer."
        ) from exc
    if workers < 1:
        raise ValueError("'reports.workers' must be at least 1.")

    return ReportsConfig(
        summary_policy=_parse_policy(
            section.get("summary_policy"),
            "reports.summary_policy",
            RecognitionPolicy.CASH,
        ),
        balance_sheet_policy=_parse_policy(
            section.get("balance_sheet_policy"),
            "reports.balance_sheet_policy",
            RecognitionPolicy.ACCRUAL,
        ),
        depreciation_rate=rate,
        balance_tolerance=_parse_decimal(
            section.get("balance_tolerance"),
            "reports.balance_tolerance",
            DEFAULT_BALANCE_TOLERANCE,
        ),
        workers=workers,
    )


def _parse_display(section: Mapping[str, Any]) -> DisplayConfig:
    mode = str(section.get("mode", "table")).lower()
    if mode not in DISPLAY_MODES:
        raise ValueError(
            f"Invalid value for 'display.mode': {mode!r}. "
            f"Expected one of: {', '.join(DISPLAY_MODES)}."
        )
    try:
        decimals = int(section.get("decimals", 2))
    except (TypeError, ValueError):
        decimals = 2
    return DisplayConfig(
        mode=mode,
        decimals=max(0, decimals),
        currency=str(section.get("currency", "")),
    )


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the SMB Ledger application configuration from a TOML file.

    Expected top-level sections in the TOML file
    --------------------------------------------
    [database]
        Database engine ("sqlite") and SQLite file path.

    [reports]
        summary_policy, balance_sheet_policy ("cash" | "accrual"),
        depreciation_rate, balance_tolerance, workers.

    [display]
        Display options for the CLI tables (mode, decimals, currency).

    [logging]
        level: default logging level of the CLI.

    Notes
    -----
    All file paths in the TOML are resolved relative to the directory of
    the TOML file itself. Every section is optional.

    Parameters
    ----------
    config_path : str, optional
        Path to the TOML configuration file. Defaults to
        ``smb_ledger_config.toml`` in the working directory.

    Returns
    -------
    AppConfig
        Parsed and validated application configuration.
    """
    config_file = Path(config_path or DEFAULT_CONFIG_FILE).resolve()
    raw = _load_toml(config_file)
    base_dir = config_file.parent

    # 1) Database section
    database_section = _section(raw, "database")
    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or "data/db/smb_ledger.sqlite"
    database_config = DatabaseConfig(
        engine=db_engine, path=(base_dir / str(db_path_raw)).resolve()
    )

    # 2) Reports and display
    reports = _parse_reports(_section(raw, "reports"))
    display = _parse_display(_section(raw, "display"))

    # 3) Logging
    level = str(_section(raw, "logging").get("level", "WARNING")).upper()
    if level not in LOG_LEVELS:
        raise ValueError(
            f"Invalid value for 'logging.level': {level!r}. "
            f"Expected one of: {', '.join(LOG_LEVELS)}."
        )

    return AppConfig(
        database=database_config,
        reports=reports,
        display=display,
        log_level=level,
    )
