# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
I/O module for SMB Ledger.

This module reads the two CSV inputs of the command line and normalizes
them into DataFrames with a fixed set of columns. Column names are
case-insensitive and surrounding spaces are ignored. Amounts are parsed as
text and converted to ``Decimal`` (never through ``float``).

Expense import
--------------
    date, category, amount
    [, sub_category, payment_status, kind, project_id, customer_id,
       vendor_id, description, account_id]

- ``date``:           expense date (YYYY-MM-DD, optionally with a time),
- ``amount``:         positive magnitude,
- ``payment_status``: PAID (default), UNPAID or REPAID,
- ``kind``:           optional explicit ExpenseKind; when empty the kind is
                      inferred once at import.

The column ``subcategory`` is accepted as an alias for ``sub_category``.
Ids are whole numbers. The file is read as text and each row is parsed on
its own by ``parse_expense_row``, so a bad value only rejects its row.

Journal lines
-------------
    account_id, debit, credit [, description]

Missing amounts are read as 0. Whether the resulting entry is acceptable
is decided by ``journal.validate_journal_entry``, not here.
"""

import os
from collections.abc import Mapping
from typing import Any, Union

import pandas as pd

from .models import ExpenseKind, PaymentStatus
from .money import to_decimal

EXPENSE_REQUIRED = ("date", "category", "amount")
EXPENSE_OPTIONAL = (
    "sub_category",
    "payment_status",
    "kind",
    "project_id",
    "customer_id",
    "vendor_id",
    "description",
    "account_id",
)
ID_COLUMNS = ("project_id", "customer_id", "vendor_id", "account_id")

JOURNAL_REQUIRED = ("account_id", "debit", "credit")


def _read_text_csv(path: Union[str, "os.PathLike[str]"]) -> pd.DataFrame:
    df = pd.read_csv(path, dtype=str)
    df.columns = [c.lower().strip() for c in df.columns]
    return df


def _objects(values: list, index: pd.Index) -> pd.Series:
    """Keep Python objects (Decimal, enums, None) as they are in a column."""
    return pd.Series(values, index=index, dtype=object)


def _optional_text(value) -> "str | None":
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value, column: str) -> "int | None":
    text = _optional_text(value)
    if text is None:
        return None
    try:
        return int(text)
    except ValueError as exc:
        raise ValueError(f"invalid value in '{column}': {text!r}") from exc


def read_expenses_csv(path: Union[str, "os.PathLike[str]"]) -> pd.DataFrame:
    """
    Read an expense import file.

    Only the structure of the file is checked here. Values are kept as
    stripped text (``None`` when empty) so that one bad row does not block
    the others; see :func:`parse_expense_row`.

    Returns
    -------
    pandas.DataFrame
        Columns: date, category, amount, sub_category, payment_status,
        kind, project_id, customer_id, vendor_id, description, account_id.

    Raises
    ------
    ValueError
        If a required column is missing.
    """
    df = _read_text_csv(path)
    if "subcategory" in df.columns and "sub_category" not in df.columns:
        df = df.rename(columns={"subcategory": "sub_category"})

    missing = [c for c in EXPENSE_REQUIRED if c not in df.columns]
    if missing:
        raise ValueError(
            "Invalid expenses file structure. Missing column(s): "
            + ", ".join(missing)
            + f". Expected at least: {', '.join(EXPENSE_REQUIRED)}."
        )
    for col in EXPENSE_OPTIONAL:
        if col not in df.columns:
            df[col] = None

    out = df[list(EXPENSE_REQUIRED) + list(EXPENSE_OPTIONAL)].copy()
    for col in out.columns:
        out[col] = _objects([_optional_text(v) for v in out[col]], out.index)
    return out


def parse_expense_row(row: Mapping[str, Any]) -> dict[str, Any]:
    """
    Parse one row of :func:`read_expenses_csv` into typed values.

    Returns a dict with: date (datetime), category (str), amount (Decimal
    magnitude), sub_category, payment_status (PaymentStatus, PAID when
    empty), kind (ExpenseKind or None), project_id, customer_id, vendor_id,
    account_id (int or None) and description.

    Raises
    ------
    ValueError
        If the date, status, kind or an id cannot be parsed.
    """
    date_text = _optional_text(row.get("date"))
    if date_text is None:
        raise ValueError("missing date")
    try:
        expense_date = pd.Timestamp(date_text).to_pydatetime()
    except ValueError as exc:
        raise ValueError(f"invalid date: {date_text!r}") from exc

    status_text = _optional_text(row.get("payment_status"))
    kind_text = _optional_text(row.get("kind"))

    parsed: dict[str, Any] = {
        "date": expense_date,
        "category": _optional_text(row.get("category")) or "",
        "amount": abs(to_decimal(_optional_text(row.get("amount")))),
        "sub_category": _optional_text(row.get("sub_category")),
        "payment_status": (
            PaymentStatus(status_text.upper()) if status_text else PaymentStatus.PAID
        ),
        "kind": ExpenseKind(kind_text.upper()) if kind_text else None,
        "description": _optional_text(row.get("description")),
    }
    for col in ID_COLUMNS:
        parsed[col] = _optional_int(row.get(col), col)
    return parsed


def read_journal_lines_csv(path: Union[str, "os.PathLike[str]"]) -> pd.DataFrame:
    """
    Read journal lines.

    Returns
    -------
    pandas.DataFrame
        Columns: account_id (int), debit (Decimal), credit (Decimal),
        description (str or None).

    Raises
    ------
    ValueError
        If a required column is missing or an account id is invalid.
    """
    df = _read_text_csv(path)
    missing = [c for c in JOURNAL_REQUIRED if c not in df.columns]
    if missing:
        raise ValueError(
            "Invalid journal lines structure. Missing column(s): "
            + ", ".join(missing)
            + f". Expected: {', '.join(JOURNAL_REQUIRED)}[, description]."
        )
    if "description" not in df.columns:
        df["description"] = None

    account_ids = []
    for row_number, value in enumerate(df["account_id"], start=2):
        try:
            account_ids.append(_optional_int(value, "account_id"))
        except ValueError as exc:
            raise ValueError(f"Row {row_number}: {exc}.") from exc

    out = pd.DataFrame(
        {
            "account_id": _objects(account_ids, df.index),
            "debit": _objects(
                [to_decimal(_optional_text(v), field="debit") for v in df["debit"]],
                df.index,
            ),
            "credit": _objects(
                [to_decimal(_optional_text(v), field="credit") for v in df["credit"]],
                df.index,
            ),
            "description": _objects(
                [_optional_text(v) for v in df["description"]], df.index
            ),
        }
    )
    if out["account_id"].isna().any():
        raise ValueError("Every journal line needs an 'account_id'.")
    return out
