# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Fixed-point money helpers for SMB Ledger.

All amounts handled by the engine are ``decimal.Decimal`` values. Source
records may come from loosely typed places (CSV files, JSON payloads,
SQLite rows), so every conversion goes through :func:`to_decimal`, which
fails closed: anything that is not a finite number becomes ``0`` and a
warning is logged instead of letting NaN or infinity leak into a report.

Rounding is applied only for display (banker's rounding, ROUND_HALF_EVEN)
and never in the middle of a computation.
"""

import logging
from collections.abc import Iterable
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any

import pandas as pd

logger = logging.getLogger(__name__)

# Two fraction digits so that empty totals still render as 0.00.
ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_decimal(value: Any, *, field: str = "amount") -> Decimal:
    """Convert a loosely typed numeric value to a finite Decimal.

    Args:
        value: int, float, str, Decimal, None or a pandas missing value.
        field: Name of the field being converted, used in the warning.

    Returns:
        A finite Decimal. ``None`` gives ``0`` silently; pandas missing
        values (NaN, ``pd.NA``, ``NaT``), invalid or non-finite values give
        ``0`` with a logged warning.
    """
    if value is None:
        return ZERO

    if isinstance(value, bool):
        logger.warning("Boolean value %r for %s, treated as 0", value, field)
        return ZERO

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        return Decimal(value)
    else:
        try:
            missing = bool(pd.isna(value))
        except (TypeError, ValueError):
            missing = False
        if missing:
            logger.warning("Non-finite value %r for %s, treated as 0", value, field)
            return ZERO

        try:
            # str() first so that 0.1 becomes Decimal("0.1"), not its binary
            # expansion.
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            logger.warning("Invalid numeric value %r for %s, treated as 0", value, field)
            return ZERO

    if not result.is_finite():
        logger.warning("Non-finite value %r for %s, treated as 0", value, field)
        return ZERO
    return result


def sum_decimals(values: Iterable[Decimal]) -> Decimal:
    """Exact sum of Decimal values (``0`` for an empty iterable)."""
    total = ZERO
    for v in values:
        total += v
    return total


def to_cents(value: Decimal) -> int:
    """Convert an amount to integer cents for storage."""
    return int(value.quantize(CENT, rounding=ROUND_HALF_EVEN).scaleb(2))


def from_cents(cents: int | None) -> Decimal:
    """Rebuild an amount from integer cents (``None`` gives ``0.00``)."""
    if cents is None:
        return ZERO.scaleb(-2)
    return Decimal(int(cents)).scaleb(-2)


def has_sub_cent_precision(value: Decimal) -> bool:
    """Return True if the amount cannot be expressed in whole cents."""
    return value != value.quantize(CENT, rounding=ROUND_HALF_EVEN)


def round_for_display(value: Decimal, places: int = 2) -> Decimal:
    """Banker's rounding for presentation only."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)
