# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Straight-line depreciation of fixed assets.

    book_value = max(0, value - value * rate * years_elapsed)

``years_elapsed`` is the difference of calendar years between the as-of
date and the purchase date (an integer, not a fraction of a year). The
annual rate is a single company-wide setting (``[reports].depreciation_rate``,
15% by default).
"""

from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from .models import FixedAsset
from .money import ZERO, sum_decimals

DEFAULT_DEPRECIATION_RATE = Decimal("0.15")


def years_elapsed(purchase_date: date, as_of: date) -> int:
    """Whole calendar years between purchase and as-of date (never negative)."""
    return max(0, as_of.year - purchase_date.year)


def book_value(
    asset: FixedAsset,
    as_of: date,
    rate: Decimal = DEFAULT_DEPRECIATION_RATE,
) -> Decimal:
    """Book value of ``asset`` at ``as_of``, floored at zero."""
    years = years_elapsed(asset.purchase_date, as_of)
    value = asset.value - asset.value * rate * years
    return max(ZERO, value)


def accumulated_depreciation(
    asset: FixedAsset,
    as_of: date,
    rate: Decimal = DEFAULT_DEPRECIATION_RATE,
) -> Decimal:
    """Part of the purchase cost already written off at ``as_of``."""
    return asset.value - book_value(asset, as_of, rate)


def total_book_value(
    assets: Iterable[FixedAsset],
    as_of: date,
    rate: Decimal = DEFAULT_DEPRECIATION_RATE,
) -> Decimal:
    return sum_decimals(book_value(a, as_of, rate) for a in assets)


def total_accumulated_depreciation(
    assets: Iterable[FixedAsset],
    as_of: date,
    rate: Decimal = DEFAULT_DEPRECIATION_RATE,
) -> Decimal:
    return sum_decimals(accumulated_depreciation(a, as_of, rate) for a in assets)
