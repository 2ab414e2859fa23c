# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Account utilities for SMB Ledger.

Account types are free-form strings maintained by users ("Cash",
"Mobile Money", "E-Dahab", "EQUITY", "Bank Loan", ...). This module maps
them to a small set of account classes used by the balance sheet and by
the journal poster.

Responsibilities:
- Decide whether an account holds cash or bank money (balance sheet
  "Cash & Bank" line).
- Map an account type to an account class (asset, liability, equity,
  income, expense) and to its normal balance side, so that a journal line
  moves the stored balance in the right direction.
"""

from collections.abc import Iterable
from decimal import Decimal
from enum import Enum

from .models import Account

# Case-insensitive substrings identifying cash-like accounts.
CASH_TYPE_KEYWORDS = ("bank", "cash", "asset", "mobile", "money", "wallet", "e-")

EQUITY_TYPE_KEYWORDS = ("equity", "capital")
LIABILITY_TYPE_KEYWORDS = ("liabilit", "loan", "payable", "debt")
INCOME_TYPE_KEYWORDS = ("income", "revenue", "sales")
EXPENSE_TYPE_KEYWORDS = ("expense", "cost")


class AccountClass(str, Enum):
    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


def _contains_any(text: str, keywords: Iterable[str]) -> bool:
    return any(k in text for k in keywords)


def account_class(account_type: str) -> AccountClass:
    """Map a free-form account type to an :class:`AccountClass`.

    The checks run from the most specific to the most generic class; any
    type that matches nothing is treated as an asset.

    Examples:
        "EQUITY"        → EQUITY
        "Bank Loan"     → LIABILITY
        "Sales Revenue" → INCOME
        "Mobile Money"  → ASSET
    """
    t = str(account_type or "").strip().lower()
    if _contains_any(t, EQUITY_TYPE_KEYWORDS):
        return AccountClass.EQUITY
    if _contains_any(t, LIABILITY_TYPE_KEYWORDS):
        return AccountClass.LIABILITY
    if _contains_any(t, INCOME_TYPE_KEYWORDS):
        return AccountClass.INCOME
    if _contains_any(t, EXPENSE_TYPE_KEYWORDS):
        return AccountClass.EXPENSE
    return AccountClass.ASSET


def is_cash_account(account_type: str) -> bool:
    """Return True if the type looks like a cash, bank or wallet account.

    Only asset types qualify: "Bank Loan" is a liability and "Sales
    Revenue" an income account, whatever keywords they contain.
    """
    t = str(account_type or "").strip().lower()
    if account_class(t) != AccountClass.ASSET:
        return False
    return _contains_any(t, CASH_TYPE_KEYWORDS)


def is_debit_normal(account_type: str) -> bool:
    """Assets and expenses grow with debits; the other classes with credits."""
    return account_class(account_type) in (AccountClass.ASSET, AccountClass.EXPENSE)


def balance_delta(account_type: str, debit: Decimal, credit: Decimal) -> Decimal:
    """Change of the stored balance produced by one journal line."""
    if is_debit_normal(account_type):
        return debit - credit
    return credit - debit


def cash_accounts(accounts: Iterable[Account]) -> list[Account]:
    """Active cash-like accounts."""
    return [a for a in accounts if a.is_active and is_cash_account(a.type)]


def accounts_of_class(accounts: Iterable[Account], cls: AccountClass) -> list[Account]:
    """Active accounts of the given class."""
    return [a for a in accounts if a.is_active and account_class(a.type) == cls]


def other_asset_accounts(accounts: Iterable[Account]) -> list[Account]:
    """Active asset accounts that are not cash-like (e.g. "Equipment")."""
    return [
        a
        for a in accounts
        if a.is_active
        and account_class(a.type) == AccountClass.ASSET
        and not is_cash_account(a.type)
    ]
