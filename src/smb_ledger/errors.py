# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Typed errors raised by SMB Ledger.

Every error carries a machine-readable ``code`` so that callers (CLI, an
HTTP layer) can react by type rather than by message:

    LedgerError
    +-- UnauthorizedError
    +-- JournalValidationError
        +-- UnbalancedJournalError
        +-- MissingAccountError
        +-- InactiveAccountError

A balance sheet that does not balance is not an error: it is reported as a
``BalanceCheck`` diagnostic on the report itself (see ``engine.py``).
"""

from decimal import Decimal
from typing import Optional


class LedgerError(Exception):
    """Base class for all SMB Ledger errors."""

    code: str = "LEDGER_ERROR"


class UnauthorizedError(LedgerError):
    """Missing or unknown tenant (company) context."""

    code = "UNAUTHORIZED"

    def __init__(self, company_id: Optional[int]):
        self.company_id = company_id
        if company_id is None:
            msg = "No company context provided."
        else:
            msg = f"Unknown company: {company_id!r}."
        super().__init__(msg)


class JournalValidationError(LedgerError):
    """A journal entry was rejected before any write."""

    code = "INVALID_JOURNAL"

    def __init__(self, message: str, *, line_index: Optional[int] = None):
        self.line_index = line_index
        super().__init__(message)


class UnbalancedJournalError(JournalValidationError):
    """Total debits differ from total credits."""

    code = "UNBALANCED_JOURNAL"

    def __init__(self, debits: Decimal, credits: Decimal):
        self.debits = debits
        self.credits = credits
        self.delta = debits - credits
        super().__init__(
            f"Journal entry does not balance: debits {debits} != credits "
            f"{credits} (delta {self.delta})."
        )


class MissingAccountError(JournalValidationError):
    """A journal line references an account that does not exist for the company."""

    code = "MISSING_ACCOUNT"

    def __init__(self, account_id: int, *, line_index: Optional[int] = None):
        self.account_id = account_id
        super().__init__(
            f"Account {account_id!r} not found for this company.",
            line_index=line_index,
        )


class InactiveAccountError(JournalValidationError):
    """A journal line references a deactivated account."""

    code = "INACTIVE_ACCOUNT"

    def __init__(self, account_id: int, *, line_index: Optional[int] = None):
        self.account_id = account_id
        super().__init__(
            f"Account {account_id!r} is inactive.",
            line_index=line_index,
        )
