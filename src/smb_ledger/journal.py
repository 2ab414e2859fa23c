# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Manual journal entries for SMB Ledger.

A journal entry goes through a small state machine:

    DRAFT --validate--> VALIDATED --post--> POSTED     (terminal)
      |
      +----reject-----> REJECTED                       (terminal)

Validation is pure and exact:

- at least two lines,
- every line has exactly one non-zero side (debit or credit), no negative
  amounts and no fraction of a cent,
- ``sum(debit) == sum(credit)`` with exact Decimal equality. There is no
  tolerance: a one-cent difference is rejected with its delta.

Entries are immutable; validating returns a new VALIDATED entry and never
alters the one passed in, so validating the same invalid entry twice raises
the same error twice. Posting (account checks and writes, all-or-nothing)
lives in ``db.post_journal_lines``.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from .errors import JournalValidationError, UnbalancedJournalError
from .money import ZERO, has_sub_cent_precision, sum_decimals, to_decimal

MIN_LINES = 2


class JournalStatus(str, Enum):
    DRAFT = "DRAFT"
    VALIDATED = "VALIDATED"
    POSTED = "POSTED"
    REJECTED = "REJECTED"


TERMINAL_STATUSES = (JournalStatus.POSTED, JournalStatus.REJECTED)


@dataclass(frozen=True)
class JournalLine:
    account_id: int
    debit: Decimal = ZERO
    credit: Decimal = ZERO
    description: Optional[str] = None
    account_name: Optional[str] = None

    @property
    def amount(self) -> Decimal:
        """Signed amount of the line: debit positive, credit negative."""
        return self.debit if self.debit else -self.credit


@dataclass(frozen=True)
class JournalEntry:
    entry_date: date
    reference: Optional[str]
    notes: Optional[str]
    lines: tuple[JournalLine, ...]
    status: JournalStatus = JournalStatus.DRAFT

    @property
    def total_debit(self) -> Decimal:
        return sum_decimals(line.debit for line in self.lines)

    @property
    def total_credit(self) -> Decimal:
        return sum_decimals(line.credit for line in self.lines)

    def reject(self) -> "JournalEntry":
        return replace(self, status=JournalStatus.REJECTED)

    def mark_posted(self) -> "JournalEntry":
        if self.status != JournalStatus.VALIDATED:
            raise JournalValidationError(
                f"Only a validated entry can be posted (status {self.status.value})."
            )
        return replace(self, status=JournalStatus.POSTED)


@dataclass(frozen=True)
class PostedJournal:
    """Result of a successful posting."""

    entry_id: int
    entry: JournalEntry
    transaction_ids: tuple[int, ...] = ()


def make_line(row: Mapping[str, Any]) -> JournalLine:
    """Build a journal line from a loosely typed mapping (CSV row, JSON).

    Missing or invalid amounts become ``0`` (and then fail validation if
    that leaves the line empty). A missing account id is rejected here.
    """
    account_id = row.get("account_id")
    if account_id is None or str(account_id).strip() == "":
        raise JournalValidationError("Journal line without account_id.")
    try:
        account_id = int(account_id)
    except (TypeError, ValueError) as exc:
        raise JournalValidationError(f"Invalid account_id: {account_id!r}.") from exc

    description = row.get("description")
    return JournalLine(
        account_id=account_id,
        debit=to_decimal(row.get("debit"), field="debit"),
        credit=to_decimal(row.get("credit"), field="credit"),
        description=str(description) if description is not None else None,
        account_name=row.get("account_name"),
    )


def make_entry(
    entry_date: date,
    reference: Optional[str],
    notes: Optional[str],
    lines: Iterable[Any],
) -> JournalEntry:
    """Draft entry from JournalLine objects or line mappings."""
    built = tuple(
        line if isinstance(line, JournalLine) else make_line(line) for line in lines
    )
    return JournalEntry(entry_date, reference, notes, built)


def _check_line(index: int, line: JournalLine) -> None:
    if line.debit < 0 or line.credit < 0:
        raise JournalValidationError(
            f"Line {index + 1}: debit and credit must not be negative.",
            line_index=index,
        )
    if line.debit and line.credit:
        raise JournalValidationError(
            f"Line {index + 1}: a line cannot have both a debit and a credit.",
            line_index=index,
        )
    if not line.debit and not line.credit:
        raise JournalValidationError(
            f"Line {index + 1}: a line needs a non-zero debit or credit.",
            line_index=index,
        )
    if has_sub_cent_precision(line.debit) or has_sub_cent_precision(line.credit):
        raise JournalValidationError(
            f"Line {index + 1}: amounts cannot have fractions of a cent.",
            line_index=index,
        )


def validate_journal_entry(entry: JournalEntry) -> JournalEntry:
    """
    Validate a draft entry.

    Returns
    -------
    JournalEntry
        A copy of ``entry`` with status VALIDATED.

    Raises
    ------
    JournalValidationError
        Structural problem (too few lines, bad line, terminal status).
    UnbalancedJournalError
        Debits and credits differ; carries the exact ``delta``.
    """
    if entry.status in TERMINAL_STATUSES:
        raise JournalValidationError(
            f"Journal entry is already {entry.status.value.lower()}."
        )
    if len(entry.lines) < MIN_LINES:
        raise JournalValidationError(
            f"A journal entry needs at least {MIN_LINES} lines, got {len(entry.lines)}."
        )

    for index, line in enumerate(entry.lines):
        _check_line(index, line)

    debits = entry.total_debit
    credits = entry.total_credit
    if debits != credits:
        raise UnbalancedJournalError(debits, credits)

    return replace(entry, status=JournalStatus.VALIDATED)
