# SMB Ledger - Financial statement engine for SMB ledgers
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
As-of date helpers for SMB Ledger.

Every report is a point-in-time snapshot "as of" a calendar date. When
that date is used as an inclusive upper bound on timestamps, it is
normalized to the very end of the day, 23:59:59.999. This convention is
shared by the database layer (SQL filters) and the engine (project
status), so a given as-of date always selects exactly the same records.

Timestamps are stored as ISO-8601 text with millisecond precision
(``YYYY-MM-DDTHH:MM:SS.mmm``) so that plain string comparison in SQLite
orders them correctly against the bound.
"""

from datetime import date, datetime, time
from typing import Optional, Union

from .models import Project, ProjectStatus

END_OF_DAY = time(23, 59, 59, 999000)


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


def end_of_day(as_of: date) -> datetime:
    """Inclusive upper bound for an as-of date: ``as_of`` at 23:59:59.999."""
    if isinstance(as_of, datetime):
        as_of = as_of.date()
    return datetime.combine(as_of, END_OF_DAY)


def to_iso_timestamp(value: Union[date, datetime, str]) -> str:
    """Normalize a date-like value to ``YYYY-MM-DDTHH:MM:SS.mmm``.

    Plain dates become midnight. Strings are parsed with
    ``datetime.fromisoformat``.
    """
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip())
    if not isinstance(value, datetime):
        value = datetime.combine(value, time.min)
    return value.replace(tzinfo=None).isoformat(timespec="milliseconds")


def from_iso_timestamp(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromisoformat(value)


def parse_as_of(value: Optional[str]) -> date:
    """
    Parse an as-of date argument (YYYY-MM-DD). ``None`` means today.

    Raises:
        ValueError: if the value is not a valid ISO date.
    """
    if value is None:
        return _today()
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise ValueError(f"Invalid date: {value!r}, expected YYYY-MM-DD.") from exc


def is_historical(as_of: date) -> bool:
    """True when ``as_of`` lies before today."""
    return as_of < _today()


def project_status_as_of(project: Project, as_of: date) -> Optional[ProjectStatus]:
    """
    Status of a project as it stood at the end of ``as_of``.

    - Cancelled projects stay Cancelled.
    - A Completed project whose completion happened after the bound is
      still Active as of that date.
    - Projects created after the bound do not exist yet (``None``).
    """
    bound = end_of_day(as_of)
    if project.created_at > bound:
        return None
    if project.status == ProjectStatus.CANCELLED:
        return ProjectStatus.CANCELLED
    if project.status == ProjectStatus.COMPLETED:
        if project.completed_at is None or project.completed_at <= bound:
            return ProjectStatus.COMPLETED
        return ProjectStatus.ACTIVE
    return ProjectStatus.ACTIVE
