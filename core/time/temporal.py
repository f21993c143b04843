"""
RMX Core Time — Calendar Helpers
==================================
Pure date arithmetic used by invoicing (due dates, ageing) and the
monthly cash tracker. All arguments explicit; no hidden clock.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Union

DateLike = Union[date, datetime]


def as_date(value: DateLike) -> date:
    """Normalize a datetime to its calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise ValueError(f"Expected date or datetime, got {type(value).__name__}.")


def add_days(start: DateLike, days: int) -> date:
    if days < 0:
        raise ValueError(f"days must be >= 0, got {days}.")
    return as_date(start) + timedelta(days=days)


def days_overdue(due_on: DateLike, today: DateLike) -> int:
    """Whole days past the due date; 0 on or before it."""
    delta = (as_date(today) - as_date(due_on)).days
    return delta if delta > 0 else 0


def month_key(day: DateLike) -> str:
    """Calendar-month bucket, e.g. '2026-03'."""
    d = as_date(day)
    return f"{d.year:04d}-{d.month:02d}"
