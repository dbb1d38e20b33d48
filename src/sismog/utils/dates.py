"""Calendar helpers for competency months and contract terms."""

from __future__ import annotations

import calendar
from datetime import date, timedelta


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping *day* to the month's last day (31 → 28/29 in February)."""
    return date(year, month, min(day, last_day_of_month(year, month)))


def add_months(d: date, months: int) -> date:
    """Shift *d* by *months*, clamping the day when the target month is shorter."""
    total = d.year * 12 + (d.month - 1) + months
    year, month = divmod(total, 12)
    return clamp_day(year, month + 1, d.day)


def month_bounds(competencia: str) -> tuple[date, date]:
    """Return the first and last day of a YYYY-MM-01 competency month."""
    first = date.fromisoformat(competencia)
    return first, clamp_day(first.year, first.month, 31)


def contract_end(start: date, duration_months: int) -> date:
    """Last valid day of a contract: start + duration months − 1 day."""
    return add_months(start, duration_months) - timedelta(days=1)


def first_of_month(d: date) -> str:
    return d.replace(day=1).isoformat()
