"""
Procurement Workflow Hub - Business Day Arithmetic

A business day is any calendar day except Saturday and Sunday. Used for
days-open and days-overdue computations.
"""

from datetime import date, datetime, timedelta
from typing import Union

DateLike = Union[date, datetime]


def _as_date(value: DateLike) -> date:
    return value.date() if isinstance(value, datetime) else value


def is_business_day(value: DateLike) -> bool:
    return _as_date(value).weekday() < 5


def business_days_between(start: DateLike, end: DateLike) -> int:
    """
    Count business days d with start < d <= end.

    Returns 0 when end is on or before start.
    """
    start, end = _as_date(start), _as_date(end)
    if end <= start:
        return 0

    total_days = (end - start).days
    full_weeks, remainder = divmod(total_days, 7)
    count = full_weeks * 5

    day = start
    for _ in range(remainder):
        day += timedelta(days=1)
        if day.weekday() < 5:
            count += 1
    return count


def add_business_days(start: DateLike, days: int) -> date:
    """Move forward (or backward for negative days) by business days."""
    current = _as_date(start)
    step = 1 if days >= 0 else -1
    remaining = abs(days)
    while remaining:
        current += timedelta(days=step)
        if current.weekday() < 5:
            remaining -= 1
    return current
