from __future__ import annotations

from datetime import date, timedelta

SATURDAY = 5
SUNDAY = 6


def is_business_day(day: date) -> bool:
    return day.weekday() not in (SATURDAY, SUNDAY)


def add_business_days(start: date, days: int) -> date:
    """Walk forward from ``start`` until ``days`` working days have passed.

    Saturdays and Sundays are skipped and do not count. A zero count returns
    ``start`` as-is, even when ``start`` falls on a weekend.
    """
    if isinstance(days, bool) or not isinstance(days, int):
        raise ValueError(f"Business day count must be an integer, got {days!r}.")
    if days < 0:
        raise ValueError(f"Business day count must be non-negative, got {days}.")

    current = start
    added = 0
    while added < days:
        current += timedelta(days=1)
        if is_business_day(current):
            added += 1
    return current


def business_days_between(start: date, end: date) -> int:
    """Count working days in the half-open range (start, end]."""
    if end <= start:
        return 0
    full_weeks, extra_days = divmod((end - start).days, 7)
    count = full_weeks * 5
    current = start + timedelta(days=full_weeks * 7)
    for _ in range(extra_days):
        current += timedelta(days=1)
        if is_business_day(current):
            count += 1
    return count
