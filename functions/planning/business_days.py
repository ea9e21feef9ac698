"""
Working-day arithmetic. Saturdays and Sundays are the only non-working days.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import Iterator

_ONE_DAY = timedelta(days=1)


def is_business_day(day: date) -> bool:
    return day.weekday() < 5


def add_business_days(day: date, amount: int) -> date:
    """Move `amount` working days from `day`, backward when negative."""
    step = _ONE_DAY if amount >= 0 else -_ONE_DAY
    remaining = abs(amount)
    current = day
    while remaining:
        current += step
        if is_business_day(current):
            remaining -= 1
    return current


def sub_business_days(day: date, amount: int) -> date:
    return add_business_days(day, -amount)


def roll_forward(day: date) -> date:
    """Return the first working day on or after `day`."""
    while not is_business_day(day):
        day += _ONE_DAY
    return day


def difference_in_business_days(later: date, earlier: date) -> int:
    """Count working days in [earlier, later); negative if later < earlier."""
    if later < earlier:
        return -difference_in_business_days(earlier, later)
    count = 0
    current = earlier
    while current < later:
        if is_business_day(current):
            count += 1
        current += _ONE_DAY
    return count


def end_date_for(start: date, duration: int) -> date:
    """Inclusive end date of a task lasting `duration` working days."""
    return add_business_days(start, max(duration, 1) - 1)


def business_days_in_span(start: date, end: date) -> Iterator[date]:
    """Yield each working day from `start` to `end`, both included."""
    current = start
    while current <= end:
        if is_business_day(current):
            yield current
        current += _ONE_DAY


def calendar_days_between(later: date, earlier: date) -> int:
    return (later - earlier).days
