"""Date manipulation utilities"""

import calendar
from datetime import date, timedelta
from typing import Tuple

WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


def today() -> date:
    """Production reference date; API dependencies wrap this so tests can override it"""
    return date.today()


def add_months(from_date: date, months: int) -> date:
    """Calendar-month arithmetic, clamping the day to the target month's length"""
    month_index = from_date.month - 1 + months
    year = from_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(from_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def weekday_number(name: str) -> int:
    try:
        return WEEKDAYS[name.lower()]
    except KeyError:
        raise ValueError(f"Unknown weekday: {name}") from None


def week_day_on_or_after(from_date: date, weekday: int) -> date:
    return from_date + timedelta(days=(weekday - from_date.weekday()) % 7)


def cycle_dates(reference_date: date, billing_day: str = "tuesday", deadline_day: str = "thursday") -> Tuple[date, date]:
    """
    Billing day and payment deadline of the weekly cycle containing reference_date.

    The cycle starts on the most recent billing day (or reference_date itself when it
    is one); the deadline is the first deadline weekday on or after the billing day.
    """
    billing = weekday_number(billing_day)
    deadline = weekday_number(deadline_day)
    billing_date = reference_date - timedelta(days=(reference_date.weekday() - billing) % 7)
    return billing_date, week_day_on_or_after(billing_date, deadline)
