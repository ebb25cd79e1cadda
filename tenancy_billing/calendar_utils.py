#!/usr/bin/env python3
"""
Calendar Utilities Module

Pure date arithmetic for billing schedules: due dates clamped to the end of
short months, month iteration and day counts.
"""

import logging
import calendar
import datetime
from typing import List, Tuple
from dateutil.relativedelta import relativedelta

from tenancy_billing.exceptions import InvalidRange

# Configure logging
logger = logging.getLogger(__name__)

MonthKey = Tuple[int, int]


def days_in_month(year: int, month: int) -> int:
    """
    Get the number of days in a calendar month.

    Args:
        year: Calendar year
        month: Month number (1-12)

    Returns:
        Number of days in the month
    """
    return calendar.monthrange(year, month)[1]


def clamped_month_date(year: int, month: int, day: int) -> datetime.date:
    """
    Get the date for a day of a month, clamped to the month's last day.

    Day 31 in April gives April 30 and day 30 in February gives February 28
    (29 in leap years); the result never rolls into the next month.

    Args:
        year: Calendar year
        month: Month number (1-12)
        day: Requested day of the month

    Returns:
        datetime.date inside (year, month)
    """
    return datetime.date(year, month, min(day, days_in_month(year, month)))


def month_key(d: datetime.date) -> MonthKey:
    """Get the (year, month) key of a date."""
    return (d.year, d.month)


def next_month(year: int, month: int) -> MonthKey:
    """Get the (year, month) key following the given month."""
    following = datetime.date(year, month, 1) + relativedelta(months=1)
    return (following.year, following.month)


def months_between(start: datetime.date, end: datetime.date) -> List[MonthKey]:
    """
    List the calendar months covered by a date range.

    Both endpoint months are included. Days within the months are ignored,
    so 31 Jan to 1 Feb covers two months.

    Args:
        start: First date of the range
        end: Last date of the range

    Returns:
        Ordered list of (year, month) keys

    Raises:
        InvalidRange: If end is before start
    """
    if end < start:
        raise InvalidRange(f"Range end {end.isoformat()} is before start {start.isoformat()}")

    months = []
    current = datetime.date(start.year, start.month, 1)
    last = datetime.date(end.year, end.month, 1)

    while current <= last:
        months.append((current.year, current.month))
        current += relativedelta(months=1)

    return months


def day_difference(a: datetime.date, b: datetime.date) -> int:
    """Whole days from a to b (b - a)."""
    return (b - a).days
