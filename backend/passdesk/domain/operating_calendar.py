"""Calendar helpers: operating-day counting and month arithmetic."""

import calendar
from datetime import date, timedelta
from typing import AbstractSet, List

from passdesk.core.enums import Weekday


def operating_dates(start: date, open_days: AbstractSet[Weekday], count: int) -> List[date]:
    """
    The first ``count`` dates on or after ``start`` that the business is open.

    ``start`` itself counts when it falls on an open day.
    """
    if count <= 0 or not open_days:
        return []
    dates: List[date] = []
    current = start
    while len(dates) < count:
        if Weekday.from_date_index(current.weekday()) in open_days:
            dates.append(current)
        current += timedelta(days=1)
    return dates


def operating_end_date(start: date, open_days: AbstractSet[Weekday], count: int) -> date:
    """Last day of a pass covering ``count`` operating days from ``start``."""
    dates = operating_dates(start, open_days, count)
    return dates[-1] if dates else start


def add_months(start: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of shorter months."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
