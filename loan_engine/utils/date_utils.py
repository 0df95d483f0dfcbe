"""Date manipulation utilities"""

from datetime import date, datetime
from typing import List

from dateutil.relativedelta import relativedelta


def to_day(value: date | datetime) -> date:
    """Reduce a date or datetime to its calendar day"""
    if isinstance(value, datetime):
        return value.date()
    return value


def month_key(day: date) -> str:
    """Calendar month key in YYYY-MM form"""
    return day.strftime("%Y-%m")


def month_start(day: date) -> date:
    return day.replace(day=1)


def month_end(day: date) -> date:
    """Last day of the month containing day"""
    return month_start(day) + relativedelta(months=1, days=-1)


def generate_month_range(start: date, end: date) -> List[date]:
    """Generate first-of-month dates from start's month to end's month (inclusive)"""
    months = []
    current = month_start(start)
    last = month_start(end)
    while current <= last:
        months.append(current)
        current = current + relativedelta(months=1)
    return months
