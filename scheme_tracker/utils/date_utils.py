"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, time, timedelta
from typing import Tuple, Union

DateLike = Union[date, datetime]


def as_date(value: DateLike) -> date:
    """Calendar date of a date or datetime (datetimes keep their own timezone)"""
    if isinstance(value, datetime):
        return value.date()
    return value


def weeks_elapsed(start: DateLike, now: DateLike) -> int:
    """Whole 7-day periods from start to now, floored, 0 when now is before start"""
    days = (as_date(now) - as_date(start)).days
    return max(days // 7, 0)


def add_weeks(from_date: date, weeks: int) -> date:
    return from_date + timedelta(weeks=weeks)


def format_display_date(value: DateLike) -> str:
    """Format as 'MMM DD, YYYY', e.g. 'Jan 05, 2025'"""
    return as_date(value).strftime("%b %d, %Y")


def month_key(value: DateLike) -> str:
    return as_date(value).strftime("%Y-%m")


def month_bounds(month: str) -> Tuple[datetime, datetime]:
    """First and last instant of a 'YYYY-MM' month (naive datetimes, inclusive)"""
    try:
        year, month_num = (int(part) for part in month.split("-"))
        last_day = calendar.monthrange(year, month_num)[1]
    except (ValueError, calendar.IllegalMonthError) as e:
        raise ValueError(f"Invalid month {month!r}, expected YYYY-MM") from e

    start = datetime(year, month_num, 1)
    end = datetime.combine(date(year, month_num, last_day), time.max)
    return start, end
