"""
Time range splitting for contribution queries.

GitHub returns at most 100 repositories per contribution connection, so a range
that hits the cap is re-queried in smaller pieces: halves while the range spans
six months or more, single calendar months below that.
"""

import calendar
from datetime import datetime, timedelta
from typing import List

from miners.models import TimeRange

HALVING_MIN_MONTHS = 6
MONTHLY_MIN_MONTHS = 2


def month_difference(start: datetime, end: datetime) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def first_of_month(dt: datetime, months_ahead: int = 0) -> datetime:
    """First second of the month ``months_ahead`` after ``dt``'s month."""
    month_index = dt.month - 1 + months_ahead
    return dt.replace(
        year=dt.year + month_index // 12,
        month=month_index % 12 + 1,
        day=1,
        hour=0,
        minute=0,
        second=0,
        microsecond=0,
    )


def end_of_month(dt: datetime) -> datetime:
    """Last second of ``dt``'s month."""
    last_day = calendar.monthrange(dt.year, dt.month)[1]
    return dt.replace(day=last_day, hour=23, minute=59, second=59, microsecond=0)


def split_time_range(time_range: TimeRange) -> List[TimeRange]:
    """
    Split a time range into smaller ranges.

    Args:
        time_range (TimeRange): Range whose query hit the repository cap.

    Returns:
        List[TimeRange]: Two halves split at a month boundary, one range per
            calendar month, or ``[time_range]`` when it cannot be split further.
    """
    start, end = time_range.start, time_range.end
    months = month_difference(start, end)

    if months >= HALVING_MIN_MONTHS:
        mid = first_of_month(start, months // 2)
        return [
            TimeRange(start=start, end=mid - timedelta(seconds=1)),
            TimeRange(start=mid, end=end),
        ]

    if months >= MONTHLY_MIN_MONTHS:
        ranges = []
        current = start
        while current < end:
            ranges.append(TimeRange(start=current, end=min(end_of_month(current), end)))
            current = first_of_month(current, 1)
        return ranges

    return [time_range]
