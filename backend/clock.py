"""
StudyMate - Clock and Window Utilities
"Now", the trailing 7-day window and calendar-day arithmetic.

All instants are naive local wall-clock datetimes. Session dates are calendar
dates and are placed at local midnight when compared against instants.
"""

import math
from dataclasses import dataclass
from datetime import datetime, date, time, timedelta
from typing import List, Union


DateLike = Union[date, datetime]

WEEK = timedelta(days=7)


def now() -> datetime:
    """Current local wall-clock time."""
    return datetime.now()


def calendar_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def start_of_day(value: DateLike) -> datetime:
    """Midnight at the start of the value's calendar day."""
    return datetime.combine(calendar_date(value), time.min)


def days_between(start: DateLike, end: DateLike) -> int:
    """Whole calendar days from start to end, time of day ignored."""
    return (calendar_date(end) - calendar_date(start)).days


def round_half_up(value: float, ndigits: int = 0) -> Union[int, float]:
    """Round halves upward: round_half_up(2.5) == 3, where round(2.5) == 2."""
    if ndigits == 0:
        return int(math.floor(value + 0.5))
    factor = 10 ** ndigits
    return math.floor(value * factor + 0.5) / factor


@dataclass(frozen=True)
class WeekWindow:
    """The trailing seven days ending at `end`."""
    start: datetime
    end: datetime

    def contains(self, day: DateLike) -> bool:
        """
        "This week" filter for weekly totals.

        A session dated `day` counts when its local midnight is at or after
        `start`. There is no upper bound, so planned sessions dated later
        than `end` are counted too.
        """
        return start_of_day(day) >= self.start


def week_window(current: datetime) -> WeekWindow:
    return WeekWindow(start=current - WEEK, end=current)


def daily_buckets(current: DateLike, days: int = 7) -> List[date]:
    """Calendar days for offsets days-1 ... 0 from current, oldest first."""
    today = calendar_date(current)
    return [today - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def at_time_of_day(day: DateLike, hhmm: str) -> datetime:
    """Combine a calendar day with an HH:mm wall-clock time."""
    hours, minutes = (int(part) for part in hhmm.split(":"))
    return datetime.combine(calendar_date(day), time(hours, minutes))
