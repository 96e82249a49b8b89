"""UTC day and time window helpers for the daily report."""

from datetime import date, datetime, timedelta, timezone
from typing import Callable, NamedTuple

Clock = Callable[[], datetime]

WINDOW_LENGTH = timedelta(hours=24)


class TimeWindow(NamedTuple):
    """Right-open interval [start, end) in UTC."""

    start: datetime
    end: datetime

    @property
    def report_date(self) -> date:
        return self.end.date()


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(timezone.utc)


def to_utc(moment: datetime) -> datetime:
    """Convert a datetime to UTC. Naive datetimes are taken to be UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def start_of_utc_day(moment: datetime) -> datetime:
    """Midnight UTC of the day the instant falls on."""
    return to_utc(moment).replace(hour=0, minute=0, second=0, microsecond=0)


def current_report_date(now: datetime) -> date:
    """Report date for a run happening at `now`."""
    return start_of_utc_day(now).date()


def calculate_time_window(now: datetime) -> TimeWindow:
    """24 hour window ending at the most recent midnight UTC.

    Args:
        now: Current instant, any timezone

    Returns:
        TimeWindow with start = end - 24h
    """
    window_end = start_of_utc_day(now)
    return TimeWindow(start=window_end - WINDOW_LENGTH, end=window_end)
