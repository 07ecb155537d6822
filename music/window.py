from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass(frozen=True, slots=True)
class MonthWindow:
    """Open interval (start, end) that decides which music month counts as current."""

    start: datetime
    end: datetime

    def contains(self, instant: datetime) -> bool:
        return self.start < _as_utc(instant) < self.end


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def add_calendar_month(dt: datetime) -> datetime:
    """Same wall-clock time one month later, clamped to the last day of the target month."""
    year = dt.year + (1 if dt.month == 12 else 0)
    month = 1 if dt.month == 12 else dt.month + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def month_window(now: datetime | None = None) -> MonthWindow:
    current = _as_utc(now or datetime.now(timezone.utc))
    # Stepping back one day past the 1st gives months that start at midnight a grace period.
    start = current - timedelta(days=current.day + 1)
    return MonthWindow(start=start, end=add_calendar_month(start))
