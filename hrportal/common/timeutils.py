"""Date and time helpers for the organisation's working calendar.

Timestamps are stored in UTC. Attendance dates, "today" and the late
cut-off are evaluated in the organisation's fixed local offset
(``TZ_OFFSET_MINUTES``).
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator, Optional

from hrportal.config import settings


def local_tz() -> timezone:
    return timezone(timedelta(minutes=settings.TZ_OFFSET_MINUTES))


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def local_now() -> datetime:
    return utc_now().astimezone(local_tz())


def local_today() -> date:
    return local_now().date()


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_local(value: Optional[datetime]) -> Optional[datetime]:
    value = as_utc(value)
    return value.astimezone(local_tz()) if value else None


def office_start() -> time:
    hours, minutes = settings.OFFICE_START_TIME.split(":")
    return time(int(hours), int(minutes))


def is_late(check_in: datetime) -> bool:
    """True when the local check-in time is after the office start."""
    return to_local(check_in).time() > office_start()


def is_weekend(day: date) -> bool:
    return day.weekday() >= 5


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date from *start* to *end* inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def working_days(start: date, end: date) -> int:
    """Count Monday–Friday dates in the inclusive range."""
    return sum(1 for day in iter_days(start, end) if not is_weekend(day))


def month_start(day: date) -> date:
    return day.replace(day=1)
