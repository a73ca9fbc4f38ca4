"""
Date helpers shared by billing and trial logic.

All functions take the reference time explicitly; nothing here reads the
wall clock except utc_now().
"""

import calendar
from datetime import date, datetime, timedelta, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) and convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_utc_date(value: Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return ensure_utc(value).date()
    return value


def calendar_days_between(start: Union[date, datetime], end: Union[date, datetime]) -> int:
    """Whole calendar days from start to end, comparing UTC dates."""
    return (to_utc_date(end) - to_utc_date(start)).days


def whole_days_between(start: datetime, end: datetime) -> int:
    """Complete 24-hour periods from start to end, truncated toward zero."""
    delta = ensure_utc(end) - ensure_utc(start)
    days = abs(delta) // timedelta(days=1)
    return days if delta >= timedelta(0) else -days


def is_business_day(day: Union[date, datetime]) -> bool:
    return day.weekday() < 5


def add_business_days(start: datetime, days: int) -> datetime:
    """Advance `days` weekdays from start, skipping Saturdays and Sundays.

    The time of day is preserved. A start on a weekend counts the first
    following weekday as day one.
    """
    if days < 0:
        raise ValueError("days must be >= 0")
    current = start
    added = 0
    while added < days:
        current = current + timedelta(days=1)
        if is_business_day(current):
            added += 1
    return current


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp (accepting a trailing Z) into aware UTC."""
    if not value:
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))
