from datetime import date, datetime, timezone, timedelta

import pytest

from condoadmin.core.dates import (
    add_business_days,
    add_months,
    calendar_days_between,
    ensure_utc,
    whole_days_between,
    parse_iso_datetime,
)


def test_friday_plus_three_business_days_is_wednesday():
    friday = datetime(2025, 1, 3, 10, 0, tzinfo=timezone.utc)

    result = add_business_days(friday, 3)

    assert result.date() == date(2025, 1, 8)
    assert result.hour == 10


def test_weekend_start_counts_monday_as_day_one():
    saturday = datetime(2025, 1, 4, tzinfo=timezone.utc)

    assert add_business_days(saturday, 1).date() == date(2025, 1, 6)


def test_zero_business_days_is_identity():
    start = datetime(2025, 1, 4, tzinfo=timezone.utc)
    assert add_business_days(start, 0) == start


def test_negative_business_days_rejected():
    with pytest.raises(ValueError):
        add_business_days(datetime(2025, 1, 3, tzinfo=timezone.utc), -1)


def test_add_months_clamps_to_month_end():
    assert add_months(datetime(2025, 1, 31, tzinfo=timezone.utc), 1).date() == date(2025, 2, 28)
    assert add_months(datetime(2025, 11, 15, tzinfo=timezone.utc), 2).date() == date(2026, 1, 15)


def test_calendar_days_compare_utc_dates():
    start = datetime(2025, 1, 1, 23, 0, tzinfo=timezone.utc)
    end = datetime(2025, 1, 2, 1, 0, tzinfo=timezone.utc)

    assert calendar_days_between(start, end) == 1


def test_offset_datetimes_are_converted_before_counting():
    """21:00 at UTC-3 on Jan 1 is already Jan 2 in UTC."""
    start = datetime(2025, 1, 1, 21, 0, tzinfo=timezone(timedelta(hours=-3)))

    assert ensure_utc(start).date() == date(2025, 1, 2)
    assert calendar_days_between(start, date(2025, 1, 2)) == 0


def test_parse_iso_datetime_accepts_trailing_z():
    assert parse_iso_datetime("2025-02-01T00:00:00Z") == datetime(2025, 2, 1, tzinfo=timezone.utc)
    assert parse_iso_datetime(None) is None
    assert parse_iso_datetime("") is None


def test_whole_days_drop_partial_days():
    start = datetime(2025, 1, 1, 20, 0, tzinfo=timezone.utc)

    assert whole_days_between(start, datetime(2025, 1, 21, 10, 0, tzinfo=timezone.utc)) == 19
    assert whole_days_between(start, datetime(2025, 1, 21, 20, 0, tzinfo=timezone.utc)) == 20


def test_whole_days_truncate_toward_zero_when_reversed():
    start = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)

    assert whole_days_between(start, datetime(2025, 1, 8, 18, 0, tzinfo=timezone.utc)) == -1
    assert whole_days_between(start, datetime(2025, 1, 10, 6, 0, tzinfo=timezone.utc)) == 0
