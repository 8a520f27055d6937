import datetime as dt

from schedule_planner.dates import (
    add_days,
    clamp_range,
    diff_days,
    duration_days,
    max_date,
    min_date,
    parse_date,
)


def test_add_days_crosses_month_and_year_boundaries():
    assert add_days(dt.date(2026, 1, 31), 1) == dt.date(2026, 2, 1)
    assert add_days(dt.date(2026, 12, 31), 1) == dt.date(2027, 1, 1)
    assert add_days(dt.date(2026, 3, 1), -1) == dt.date(2026, 2, 28)


def test_add_days_saturates_at_calendar_limits():
    assert add_days(dt.date(9999, 12, 28), 7) == dt.date.max
    assert add_days(dt.date(1, 1, 3), -7) == dt.date.min


def test_diff_days_is_signed():
    assert diff_days(dt.date(2026, 1, 1), dt.date(2026, 1, 11)) == 10
    assert diff_days(dt.date(2026, 1, 11), dt.date(2026, 1, 1)) == -10


def test_min_and_max_date():
    a, b = dt.date(2026, 5, 1), dt.date(2026, 4, 30)
    assert min_date(a, b) == b
    assert max_date(a, b) == a


def test_clamp_range_pulls_end_up_to_start():
    start = dt.date(2026, 2, 10)
    assert clamp_range(start, dt.date(2026, 2, 1)) == (start, start)
    assert clamp_range(start, dt.date(2026, 2, 12)).end == dt.date(2026, 2, 12)


def test_duration_is_inclusive_and_at_least_one_day():
    assert duration_days(dt.date(2026, 2, 6), dt.date(2026, 2, 8)) == 3
    assert duration_days(dt.date(2026, 2, 6), dt.date(2026, 2, 6)) == 1
    assert duration_days(dt.date(2026, 2, 6), dt.date(2026, 2, 1)) == 1


def test_parse_date_accepts_strings_dates_and_datetimes():
    assert parse_date("2026-01-10") == dt.date(2026, 1, 10)
    assert parse_date("2026-01-10T23:30:00+05:00") == dt.date(2026, 1, 10)
    assert parse_date(dt.date(2026, 1, 10)) == dt.date(2026, 1, 10)
    assert parse_date(dt.datetime(2026, 1, 10, 23, 59)) == dt.date(2026, 1, 10)


def test_parse_date_degrades_to_default_or_today():
    fallback = dt.date(2020, 1, 1)
    assert parse_date("not a date", fallback) == fallback
    assert parse_date("2026-13-45", fallback) == fallback
    assert parse_date(None, fallback) == fallback
    assert parse_date(12345) == dt.date.today()
