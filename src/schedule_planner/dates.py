from __future__ import annotations

import datetime as _dt
import logging
from typing import Any, NamedTuple

logger = logging.getLogger(__name__)


class DateRange(NamedTuple):
    """Inclusive calendar-day range."""

    start: _dt.date
    end: _dt.date


def today() -> _dt.date:
    return _dt.date.today()


def utcnow() -> _dt.datetime:
    return _dt.datetime.now(_dt.timezone.utc)


def parse_date(value: Any, default: _dt.date | None = None) -> _dt.date:
    """
    Coerce `value` into a calendar date.

    Accepts `date` objects (a `datetime` is truncated to its date part) and
    strings starting with YYYY-MM-DD. Anything else degrades to `default`, or
    today when no default is given.
    """

    if isinstance(value, _dt.datetime):
        return value.date()
    if isinstance(value, _dt.date):
        return value
    if isinstance(value, str) and len(value) >= 10:
        try:
            return _dt.date.fromisoformat(value[:10])
        except ValueError:
            pass
    fallback = default if default is not None else today()
    logger.debug("Unparseable date %r, using %s", value, fallback)
    return fallback


def format_date(value: _dt.date) -> str:
    return value.isoformat()


def add_days(value: _dt.date, days: int) -> _dt.date:
    """Shift `value` by `days`, saturating at `date.min`/`date.max`."""
    try:
        return value + _dt.timedelta(days=days)
    except OverflowError:
        return _dt.date.max if days > 0 else _dt.date.min


def diff_days(start: _dt.date, end: _dt.date) -> int:
    """Signed number of calendar days from `start` to `end`."""
    return (end - start).days


def min_date(a: _dt.date, b: _dt.date) -> _dt.date:
    return a if a <= b else b


def max_date(a: _dt.date, b: _dt.date) -> _dt.date:
    return a if a >= b else b


def clamp_range(start: _dt.date, end: _dt.date) -> DateRange:
    """Return (start, end) with end pulled up to start when it precedes it."""
    if end < start:
        return DateRange(start, start)
    return DateRange(start, end)


def duration_days(start: _dt.date, end: _dt.date) -> int:
    """Inclusive length of a range in days; never less than 1."""
    return max(1, diff_days(start, end) + 1)
