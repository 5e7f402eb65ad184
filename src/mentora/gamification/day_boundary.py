"""UTC calendar-day helpers for the daily claim window."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

ONE_DAY = timedelta(days=1)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def _require_aware(dt: datetime) -> datetime:
    if dt.tzinfo is None or dt.utcoffset() is None:
        msg = f"naive datetime {dt!r}; pass an aware datetime"
        raise ValueError(msg)
    return dt.astimezone(timezone.utc)


def start_of_utc_day(dt: datetime) -> datetime:
    """Truncate to 00:00:00 UTC of the instant's UTC calendar date."""
    d = _require_aware(dt)
    return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)


def next_utc_day(dt: datetime) -> datetime:
    """Start of the UTC day after `dt`."""
    return start_of_utc_day(dt) + ONE_DAY


def day_diff_utc(a: datetime, b: datetime) -> int:
    """Signed number of UTC calendar days from the day of `b` to the day of `a`.

    23:59 yesterday -> 00:01 today is 1, not 0: days are counted by date,
    not by rolling 24h windows.
    """
    days, remainder = divmod(start_of_utc_day(a) - start_of_utc_day(b), ONE_DAY)
    if remainder:
        msg = f"UTC day boundaries differ by a fractional day: {a!r}, {b!r}"
        raise ValueError(msg)
    return days
