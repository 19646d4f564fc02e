"""
DateTime helper utilities for safe timezone-aware datetime operations.

These helpers ensure safe comparisons between timezone-aware and naive
datetimes arriving from production snapshots, and parse the loose timestamp
formats the data-fetch layer hands over (ISO strings, calendar dates, datetimes).
"""
import re
from datetime import date, datetime, timezone

DATE_ONLY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def ensure_timezone_aware(dt: datetime, assume_utc: bool = True) -> datetime:
    """
    Ensure a datetime is timezone-aware.

    Args:
        dt: The datetime to check
        assume_utc: If True and datetime is naive, assume it's UTC (default: True)

    Returns:
        Timezone-aware datetime

    Example:
        >>> naive_dt = datetime(2025, 1, 1, 12, 0, 0)
        >>> aware_dt = ensure_timezone_aware(naive_dt)
        >>> aware_dt.tzinfo is not None
        True
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        if assume_utc:
            return dt.replace(tzinfo=timezone.utc)
        raise ValueError("Naive datetime provided without explicit timezone handling")

    return dt


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    This is the preferred way to get the reference instant for a reconciliation run.

    Returns:
        Current UTC time with timezone info
    """
    return datetime.now(timezone.utc)


def is_date_only(value) -> bool:
    """Return True for calendar-only strings such as ``2026-03-14``."""
    return isinstance(value, str) and bool(DATE_ONLY_PATTERN.match(value.strip()))


def parse_timestamp(value):
    """
    Parse a loose timestamp value into a ``datetime``.

    Accepts ``datetime`` and ``date`` objects, calendar-only strings and ISO-8601
    timestamps (a trailing ``Z`` is accepted). Calendar-only values come back as
    naive midnight datetimes so callers can keep them in local time; everything
    unparseable returns None.

    Example:
        >>> parse_timestamp("2026-01-05T08:30:00Z").tzinfo is not None
        True
        >>> parse_timestamp("not a date") is None
        True
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        if is_date_only(text):
            return datetime.combine(date.fromisoformat(text), datetime.min.time())
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
