"""Centralized datetime utilities for consistent timezone handling.

All functions return naive UTC datetimes for database compatibility
(SQLAlchemy models use naive UTC).

Usage:
    from queue_monitor.core.datetime_utils import utc_now, get_cutoff

    # Current time
    now = utc_now()

    # Get cutoff for queries
    cutoff = get_cutoff(hours=1)
    stmt = stmt.where(Monitor.started_at > cutoff)

    # Exact timestamps are stored as ISO-8601 strings
    exact = format_exact(now)
    assert parse_exact(exact) == now
"""

from datetime import UTC, date, datetime, timedelta


def utc_now() -> datetime:
    """Get current UTC time as naive datetime.

    Returns naive datetime for database compatibility.
    Replaces deprecated datetime.utcnow().
    """
    return datetime.now(UTC).replace(tzinfo=None)


def get_cutoff(hours: int = 0, days: int = 0, now: datetime | None = None) -> datetime:
    """Get cutoff datetime for filtering queries.

    Args:
        hours: Hours to subtract from now
        days: Days to subtract from now
        now: Reference time, defaults to utc_now()

    Returns:
        Naive UTC datetime representing the cutoff point
    """
    delta = timedelta(hours=hours, days=days)
    return (now or utc_now()) - delta


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """Get the [start, end) naive UTC bounds of a calendar day."""
    start = datetime(day.year, day.month, day.day)
    return start, start + timedelta(days=1)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Naive UTC datetime for database compatibility
    """
    if dt.tzinfo is None:
        # Already naive, assume it's UTC
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def truncate_to_second(dt: datetime) -> datetime:
    """Drop sub-second precision, matching coarse timestamp columns."""
    return dt.replace(microsecond=0)


def format_exact(dt: datetime) -> str:
    """Serialize a datetime as a high-precision ISO-8601 string."""
    return to_naive_utc(dt).isoformat(timespec="microseconds")


def parse_exact(value: str) -> datetime:
    """Parse an ISO-8601 exact timestamp into naive UTC.

    Raises:
        ValueError: If the value is not a valid ISO-8601 timestamp
    """
    return to_naive_utc(datetime.fromisoformat(value.strip()))
