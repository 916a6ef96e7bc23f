"""Timestamp helpers.

Everything in memory is a timezone-aware UTC datetime. Timestamps are stored
as RFC3339 text so SQLite and PostgreSQL rows compare the same way.
"""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Normalize a datetime to aware UTC (naive values are taken as UTC)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse an RFC3339 string (or pass through a datetime) to aware UTC.

    Args:
        value: Timestamp string such as '2024-01-02T03:04:05.123Z', a datetime,
               or None

    Returns:
        Aware UTC datetime, or None when value is None or empty

    Raises:
        ValueError: If the string is not a valid ISO 8601 timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(text))


def parse_published_date(value: int | float | str | None) -> datetime | None:
    """Parse a reader document's published date.

    The API sends either epoch milliseconds or a string that is a full
    timestamp or a bare 'YYYY-MM-DD' date.

    Examples:
        >>> parse_published_date(0)
        datetime.datetime(1970, 1, 1, 0, 0, tzinfo=datetime.timezone.utc)
        >>> parse_published_date("2023-11-24")
        datetime.datetime(2023, 11, 24, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid published date: {value!r}")
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return datetime.fromtimestamp(int(value) / 1000, tz=timezone.utc)

    try:
        return parse_datetime(value)
    except ValueError:
        day = date.fromisoformat(value.strip())
        return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


def to_rfc3339(dt: datetime | None) -> str | None:
    """Serialize a datetime as RFC3339 UTC text, or None."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()
