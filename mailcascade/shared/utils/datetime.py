"""UTC datetime helpers. All datetimes stored or compared are timezone-aware UTC."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current UTC datetime (aware)."""
    return datetime.now(UTC)


def utc_now_ms() -> int:
    """Milliseconds since epoch; used by OAuth state entries."""
    return int(utc_now().timestamp() * 1000)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Normalize a datetime to aware UTC.

    - None stays None
    - naive values are assumed to be UTC (SQLite returns naive datetimes
      even for timezone-aware columns)
    - aware values are converted to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)
