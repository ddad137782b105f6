"""
Standardized UTC timestamp utilities.

All timestamps leaving the API go through iso_utc() so clients always see the
same format: "YYYY-MM-DDTHH:MM:SS.ffffffZ" (UTC).
"""
from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Return current UTC time with timezone info.

    Use this instead of datetime.now() or datetime.utcnow() to ensure
    timezone-aware UTC timestamps.
    """
    return datetime.now(timezone.utc)


def iso_utc(value: Optional[datetime]) -> Optional[str]:
    """
    Render a datetime as an ISO 8601 UTC string.

    Naive datetimes are assumed to already be UTC (Postgres TIMESTAMP columns
    are written with NOW() in a UTC session).
    """
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    else:
        value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.%fZ")
