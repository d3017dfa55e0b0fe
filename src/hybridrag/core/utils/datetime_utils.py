"""
Centralized datetime helpers.

All datetimes are handled in UTC to avoid timezone issues.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def format_iso(dt: datetime) -> str:
    """
    Format a datetime as ISO 8601 with a 'Z' suffix.

    Naive datetimes are assumed to be UTC already.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat().replace('+00:00', 'Z')


def utc_now_iso() -> str:
    """Current UTC datetime as an ISO string, e.g. "2024-01-15T10:30:45.123456Z"."""
    return format_iso(utc_now())
