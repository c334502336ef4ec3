"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes coming from the API or storage as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_older_than(moment: datetime | None, seconds: float, now: datetime | None = None) -> bool:
    """
    Check whether a timestamp is missing or older than the given age.

    Args:
        moment: Timestamp to check (None counts as stale)
        seconds: Maximum age in seconds
        now: Reference time (defaults to utc_now())

    Returns:
        True if the timestamp is stale
    """
    if moment is None:
        return True
    now = now or utc_now()
    return now - ensure_aware(moment) >= timedelta(seconds=seconds)
