"""
Datetime utilities for consistent timezone handling.

This module provides constants and helper functions for working
with dates and times in a consistent manner across the application.
"""

import datetime
from zoneinfo import ZoneInfo

# Standard timezone for all application operations
UTC = ZoneInfo("UTC")


def now_utc() -> datetime.datetime:
    """
    Get current datetime in UTC.

    Returns:
        datetime.datetime: Current time in UTC timezone
    """
    return datetime.datetime.now(UTC)


def ensure_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    """
    Attach UTC to naive datetimes and convert aware ones to UTC.

    SQLite drops timezone information on round trips, so values read back
    from the store are normalised here before they are compared.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)

