"""Time utilities for consistent timestamp and calendar-date handling."""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Return current UTC timestamp (timezone-aware)."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Return today's calendar date in UTC.

    Stay dates are plain calendar dates; "today" is pinned to UTC so the
    past-check-in rule does not depend on the server's local zone.
    """
    return utc_now().date()
