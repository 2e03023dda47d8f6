"""Clock helpers shared by services."""

from datetime import UTC, date, datetime
from zoneinfo import ZoneInfo


def utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(tz=UTC)


def local_today(now: datetime, timezone_name: str) -> date:
    """Return the calendar date of ``now`` in the given timezone."""
    return now.astimezone(ZoneInfo(timezone_name)).date()
