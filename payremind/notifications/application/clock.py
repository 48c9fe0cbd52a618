"""Time helpers shared by selection rules, dispatcher and scheduler.

All comparisons happen on timezone-aware datetimes in the configured zone.
Naive timestamps read from storage are interpreted in that zone.
"""

from collections.abc import Callable
from datetime import date, datetime, tzinfo

Clock = Callable[[], datetime]


def system_clock(tz: tzinfo) -> Clock:
    """Return a clock reporting the current time in *tz*."""

    def now() -> datetime:
        return datetime.now(tz)

    return now


def to_zone(value: datetime, tz: tzinfo) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def local_date(value: datetime, tz: tzinfo) -> date:
    """Calendar date of *value* in *tz*."""
    return to_zone(value, tz).date()
