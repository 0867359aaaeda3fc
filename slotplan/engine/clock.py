"""Calendar helpers for the scheduling engine.

All functions take the evaluation instant explicitly; nothing here reads the
wall clock.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from slotplan.models.constants import DEFAULT_TIMEZONE

logger = logging.getLogger(__name__)


def safe_timezone_name(name: Optional[str]) -> str:
    """Return `name` if it is a known IANA zone, else the default zone."""
    if not name:
        return DEFAULT_TIMEZONE
    try:
        ZoneInfo(name)
        return name
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {name!r}, falling back to {DEFAULT_TIMEZONE}")
        return DEFAULT_TIMEZONE


def to_local(instant: datetime, timezone_name: str) -> datetime:
    """Convert an instant to the user's timezone (naive values are taken as UTC)."""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(ZoneInfo(timezone_name))


def local_today(now: datetime, timezone_name: str) -> date:
    return to_local(now, timezone_name).date()


def minute_of_day(value: datetime) -> int:
    return value.hour * 60 + value.minute


def weekday_index(day: date) -> int:
    """Weekday with 0 = Sunday ... 6 = Saturday."""
    return (day.weekday() + 1) % 7


def week_start(day: date, first_day_of_week: int) -> date:
    offset = (weekday_index(day) - first_day_of_week + 7) % 7
    return day - timedelta(days=offset)


def week_end(day: date, first_day_of_week: int) -> date:
    return week_start(day, first_day_of_week) + timedelta(days=6)


def in_horizon(day: Optional[date], today: date, first_day_of_week: int) -> bool:
    """Whether `day` falls between today and the end of today's week."""
    if day is None:
        return False
    return today <= day <= week_end(today, first_day_of_week)
