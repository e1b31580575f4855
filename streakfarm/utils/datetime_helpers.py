"""
Standardized Date/Time Handling Utilities

CRITICAL RULES:
- Always store datetimes in DB as UTC (use to_utc())
- Calendar-day questions (has this account checked in today? how many boxes
  were generated today?) are answered in the reference timezone
- Never mix naive and aware datetimes
"""

import logging
from datetime import datetime, date, time, timedelta
from zoneinfo import ZoneInfo

logger = logging.getLogger(__name__)

UTC = ZoneInfo("UTC")


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(UTC)


def to_utc(dt: datetime) -> datetime:
    """
    Convert datetime to UTC for database storage

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        logger.warning(f"Received naive datetime, assuming UTC: {dt}")
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def local_date(dt: datetime, tz: ZoneInfo) -> date:
    """Wall-clock calendar date of `dt` in `tz`"""
    return to_utc(dt).astimezone(tz).date()


def start_of_day(day: date, tz: ZoneInfo) -> datetime:
    """Midnight of `day` in `tz`, returned in UTC"""
    return datetime.combine(day, time.min, tzinfo=tz).astimezone(UTC)


def start_of_next_day(now: datetime, tz: ZoneInfo) -> datetime:
    """Midnight after `now` in `tz`, returned in UTC"""
    return start_of_day(local_date(now, tz) + timedelta(days=1), tz)


def hour_slot_start(now: datetime) -> datetime:
    """Start of the UTC hour containing `now`"""
    return to_utc(now).replace(minute=0, second=0, microsecond=0)
