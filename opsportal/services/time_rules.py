"""
Time rules for attendance days and task scheduling.
Handles local-midnight normalisation, the task grace period and timezone conversions.
"""
import re
from datetime import datetime, time, timedelta, timezone
from typing import Optional, Tuple
import pytz
from ..config import settings
from ..errors import InvalidArgumentError


_TIME_OF_DAY = re.compile(r"^(\d{1,2}):(\d{2})$")


def utcnow() -> datetime:
    """Naive UTC wall clock; every stored timestamp uses this representation."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=pytz.UTC)
    return dt.astimezone(pytz.UTC)


def get_date_at_midnight(instant: datetime, timezone_str: Optional[str] = None) -> datetime:
    """
    Map an instant to the UTC instant of local midnight of its local calendar day.

    Args:
        instant: Instant to normalise (naive values are taken as UTC)
        timezone_str: Timezone string (default from settings)

    Returns:
        Naive UTC datetime of that zone's 00:00 for the day
    """
    tz = pytz.timezone(timezone_str or settings.tz_default)
    local = _as_utc(instant).astimezone(tz)
    local_midnight = tz.localize(datetime(local.year, local.month, local.day))
    return local_midnight.astimezone(pytz.UTC).replace(tzinfo=None)


def get_today_date(now: Optional[datetime] = None, timezone_str: Optional[str] = None) -> datetime:
    return get_date_at_midnight(now or utcnow(), timezone_str)


def get_utc_range_for_local_date(local_midnight: datetime) -> Tuple[datetime, datetime]:
    """Half-open [start, end) range covering one attendance day."""
    return local_midnight, local_midnight + timedelta(hours=24)


def parse_time_of_day(value: str) -> time:
    """
    Parse a local "HH:MM" string.

    Raises:
        InvalidArgumentError: if the value is not a valid 24h time of day
    """
    match = _TIME_OF_DAY.match((value or "").strip())
    if not match:
        raise InvalidArgumentError(f"Invalid time of day '{value}', expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidArgumentError(f"Invalid time of day '{value}', expected HH:MM")
    return time(hour, minute)


def local_to_utc(local_datetime: datetime, timezone_str: str) -> datetime:
    """
    Convert a naive local datetime to naive UTC.

    Args:
        local_datetime: Local wall-clock datetime (naive)
        timezone_str: Timezone string (e.g., "Asia/Kolkata")

    Returns:
        Naive UTC datetime
    """
    tz = pytz.timezone(timezone_str)
    if local_datetime.tzinfo is None:
        local_dt = tz.localize(local_datetime)
    else:
        local_dt = local_datetime.astimezone(tz)
    return local_dt.astimezone(pytz.UTC).replace(tzinfo=None)


def utc_to_local(utc_datetime: datetime, timezone_str: str) -> datetime:
    """Convert a UTC datetime (naive or aware) to an aware local datetime."""
    return _as_utc(utc_datetime).astimezone(pytz.timezone(timezone_str))


def derive_assignment_status(
    start_time: Optional[str],
    now: Optional[datetime] = None,
    timezone_str: Optional[str] = None,
    grace_minutes: Optional[int] = None,
) -> str:
    """
    Attendance status implied by assigning a task.

    Args:
        start_time: Scheduled local start "HH:MM" (None means unscheduled)
        now: Current instant (default: wall clock)
        timezone_str: Timezone the start time is expressed in
        grace_minutes: Minutes after start before LATE (default from settings)

    Returns:
        "PRESENT" or "LATE"
    """
    if not start_time:
        return "PRESENT"
    timezone_str = timezone_str or settings.tz_default
    if grace_minutes is None:
        grace_minutes = settings.task_grace_period_min
    now = now or utcnow()

    start = parse_time_of_day(start_time)
    local_day = utc_to_local(now, timezone_str).date()
    start_utc = local_to_utc(datetime.combine(local_day, start), timezone_str)
    late_threshold = start_utc + timedelta(minutes=grace_minutes)
    if _as_utc(now).replace(tzinfo=None) > late_threshold:
        return "LATE"
    return "PRESENT"


def format_time_of_day(now: Optional[datetime] = None, timezone_str: Optional[str] = None) -> str:
    """Local 24h "HH:MM" for an instant."""
    local = utc_to_local(now or utcnow(), timezone_str or settings.tz_default)
    return local.strftime("%H:%M")
