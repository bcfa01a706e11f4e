"""
Timezone utilities for the booking engine.

Converts local calendar dates and wall-clock times of a tenant's zone into
UTC instants and back. Local values are resolved by asking the zone-aware
formatter (pytz ``astimezone``) what an instant looks like locally and
correcting the guess until both agree, which stays correct across DST
transitions.
"""

from datetime import date, datetime, time, timedelta
import re
from typing import Optional, Tuple, Union

import pytz
from pytz.tzinfo import BaseTzInfo

from app.core.exceptions import ValidationException

DateLike = Union[date, str]
TimeLike = Union[time, str]

_DATE_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

MINUTES_PER_DAY = 1_440
MAX_CONVERGENCE_ITERATIONS = 4


def get_timezone(tz_name: str) -> BaseTzInfo:
    """Resolve an IANA zone name, rejecting unknown names."""
    try:
        return pytz.timezone(tz_name)
    except pytz.UnknownTimeZoneError as exc:
        raise ValidationException(
            f"Unknown timezone: {tz_name}", code="INVALID_TIMEZONE"
        ) from exc


def parse_date_key(value: str) -> Optional[date]:
    """Parse a ``YYYY-MM-DD`` key, returning None for anything invalid."""
    if not isinstance(value, str) or not _DATE_KEY_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def parse_time_to_minutes(value: Optional[str]) -> Optional[int]:
    """
    Convert ``H:MM``, ``HH:MM`` or ``HH:MM:SS`` to minutes after midnight.

    Seconds are validated but dropped. Returns None for malformed input.
    """
    if not value:
        return None
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        return None
    hours, minutes = int(match.group(1)), int(match.group(2))
    seconds = int(match.group(3)) if match.group(3) else 0
    if not (0 <= hours <= 23 and 0 <= minutes <= 59 and 0 <= seconds <= 59):
        return None
    return hours * 60 + minutes


def _coerce_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_date_key(value)
    if parsed is None:
        raise ValidationException(f"Invalid date key: {value}", code="INVALID_DATE")
    return parsed


def _coerce_minutes(value: TimeLike) -> int:
    if isinstance(value, time):
        return value.hour * 60 + value.minute
    if not isinstance(value, str) or not re.match(r"^\d{2}:\d{2}$", value):
        raise ValidationException(f"Invalid HH:mm time: {value}", code="INVALID_TIME")
    minutes = parse_time_to_minutes(value)
    if minutes is None:
        raise ValidationException(f"Invalid HH:mm time: {value}", code="INVALID_TIME")
    return minutes


def add_days(local_date: DateLike, days: int) -> date:
    return _coerce_date(local_date) + timedelta(days=days)


def day_of_week(local_date: DateLike) -> int:
    """
    Day of week with 0 = Sunday.

    Evaluated at local noon so that a DST shift can never move the
    instant onto a neighbouring calendar day.
    """
    noon = datetime.combine(_coerce_date(local_date), time(12, 0))
    return noon.isoweekday() % 7


def get_zoned_date_and_time(instant: datetime, tz_name: str) -> Tuple[date, str]:
    """Return the local calendar date and ``HH:MM`` of an instant in a zone."""
    if instant.tzinfo is None:
        instant = pytz.UTC.localize(instant)
    local = instant.astimezone(get_timezone(tz_name))
    return local.date(), f"{local.hour:02d}:{local.minute:02d}"


def zoned_datetime_to_utc(local_date: DateLike, local_time: TimeLike, tz_name: str) -> datetime:
    """
    Resolve a local wall-clock time in ``tz_name`` to an aware UTC datetime.

    Starts from the wall-clock values read as UTC, then repeatedly formats the
    guess back into the zone and subtracts the signed minute drift (day
    rollover included) until the drift is zero or the iteration cap is hit.
    """
    target_date = _coerce_date(local_date)
    target_minutes = _coerce_minutes(local_time)
    zone = get_timezone(tz_name)

    guess = datetime(
        target_date.year,
        target_date.month,
        target_date.day,
        target_minutes // 60,
        target_minutes % 60,
        tzinfo=pytz.UTC,
    )
    target_day_number = target_date.toordinal()

    for _ in range(MAX_CONVERGENCE_ITERATIONS):
        observed = guess.astimezone(zone)
        drift = (observed.date().toordinal() - target_day_number) * MINUTES_PER_DAY + (
            observed.hour * 60 + observed.minute - target_minutes
        )
        if drift == 0:
            break
        guess -= timedelta(minutes=drift)

    return guess


def zoned_day_range(local_date: DateLike, tz_name: str) -> Tuple[datetime, datetime]:
    """Half-open ``[start, end)`` UTC range covering one local calendar day."""
    day = _coerce_date(local_date)
    start = zoned_datetime_to_utc(day, "00:00", tz_name)
    end = zoned_datetime_to_utc(add_days(day, 1), "00:00", tz_name)
    return start, end


def ensure_utc(instant: datetime) -> datetime:
    """Normalize a datetime to aware UTC; naive values are taken as UTC."""
    if instant.tzinfo is None:
        return pytz.UTC.localize(instant)
    return instant.astimezone(pytz.UTC)


def utc_now() -> datetime:
    """Default clock for services; tests inject their own."""
    return datetime.now(pytz.UTC)
