"""
Date and time helpers shared by every layer.

Times of day are handled as minutes since midnight. Weekdays use one
canonical numbering, 0=Sunday .. 6=Saturday, which is also how availability
rules are stored.
"""

import re
from datetime import date, datetime

import pendulum
from pendulum import Date, DateTime

from .exceptions import InputFormatError

MINUTES_PER_DAY = 24 * 60

WEEKDAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

_TIME_PATTERN = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")
_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def weekday_index(day: date) -> int:
    """
    Map a date to the canonical weekday index (0=Sunday .. 6=Saturday).

    ``isoweekday()`` is 1=Monday .. 7=Sunday for stdlib and pendulum dates
    alike, so the modulo folds Sunday onto 0.
    """
    return day.isoweekday() % 7


def is_valid_time(value: object) -> bool:
    """Check for a strict 24h ``HH:MM`` string between 00:00 and 23:59."""
    return isinstance(value, str) and _TIME_PATTERN.match(value) is not None


def parse_time(value: str) -> int:
    """
    Convert ``HH:MM`` to minutes since midnight.

    Raises:
        InputFormatError: If the value is not a valid 24h time
    """
    if not is_valid_time(value):
        raise InputFormatError(f"Invalid time format: {value!r}. Use HH:MM")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def format_minutes(minutes: int) -> str:
    """Convert minutes since midnight back to ``HH:MM``."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_date(value) -> Date:
    """
    Parse a ``YYYY-MM-DD`` string into a pendulum date.

    Date objects are converted as they are (datetimes are truncated to their date).

    Raises:
        InputFormatError: If the value is not a real calendar date
    """
    if isinstance(value, date):
        return pendulum.date(value.year, value.month, value.day)
    if not isinstance(value, str) or not _DATE_PATTERN.match(value):
        raise InputFormatError(f"Invalid date format: {value!r}. Use YYYY-MM-DD")
    try:
        parsed = pendulum.from_format(value, "YYYY-MM-DD")
    except (ValueError, TypeError) as exc:
        raise InputFormatError(f"Invalid calendar date: {value!r}") from exc
    return parsed.date()


def to_datetime(value: datetime) -> DateTime:
    """Convert a naive wall-clock datetime into a naive pendulum DateTime."""
    if isinstance(value, DateTime) and value.tzinfo is None:
        return value
    return pendulum.naive(
        value.year, value.month, value.day,
        value.hour, value.minute, value.second, value.microsecond,
    )


def combine(day: date, minutes: int) -> DateTime:
    """Build a naive DateTime from a date and minutes since midnight."""
    return pendulum.naive(day.year, day.month, day.day).add(minutes=minutes)


def system_now() -> DateTime:
    """Current server wall-clock time as a naive DateTime."""
    return pendulum.now().naive()
