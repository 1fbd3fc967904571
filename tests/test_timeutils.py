"""
Tests for the shared date and time helpers.
"""

from datetime import date, datetime

import pendulum
import pytest

from venuebook.domain.exceptions import InputFormatError
from venuebook.domain.timeutils import (
    combine,
    format_minutes,
    is_valid_time,
    parse_date,
    parse_time,
    system_now,
    to_datetime,
    weekday_index,
)


class TestWeekdayIndex:
    """The one canonical weekday conversion (0=Sunday)."""

    @pytest.mark.parametrize(
        "day, expected",
        [
            (date(2030, 1, 6), 0),   # Sunday
            (date(2030, 1, 7), 1),   # Monday
            (date(2030, 1, 1), 2),   # Tuesday
            (date(2030, 1, 12), 6),  # Saturday
        ],
    )
    def test_sunday_is_zero(self, day, expected):
        """Test Sunday maps to 0 and Saturday to 6."""
        assert weekday_index(day) == expected

    def test_pendulum_dates_agree_with_stdlib(self):
        """Test pendulum and stdlib dates map to the same index."""
        assert weekday_index(pendulum.date(2030, 1, 6)) == weekday_index(date(2030, 1, 6)) == 0

    def test_datetime_uses_its_date(self):
        """Test a datetime maps like its date."""
        assert weekday_index(datetime(2030, 1, 7, 23, 59)) == 1


class TestParseTime:
    """Tests for HH:MM parsing."""

    def test_valid_times(self):
        """Test the day boundaries and a regular time."""
        assert parse_time("00:00") == 0
        assert parse_time("11:30") == 690
        assert parse_time("23:59") == 1439

    @pytest.mark.parametrize("value", ["24:00", "9:00", "12:60", "ab:cd", "12:00:00", "", None, 1200])
    def test_invalid_times_raise(self, value):
        """Test malformed or out-of-range times are rejected."""
        assert not is_valid_time(value)
        with pytest.raises(InputFormatError, match="Invalid time format"):
            parse_time(value)

    def test_format_minutes_round_trip(self):
        """Test formatting pads hours and minutes."""
        assert format_minutes(0) == "00:00"
        assert format_minutes(545) == "09:05"
        assert format_minutes(parse_time("21:15")) == "21:15"


class TestParseDate:
    """Tests for YYYY-MM-DD parsing."""

    def test_valid_date(self):
        """Test a regular calendar date."""
        assert parse_date("2030-01-01") == date(2030, 1, 1)

    def test_leap_day(self):
        """Test 29 February exists in leap years only."""
        assert parse_date("2028-02-29") == date(2028, 2, 29)
        with pytest.raises(InputFormatError):
            parse_date("2030-02-29")

    @pytest.mark.parametrize("value", ["2030-02-30", "2030-13-01", "2030-1-1", "01.01.2030", "", None])
    def test_invalid_dates_raise(self, value):
        """Test impossible or malformed dates are rejected."""
        with pytest.raises(InputFormatError):
            parse_date(value)

    def test_date_objects_pass_through(self):
        """Test dates and datetimes are accepted as they are."""
        assert parse_date(date(2030, 1, 1)) == date(2030, 1, 1)
        assert parse_date(datetime(2030, 1, 1, 15, 30)) == date(2030, 1, 1)

    def test_returns_pendulum_dates(self):
        """Test strings and stdlib dates both come back as pendulum dates."""
        assert isinstance(parse_date("2030-01-01"), pendulum.Date)
        assert isinstance(parse_date(date(2030, 1, 1)), pendulum.Date)
        assert parse_date("2029-12-31").add(days=1) == date(2030, 1, 1)


class TestDateTimes:
    """Tests for the naive pendulum datetimes used in notice checks."""

    def test_combine(self):
        """Test combining a date with minutes since midnight."""
        combined = combine(date(2030, 1, 1), 690)

        assert combined == datetime(2030, 1, 1, 11, 30)
        assert isinstance(combined, pendulum.DateTime)
        assert combined.tzinfo is None

    def test_to_datetime_converts_stdlib_values(self):
        """Test a stdlib clock value becomes a naive pendulum DateTime."""
        converted = to_datetime(datetime(2029, 12, 20, 12, 0, 30))

        assert isinstance(converted, pendulum.DateTime)
        assert converted.tzinfo is None
        assert converted == datetime(2029, 12, 20, 12, 0, 30)

    def test_to_datetime_keeps_naive_pendulum_values(self):
        """Test naive pendulum values are returned unchanged."""
        now = pendulum.naive(2029, 12, 20, 12, 0)

        assert to_datetime(now) is now

    def test_hours_between_wall_clock_times(self):
        """Test the diff used for the advance-notice rule."""
        now = to_datetime(datetime(2029, 12, 20, 12, 0))

        assert now.diff(combine(date(2029, 12, 21), 13 * 60), False).in_hours() == 25
        assert now.diff(combine(date(2029, 12, 20), 11 * 60), False).in_minutes() == -60

    def test_system_now_is_naive(self):
        """Test the default clock yields local wall-clock time."""
        assert system_now().tzinfo is None
