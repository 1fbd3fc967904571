"""
Business-rule validation of a single booking request.

The validator is pure: everything it needs (venue settings, rules, existing
bookings, the current time) is passed in through ``BookingContext``, so the
same checks run unchanged in tests, in the read path and in the write path.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import List, Optional, Sequence

from .conflict_checker import ConflictChecker
from .exceptions import InputFormatError
from .models import AvailabilityRule, Booking, Service, StaffMember, TimeRange, Venue
from .slot_generator import SlotGenerator
from .timeutils import combine, is_valid_time, parse_date, parse_time, to_datetime, weekday_index

logger = logging.getLogger(__name__)


class IssueCode(str, Enum):
    INVALID_TIME_FORMAT = "invalid_time_format"
    INVALID_DATE = "invalid_date"
    END_NOT_AFTER_START = "end_not_after_start"
    IN_PAST = "in_past"
    OUTSIDE_VENUE_HOURS = "outside_venue_hours"
    STAFF_REQUIRED = "staff_required"
    STAFF_CANNOT_PERFORM = "staff_cannot_perform"
    OUTSIDE_STAFF_HOURS = "outside_staff_hours"
    INVALID_PARTY_SIZE = "invalid_party_size"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    STAFF_UNAVAILABLE = "staff_unavailable"
    TOO_SHORT_NOTICE = "too_short_notice"
    TOO_FAR_AHEAD = "too_far_ahead"
    TOO_LATE_TO_CANCEL = "too_late_to_cancel"


# Issues caused by other bookings rather than by the request itself
CONFLICT_CODES = frozenset({IssueCode.CAPACITY_EXCEEDED, IssueCode.STAFF_UNAVAILABLE})


@dataclass(frozen=True)
class ValidationIssue:
    code: IssueCode
    message: str


@dataclass
class ValidationResult:
    errors: List[ValidationIssue] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    @property
    def codes(self) -> List[IssueCode]:
        return [issue.code for issue in self.errors]

    @property
    def messages(self) -> List[str]:
        return [issue.message for issue in self.errors]

    def only_conflicts(self) -> bool:
        """True when every failure comes from competing bookings."""
        return bool(self.errors) and all(code in CONFLICT_CODES for code in self.codes)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": self.messages}


@dataclass
class BookingContext:
    """
    Snapshot of everything a validation run reads.

    ``bookings`` holds the active bookings of the requested date that can
    conflict: those of the service (capacity mode) or of the staff member
    (staff mode).
    """
    venue: Venue
    service: Service
    now: datetime
    staff: Optional[StaffMember] = None
    venue_rules: Sequence[AvailabilityRule] = ()
    staff_rules: Sequence[AvailabilityRule] = ()
    bookings: Sequence[Booking] = ()


class BookingValidator:
    """
    Runs every booking rule and reports all failures at once.

    Checks that depend on an earlier failed input (an unparsable date, a
    reversed interval, an impossible party size) are skipped instead of
    repeating the same problem in other words.
    """

    def __init__(self, conflict_checker: Optional[ConflictChecker] = None):
        self.conflict_checker = conflict_checker or ConflictChecker()

    def validate(
        self,
        context: BookingContext,
        booking_date,
        start_time: str,
        end_time: str,
        party_size: int = 1,
        exclude_booking_id: Optional[int] = None,
        bypass_advance_hours: bool = False
    ) -> ValidationResult:
        """
        Validate one requested interval.

        Args:
            context: Venue, service, staff, rules and bookings to check against
            booking_date: ``YYYY-MM-DD`` string or date
            start_time: Requested start (``HH:MM``)
            end_time: Requested end (``HH:MM``)
            party_size: Party units (ignored for staff-based services)
            exclude_booking_id: Booking to ignore, for edits of an existing one
            bypass_advance_hours: Skip the advance-notice rules (manual admin bookings)

        Returns:
            ValidationResult with every failed check
        """
        venue, service, staff = context.venue, context.service, context.staff
        errors: List[ValidationIssue] = []

        def fail(code: IssueCode, message: str) -> None:
            logger.warning("Booking validation failed: %s", message)
            errors.append(ValidationIssue(code, message))

        # formats
        day = self._parse_day(booking_date)
        if day is None:
            fail(IssueCode.INVALID_DATE, f"Invalid date: {booking_date!r}. Use YYYY-MM-DD")
        for label, value in (("start", start_time), ("end", end_time)):
            if not is_valid_time(value):
                fail(IssueCode.INVALID_TIME_FORMAT, f"Invalid {label} time: {value!r}. Use HH:MM")

        # order
        interval: Optional[TimeRange] = None
        if is_valid_time(start_time) and is_valid_time(end_time):
            start_min, end_min = parse_time(start_time), parse_time(end_time)
            if end_min <= start_min:
                fail(IssueCode.END_NOT_AFTER_START, "End time must be after start time")
            else:
                interval = TimeRange(start=start_min, end=end_min)

        # party size
        if service.requires_staff:
            party_size = 1
        party_ok = isinstance(party_size, int) and 1 <= party_size <= service.capacity
        if not party_ok:
            fail(
                IssueCode.INVALID_PARTY_SIZE,
                f"Party size must be between 1 and {service.capacity}",
            )

        # staff requirement
        staff_ok = True
        if service.requires_staff:
            if staff is None:
                staff_ok = False
                fail(IssueCode.STAFF_REQUIRED, "Staff member is required for this service")
            elif not self.conflict_checker.can_staff_perform_service(staff, service):
                staff_ok = False
                fail(
                    IssueCode.STAFF_CANNOT_PERFORM,
                    "Selected staff member cannot perform this service",
                )

        if day is None:
            return ValidationResult(errors)

        weekday = weekday_index(day)

        # past, advance notice and horizon
        now = to_datetime(context.now)
        if interval is not None:
            starts_at = combine(day, interval.start)
            if starts_at < now:
                fail(IssueCode.IN_PAST, "Booking time is in the past")
            elif not bypass_advance_hours:
                hours_until = now.diff(starts_at, False).in_hours()
                if hours_until < venue.booking_advance_hours:
                    fail(
                        IssueCode.TOO_SHORT_NOTICE,
                        f"Bookings must be made at least {venue.booking_advance_hours} hours "
                        f"in advance. Only {hours_until} hours remaining.",
                    )
        elif day < now.date():
            fail(IssueCode.IN_PAST, "Booking date is in the past")
        if not bypass_advance_hours:
            horizon = now.date().add(days=venue.booking_advance_days)
            if day > horizon:
                fail(
                    IssueCode.TOO_FAR_AHEAD,
                    f"Bookings can be made at most {venue.booking_advance_days} days ahead",
                )

        if interval is None:
            return ValidationResult(errors)

        # opening hours
        venue_windows = SlotGenerator.windows_for_day(context.venue_rules, weekday)
        if not interval.covered_by(venue_windows):
            fail(IssueCode.OUTSIDE_VENUE_HOURS, "Requested time is outside venue opening hours")

        # staff hours
        if service.requires_staff and staff_ok:
            staff_windows = SlotGenerator.windows_for_day(context.staff_rules, weekday)
            if not interval.covered_by(staff_windows):
                staff_ok = False
                fail(
                    IssueCode.OUTSIDE_STAFF_HOURS,
                    "Requested time is outside staff working hours",
                )

        # conflicts
        if service.requires_staff:
            if staff_ok and not self.conflict_checker.is_staff_free(
                staff.id, interval, context.bookings, exclude_booking_id
            ):
                fail(IssueCode.STAFF_UNAVAILABLE, "Staff member is already booked at this time")
        elif party_ok and not self.conflict_checker.has_capacity(
            service, interval, context.bookings, party_size, exclude_booking_id
        ):
            fail(IssueCode.CAPACITY_EXCEEDED, "Not enough capacity left for this time")

        return ValidationResult(errors)

    @staticmethod
    def _parse_day(value) -> Optional[date]:
        try:
            return parse_date(value)
        except InputFormatError:
            return None
