"""
Domain models for venues, rules, bookings and derived time slots.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional

from .timeutils import MINUTES_PER_DAY, format_minutes, parse_time


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open interval [start, end) within one day.

    Bounds are minutes since midnight.

    Invariant: start must be before end.
    """
    start: int
    end: int

    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(
                f"Start time {format_minutes(self.start)} must be before "
                f"end time {format_minutes(self.end)}"
            )
        if self.start < 0 or self.end > MINUTES_PER_DAY:
            raise ValueError(f"Time range {self.start}-{self.end} exceeds a single day")

    @classmethod
    def from_strings(cls, start_time: str, end_time: str) -> "TimeRange":
        """Build a range from two ``HH:MM`` strings."""
        return cls(start=parse_time(start_time), end=parse_time(end_time))

    @property
    def start_time(self) -> str:
        return format_minutes(self.start)

    @property
    def end_time(self) -> str:
        return format_minutes(self.end)

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return self.end - self.start

    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another. Touching ranges do not."""
        return self.start < other.end and other.start < self.end

    def contains(self, other: "TimeRange") -> bool:
        """Check if ``other`` lies completely inside this range."""
        return self.start <= other.start and other.end <= self.end

    def covered_by(self, windows: Iterable["TimeRange"]) -> bool:
        """
        Check if this range lies inside the union of ``windows``.

        Touching or overlapping windows count as one continuous stretch, so
        a range may span the seam between two rules.
        """
        reached = self.start
        for window in sorted(windows, key=lambda w: w.start):
            if window.start > reached:
                break
            reached = max(reached, window.end)
            if reached >= self.end:
                return True
        return False

    def __str__(self) -> str:
        return f"{self.start_time}-{self.end_time}"


@dataclass(frozen=True)
class AvailabilityRule:
    """
    A recurring weekly open window of a venue or a staff member.

    Exactly one of ``venue_id`` and ``staff_member_id`` is set.
    """
    day_of_week: int  # 0=Sunday, 6=Saturday
    start_time: str
    end_time: str
    venue_id: Optional[int] = None
    staff_member_id: Optional[int] = None
    is_active: bool = True
    id: Optional[int] = None

    def __post_init__(self):
        if (self.venue_id is None) == (self.staff_member_id is None):
            raise ValueError("A rule belongs to either a venue or a staff member")
        if self.day_of_week not in range(7):
            raise ValueError(f"day_of_week must be between 0 and 6, got {self.day_of_week}")
        # raises on malformed or reversed times
        TimeRange.from_strings(self.start_time, self.end_time)

    @property
    def window(self) -> TimeRange:
        return TimeRange.from_strings(self.start_time, self.end_time)


class VenueCategory(str, Enum):
    RESTAURANT = "restaurant"
    HAIR_SALON = "hair_salon"
    BEAUTY_SALON = "beauty_salon"
    MASSAGE = "massage"
    OTHER = "other"

    @property
    def staff_based(self) -> bool:
        """Whether services of this kind of venue are booked per staff member."""
        return self in (VenueCategory.HAIR_SALON, VenueCategory.BEAUTY_SALON, VenueCategory.MASSAGE)


@dataclass(frozen=True)
class Venue:
    id: int
    name: str
    category: VenueCategory = VenueCategory.OTHER
    booking_advance_hours: int = 48
    booking_advance_days: int = 30
    cancellation_hours: int = 24
    is_active: bool = True


@dataclass(frozen=True)
class Service:
    """
    A bookable offer of a venue.

    Capacity-based services share ``capacity`` party units between
    concurrent bookings; staff-based services (``requires_staff``) occupy
    one staff member per booking.
    """
    id: int
    venue_id: int
    name: str
    duration_minutes: int
    capacity: int = 1
    requires_staff: bool = False
    price: Optional[float] = None
    is_active: bool = True


@dataclass(frozen=True)
class StaffMember:
    id: int
    venue_id: int
    name: str
    service_ids: FrozenSet[int] = frozenset()
    is_active: bool = True

    def can_perform(self, service_id: int) -> bool:
        return self.is_active and service_id in self.service_ids


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"

    @property
    def is_active(self) -> bool:
        """Only pending and confirmed bookings occupy capacity."""
        return self in (BookingStatus.PENDING, BookingStatus.CONFIRMED)

    def can_transition_to(self, target: "BookingStatus") -> bool:
        return target in _TRANSITIONS[self]


_TRANSITIONS = {
    BookingStatus.PENDING: frozenset({BookingStatus.CONFIRMED, BookingStatus.CANCELLED}),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CANCELLED, BookingStatus.COMPLETED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}


@dataclass(frozen=True)
class Booking:
    """A persisted booking of one service at one venue."""
    id: Optional[int]
    venue_id: int
    service_id: int
    booking_date: date
    start_time: str
    end_time: str
    party_size: int = 1
    staff_member_id: Optional[int] = None
    status: BookingStatus = BookingStatus.PENDING
    token: str = ""
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: Optional[str] = None
    special_requests: Optional[str] = None
    total_amount: Optional[float] = None
    cancellation_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None

    @property
    def time_range(self) -> TimeRange:
        return TimeRange.from_strings(self.start_time, self.end_time)

    @property
    def is_active(self) -> bool:
        return self.status.is_active


@dataclass
class BookingRequest:
    """
    Input of the write path, as handed over by the calling layer.

    Dates and times stay strings here; they are parsed and checked by the
    validator so that format problems are reported with every other issue.
    """
    venue_id: int
    service_id: int
    booking_date: str
    start_time: str
    end_time: str
    party_size: int = 1
    staff_member_id: Optional[int] = None
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: Optional[str] = None
    special_requests: Optional[str] = None
    total_amount: Optional[float] = None


@dataclass
class TimeSlot:
    """
    A candidate interval of a day together with its availability.
    """
    time_range: TimeRange
    available: bool = True
    remaining_capacity: int = 0
    staff_member_id: Optional[int] = None

    @property
    def start_time(self) -> str:
        return self.time_range.start_time

    @property
    def end_time(self) -> str:
        return self.time_range.end_time

    def to_dict(self) -> dict:
        data = {
            "start_time": self.start_time,
            "end_time": self.end_time,
            "available": self.available,
            "remaining_capacity": self.remaining_capacity,
        }
        if self.staff_member_id is not None:
            data["staff_member_id"] = self.staff_member_id
        return data


@dataclass
class DayAvailability:
    date: date
    day_of_week: int
    time_slots: List[TimeSlot] = field(default_factory=list)

    @property
    def available_slots(self) -> List[TimeSlot]:
        return [slot for slot in self.time_slots if slot.available]

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "day_of_week": self.day_of_week,
            "time_slots": [slot.to_dict() for slot in self.time_slots],
        }


class UnavailableReason(str, Enum):
    OUTSIDE_HOURS = "outside_hours"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    STAFF_UNAVAILABLE = "staff_unavailable"
    STAFF_CANNOT_PERFORM = "staff_cannot_perform"


@dataclass(frozen=True)
class AvailabilityCheck:
    """Result of the fast pre-flight availability query."""
    available: bool
    reason: Optional[UnavailableReason] = None
    staff_member_id: Optional[int] = None
