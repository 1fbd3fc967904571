"""
Capacity and staff conflict detection against existing bookings.

All functions work on a list of bookings read from one store snapshot; none
of them touch the database.
"""

from typing import Iterable, List, Mapping, Optional, Sequence

from .models import Booking, Service, StaffMember, TimeRange


class ConflictChecker:
    """
    Decides whether a candidate interval still fits next to existing bookings.

    Capacity mode sums the party sizes of overlapping active bookings of the
    same service. Staff mode treats every active booking of a staff member
    as exclusive, whatever service it was made for.
    """

    @staticmethod
    def overlapping(
        interval: TimeRange,
        bookings: Iterable[Booking],
        exclude_booking_id: Optional[int] = None
    ) -> List[Booking]:
        """Return the active bookings overlapping ``interval``."""
        return [
            booking for booking in bookings
            if booking.is_active
            and (exclude_booking_id is None or booking.id != exclude_booking_id)
            and booking.time_range.overlaps(interval)
        ]

    def remaining_capacity(
        self,
        service: Service,
        interval: TimeRange,
        bookings: Iterable[Booking],
        exclude_booking_id: Optional[int] = None
    ) -> int:
        """
        Capacity left for ``interval``.

        May be negative if the stored data is already overbooked; callers
        that report it clamp to zero.
        """
        same_service = (
            b for b in bookings
            if b.service_id == service.id and b.venue_id == service.venue_id
        )
        used = sum(
            booking.party_size
            for booking in self.overlapping(interval, same_service, exclude_booking_id)
        )
        return service.capacity - used

    def has_capacity(
        self,
        service: Service,
        interval: TimeRange,
        bookings: Iterable[Booking],
        party_size: int = 1,
        exclude_booking_id: Optional[int] = None
    ) -> bool:
        remaining = self.remaining_capacity(service, interval, bookings, exclude_booking_id)
        return remaining >= party_size

    def is_staff_free(
        self,
        staff_member_id: int,
        interval: TimeRange,
        bookings: Iterable[Booking],
        exclude_booking_id: Optional[int] = None
    ) -> bool:
        """Check that the staff member has no overlapping active booking."""
        own = (b for b in bookings if b.staff_member_id == staff_member_id)
        return not self.overlapping(interval, own, exclude_booking_id)

    @staticmethod
    def can_staff_perform_service(staff: StaffMember, service: Service) -> bool:
        """Capability lookup: active staff of the same venue offering the service."""
        return staff.venue_id == service.venue_id and staff.can_perform(service.id)

    def free_staff(
        self,
        service: Service,
        interval: TimeRange,
        candidates: Sequence[StaffMember],
        staff_windows: Mapping[int, Sequence[TimeRange]],
        bookings: Iterable[Booking],
        exclude_booking_id: Optional[int] = None
    ) -> List[StaffMember]:
        """
        All capable staff members working during and free for ``interval``.

        Ordered by staff id.
        """
        bookings = list(bookings)
        free: List[StaffMember] = []
        for staff in sorted(candidates, key=lambda s: s.id):
            if not self.can_staff_perform_service(staff, service):
                continue
            windows = staff_windows.get(staff.id, ())
            if not interval.covered_by(windows):
                continue
            if self.is_staff_free(staff.id, interval, bookings, exclude_booking_id):
                free.append(staff)
        return free

    def pick_staff(
        self,
        service: Service,
        interval: TimeRange,
        candidates: Sequence[StaffMember],
        staff_windows: Mapping[int, Sequence[TimeRange]],
        bookings: Iterable[Booking],
        exclude_booking_id: Optional[int] = None
    ) -> Optional[StaffMember]:
        """
        Deterministic staff assignment: the lowest id among free, capable staff.

        Returns None when nobody is free.
        """
        free = self.free_staff(
            service, interval, candidates, staff_windows, bookings, exclude_booking_id
        )
        return free[0] if free else None

