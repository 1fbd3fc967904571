"""
Read-side application service: slot listings, pre-flight checks and
booking validation.

Every public call reads from exactly one store snapshot and hands plain
domain objects to the pure ``SlotGenerator``, ``ConflictChecker`` and
``BookingValidator``. Nothing here takes a lock.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Callable, Collection, ContextManager, Dict, List, Optional, Protocol, Sequence, Tuple

from pendulum import DateTime

from ..domain.conflict_checker import ConflictChecker
from ..domain.exceptions import BookingError, InputFormatError, NotFoundError
from ..domain.models import (
    AvailabilityCheck,
    AvailabilityRule,
    Booking,
    DayAvailability,
    Service,
    StaffMember,
    TimeRange,
    TimeSlot,
    UnavailableReason,
    Venue,
)
from ..domain.slot_generator import SlotGenerator
from ..domain.timeutils import combine, parse_date, parse_time, system_now, to_datetime, weekday_index
from ..domain.validator import BookingContext, BookingValidator, ValidationResult

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class StoreSession(Protocol):
    """Protocol describing the store operations needed inside one transaction."""

    def get_venue(self, venue_id: int) -> Optional[Venue]:
        """Return the venue or None."""

    def get_service(self, service_id: int) -> Optional[Service]:
        """Return the service or None."""

    def get_staff(self, staff_member_id: int) -> Optional[StaffMember]:
        """Return the staff member (with capabilities) or None."""

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        """Return the booking or None."""

    def rules_for_venue(self, venue_id: int, weekday: int) -> List[AvailabilityRule]:
        """Return the active venue rules of a weekday."""

    def rules_for_staff(self, staff_member_id: int, weekday: int) -> List[AvailabilityRule]:
        """Return the active staff rules of a weekday."""

    def staff_for_service(self, service_id: int) -> List[StaffMember]:
        """Return the active staff offering the service."""

    def active_bookings_for_service(
        self,
        venue_id: int,
        service_id: int,
        day: date,
        exclude_booking_id: Optional[int] = None,
    ) -> List[Booking]:
        """Return pending/confirmed bookings of a service on a day."""

    def active_bookings_for_staff(
        self,
        staff_member_ids: Collection[int],
        day: date,
        exclude_booking_id: Optional[int] = None,
    ) -> List[Booking]:
        """Return pending/confirmed bookings of the staff members on a day."""

    def lock_service(self, service_id: int) -> None:
        """Lock the service row for the rest of the transaction."""

    def lock_staff(self, staff_member_id: int) -> None:
        """Lock the staff row for the rest of the transaction."""

    def add_booking(self, booking: Booking) -> Booking:
        """Insert a booking and return it with its id."""

    def update_booking(self, booking_id: int, **fields) -> Booking:
        """Update booking columns and return the new state."""


class BookingStore(Protocol):
    """Protocol describing the persistence collaborator."""

    def snapshot(self) -> ContextManager[StoreSession]:
        """Open a consistent read transaction."""

    def transaction(self) -> ContextManager[StoreSession]:
        """Open a write transaction."""


class AvailabilityService:
    """
    Answers "when can this service be booked?" for a venue.

    The store is injected through a protocol so tests and the CLI can use
    the SQL store while the domain logic stays storage agnostic. The clock
    is injectable too; it only matters for the advance-notice filter and
    the past-date check.
    """

    def __init__(
        self,
        store: BookingStore,
        slot_generator: Optional[SlotGenerator] = None,
        conflict_checker: Optional[ConflictChecker] = None,
        validator: Optional[BookingValidator] = None,
        clock: Clock = system_now,
    ) -> None:
        self.store = store
        self.slot_generator = slot_generator or SlotGenerator()
        self.conflict_checker = conflict_checker or ConflictChecker()
        self.validator = validator or BookingValidator(self.conflict_checker)
        self.clock = clock

    def now(self) -> DateTime:
        """Current wall-clock time from the injected clock."""
        return to_datetime(self.clock())

    # ── Slot listings ────────────────────────────────────────────────────

    def get_available_slots(
        self,
        venue_id: int,
        service_id: int,
        booking_date,
        *,
        party_size: int = 1,
        time_window: Optional[Tuple[str, str]] = None,
        exclude_booking_id: Optional[int] = None,
        staff_member_id: Optional[int] = None,
    ) -> DayAvailability:
        """
        List the slots of one day with their availability.

        Args:
            venue_id: Venue to look at
            service_id: Service of that venue
            booking_date: ``YYYY-MM-DD`` string or date
            party_size: Units the caller wants to book (capacity services)
            time_window: Optional ``(from, to)``; keeps slots starting in [from, to]
            exclude_booking_id: Booking to ignore, e.g. when rescheduling it
            staff_member_id: Restrict a staff service to one staff member

        Returns:
            DayAvailability with every candidate slot, available or not

        Raises:
            NotFoundError: Unknown or inactive venue, service or staff member
            InputFormatError: Malformed date, time window or party size
        """
        day = parse_date(booking_date)
        window = self._parse_time_window(time_window)
        self._check_party_size(party_size)
        logger.info(
            "Getting available slots: venue=%s service=%s date=%s party_size=%s",
            venue_id, service_id, day, party_size,
        )

        with self.store.snapshot() as session:
            venue, service, staff = self._load(session, venue_id, service_id, staff_member_id)
            return self._day_availability(
                session, venue, service, staff, day,
                party_size=party_size,
                time_window=window,
                exclude_booking_id=exclude_booking_id,
                now=self.now(),
            )

    def get_week_availability(
        self,
        venue_id: int,
        service_id: int,
        start_date,
        *,
        party_size: int = 1,
        staff_member_id: Optional[int] = None,
    ) -> List[DayAvailability]:
        """
        Slot listings for seven consecutive days starting at ``start_date``.

        All days are read from one snapshot. A day that fails with a domain
        error is logged and reported without slots.
        """
        first_day = parse_date(start_date)
        self._check_party_size(party_size)
        logger.info(
            "Getting week availability: venue=%s service=%s from=%s",
            venue_id, service_id, first_day,
        )

        week: List[DayAvailability] = []
        with self.store.snapshot() as session:
            venue, service, staff = self._load(session, venue_id, service_id, staff_member_id)
            now = self.now()
            for offset in range(7):
                day = first_day.add(days=offset)
                try:
                    week.append(self._day_availability(
                        session, venue, service, staff, day,
                        party_size=party_size, now=now,
                    ))
                except BookingError as exc:
                    logger.error("Error getting availability for %s: %s", day, exc)
                    week.append(DayAvailability(date=day, day_of_week=weekday_index(day)))
        return week

    # ── Single interval checks ───────────────────────────────────────────

    def is_time_slot_available(
        self,
        venue_id: int,
        service_id: int,
        booking_date,
        start_time: str,
        end_time: str,
        *,
        party_size: int = 1,
        staff_member_id: Optional[int] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> AvailabilityCheck:
        """
        Fast pre-flight check of one interval.

        Only opening hours, staff capability and hours, party size and
        conflicts are checked; notice periods and the past are not.
        Without a staff member, staff services auto-pick the same staff
        member ``get_available_slots`` would show.
        """
        day = parse_date(booking_date)
        interval = self._parse_interval(start_time, end_time)
        self._check_party_size(party_size)

        with self.store.snapshot() as session:
            venue, service, staff = self._load(session, venue_id, service_id, staff_member_id)
            weekday = weekday_index(day)
            venue_windows = SlotGenerator.windows_for_day(
                session.rules_for_venue(venue.id, weekday), weekday
            )
            if not interval.covered_by(venue_windows):
                return self._unavailable(UnavailableReason.OUTSIDE_HOURS)

            if not service.requires_staff:
                bookings = session.active_bookings_for_service(
                    venue.id, service.id, day, exclude_booking_id
                )
                if party_size > service.capacity or not self.conflict_checker.has_capacity(
                    service, interval, bookings, party_size, exclude_booking_id
                ):
                    return self._unavailable(UnavailableReason.CAPACITY_EXCEEDED)
                return AvailabilityCheck(available=True)

            candidates = [staff] if staff is not None else session.staff_for_service(service.id)
            if staff is not None and not self.conflict_checker.can_staff_perform_service(staff, service):
                return self._unavailable(UnavailableReason.STAFF_CANNOT_PERFORM)

            staff_windows = self._staff_windows(session, candidates, weekday)
            if staff is not None and not interval.covered_by(staff_windows[staff.id]):
                return self._unavailable(UnavailableReason.OUTSIDE_HOURS)

            bookings = session.active_bookings_for_staff(
                [member.id for member in candidates], day, exclude_booking_id
            )
            picked = self.conflict_checker.pick_staff(
                service, interval, candidates, staff_windows, bookings, exclude_booking_id
            )
            if picked is None:
                return self._unavailable(UnavailableReason.STAFF_UNAVAILABLE)
            return AvailabilityCheck(available=True, staff_member_id=picked.id)

    def validate_booking_request(
        self,
        venue_id: int,
        service_id: int,
        booking_date,
        start_time: str,
        end_time: str,
        *,
        party_size: int = 1,
        staff_member_id: Optional[int] = None,
        exclude_booking_id: Optional[int] = None,
        bypass_advance_hours: bool = False,
    ) -> ValidationResult:
        """
        Run every booking rule and return all failures as data.

        Raises:
            NotFoundError: Unknown or inactive venue, service or staff member
        """
        _, result = self.validate_with_context(
            venue_id, service_id, booking_date, start_time, end_time,
            party_size=party_size,
            staff_member_id=staff_member_id,
            exclude_booking_id=exclude_booking_id,
            bypass_advance_hours=bypass_advance_hours,
        )
        return result

    def validate_with_context(
        self,
        venue_id: int,
        service_id: int,
        booking_date,
        start_time: str,
        end_time: str,
        *,
        party_size: int = 1,
        staff_member_id: Optional[int] = None,
        exclude_booking_id: Optional[int] = None,
        bypass_advance_hours: bool = False,
    ) -> Tuple[BookingContext, ValidationResult]:
        """Like ``validate_booking_request``, also returning the snapshot that was checked."""
        with self.store.snapshot() as session:
            context = self.build_context(
                session, venue_id, service_id, booking_date,
                staff_member_id=staff_member_id,
                exclude_booking_id=exclude_booking_id,
            )
            result = self.validator.validate(
                context, booking_date, start_time, end_time,
                party_size=party_size,
                exclude_booking_id=exclude_booking_id,
                bypass_advance_hours=bypass_advance_hours,
            )
        return context, result

    def can_staff_perform_service(self, staff_member_id: int, service_id: int) -> bool:
        """Capability lookup for one staff member and one service."""
        with self.store.snapshot() as session:
            staff = session.get_staff(staff_member_id)
            if staff is None:
                raise NotFoundError("Staff member", staff_member_id)
            service = session.get_service(service_id)
            if service is None:
                raise NotFoundError("Service", service_id)
            return self.conflict_checker.can_staff_perform_service(staff, service)

    # ── Shared helpers ───────────────────────────────────────────────────

    def build_context(
        self,
        session: StoreSession,
        venue_id: int,
        service_id: int,
        booking_date,
        *,
        staff_member_id: Optional[int] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> BookingContext:
        """
        Collect everything the validator needs from an open store session.

        An unparsable date yields a context without rules and bookings; the
        validator reports the date itself.
        """
        venue, service, staff = self._load(session, venue_id, service_id, staff_member_id)
        context = BookingContext(venue=venue, service=service, staff=staff, now=self.now())
        try:
            day = parse_date(booking_date)
        except InputFormatError:
            return context

        weekday = weekday_index(day)
        context.venue_rules = session.rules_for_venue(venue.id, weekday)
        if staff is not None:
            context.staff_rules = session.rules_for_staff(staff.id, weekday)
        if service.requires_staff:
            if staff is not None:
                context.bookings = session.active_bookings_for_staff(
                    [staff.id], day, exclude_booking_id
                )
        else:
            context.bookings = session.active_bookings_for_service(
                venue.id, service.id, day, exclude_booking_id
            )
        return context

    def _day_availability(
        self,
        session: StoreSession,
        venue: Venue,
        service: Service,
        staff: Optional[StaffMember],
        day: date,
        *,
        now: DateTime,
        party_size: int = 1,
        time_window: Optional[Tuple[int, int]] = None,
        exclude_booking_id: Optional[int] = None,
    ) -> DayAvailability:
        weekday = weekday_index(day)
        venue_windows = SlotGenerator.windows_for_day(
            session.rules_for_venue(venue.id, weekday), weekday
        )

        if not service.requires_staff:
            slots = self._capacity_slots(
                session, service, day, venue_windows, party_size, exclude_booking_id
            )
        elif staff is not None:
            slots = self._single_staff_slots(
                session, service, staff, day, venue_windows, exclude_booking_id
            )
        else:
            slots = self._auto_staff_slots(
                session, service, day, venue_windows, exclude_booking_id
            )

        earliest = now.add(hours=venue.booking_advance_hours)
        slots = [slot for slot in slots if combine(day, slot.time_range.start) >= earliest]
        if time_window is not None:
            window_from, window_to = time_window
            slots = [
                slot for slot in slots
                if window_from <= slot.time_range.start <= window_to
            ]

        logger.debug("%d slots on %s, %d available", len(slots), day, sum(s.available for s in slots))
        return DayAvailability(date=day, day_of_week=weekday, time_slots=slots)

    def _capacity_slots(
        self,
        session: StoreSession,
        service: Service,
        day: date,
        venue_windows: Sequence[TimeRange],
        party_size: int,
        exclude_booking_id: Optional[int],
    ) -> List[TimeSlot]:
        bookings = session.active_bookings_for_service(
            service.venue_id, service.id, day, exclude_booking_id
        )
        slots = []
        for interval in self.slot_generator.generate(venue_windows, service.duration_minutes):
            remaining = self.conflict_checker.remaining_capacity(
                service, interval, bookings, exclude_booking_id
            )
            slots.append(TimeSlot(
                time_range=interval,
                available=remaining >= party_size,
                remaining_capacity=min(max(remaining, 0), service.capacity),
            ))
        return slots

    def _single_staff_slots(
        self,
        session: StoreSession,
        service: Service,
        staff: StaffMember,
        day: date,
        venue_windows: Sequence[TimeRange],
        exclude_booking_id: Optional[int],
    ) -> List[TimeSlot]:
        if not self.conflict_checker.can_staff_perform_service(staff, service):
            logger.warning("Staff member %s cannot perform service %s", staff.id, service.id)
            return []

        weekday = weekday_index(day)
        staff_windows = self._staff_windows(session, [staff], weekday)[staff.id]
        bookings = session.active_bookings_for_staff([staff.id], day, exclude_booking_id)
        slots = []
        for interval in self.slot_generator.generate(staff_windows, service.duration_minutes):
            if not interval.covered_by(venue_windows):
                continue
            free = self.conflict_checker.is_staff_free(
                staff.id, interval, bookings, exclude_booking_id
            )
            slots.append(TimeSlot(
                time_range=interval,
                available=free,
                remaining_capacity=1 if free else 0,
                staff_member_id=staff.id,
            ))
        return slots

    def _auto_staff_slots(
        self,
        session: StoreSession,
        service: Service,
        day: date,
        venue_windows: Sequence[TimeRange],
        exclude_booking_id: Optional[int],
    ) -> List[TimeSlot]:
        candidates = session.staff_for_service(service.id)
        staff_windows = self._staff_windows(session, candidates, weekday_index(day))
        bookings = session.active_bookings_for_staff(
            [member.id for member in candidates], day, exclude_booking_id
        )
        slots = []
        for interval in self.slot_generator.generate(venue_windows, service.duration_minutes):
            picked = self.conflict_checker.pick_staff(
                service, interval, candidates, staff_windows, bookings, exclude_booking_id
            )
            slots.append(TimeSlot(
                time_range=interval,
                available=picked is not None,
                remaining_capacity=1 if picked is not None else 0,
                staff_member_id=picked.id if picked is not None else None,
            ))
        return slots

    @staticmethod
    def _staff_windows(
        session: StoreSession,
        staff_members: Sequence[StaffMember],
        weekday: int,
    ) -> Dict[int, List[TimeRange]]:
        return {
            member.id: SlotGenerator.windows_for_day(
                session.rules_for_staff(member.id, weekday), weekday
            )
            for member in staff_members
        }

    @staticmethod
    def _load(
        session: StoreSession,
        venue_id: int,
        service_id: int,
        staff_member_id: Optional[int] = None,
    ) -> Tuple[Venue, Service, Optional[StaffMember]]:
        """
        Resolve the ids of a request.

        Raises:
            NotFoundError: If an entity is unknown, inactive or belongs to
                another venue
        """
        venue = session.get_venue(venue_id)
        if venue is None or not venue.is_active:
            logger.warning("Venue not found: %s", venue_id)
            raise NotFoundError("Venue", venue_id)

        service = session.get_service(service_id)
        if service is None or not service.is_active or service.venue_id != venue.id:
            logger.warning("Service not found: %s", service_id)
            raise NotFoundError("Service", service_id)

        staff = None
        if staff_member_id is not None:
            staff = session.get_staff(staff_member_id)
            if staff is None or not staff.is_active or staff.venue_id != venue.id:
                logger.warning("Staff member not found: %s", staff_member_id)
                raise NotFoundError("Staff member", staff_member_id)
        return venue, service, staff

    @staticmethod
    def _parse_interval(start_time: str, end_time: str) -> TimeRange:
        start, end = parse_time(start_time), parse_time(end_time)
        if end <= start:
            raise InputFormatError(f"End time {end_time} must be after start time {start_time}")
        return TimeRange(start=start, end=end)

    @staticmethod
    def _parse_time_window(time_window: Optional[Tuple[str, str]]) -> Optional[Tuple[int, int]]:
        if time_window is None:
            return None
        window_from, window_to = time_window
        start, end = parse_time(window_from), parse_time(window_to)
        if end < start:
            raise InputFormatError(f"Time window {window_from}-{window_to} is reversed")
        return start, end

    @staticmethod
    def _check_party_size(party_size: int) -> None:
        if isinstance(party_size, bool) or not isinstance(party_size, int) or party_size < 1:
            raise InputFormatError(f"Party size must be a positive integer, got {party_size!r}")

    @staticmethod
    def _unavailable(reason: UnavailableReason) -> AvailabilityCheck:
        logger.info("Time slot unavailable: %s", reason.value)
        return AvailabilityCheck(available=False, reason=reason)
