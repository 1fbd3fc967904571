"""
Write-side application service: creating, rescheduling and changing the
status of bookings.

The availability check that precedes every insert is repeated inside the
write transaction after the contended row is locked, so two concurrent
requests for the last unit of a resource cannot both succeed.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

from ..domain.exceptions import (
    BookingValidationError,
    ConflictError,
    InputFormatError,
    InvalidStatusTransition,
    NotFoundError,
)
from ..domain.models import Booking, BookingRequest, BookingStatus, Service
from ..domain.timeutils import combine, parse_date, parse_time, system_now, to_datetime
from ..domain.validator import IssueCode, ValidationIssue, ValidationResult
from .availability import AvailabilityService, BookingStore, Clock, StoreSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _Slot:
    """The interval a write is about to occupy."""
    venue_id: int
    service_id: int
    booking_date: Union[str, date]
    start_time: str
    end_time: str
    party_size: int
    staff_member_id: Optional[int]


class BookingService:
    """
    Commits bookings with a check-lock-recheck-write sequence.

    1. Validate the request against a read snapshot (all issues at once)
    2. Open a write transaction and lock the service row (capacity
       services) or the staff row (staff services)
    3. Re-read the bookings and re-run the validation under the lock
    4. Insert or update the booking row
    """

    def __init__(
        self,
        store: BookingStore,
        availability: Optional[AvailabilityService] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.availability = availability or AvailabilityService(store, clock=clock or system_now)
        self.clock = clock or self.availability.clock

    def create_booking(self, request: BookingRequest, bypass_advance_hours: bool = False) -> Booking:
        """
        Validate and persist a new pending booking.

        Args:
            request: What the customer asked for
            bypass_advance_hours: Skip the notice rules (manual admin bookings)

        Returns:
            The stored booking, with id and token

        Raises:
            NotFoundError: Unknown or inactive venue, service or staff member
            BookingValidationError: One or more business rules are violated
            ConflictError: The interval was taken by another booking
        """
        logger.info(
            "Creating booking: venue=%s service=%s date=%s %s-%s party_size=%s",
            request.venue_id, request.service_id, request.booking_date,
            request.start_time, request.end_time, request.party_size,
        )
        slot = _Slot(
            venue_id=request.venue_id,
            service_id=request.service_id,
            booking_date=request.booking_date,
            start_time=request.start_time,
            end_time=request.end_time,
            party_size=request.party_size,
            staff_member_id=request.staff_member_id,
        )
        requires_staff = self._prevalidate(slot, bypass_advance_hours)

        with self.store.transaction() as session:
            service = self._lock_and_recheck(session, slot, requires_staff, bypass_advance_hours)
            party_size = 1 if service.requires_staff else slot.party_size
            total_amount = request.total_amount
            if total_amount is None and service.price is not None:
                total_amount = service.price if service.requires_staff else service.price * party_size
            booking = session.add_booking(Booking(
                id=None,
                venue_id=slot.venue_id,
                service_id=slot.service_id,
                staff_member_id=slot.staff_member_id if service.requires_staff else None,
                booking_date=parse_date(slot.booking_date),
                start_time=slot.start_time,
                end_time=slot.end_time,
                party_size=party_size,
                status=BookingStatus.PENDING,
                token=str(uuid.uuid4()),
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                customer_phone=request.customer_phone,
                special_requests=request.special_requests,
                total_amount=total_amount,
                created_at=self.clock(),
            ))

        logger.info("Booking %s created (%s)", booking.id, booking.token)
        return booking

    def reschedule_booking(
        self,
        booking_id: int,
        booking_date,
        start_time: str,
        end_time: str,
        bypass_advance_hours: bool = False,
    ) -> Booking:
        """
        Move an active booking to a new interval.

        The booking itself is ignored by the conflict checks, so it can be
        shifted into a range overlapping its old one.

        Raises:
            NotFoundError: Unknown booking
            InvalidStatusTransition: The booking is no longer active
            BookingValidationError: The new interval breaks a business rule
            ConflictError: The new interval was taken by another booking
        """
        logger.info("Rescheduling booking %s to %s %s-%s", booking_id, booking_date, start_time, end_time)
        with self.store.snapshot() as session:
            booking = self._get_active_booking(session, booking_id)
        slot = _Slot(
            venue_id=booking.venue_id,
            service_id=booking.service_id,
            booking_date=booking_date,
            start_time=start_time,
            end_time=end_time,
            party_size=booking.party_size,
            staff_member_id=booking.staff_member_id,
        )
        requires_staff = self._prevalidate(slot, bypass_advance_hours, exclude_booking_id=booking_id)

        with self.store.transaction() as session:
            self._lock_and_recheck(
                session, slot, requires_staff, bypass_advance_hours, exclude_booking_id=booking_id
            )
            # status may have changed since the snapshot
            self._get_active_booking(session, booking_id)
            updated = session.update_booking(
                booking_id,
                booking_date=parse_date(booking_date),
                start_time=start_time,
                end_time=end_time,
            )

        logger.info("Booking %s rescheduled", booking_id)
        return updated

    def change_status(
        self,
        booking_id: int,
        status: Union[BookingStatus, str],
        reason: Optional[str] = None,
    ) -> Booking:
        """
        Move a booking along its lifecycle.

        Raises:
            NotFoundError: Unknown booking
            InputFormatError: Unknown status value
            InvalidStatusTransition: The lifecycle does not allow the change
        """
        target = self._coerce_status(status)
        with self.store.transaction() as session:
            booking = self._get_booking(session, booking_id)
            return self._transition(session, booking, target, reason)

    def confirm_booking(self, booking_id: int) -> Booking:
        return self.change_status(booking_id, BookingStatus.CONFIRMED)

    def cancel_booking(
        self,
        booking_id: int,
        reason: Optional[str] = None,
        bypass_cancellation_window: bool = False,
    ) -> Booking:
        """
        Cancel a booking and release its capacity.

        Unless bypassed, cancelling is only allowed up to the venue's
        ``cancellation_hours`` before the start.

        Raises:
            NotFoundError: Unknown booking
            InvalidStatusTransition: The booking is already final
            BookingValidationError: The cancellation window has passed
        """
        with self.store.transaction() as session:
            booking = self._get_booking(session, booking_id)
            if not bypass_cancellation_window and booking.is_active:
                venue = session.get_venue(booking.venue_id)
                starts_at = combine(booking.booking_date, parse_time(booking.start_time))
                minutes_left = to_datetime(self.clock()).diff(starts_at, False).in_minutes()
                if venue is not None and minutes_left < venue.cancellation_hours * 60:
                    message = (
                        f"Bookings can only be cancelled up to {venue.cancellation_hours} hours "
                        f"in advance. Only {max(minutes_left // 60, 0)} hours remaining."
                    )
                    logger.warning("Cancellation of booking %s refused: %s", booking_id, message)
                    raise BookingValidationError([ValidationIssue(IssueCode.TOO_LATE_TO_CANCEL, message)])
            return self._transition(session, booking, BookingStatus.CANCELLED, reason)

    # ── Internals ────────────────────────────────────────────────────────

    def _prevalidate(
        self,
        slot: _Slot,
        bypass_advance_hours: bool,
        exclude_booking_id: Optional[int] = None,
    ) -> bool:
        """Validate against a read snapshot; return whether the service books staff."""
        context, result = self.availability.validate_with_context(
            slot.venue_id, slot.service_id, slot.booking_date, slot.start_time, slot.end_time,
            party_size=slot.party_size,
            staff_member_id=slot.staff_member_id,
            exclude_booking_id=exclude_booking_id,
            bypass_advance_hours=bypass_advance_hours,
        )
        self._raise_for(result)
        return context.service.requires_staff

    def _lock_and_recheck(
        self,
        session: StoreSession,
        slot: _Slot,
        requires_staff: bool,
        bypass_advance_hours: bool,
        exclude_booking_id: Optional[int] = None,
    ) -> Service:
        """
        Lock the contended row, then validate again against fresh data.

        The lock must be the first statement of the transaction, before any
        plain read fixes the snapshot.
        """
        if requires_staff and slot.staff_member_id is not None:
            session.lock_staff(slot.staff_member_id)
        else:
            session.lock_service(slot.service_id)

        context = self.availability.build_context(
            session, slot.venue_id, slot.service_id, slot.booking_date,
            staff_member_id=slot.staff_member_id,
            exclude_booking_id=exclude_booking_id,
        )
        result = self.availability.validator.validate(
            context, slot.booking_date, slot.start_time, slot.end_time,
            party_size=slot.party_size,
            exclude_booking_id=exclude_booking_id,
            bypass_advance_hours=bypass_advance_hours,
        )
        if not result.valid:
            if result.only_conflicts():
                logger.warning(
                    "Lost the race for %s %s-%s of service %s",
                    slot.booking_date, slot.start_time, slot.end_time, slot.service_id,
                )
            self._raise_for(result)
        if context.service.requires_staff != requires_staff:
            raise ConflictError(f"Service {slot.service_id} changed while booking, please retry")
        return context.service

    @staticmethod
    def _raise_for(result: ValidationResult) -> None:
        if result.valid:
            return
        if result.only_conflicts():
            raise ConflictError("; ".join(result.messages))
        raise BookingValidationError(result.errors)

    def _transition(
        self,
        session: StoreSession,
        booking: Booking,
        target: BookingStatus,
        reason: Optional[str],
    ) -> Booking:
        if not booking.status.can_transition_to(target):
            raise InvalidStatusTransition(
                f"Cannot change booking {booking.id} from {booking.status.value} to {target.value}"
            )
        fields = {"status": target}
        if target is BookingStatus.CANCELLED:
            fields["cancelled_at"] = self.clock()
            fields["cancellation_reason"] = reason
        updated = session.update_booking(booking.id, **fields)
        logger.info("Booking %s: %s -> %s", booking.id, booking.status.value, target.value)
        return updated

    @staticmethod
    def _get_booking(session: StoreSession, booking_id: int) -> Booking:
        booking = session.get_booking(booking_id)
        if booking is None:
            raise NotFoundError("Booking", booking_id)
        return booking

    def _get_active_booking(self, session: StoreSession, booking_id: int) -> Booking:
        booking = self._get_booking(session, booking_id)
        if not booking.is_active:
            raise InvalidStatusTransition(
                f"Booking {booking_id} is {booking.status.value} and cannot be rescheduled"
            )
        return booking

    @staticmethod
    def _coerce_status(status: Union[BookingStatus, str]) -> BookingStatus:
        try:
            return BookingStatus(status)
        except ValueError as exc:
            raise InputFormatError(f"Unknown booking status: {status!r}") from exc
