"""
SQLAlchemy implementation of the booking store.

Rows are mapped to frozen domain dataclasses at the session boundary so that
nothing above the adapter layer holds ORM objects.
"""

import logging
from contextlib import contextmanager
from datetime import date
from typing import Collection, Iterator, List, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..domain.models import (
    AvailabilityRule,
    Booking,
    BookingStatus,
    Service,
    StaffMember,
    Venue,
    VenueCategory,
)
from .database import create_db_engine, make_session_factories
from .orm import AvailabilityRules, Base, Bookings, Services, StaffMembers, Venues, t_staff_services

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = [status.value for status in BookingStatus if status.is_active]


class SqlStoreSession:
    """
    Store operations bound to one open database transaction.
    """

    def __init__(self, session: Session):
        self.session = session

    # ── Lookups ──────────────────────────────────────────────────────────

    def get_venue(self, venue_id: int) -> Optional[Venue]:
        row = self.session.get(Venues, venue_id)
        return _to_venue(row) if row else None

    def get_service(self, service_id: int) -> Optional[Service]:
        row = self.session.get(Services, service_id)
        return _to_service(row) if row else None

    def get_staff(self, staff_member_id: int) -> Optional[StaffMember]:
        row = self.session.get(StaffMembers, staff_member_id)
        if row is None:
            return None
        return _to_staff(row, self._service_ids_of([row.id]).get(row.id, frozenset()))

    def get_booking(self, booking_id: int) -> Optional[Booking]:
        row = self.session.get(Bookings, booking_id)
        return _to_booking(row) if row else None

    def staff_for_service(self, service_id: int) -> List[StaffMember]:
        """Active staff members offering the service, ordered by id."""
        rows = self.session.scalars(
            select(StaffMembers)
            .join(t_staff_services, StaffMembers.id == t_staff_services.c.staff_member_id)
            .where(
                t_staff_services.c.service_id == service_id,
                StaffMembers.is_active.is_(True),
            )
            .order_by(StaffMembers.id)
        ).all()
        capabilities = self._service_ids_of([row.id for row in rows])
        return [_to_staff(row, capabilities.get(row.id, frozenset())) for row in rows]

    # ── Rules ────────────────────────────────────────────────────────────

    def rules_for_venue(self, venue_id: int, weekday: int) -> List[AvailabilityRule]:
        return self._rules(AvailabilityRules.venue_id == venue_id, weekday)

    def rules_for_staff(self, staff_member_id: int, weekday: int) -> List[AvailabilityRule]:
        return self._rules(AvailabilityRules.staff_member_id == staff_member_id, weekday)

    def _rules(self, owner_clause, weekday: int) -> List[AvailabilityRule]:
        rows = self.session.scalars(
            select(AvailabilityRules)
            .where(
                owner_clause,
                AvailabilityRules.day_of_week == weekday,
                AvailabilityRules.is_active.is_(True),
            )
            .order_by(AvailabilityRules.start_time, AvailabilityRules.id)
        ).all()
        return [_to_rule(row) for row in rows]

    # ── Bookings ─────────────────────────────────────────────────────────

    def active_bookings_for_service(
        self,
        venue_id: int,
        service_id: int,
        day: date,
        exclude_booking_id: Optional[int] = None
    ) -> List[Booking]:
        query = select(Bookings).where(
            Bookings.venue_id == venue_id,
            Bookings.service_id == service_id,
            Bookings.booking_date == day,
            Bookings.status.in_(ACTIVE_STATUSES),
        )
        return self._bookings(query, exclude_booking_id)

    def active_bookings_for_staff(
        self,
        staff_member_ids: Collection[int],
        day: date,
        exclude_booking_id: Optional[int] = None
    ) -> List[Booking]:
        """Active bookings of the given staff members on ``day``, any service."""
        if not staff_member_ids:
            return []
        query = select(Bookings).where(
            Bookings.staff_member_id.in_(list(staff_member_ids)),
            Bookings.booking_date == day,
            Bookings.status.in_(ACTIVE_STATUSES),
        )
        return self._bookings(query, exclude_booking_id)

    def _bookings(self, query, exclude_booking_id: Optional[int]) -> List[Booking]:
        if exclude_booking_id is not None:
            query = query.where(Bookings.id != exclude_booking_id)
        rows = self.session.scalars(query.order_by(Bookings.start_time, Bookings.id)).all()
        logger.debug("Loaded %d active bookings", len(rows))
        return [_to_booking(row) for row in rows]

    # ── Writes ───────────────────────────────────────────────────────────

    def lock_service(self, service_id: int) -> None:
        """Row-lock the service until the transaction ends."""
        self.session.execute(
            select(Services.id).where(Services.id == service_id).with_for_update()
        )

    def lock_staff(self, staff_member_id: int) -> None:
        """Row-lock the staff member until the transaction ends."""
        self.session.execute(
            select(StaffMembers.id).where(StaffMembers.id == staff_member_id).with_for_update()
        )

    def add_booking(self, booking: Booking) -> Booking:
        row = Bookings(
            booking_token=booking.token,
            venue_id=booking.venue_id,
            service_id=booking.service_id,
            staff_member_id=booking.staff_member_id,
            customer_name=booking.customer_name,
            customer_email=booking.customer_email,
            customer_phone=booking.customer_phone,
            booking_date=booking.booking_date,
            start_time=booking.start_time,
            end_time=booking.end_time,
            party_size=booking.party_size,
            special_requests=booking.special_requests,
            status=booking.status.value,
            total_amount=booking.total_amount,
            created_at=booking.created_at,
        )
        self.session.add(row)
        self.session.flush()
        return _to_booking(row)

    def update_booking(self, booking_id: int, **fields) -> Booking:
        row = self.session.get(Bookings, booking_id)
        if row is None:
            raise LookupError(f"Booking {booking_id} vanished during update")
        for name, value in fields.items():
            if isinstance(value, BookingStatus):
                value = value.value
            setattr(row, name, value)
        self.session.flush()
        return _to_booking(row)

    def _service_ids_of(self, staff_member_ids: List[int]) -> dict:
        if not staff_member_ids:
            return {}
        rows = self.session.execute(
            select(t_staff_services.c.staff_member_id, t_staff_services.c.service_id)
            .where(t_staff_services.c.staff_member_id.in_(staff_member_ids))
        ).all()
        grouped: dict = {}
        for staff_member_id, service_id in rows:
            grouped.setdefault(staff_member_id, set()).add(service_id)
        return {key: frozenset(value) for key, value in grouped.items()}


class SqlBookingStore:
    """
    Booking store backed by a relational database.

    ``snapshot()`` opens a read transaction; ``transaction()`` opens the
    write transaction used for the re-check-then-insert critical section.
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._read_sessions, self._write_sessions = make_session_factories(engine)

    @classmethod
    def from_url(cls, database_url: str, echo: bool = False) -> "SqlBookingStore":
        return cls(create_db_engine(database_url, echo=echo))

    def create_schema(self) -> None:
        Base.metadata.create_all(self.engine)
        logger.info("Database schema ready at %s", self.engine.url)

    @contextmanager
    def snapshot(self) -> Iterator[SqlStoreSession]:
        with self._read_sessions() as session:
            with session.begin():
                yield SqlStoreSession(session)

    @contextmanager
    def transaction(self) -> Iterator[SqlStoreSession]:
        with self._write_sessions() as session:
            with session.begin():
                yield SqlStoreSession(session)

    def dispose(self) -> None:
        self.engine.dispose()


# ── Row mapping ──────────────────────────────────────────────────────────


def _to_venue(row: Venues) -> Venue:
    return Venue(
        id=row.id,
        name=row.name,
        category=VenueCategory(row.category),
        booking_advance_hours=row.booking_advance_hours,
        booking_advance_days=row.booking_advance_days,
        cancellation_hours=row.cancellation_hours,
        is_active=bool(row.is_active),
    )


def _to_service(row: Services) -> Service:
    return Service(
        id=row.id,
        venue_id=row.venue_id,
        name=row.name,
        duration_minutes=row.duration_minutes,
        capacity=row.capacity,
        requires_staff=bool(row.requires_staff),
        price=row.price,
        is_active=bool(row.is_active),
    )


def _to_staff(row: StaffMembers, service_ids: frozenset) -> StaffMember:
    return StaffMember(
        id=row.id,
        venue_id=row.venue_id,
        name=row.name,
        service_ids=service_ids,
        is_active=bool(row.is_active),
    )


def _to_rule(row: AvailabilityRules) -> AvailabilityRule:
    return AvailabilityRule(
        id=row.id,
        venue_id=row.venue_id,
        staff_member_id=row.staff_member_id,
        day_of_week=row.day_of_week,
        start_time=row.start_time,
        end_time=row.end_time,
        is_active=bool(row.is_active),
    )


def _to_booking(row: Bookings) -> Booking:
    return Booking(
        id=row.id,
        venue_id=row.venue_id,
        service_id=row.service_id,
        staff_member_id=row.staff_member_id,
        booking_date=row.booking_date,
        start_time=row.start_time,
        end_time=row.end_time,
        party_size=row.party_size,
        status=BookingStatus(row.status),
        token=row.booking_token,
        customer_name=row.customer_name,
        customer_email=row.customer_email,
        customer_phone=row.customer_phone,
        special_requests=row.special_requests,
        total_amount=row.total_amount,
        cancellation_reason=row.cancellation_reason,
        created_at=row.created_at,
        cancelled_at=row.cancelled_at,
    )
