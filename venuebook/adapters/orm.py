from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Table,
    Text,
    UniqueConstraint,
    false,
    text,
    true,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()
metadata = Base.metadata


class Venues(Base):
    __tablename__ = 'venues'

    id = Column(Integer, primary_key=True)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False, server_default=text("'other'"))
    booking_advance_hours = Column(Integer, nullable=False, server_default=text('48'))
    booking_advance_days = Column(Integer, nullable=False, server_default=text('30'))
    cancellation_hours = Column(Integer, nullable=False, server_default=text('24'))
    is_active = Column(Boolean, nullable=False, server_default=true())

    services = relationship('Services', back_populates='venue')
    staff_members = relationship('StaffMembers', back_populates='venue')


t_staff_services = Table(
    'staff_services', metadata,
    Column('staff_member_id', ForeignKey('staff_members.id', ondelete='CASCADE'), nullable=False),
    Column('service_id', ForeignKey('services.id', ondelete='CASCADE'), nullable=False),
    UniqueConstraint('staff_member_id', 'service_id'),
)


class Services(Base):
    __tablename__ = 'services'

    id = Column(Integer, primary_key=True)
    venue_id = Column(ForeignKey('venues.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    capacity = Column(Integer, nullable=False, server_default=text('1'))
    requires_staff = Column(Boolean, nullable=False, server_default=false())
    price = Column(Float)
    is_active = Column(Boolean, nullable=False, server_default=true())

    venue = relationship('Venues', back_populates='services')


class StaffMembers(Base):
    __tablename__ = 'staff_members'

    id = Column(Integer, primary_key=True)
    venue_id = Column(ForeignKey('venues.id', ondelete='CASCADE'), nullable=False)
    name = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=true())

    venue = relationship('Venues', back_populates='staff_members')
    services = relationship('Services', secondary=t_staff_services)


class AvailabilityRules(Base):
    __tablename__ = 'availability_rules'
    __table_args__ = (
        CheckConstraint(
            '(venue_id IS NULL) != (staff_member_id IS NULL)',
            name='ck_rule_single_owner',
        ),
        CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_rule_day_of_week'),
    )

    id = Column(Integer, primary_key=True)
    venue_id = Column(ForeignKey('venues.id', ondelete='CASCADE'))
    staff_member_id = Column(ForeignKey('staff_members.id', ondelete='CASCADE'))
    day_of_week = Column(Integer, nullable=False)  # 0 = Sunday
    start_time = Column(Text, nullable=False)  # "HH:MM"
    end_time = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, server_default=true())


class Bookings(Base):
    __tablename__ = 'bookings'
    __table_args__ = (
        Index('ix_bookings_service_date', 'venue_id', 'service_id', 'booking_date'),
        Index('ix_bookings_staff_date', 'staff_member_id', 'booking_date'),
    )

    id = Column(Integer, primary_key=True)
    booking_token = Column(Text, nullable=False, unique=True)
    venue_id = Column(ForeignKey('venues.id', ondelete='CASCADE'), nullable=False)
    service_id = Column(ForeignKey('services.id', ondelete='CASCADE'), nullable=False)
    staff_member_id = Column(ForeignKey('staff_members.id', ondelete='SET NULL'))
    customer_name = Column(Text, nullable=False, server_default=text("''"))
    customer_email = Column(Text, nullable=False, server_default=text("''"))
    customer_phone = Column(Text)
    booking_date = Column(Date, nullable=False)
    start_time = Column(Text, nullable=False)
    end_time = Column(Text, nullable=False)
    party_size = Column(Integer, nullable=False, server_default=text('1'))
    special_requests = Column(Text)
    status = Column(Text, nullable=False, server_default=text("'pending'"))
    total_amount = Column(Float)
    cancellation_reason = Column(Text)
    created_at = Column(DateTime)
    cancelled_at = Column(DateTime)
