"""
Domain layer - Pure booking logic without external dependencies.
"""

from .conflict_checker import ConflictChecker
from .models import (
    AvailabilityCheck,
    AvailabilityRule,
    Booking,
    BookingRequest,
    BookingStatus,
    DayAvailability,
    Service,
    StaffMember,
    TimeRange,
    TimeSlot,
    UnavailableReason,
    Venue,
    VenueCategory,
)
from .slot_generator import SlotGenerator
from .validator import BookingContext, BookingValidator, IssueCode, ValidationIssue, ValidationResult

__all__ = [
    "AvailabilityCheck",
    "AvailabilityRule",
    "Booking",
    "BookingContext",
    "BookingRequest",
    "BookingStatus",
    "BookingValidator",
    "ConflictChecker",
    "DayAvailability",
    "IssueCode",
    "Service",
    "SlotGenerator",
    "StaffMember",
    "TimeRange",
    "TimeSlot",
    "UnavailableReason",
    "ValidationIssue",
    "ValidationResult",
    "Venue",
    "VenueCategory",
]
