"""
Domain-specific exception hierarchy for the venue booking engine.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, List

if TYPE_CHECKING:  # pragma: no cover
    from .validator import ValidationIssue


class BookingError(Exception):
    """Base class for all application-level errors."""


class NotFoundError(BookingError):
    """Raised when a venue, service, staff member or booking id is unknown."""

    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class InputFormatError(BookingError, ValueError):
    """Raised for malformed dates, times or numeric inputs."""


class BookingValidationError(BookingError):
    """
    Raised by the write path when one or more business rules are violated.

    Carries every failed check, not just the first one.
    """

    def __init__(self, issues: List["ValidationIssue"]):
        self.issues = list(issues)
        messages = "; ".join(issue.message for issue in self.issues)
        super().__init__(f"Booking request is invalid: {messages}")

    @property
    def messages(self) -> List[str]:
        return [issue.message for issue in self.issues]


class ConflictError(BookingError):
    """
    Raised when the requested interval was taken by a concurrent booking.

    Callers should re-query the available slots and let the customer pick
    again instead of showing a form error.
    """


class InvalidStatusTransition(BookingError):
    """Raised when a booking status change is not allowed by the lifecycle."""
