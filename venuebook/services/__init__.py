"""
Service layer helpers that orchestrate the store and domain logic.
"""

from .availability import AvailabilityService, BookingStore, StoreSession
from .booking import BookingService

__all__ = ["AvailabilityService", "BookingService", "BookingStore", "StoreSession"]
