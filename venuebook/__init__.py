"""
venuebook - availability and booking-conflict engine for venue bookings.
"""

__version__ = "0.1.0"
