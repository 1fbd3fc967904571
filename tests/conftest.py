"""
Shared fixtures: a seeded SQLite store and services with a fixed clock.

Calendar used throughout the tests:
    2029-12-20 Thursday (the fixed "now", 12:00)
    2030-01-01 Tuesday
    2030-01-02 Wednesday (closed)
    2030-01-06 Sunday
    2030-01-07 Monday
"""

import pendulum
import pytest

from venuebook.adapters.fixtures import seed_from_mapping
from venuebook.adapters.sql_store import SqlBookingStore
from venuebook.services.availability import AvailabilityService
from venuebook.services.booking import BookingService

NOW = pendulum.naive(2029, 12, 20, 12, 0)

SEED = {
    "venues": [
        {
            "name": "Trattoria",
            "category": "restaurant",
            "rules": [
                {"day": "tuesday", "start": "11:30", "end": "22:00"},
                {"day": 1, "start": "17:00", "end": "22:00"},
            ],
            "services": [
                {"key": "lunch", "name": "Table", "duration_minutes": 45, "capacity": 4, "price": 10.0},
                {"key": "chef_table", "name": "Chef's table", "duration_minutes": 60, "capacity": 2},
            ],
        },
        {
            "name": "Salon Nord",
            "category": "hair_salon",
            "rules": [
                {"day": "Tuesday", "start": "09:00", "end": "17:00"},
            ],
            "services": [
                {"key": "cut", "name": "Haircut", "duration_minutes": 30, "price": 35.0},
                {"key": "color", "name": "Coloring", "duration_minutes": 60},
            ],
            "staff": [
                {
                    "name": "Anna",
                    "services": ["cut", "color"],
                    "rules": [{"day": 2, "start": "09:00", "end": "12:00"}],
                },
                {
                    "name": "Ben",
                    "services": ["cut"],
                    "rules": [{"day": 2, "start": "11:00", "end": "17:00"}],
                },
                {
                    "name": "Cara",
                    "services": ["color"],
                    "rules": [{"day": 2, "start": "09:00", "end": "17:00"}],
                },
            ],
        },
    ]
}


@pytest.fixture
def store(tmp_path):
    store = SqlBookingStore.from_url(f"sqlite:///{tmp_path / 'venuebook.db'}")
    store.create_schema()
    yield store
    store.dispose()


@pytest.fixture
def ids(store):
    return seed_from_mapping(store, SEED)


@pytest.fixture
def availability(store, ids):
    return AvailabilityService(store, clock=lambda: NOW)


@pytest.fixture
def bookings(store, availability):
    return BookingService(store, availability=availability)
