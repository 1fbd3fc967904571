"""
Tests for the SQLAlchemy store and the seeding helpers.
"""

from datetime import date

import pytest

from venuebook.adapters.fixtures import load_seed_file, parse_day, seed_from_mapping
from venuebook.adapters.sql_store import SqlBookingStore
from venuebook.domain.exceptions import InputFormatError
from venuebook.domain.models import Booking, BookingStatus, VenueCategory


class TestSeeding:
    """Tests for seed_from_mapping."""

    def test_returns_ids_by_name(self, ids):
        """Test every seeded record is reported."""
        assert set(ids) == {
            "venue:Trattoria", "service:lunch", "service:chef_table",
            "venue:Salon Nord", "service:cut", "service:color",
            "staff:Anna", "staff:Ben", "staff:Cara",
        }

    def test_requires_staff_defaults_from_category(self, store, ids):
        """Test salon services are staff based, restaurant services are not."""
        with store.snapshot() as session:
            venue = session.get_venue(ids["venue:Salon Nord"])
            cut = session.get_service(ids["service:cut"])
            table = session.get_service(ids["service:lunch"])

        assert venue.category == VenueCategory.HAIR_SALON
        assert cut.requires_staff
        assert not table.requires_staff
        assert table.capacity == 4

    def test_venue_defaults(self, store):
        """Test configured defaults apply to venues that omit the settings."""
        seeded = seed_from_mapping(
            store,
            {"venues": [{"name": "Spa", "category": "massage", "cancellation_hours": 6}]},
            venue_defaults={"booking_advance_hours": 2, "booking_advance_days": 60, "cancellation_hours": 12},
        )

        with store.snapshot() as session:
            venue = session.get_venue(seeded["venue:Spa"])

        assert venue.booking_advance_hours == 2
        assert venue.booking_advance_days == 60
        assert venue.cancellation_hours == 6

    def test_schema_defaults(self, store, ids):
        """Test database defaults fill unset venue settings."""
        with store.snapshot() as session:
            venue = session.get_venue(ids["venue:Trattoria"])

        assert venue.booking_advance_hours == 48
        assert venue.booking_advance_days == 30
        assert venue.cancellation_hours == 24
        assert venue.is_active

    def test_unknown_service_key(self, store):
        """Test staff must reference services of the same seed entry."""
        data = {"venues": [{"name": "Salon", "category": "hair_salon", "staff": [{"name": "Zoe", "services": ["nails"]}]}]}

        with pytest.raises(ValueError, match="unknown service 'nails'"):
            seed_from_mapping(store, data)

    def test_invalid_rule_rolls_back(self, store):
        """Test nothing is written when a rule is invalid."""
        data = {"venues": [{"name": "Bar", "rules": [{"day": "monday", "start": "22:00", "end": "18:00"}]}]}

        with pytest.raises(ValueError):
            seed_from_mapping(store, data)

        with store.snapshot() as session:
            assert session.get_venue(1) is None

    @pytest.mark.parametrize("value, expected", [(0, 0), ("sunday", 0), ("Monday", 1), (" saturday ", 6), (6, 6)])
    def test_parse_day(self, value, expected):
        """Test rule days as canonical index or English name."""
        assert parse_day(value) == expected

    @pytest.mark.parametrize("value", [7, -1, "funday", True, None])
    def test_parse_day_invalid(self, value):
        """Test invalid rule days are rejected."""
        with pytest.raises(InputFormatError):
            parse_day(value)

    def test_load_seed_file(self, tmp_path):
        """Test seed files must be YAML mappings."""
        seed_file = tmp_path / "seed.yaml"
        seed_file.write_text('venues:\n  - name: Cafe\n    rules:\n      - {day: 1, start: "08:00", end: "12:00"}\n')
        bad_file = tmp_path / "bad.yaml"
        bad_file.write_text("- just\n- a list\n")

        assert load_seed_file(seed_file)["venues"][0]["rules"][0]["start"] == "08:00"
        with pytest.raises(ValueError, match="mapping"):
            load_seed_file(bad_file)
        with pytest.raises(FileNotFoundError):
            load_seed_file(tmp_path / "missing.yaml")


class TestSqlStoreSession:
    """Tests for the store queries."""

    def test_rules_by_owner_and_weekday(self, store, ids):
        """Test rules are filtered by owner and canonical weekday."""
        with store.snapshot() as session:
            tuesday = session.rules_for_venue(ids["venue:Trattoria"], 2)
            wednesday = session.rules_for_venue(ids["venue:Trattoria"], 3)
            anna = session.rules_for_staff(ids["staff:Anna"], 2)

        assert [(r.start_time, r.end_time) for r in tuesday] == [("11:30", "22:00")]
        assert wednesday == []
        assert [(r.start_time, r.end_time, r.staff_member_id) for r in anna] == [
            ("09:00", "12:00", ids["staff:Anna"]),
        ]

    def test_staff_for_service(self, store, ids):
        """Test capable staff are returned in id order with capabilities."""
        with store.snapshot() as session:
            cut_staff = session.staff_for_service(ids["service:cut"])
            anna = session.get_staff(ids["staff:Anna"])

        assert [s.name for s in cut_staff] == ["Anna", "Ben"]
        assert anna.service_ids == frozenset({ids["service:cut"], ids["service:color"]})

    def test_add_and_query_bookings(self, store, ids):
        """Test active-booking queries skip cancelled rows and honour exclusions."""
        day = date(2030, 1, 1)
        with store.transaction() as session:
            kept = session.add_booking(Booking(
                id=None, venue_id=ids["venue:Salon Nord"], service_id=ids["service:color"],
                booking_date=day, start_time="09:00", end_time="10:00",
                staff_member_id=ids["staff:Anna"], token="token-1",
            ))
            cancelled = session.add_booking(Booking(
                id=None, venue_id=ids["venue:Salon Nord"], service_id=ids["service:cut"],
                booking_date=day, start_time="10:00", end_time="10:30",
                staff_member_id=ids["staff:Anna"], token="token-2",
            ))
            session.update_booking(cancelled.id, status=BookingStatus.CANCELLED)

        with store.snapshot() as session:
            active = session.active_bookings_for_staff([ids["staff:Anna"]], day)
            excluded = session.active_bookings_for_staff([ids["staff:Anna"]], day, exclude_booking_id=kept.id)
            by_service = session.active_bookings_for_service(
                ids["venue:Salon Nord"], ids["service:color"], day
            )
            stored = session.get_booking(cancelled.id)

        assert [b.id for b in active] == [kept.id]
        assert excluded == []
        assert [b.token for b in by_service] == ["token-1"]
        assert stored.status == BookingStatus.CANCELLED
        assert session.active_bookings_for_staff([], day) == []

    def test_rollback_on_error(self, store, ids):
        """Test a failing write transaction leaves no rows behind."""
        with pytest.raises(RuntimeError):
            with store.transaction() as session:
                session.add_booking(Booking(
                    id=None, venue_id=ids["venue:Trattoria"], service_id=ids["service:lunch"],
                    booking_date=date(2030, 1, 1), start_time="12:00", end_time="12:45", token="t",
                ))
                raise RuntimeError("boom")

        with store.snapshot() as session:
            assert session.active_bookings_for_service(
                ids["venue:Trattoria"], ids["service:lunch"], date(2030, 1, 1)
            ) == []

    def test_from_url_creates_sqlite_file(self, tmp_path):
        """Test a fresh store can create its schema."""
        store = SqlBookingStore.from_url(f"sqlite:///{tmp_path / 'fresh.db'}")
        store.create_schema()

        with store.snapshot() as session:
            assert session.get_venue(1) is None
        store.dispose()
        assert (tmp_path / "fresh.db").exists()
