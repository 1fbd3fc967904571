"""
Seed venues, services, staff and opening hours from a plain mapping.

The mapping is what ``yaml.safe_load`` returns for a seed file like::

    venues:
      - name: Trattoria
        category: restaurant
        rules:
          - {day: tuesday, start: "12:00", end: "14:00"}
        services:
          - {key: table, name: Table, duration_minutes: 60, capacity: 2}
      - name: Salon Nord
        category: hair_salon
        services:
          - {key: cut, name: Haircut, duration_minutes: 30}
        staff:
          - name: Anna
            services: [cut]
            rules:
              - {day: 2, start: "09:00", end: "12:00"}

Rule days are canonical indexes (0=Sunday) or English weekday names.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..domain.exceptions import InputFormatError
from ..domain.models import AvailabilityRule, VenueCategory
from ..domain.timeutils import WEEKDAY_NAMES
from .orm import AvailabilityRules, Services, StaffMembers, Venues
from .sql_store import SqlBookingStore

logger = logging.getLogger(__name__)

_DAY_LOOKUP = {name.lower(): index for index, name in enumerate(WEEKDAY_NAMES)}


def parse_day(value) -> int:
    """Resolve a rule day given as index or weekday name."""
    if isinstance(value, bool):
        raise InputFormatError(f"Invalid day of week: {value!r}")
    if isinstance(value, int):
        if value not in range(7):
            raise InputFormatError(f"day_of_week must be between 0 and 6, got {value}")
        return value
    if isinstance(value, str) and value.strip().lower() in _DAY_LOOKUP:
        return _DAY_LOOKUP[value.strip().lower()]
    raise InputFormatError(f"Invalid day of week: {value!r}")


def load_seed_file(path: Path) -> Dict[str, Any]:
    """
    Read a YAML seed file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is not a YAML mapping
    """
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("Seed file must contain a mapping at the root level.")
    return data


def seed_from_mapping(
    store: SqlBookingStore,
    data: Mapping[str, Any],
    venue_defaults: Optional[Mapping[str, int]] = None
) -> Dict[str, int]:
    """
    Insert everything described in ``data`` in one transaction.

    Args:
        store: Target store (schema must exist)
        data: Seed mapping with a ``venues`` list
        venue_defaults: Advance/cancellation settings for venues that omit them

    Returns:
        Ids of the created rows, keyed ``venue:<name>``, ``service:<key>``
        and ``staff:<name>``
    """
    defaults = dict(venue_defaults or {})
    ids: Dict[str, int] = {}

    with store.transaction() as tx:
        session = tx.session
        for venue_data in data.get("venues", []):
            category = VenueCategory(venue_data.get("category", VenueCategory.OTHER.value))
            venue = Venues(
                name=venue_data["name"],
                category=category.value,
                is_active=venue_data.get("is_active", True),
            )
            for setting in ("booking_advance_hours", "booking_advance_days", "cancellation_hours"):
                value = venue_data.get(setting, defaults.get(setting))
                if value is not None:
                    setattr(venue, setting, value)
            session.add(venue)
            session.flush()
            ids[f"venue:{venue.name}"] = venue.id

            services_by_key: Dict[str, Services] = {}
            for service_data in venue_data.get("services", []):
                service = Services(
                    venue_id=venue.id,
                    name=service_data["name"],
                    duration_minutes=service_data["duration_minutes"],
                    capacity=service_data.get("capacity", 1),
                    requires_staff=service_data.get("requires_staff", category.staff_based),
                    price=service_data.get("price"),
                    is_active=service_data.get("is_active", True),
                )
                session.add(service)
                session.flush()
                key = service_data.get("key", service.name)
                services_by_key[key] = service
                ids[f"service:{key}"] = service.id

            session.add_all(_rule_rows(venue_data.get("rules", []), venue_id=venue.id))

            for staff_data in venue_data.get("staff", []):
                staff = StaffMembers(
                    venue_id=venue.id,
                    name=staff_data["name"],
                    is_active=staff_data.get("is_active", True),
                )
                try:
                    staff.services = [services_by_key[key] for key in staff_data.get("services", [])]
                except KeyError as exc:
                    raise ValueError(
                        f"Staff member {staff_data['name']} references unknown service {exc.args[0]!r}"
                    ) from exc
                session.add(staff)
                session.flush()
                ids[f"staff:{staff.name}"] = staff.id
                session.add_all(_rule_rows(staff_data.get("rules", []), staff_member_id=staff.id))

            logger.info("Seeded venue %s (%s)", venue.name, category.value)

    return ids


def _rule_rows(
    rules: List[Mapping[str, Any]],
    venue_id: Optional[int] = None,
    staff_member_id: Optional[int] = None
) -> List[AvailabilityRules]:
    rows = []
    for rule_data in rules:
        # validates owner, day and times before anything is written
        rule = AvailabilityRule(
            day_of_week=parse_day(rule_data["day"]),
            start_time=rule_data["start"],
            end_time=rule_data["end"],
            venue_id=venue_id,
            staff_member_id=staff_member_id,
            is_active=rule_data.get("is_active", True),
        )
        rows.append(AvailabilityRules(
            venue_id=rule.venue_id,
            staff_member_id=rule.staff_member_id,
            day_of_week=rule.day_of_week,
            start_time=rule.start_time,
            end_time=rule.end_time,
            is_active=rule.is_active,
        ))
    return rows
