"""
Tests for slot generation.
"""

import pytest

from venuebook.domain.models import AvailabilityRule, TimeRange
from venuebook.domain.slot_generator import SlotGenerator


def _venue_rule(day, start, end, active=True):
    return AvailabilityRule(day_of_week=day, start_time=start, end_time=end, venue_id=1, is_active=active)


class TestSlotGenerator:
    """Tests for SlotGenerator."""

    def test_tuesday_lunch_example(self):
        """Test 11:30-22:00 with 45-minute slots starts at 11:30 and ends by 22:00."""
        generator = SlotGenerator()

        slots = generator.generate_for_rules([_venue_rule(2, "11:30", "22:00")], 2, 45)

        assert slots[0].start_time == "11:30"
        assert slots[0].end_time == "12:15"
        assert slots[1].start_time == "12:15"
        assert slots[-1].end_time == "22:00"
        assert len(slots) == 14
        assert all(slot.duration_minutes() == 45 for slot in slots)

    def test_monday_evening_only(self):
        """Test all Monday slots start at or after the 17:00 opening."""
        generator = SlotGenerator()
        rules = [_venue_rule(1, "17:00", "22:00"), _venue_rule(2, "11:30", "22:00")]

        slots = generator.generate_for_rules(rules, 1, 45)

        assert slots
        assert all(slot.start_time >= "17:00" for slot in slots)
        assert slots[-1].end_time == "21:30"

    def test_closed_day_is_empty(self):
        """Test a weekday without rules yields no slots."""
        generator = SlotGenerator()

        assert generator.generate_for_rules([_venue_rule(2, "11:30", "22:00")], 3, 45) == ()

    def test_inactive_rules_are_ignored(self):
        """Test inactive rules do not open the venue."""
        generator = SlotGenerator()

        assert generator.generate_for_rules([_venue_rule(2, "09:00", "12:00", active=False)], 2, 30) == ()

    def test_windows_are_not_merged(self):
        """Test touching windows are walked separately."""
        generator = SlotGenerator()
        rules = [_venue_rule(2, "09:00", "10:00"), _venue_rule(2, "10:00", "11:00")]

        # a 90-minute service would only fit a merged window
        assert generator.generate_for_rules(rules, 2, 90) == ()

    def test_split_day(self):
        """Test a lunch and a dinner window produce two blocks of slots."""
        generator = SlotGenerator()
        rules = [_venue_rule(2, "18:00", "20:00"), _venue_rule(2, "12:00", "14:00")]

        slots = generator.generate_for_rules(rules, 2, 60)

        assert [str(slot) for slot in slots] == [
            "12:00-13:00", "13:00-14:00", "18:00-19:00", "19:00-20:00",
        ]

    def test_duplicated_rules_emit_each_slot_once(self):
        """Test identical rules do not duplicate slots."""
        generator = SlotGenerator()
        rules = [_venue_rule(2, "09:00", "11:00"), _venue_rule(2, "09:00", "11:00")]

        slots = generator.generate_for_rules(rules, 2, 60)

        assert [str(slot) for slot in slots] == ["09:00-10:00", "10:00-11:00"]

    def test_overlapping_rules_never_produce_overlapping_slots(self):
        """Test overlapping windows with the default step keep slots disjoint."""
        generator = SlotGenerator()
        rules = [_venue_rule(2, "09:00", "12:00"), _venue_rule(2, "09:30", "12:30")]

        slots = generator.generate_for_rules(rules, 2, 60)

        for first, second in zip(slots, slots[1:]):
            assert not first.overlaps(second)
        assert slots[0].start_time == "09:00"

    def test_remaining_window_too_short(self):
        """Test a tail shorter than the duration is not emitted."""
        generator = SlotGenerator()

        slots = generator.generate([TimeRange.from_strings("09:00", "10:50")], 30)

        assert slots[-1].end_time == "10:30"

    def test_result_is_restartable(self):
        """Test the result can be iterated more than once."""
        generator = SlotGenerator()
        slots = generator.generate([TimeRange.from_strings("09:00", "11:00")], 30)

        assert list(slots) == list(slots)


class TestStepPolicy:
    """The step between slot starts is a configurable policy."""

    def test_default_step_equals_duration(self):
        """Test the default grid follows the service duration."""
        assert SlotGenerator().step_for(45) == 45

    def test_fixed_grid_produces_overlapping_candidates(self):
        """Test a 15-minute grid with 60-minute slots overlaps by design."""
        generator = SlotGenerator(step_minutes=15)

        slots = generator.generate([TimeRange.from_strings("09:00", "11:00")], 60)

        assert [slot.start_time for slot in slots] == ["09:00", "09:15", "09:30", "09:45", "10:00"]
        assert slots[0].overlaps(slots[1])
        assert all(slot.duration_minutes() == 60 for slot in slots)

    def test_non_positive_step_rejected(self):
        """Test invalid grids are rejected at construction."""
        with pytest.raises(ValueError):
            SlotGenerator(step_minutes=0)

    def test_non_positive_duration_rejected(self):
        """Test a service must have a positive duration."""
        with pytest.raises(ValueError):
            SlotGenerator().generate([TimeRange.from_strings("09:00", "10:00")], 0)
