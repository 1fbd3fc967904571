"""
Candidate slot generation from weekly rule windows.

Pure domain logic: no database, no clock, no I/O.
"""

from typing import Iterable, Iterator, List, Optional, Tuple

from .models import AvailabilityRule, TimeRange


class SlotGenerator:
    """
    Turns the open windows of one day into fixed-length candidate slots.

    Algorithm:
    1. Keep the active rules for the requested weekday
    2. Walk every window on its own, starting at its start time
    3. Emit [t, t + duration) and advance t by the step
    4. Stop once a candidate would end after the window end
    5. Order all candidates by start time

    The step defaults to the service duration, which keeps slots of the same
    day disjoint. A smaller fixed grid (e.g. 15 minutes) can be configured and
    then yields overlapping candidates.
    """

    def __init__(self, step_minutes: Optional[int] = None):
        if step_minutes is not None and step_minutes <= 0:
            raise ValueError(f"step_minutes must be positive, got {step_minutes}")
        self.step_minutes = step_minutes

    @staticmethod
    def windows_for_day(
        rules: Iterable[AvailabilityRule],
        weekday: int
    ) -> List[TimeRange]:
        """
        Extract the active windows of a weekday, ordered by start.

        Windows are kept separate even when they touch or overlap.
        """
        windows = [
            rule.window for rule in rules
            if rule.is_active and rule.day_of_week == weekday
        ]
        return sorted(windows, key=lambda w: (w.start, w.end))

    def step_for(self, duration_minutes: int) -> int:
        return self.step_minutes or duration_minutes

    def generate(
        self,
        windows: Iterable[TimeRange],
        duration_minutes: int
    ) -> Tuple[TimeRange, ...]:
        """
        Generate the candidate slots for a day.

        Args:
            windows: Open windows of the owner on that day
            duration_minutes: Length of every generated slot

        Returns:
            Ordered tuple of candidate ranges (empty for a closed day)
        """
        if duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be positive, got {duration_minutes}")

        step = self.step_for(duration_minutes)
        candidates = set()
        for window in windows:
            candidates.update(self._iter_window(window, duration_minutes, step))

        ordered = sorted(candidates, key=lambda r: (r.start, r.end))
        if step < duration_minutes:
            return tuple(ordered)

        # Overlapping rule windows must not produce overlapping slots
        slots: List[TimeRange] = []
        for candidate in ordered:
            if slots and slots[-1].overlaps(candidate):
                continue
            slots.append(candidate)
        return tuple(slots)

    def generate_for_rules(
        self,
        rules: Iterable[AvailabilityRule],
        weekday: int,
        duration_minutes: int
    ) -> Tuple[TimeRange, ...]:
        """Shortcut combining ``windows_for_day`` and ``generate``."""
        return self.generate(self.windows_for_day(rules, weekday), duration_minutes)

    @staticmethod
    def _iter_window(
        window: TimeRange,
        duration_minutes: int,
        step: int
    ) -> Iterator[TimeRange]:
        """
        Yield consecutive slots inside a single window.

        Example (duration 45, step 45):
        Window: 11:30 - 13:30
        Result: [11:30-12:15, 12:15-13:00]
        """
        current = window.start
        while current + duration_minutes <= window.end:
            yield TimeRange(start=current, end=current + duration_minutes)
            current += step
