"""
Core business logic for expanding weekly availability into bookable slots.

Pure domain logic without any external dependencies (no API calls, no
database, no I/O).
"""

import datetime
from typing import List, Optional

import pendulum

from .clock import InstantLike, to_tenant_date, to_instant
from .models import DaySchedule, Slot, TimeRange, WeeklyAvailability, minutes_of_day


class SlotExpander:
    """
    Turns a recurring weekly availability into candidate (date, time) slots.

    Algorithm:
    1. Resolve the reference instant to a calendar date in the tenant zone
    2. Walk the next ``horizon_days`` days strictly after that date
    3. Skip days that are inactive or have no ranges
    4. Discretize each range at the granularity, dropping partial tails
    5. De-duplicate overlapping ranges and emit in chronological order
    """

    def __init__(self, timezone: str = "America/Sao_Paulo"):
        self.timezone = timezone

    def expand(
        self,
        availability: WeeklyAvailability,
        horizon_days: int,
        granularity_minutes: int,
        reference_instant: Optional[InstantLike] = None,
    ) -> List[Slot]:
        """
        Expand availability over a rolling horizon.

        Args:
            availability: Normalized weekly availability
            horizon_days: Number of calendar days after the reference date
            granularity_minutes: Interval between successive slot times
            reference_instant: "Now"; defaults to the current time

        Returns:
            Duplicate-free list of Slot objects, ordered by date then time
        """
        if granularity_minutes <= 0:
            raise ValueError(f"granularity_minutes must be greater than zero, got {granularity_minutes}")
        if horizon_days < 0:
            raise ValueError(f"horizon_days cannot be negative, got {horizon_days}")

        reference_date = to_tenant_date(to_instant(reference_instant), self.timezone)

        slots: List[Slot] = []

        # Same-day booking is never offered, so the walk starts tomorrow
        for offset in range(1, horizon_days + 1):
            day = reference_date.add(days=offset)
            slots.extend(
                self._expand_day(day, availability.for_date(day), granularity_minutes)
            )

        return slots

    def _expand_day(
        self,
        day: datetime.date,
        schedule: DaySchedule,
        granularity_minutes: int,
    ) -> List[Slot]:
        """
        Generate the slots of a single day.

        Overlapping ranges produce the same times more than once; these are
        collapsed by value before sorting.
        """
        if not schedule.is_bookable():
            return []

        times = set()
        for time_range in schedule.slots:
            times.update(self._discretize(time_range, granularity_minutes))

        return [Slot(date=day, time=value) for value in sorted(times)]

    def _discretize(
        self,
        time_range: TimeRange,
        granularity_minutes: int,
    ) -> List[datetime.time]:
        """
        Step through a range at a fixed interval.

        Example (granularity 30):
        Range: 08:00 - 09:10
        Result: [08:00, 08:30]  (09:00 would run past the end)
        """
        end = minutes_of_day(time_range.end)
        current = minutes_of_day(time_range.start)

        values: List[datetime.time] = []
        while current + granularity_minutes <= end:
            values.append(pendulum.time(current // 60, current % 60))
            current += granularity_minutes

        return values

