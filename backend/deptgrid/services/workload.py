from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable

from deptgrid.schemas.timetable import ScheduledSlot


def faculty_day_hours(slots: Iterable[ScheduledSlot]) -> dict[str, dict[str, int]]:
    """Teaching hours per faculty per day."""
    totals: dict[str, dict[str, int]] = defaultdict(lambda: defaultdict(int))
    for slot in slots:
        totals[slot.faculty][slot.day] += slot.duration
    return {name: dict(days) for name, days in totals.items()}


def faculty_hours_on(
    slots: Iterable[ScheduledSlot],
    faculty: str,
    day: str,
    *,
    exclude: ScheduledSlot | None = None,
) -> int:
    return sum(
        slot.duration
        for slot in slots
        if slot is not exclude and slot.faculty == faculty and slot.day == day
    )


def daily_load_spread(day_hours: dict[str, int]) -> int:
    if not day_hours:
        return 0
    return max(day_hours.values()) - min(day_hours.values())
