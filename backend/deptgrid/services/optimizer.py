"""Post-construction load smoothing by pairwise lecture swaps.

A swap exchanges what is taught (subject, code, faculty, semester) between two
lecture slots on different days. Where and when each slot sits never changes,
so room and cohort bookings stay valid by construction.
"""

from __future__ import annotations

import logging
from collections import defaultdict

from deptgrid.schemas.timetable import ScheduledSlot
from deptgrid.services.schedule_book import ScheduleBook
from deptgrid.services.time_grid import day_index, lecture_band_index

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITERATIONS = 20


def _lectures_by_day(book: ScheduleBook) -> dict[tuple[str, str], list[ScheduledSlot]]:
    grouped: dict[tuple[str, str], list[ScheduledSlot]] = defaultdict(list)
    for slot in book.slots:
        if slot.type == "theory":
            grouped[(slot.year, slot.day)].append(slot)
    for day_slots in grouped.values():
        day_slots.sort(key=lambda item: lecture_band_index(item.time))
    return dict(sorted(grouped.items(), key=lambda item: (item[0][0], day_index(item[0][1]))))


def _swap_is_legal(book: ScheduleBook, source: ScheduledSlot, target: ScheduledSlot) -> bool:
    if not book.faculty_free(target.faculty, source.day, source.time, exclude=source):
        return False
    if not book.faculty_free(source.faculty, target.day, target.time, exclude=target):
        return False
    if book.would_repeat_adjacent(target.subject, source.year, source.day, source.time, exclude=[source]):
        return False
    if book.would_repeat_adjacent(source.subject, target.year, target.day, target.time, exclude=[target]):
        return False
    return True


def _exchange(first: ScheduledSlot, second: ScheduledSlot) -> None:
    for field_name in ("subject", "subject_code", "faculty", "semester"):
        first_value = getattr(first, field_name)
        setattr(first, field_name, getattr(second, field_name))
        setattr(second, field_name, first_value)


def _swap_once(book: ScheduleBook) -> bool:
    grouped = _lectures_by_day(book)
    for (year, day), day_slots in grouped.items():
        source_subjects = {slot.subject for slot in day_slots}
        seen: set[str] = set()
        for source in day_slots:
            if source.subject not in seen:
                seen.add(source.subject)
                continue
            for (other_year, other_day), other_slots in grouped.items():
                if other_year != year or other_day == day:
                    continue
                if any(slot.subject == source.subject for slot in other_slots):
                    continue
                for target in other_slots:
                    if target.subject in source_subjects:
                        continue
                    if not _swap_is_legal(book, source, target):
                        continue
                    logger.debug(
                        "Swapping %s (%s %s) with %s (%s %s)",
                        source.subject,
                        source.day,
                        source.time,
                        target.subject,
                        target.day,
                        target.time,
                    )
                    _exchange(source, target)
                    return True
    return False


def redistribute_lectures(book: ScheduleBook, max_iterations: int = DEFAULT_MAX_ITERATIONS) -> int:
    """Spread repeated same-day lectures across the week. Returns the number of swaps made."""
    swaps = 0
    iterations = 0
    while iterations < max_iterations:
        iterations += 1
        if not _swap_once(book):
            break
        swaps += 1
    logger.info("Lecture redistribution finished after %d iterations with %d swaps", iterations, swaps)
    return swaps
