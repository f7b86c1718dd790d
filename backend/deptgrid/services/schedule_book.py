from __future__ import annotations

import logging
from collections.abc import Iterable

from deptgrid.schemas.catalog import Subject
from deptgrid.schemas.timetable import ScheduledSlot
from deptgrid.services.rules import ConstraintSolver, RuleContext, batches_clash
from deptgrid.services.time_grid import (
    ALL_LAB_BANDS,
    adjacent_lecture_bands,
    lecture_band_index,
    overlap,
    previous_band,
)

logger = logging.getLogger(__name__)

# Weekly lecture cap applied to a slot whose subject is not in the catalog.
DEFAULT_WEEKLY_LECTURES = 3


def same_subject(a: ScheduledSlot, b: ScheduledSlot) -> bool:
    # codes identify a subject; names are the fallback for code-less slots
    if a.subject_code and b.subject_code:
        return a.subject_code == b.subject_code
    return a.subject == b.subject


class ScheduleBook:
    """Accepted slots of one generation run plus the acceptance checks.

    Every phase of the scheduler commits through :meth:`try_accept`, so the
    same hard rules and weekly caps apply whatever proposed the slot.
    """

    def __init__(
        self,
        subjects: Iterable[Subject],
        solver: ConstraintSolver,
        context: RuleContext,
    ) -> None:
        self.slots: list[ScheduledSlot] = []
        self.solver = solver
        self.context = context
        self._subjects_by_code: dict[tuple[str, str], Subject] = {}
        self._subjects_by_name: dict[tuple[str, str], Subject] = {}
        for subject in subjects:
            self._subjects_by_code[(subject.code, subject.year)] = subject
            self._subjects_by_name[(subject.name, subject.year)] = subject
            self._subjects_by_name[(subject.lab_display_name, subject.year)] = subject

    def __len__(self) -> int:
        return len(self.slots)

    def subject_for(self, slot: ScheduledSlot) -> Subject | None:
        if slot.subject_code:
            found = self._subjects_by_code.get((slot.subject_code, slot.year))
            if found is not None:
                return found
        return self._subjects_by_name.get((slot.subject, slot.year))

    def _overlapping(self, day: str, time: str, *, exclude: ScheduledSlot | None = None) -> Iterable[ScheduledSlot]:
        for slot in self.slots:
            if slot is exclude or slot.day != day:
                continue
            if overlap(slot.time, time):
                yield slot

    # -- availability -------------------------------------------------------

    def faculty_free(self, faculty: str, day: str, time: str, *, exclude: ScheduledSlot | None = None) -> bool:
        return not any(slot.faculty == faculty for slot in self._overlapping(day, time, exclude=exclude))

    def room_free(self, room: str, day: str, time: str) -> bool:
        return not any(slot.room == room for slot in self._overlapping(day, time))

    def cohort_free(self, year: str, day: str, time: str, batch: str | None = None) -> bool:
        return not any(
            slot.year == year and batches_clash(slot.batch, batch)
            for slot in self._overlapping(day, time)
        )

    def batch_has_lab_on(self, year: str, batch: str, day: str) -> bool:
        return any(
            slot.type == "lab" and slot.year == year and slot.batch == batch and slot.day == day
            for slot in self.slots
        )

    def faculty_had_previous_lab(self, faculty: str, day: str, time: str) -> bool:
        earlier = previous_band(time, ALL_LAB_BANDS)
        if earlier is None:
            return False
        return any(
            slot.type == "lab" and slot.faculty == faculty and slot.day == day and slot.time == earlier
            for slot in self.slots
        )

    def batch_had_previous_lab(self, year: str, batch: str, day: str, time: str) -> bool:
        earlier = previous_band(time, ALL_LAB_BANDS)
        if earlier is None:
            return False
        return any(
            slot.type == "lab"
            and slot.year == year
            and slot.batch == batch
            and slot.day == day
            and slot.time == earlier
            for slot in self.slots
        )

    # -- per-subject counters ------------------------------------------------

    def lecture_count(self, slot: ScheduledSlot) -> int:
        return sum(
            1
            for existing in self.slots
            if existing.type == "theory" and existing.year == slot.year and same_subject(existing, slot)
        )

    def lab_count(self, slot: ScheduledSlot) -> int:
        return sum(
            1
            for existing in self.slots
            if existing.type == "lab"
            and existing.year == slot.year
            and existing.batch == slot.batch
            and same_subject(existing, slot)
        )

    def creates_adjacent_repeat(self, slot: ScheduledSlot) -> bool:
        """True when a same-subject lecture of the cohort sits in a neighbouring band that day."""
        if slot.type != "theory":
            return False
        return self.would_repeat_adjacent(slot.subject, slot.year, slot.day, slot.time)

    def would_repeat_adjacent(
        self,
        subject: str,
        year: str,
        day: str,
        time: str,
        *,
        exclude: Iterable[ScheduledSlot] = (),
    ) -> bool:
        if lecture_band_index(time) == -1:
            return False
        neighbours = adjacent_lecture_bands(time)
        skipped = list(exclude)
        return any(
            existing.type == "theory"
            and existing.year == year
            and existing.day == day
            and existing.subject == subject
            and existing.time in neighbours
            and not any(existing is item for item in skipped)
            for existing in self.slots
        )

    # -- acceptance ----------------------------------------------------------

    def rejection_reason(self, slot: ScheduledSlot) -> str | None:
        violations = self.solver.hard_violations(slot, self.slots, self.context)
        if violations:
            return ", ".join(rule.name for rule in violations)

        if slot.type == "theory":
            if self.creates_adjacent_repeat(slot):
                return "same subject in adjacent lecture band"
            subject = self.subject_for(slot)
            allowed = subject.theory_hours if subject is not None else DEFAULT_WEEKLY_LECTURES
            scheduled = self.lecture_count(slot)
            if scheduled >= allowed:
                return f"weekly lectures already at {scheduled}/{allowed}"
        else:
            subject = self.subject_for(slot)
            allowed = subject.lab_blocks if subject is not None else 1
            scheduled = self.lab_count(slot)
            if scheduled >= allowed:
                return f"batch {slot.batch} already has {scheduled}/{allowed} lab sessions this week"
        return None

    def can_accept(self, slot: ScheduledSlot) -> bool:
        return self.rejection_reason(slot) is None

    def try_accept(self, slot: ScheduledSlot) -> bool:
        reason = self.rejection_reason(slot)
        if reason is not None:
            logger.debug(
                "Rejecting %s %s on %s %s: %s",
                slot.subject,
                slot.batch or "",
                slot.day,
                slot.time,
                reason,
            )
            return False
        self.slots.append(slot)
        logger.debug("Accepted %s %s in %s on %s %s", slot.subject, slot.batch or "", slot.room, slot.day, slot.time)
        return True
