"""Registry of named hard and soft scheduling rules.

A rule is a predicate over one candidate slot and the full list of accepted
slots. Hard rules gate acceptance; soft rules only move the score.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import Literal

from deptgrid.core.exceptions import SchedulerError
from deptgrid.schemas.catalog import Faculty, Subject
from deptgrid.schemas.constraints import TimetableConstraints
from deptgrid.schemas.timetable import Conflict, ScheduledSlot, ValidationReport
from deptgrid.services.time_grid import (
    DAYS,
    MORNING_LAB_BANDS,
    adjacent_lab_bands,
    overlap,
    start_hour,
)
from deptgrid.services.workload import daily_load_spread, faculty_day_hours, faculty_hours_on

RuleKind = Literal["hard", "soft"]

LAB_UTILIZATION_TARGET = 0.7
LOAD_SPREAD_LIMIT = 2


@dataclass
class RuleContext:
    subjects: Sequence[Subject] = ()
    faculty: Sequence[Faculty] = ()
    constraints: TimetableConstraints = field(default_factory=TimetableConstraints)

    def __post_init__(self) -> None:
        self._faculty_by_name = {item.name: item for item in self.faculty}

    def faculty_named(self, name: str) -> Faculty | None:
        return self._faculty_by_name.get(name)


Predicate = Callable[[ScheduledSlot, Sequence[ScheduledSlot], RuleContext], bool]


@dataclass(frozen=True)
class ConstraintRule:
    id: str
    name: str
    kind: RuleKind
    weight: int
    predicate: Predicate
    message: Callable[[ScheduledSlot], str]

    def check(self, slot: ScheduledSlot, accepted: Sequence[ScheduledSlot], context: RuleContext) -> bool:
        return self.predicate(slot, accepted, context)


def batches_clash(batch_a: str | None, batch_b: str | None) -> bool:
    # a whole-cohort session (no batch) clashes with every batch
    return batch_a is None or batch_b is None or batch_a == batch_b


def _overlapping(slot: ScheduledSlot, accepted: Iterable[ScheduledSlot]) -> Iterable[ScheduledSlot]:
    for existing in accepted:
        if existing is slot or existing.day != slot.day:
            continue
        if overlap(existing.time, slot.time):
            yield existing


def no_faculty_double_booking(slot, accepted, context) -> bool:
    return not any(existing.faculty == slot.faculty for existing in _overlapping(slot, accepted))


def no_room_double_booking(slot, accepted, context) -> bool:
    return not any(existing.room == slot.room for existing in _overlapping(slot, accepted))


def no_cohort_double_booking(slot, accepted, context) -> bool:
    return not any(
        existing.year == slot.year and batches_clash(existing.batch, slot.batch)
        for existing in _overlapping(slot, accepted)
    )


def faculty_daily_hour_cap(slot, accepted, context) -> bool:
    faculty = context.faculty_named(slot.faculty)
    # department-wide cap applies to faculty without a record
    cap = faculty.max_hours_per_day if faculty is not None else context.constraints.max_hours_per_day
    hours = faculty_hours_on(accepted, slot.faculty, slot.day, exclude=slot) + slot.duration
    return hours <= cap


def no_back_to_back_labs(slot, accepted, context) -> bool:
    if slot.type != "lab":
        return True
    neighbours = adjacent_lab_bands(slot.time)
    return not any(
        existing is not slot
        and existing.type == "lab"
        and existing.faculty == slot.faculty
        and existing.day == slot.day
        and existing.time in neighbours
        for existing in accepted
    )


def labs_in_afternoon(slot, accepted, context) -> bool:
    if slot.type != "lab":
        return True
    hour = start_hour(slot.time)
    return hour is None or hour >= 13


def faculty_preferred_band(slot, accepted, context) -> bool:
    faculty = context.faculty_named(slot.faculty)
    if faculty is None or not faculty.preferred_slots:
        return True
    hour = start_hour(slot.time)
    if hour is None:
        return True
    for preference in faculty.preferred_slots:
        if "Morning" in preference and 8 <= hour < 12:
            return True
        if "Afternoon" in preference and 12 <= hour < 17:
            return True
        if "Evening" in preference and hour >= 17:
            return True
    return False


def default_rules() -> list[ConstraintRule]:
    return [
        ConstraintRule(
            id="no-faculty-conflict",
            name="No Faculty Time Conflict",
            kind="hard",
            weight=100,
            predicate=no_faculty_double_booking,
            message=lambda slot: f"Faculty {slot.faculty} has conflicting assignments at {slot.time} on {slot.day}",
        ),
        ConstraintRule(
            id="no-room-conflict",
            name="No Room Double Booking",
            kind="hard",
            weight=100,
            predicate=no_room_double_booking,
            message=lambda slot: f"Room {slot.room} is double-booked at {slot.time} on {slot.day}",
        ),
        ConstraintRule(
            id="no-student-conflict",
            name="No Student Time Conflict",
            kind="hard",
            weight=100,
            predicate=no_cohort_double_booking,
            message=lambda slot: f"Students of {slot.year} have conflicting classes at {slot.time} on {slot.day}",
        ),
        ConstraintRule(
            id="faculty-max-hours",
            name="Faculty Daily Hour Limit",
            kind="soft",
            weight=80,
            predicate=faculty_daily_hour_cap,
            message=lambda slot: f"Faculty {slot.faculty} exceeds preferred daily hours on {slot.day}",
        ),
        ConstraintRule(
            id="no-back-to-back-labs",
            name="No Consecutive Labs for Faculty",
            kind="soft",
            weight=70,
            predicate=no_back_to_back_labs,
            message=lambda slot: f"Faculty {slot.faculty} has back-to-back lab sessions on {slot.day}",
        ),
        ConstraintRule(
            id="lab-afternoon-preference",
            name="Prefer Labs in Afternoon",
            kind="soft",
            weight=60,
            predicate=labs_in_afternoon,
            message=lambda slot: f"Lab session {slot.subject} scheduled in morning hours",
        ),
        ConstraintRule(
            id="faculty-preferred-slots",
            name="Faculty Slot Preferences",
            kind="soft",
            weight=50,
            predicate=faculty_preferred_band,
            message=lambda slot: f"Faculty {slot.faculty} assigned outside preferred time slots",
        ),
    ]


class ConstraintSolver:
    def __init__(self, rules: Iterable[ConstraintRule] | None = None) -> None:
        self.rules: list[ConstraintRule] = list(rules) if rules is not None else default_rules()

    @property
    def hard_rules(self) -> list[ConstraintRule]:
        return [rule for rule in self.rules if rule.kind == "hard"]

    def add_rule(self, rule: ConstraintRule) -> None:
        if any(existing.id == rule.id for existing in self.rules):
            raise SchedulerError(f"Rule {rule.id} is already registered", details={"rule_id": rule.id})
        self.rules.append(rule)

    def remove_rule(self, rule_id: str) -> None:
        remaining = [rule for rule in self.rules if rule.id != rule_id]
        if len(remaining) == len(self.rules):
            raise SchedulerError(f"Unknown rule {rule_id}", details={"rule_id": rule_id})
        self.rules = remaining

    def hard_violations(
        self,
        slot: ScheduledSlot,
        accepted: Sequence[ScheduledSlot],
        context: RuleContext,
    ) -> list[ConstraintRule]:
        return [rule for rule in self.hard_rules if not rule.check(slot, accepted, context)]

    def validate_timetable(self, slots: Sequence[ScheduledSlot], context: RuleContext) -> ValidationReport:
        conflicts: list[Conflict] = []
        score = 0.0
        hard_violations = 0

        for slot in slots:
            for rule in self.rules:
                if rule.check(slot, slots, context):
                    if rule.kind == "soft":
                        score += rule.weight
                    continue
                entities = [slot.faculty, slot.subject, slot.room]
                if rule.kind == "hard":
                    hard_violations += 1
                    conflicts.append(Conflict.error(rule.message(slot), *entities))
                else:
                    score -= rule.weight
                    conflicts.append(Conflict.warning(rule.message(slot), *entities))

        return ValidationReport(is_valid=hard_violations == 0, conflicts=conflicts, score=score)

    def optimization_suggestions(self, slots: Sequence[ScheduledSlot], context: RuleContext) -> list[str]:
        suggestions: list[str] = []

        for name, day_hours in faculty_day_hours(slots).items():
            if daily_load_spread(day_hours) > LOAD_SPREAD_LIMIT:
                suggestions.append(
                    f"Consider redistributing {name}'s workload - varies from "
                    f"{min(day_hours.values())} to {max(day_hours.values())} hours per day"
                )

        lab_usage = Counter(slot.room for slot in slots if slot.type == "lab")
        if lab_usage:
            # one session per lab band of a cohort schedule per day
            capacity = len(DAYS) * len(MORNING_LAB_BANDS)
            average = sum(lab_usage.values()) / len(lab_usage)
            if average < capacity * LAB_UTILIZATION_TARGET:
                suggestions.append(
                    "Lab utilization is below optimal - consider adding more lab sessions or reducing lab inventory"
                )

        return suggestions


default_constraint_solver = ConstraintSolver()
