"""Final consistency sweep and summary statistics for a generated timetable."""

from __future__ import annotations

import hashlib
import json
from collections import Counter, defaultdict
from collections.abc import Sequence

from deptgrid.schemas.catalog import BATCHES, Catalog, Subject
from deptgrid.schemas.timetable import Conflict, GenerationStatistics, ScheduledSlot
from deptgrid.services.conflict_service import ConflictService
from deptgrid.services.time_grid import lecture_band_index
from deptgrid.services.workload import faculty_day_hours

ROOM_UTILIZATION_FLOOR = 0.5
ROOM_WEEKLY_USE_LIMIT = 20

SCORE_WITH_ERRORS = 50
SCORE_WITHOUT_ERRORS = 75


def consistency_hash(slots: Sequence[ScheduledSlot]) -> str:
    """Digest of the sorted canonical slot tuples; identical schedules hash identically."""
    canonical = sorted(slot.canonical_key() for slot in slots)
    encoded = json.dumps(canonical, separators=(",", ":")).encode("utf-8")
    return hashlib.sha256(encoded).hexdigest()


def _count_for(counts: Counter, code: str, name: str, *key: str | None) -> int:
    # slots without a subject code are matched by name
    total = counts.get((code, *key), 0)
    if name != code:
        total += counts.get((name, *key), 0)
    return total


def _lecture_count_conflicts(slots: Sequence[ScheduledSlot], subjects: Sequence[Subject]) -> list[Conflict]:
    conflicts: list[Conflict] = []
    counts = Counter((slot.subject_code or slot.subject, slot.year) for slot in slots if slot.type == "theory")
    for subject in subjects:
        scheduled = _count_for(counts, subject.code, subject.name, subject.year)
        if scheduled < subject.theory_hours:
            conflicts.append(
                Conflict.warning(
                    f"{subject.name} ({subject.year}) has {scheduled}/{subject.theory_hours} weekly lectures",
                    subject.name,
                    subject.faculty,
                )
            )
        elif scheduled > subject.theory_hours:
            conflicts.append(
                Conflict.error(
                    f"{subject.name} ({subject.year}) exceeds its weekly lectures: "
                    f"{scheduled}/{subject.theory_hours}",
                    subject.name,
                    subject.faculty,
                )
            )
    return conflicts


def _adjacency_conflicts(slots: Sequence[ScheduledSlot]) -> list[Conflict]:
    conflicts: list[Conflict] = []
    grouped: dict[tuple[str, str, str], list[int]] = defaultdict(list)
    for slot in slots:
        if slot.type != "theory":
            continue
        index = lecture_band_index(slot.time)
        if index != -1:
            grouped[(slot.subject, slot.year, slot.day)].append(index)

    for (subject, year, day), indexes in grouped.items():
        ordered = sorted(indexes)
        if any(later - earlier == 1 for earlier, later in zip(ordered, ordered[1:])):
            conflicts.append(Conflict.error(f"Back-to-back lectures of {subject} on {day} ({year})", subject))
    return conflicts


def _lab_coverage_conflicts(slots: Sequence[ScheduledSlot], subjects: Sequence[Subject]) -> list[Conflict]:
    conflicts: list[Conflict] = []
    per_batch = Counter(
        (slot.subject_code or slot.subject, slot.year, slot.batch) for slot in slots if slot.type == "lab"
    )
    for subject in subjects:
        if subject.lab_blocks == 0:
            continue
        name = subject.lab_display_name
        counts = {batch: _count_for(per_batch, subject.code, name, subject.year, batch) for batch in BATCHES}
        if not any(counts.values()):
            continue
        for batch, scheduled in counts.items():
            if scheduled == 0:
                conflicts.append(
                    Conflict.error(f"Missing lab batch {batch} for {name} ({subject.year})", name, subject.faculty)
                )
            elif scheduled < subject.lab_blocks:
                conflicts.append(
                    Conflict.warning(
                        f"{name} ({subject.year}-{batch}) has {scheduled}/{subject.lab_blocks} lab sessions",
                        name,
                    )
                )
            elif scheduled > subject.lab_blocks:
                conflicts.append(
                    Conflict.error(
                        f"{name} ({subject.year}-{batch}) exceeds its lab sessions: "
                        f"{scheduled}/{subject.lab_blocks}",
                        name,
                    )
                )
    return conflicts


def _workload_conflicts(slots: Sequence[ScheduledSlot], catalog: Catalog) -> list[Conflict]:
    conflicts: list[Conflict] = []
    faculty = catalog.faculty_by_name()
    for name, day_hours in faculty_day_hours(slots).items():
        member = faculty.get(name)
        if member is None:
            continue
        for day, hours in day_hours.items():
            if hours > member.max_hours_per_day:
                conflicts.append(
                    Conflict.warning(
                        f"Faculty {name} teaches {hours} hours on {day} (max {member.max_hours_per_day})",
                        name,
                    )
                )
    return conflicts


def _room_conflicts(slots: Sequence[ScheduledSlot], catalog: Catalog) -> list[Conflict]:
    conflicts: list[Conflict] = []
    inventory = len(catalog.rooms)
    usage = Counter(slot.room for slot in slots)
    if inventory and len(usage) < inventory * ROOM_UTILIZATION_FLOOR:
        conflicts.append(
            Conflict.warning(f"Only {len(usage)} of {inventory} rooms are used this week")
        )
    for room, uses in usage.items():
        if uses > ROOM_WEEKLY_USE_LIMIT:
            conflicts.append(Conflict.warning(f"Room {room} is used {uses} times this week", room))
    return conflicts


def _double_booking_conflicts(slots: Sequence[ScheduledSlot], catalog: Catalog) -> list[Conflict]:
    report = ConflictService(slots, catalog.rooms).detect_conflicts()
    return [Conflict.error(detail.description, *detail.affected_slots) for detail in report.conflicts]


def validate_schedule(
    slots: Sequence[ScheduledSlot],
    subjects: Sequence[Subject],
    catalog: Catalog,
) -> list[Conflict]:
    """Consistency checks over a finished schedule. Never raises on bad schedules."""
    return [
        *_lecture_count_conflicts(slots, subjects),
        *_adjacency_conflicts(slots),
        *_lab_coverage_conflicts(slots, subjects),
        *_workload_conflicts(slots, catalog),
        *_room_conflicts(slots, catalog),
        *_double_booking_conflicts(slots, catalog),
    ]


def _percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return min(100, round(part / whole * 100))


def compute_statistics(
    slots: Sequence[ScheduledSlot],
    catalog: Catalog,
    conflicts: Sequence[Conflict],
    advisor_score: float = 0.0,
) -> GenerationStatistics:
    if advisor_score > 0:
        score = round(advisor_score)
    elif any(conflict.type == "error" for conflict in conflicts):
        score = SCORE_WITH_ERRORS
    else:
        score = SCORE_WITHOUT_ERRORS

    return GenerationStatistics(
        total_slots=len(slots),
        theory_slots=sum(1 for slot in slots if slot.type == "theory"),
        lab_slots=sum(1 for slot in slots if slot.type == "lab"),
        faculty_utilization=_percent(len({slot.faculty for slot in slots}), len(catalog.faculty)),
        room_utilization=_percent(len({slot.room for slot in slots}), len(catalog.rooms)),
        constraint_score=min(100, score),
        consistency_hash=consistency_hash(slots),
    )
