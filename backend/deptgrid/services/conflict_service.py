from collections import defaultdict
from typing import Dict, Iterable, List, Sequence

from deptgrid.schemas.catalog import Room
from deptgrid.schemas.conflict import ConflictDetail, ConflictReport, ResolutionAction
from deptgrid.schemas.timetable import ScheduledSlot
from deptgrid.services.time_grid import overlap


class ConflictService:
    """Pairwise double-booking detector for an already built schedule."""

    def __init__(self, slots: Sequence[ScheduledSlot], rooms: Iterable[Room] = ()):
        self.slots: List[ScheduledSlot] = list(slots)
        self.room_map: Dict[str, Room] = {room.name: room for room in rooms}

    def _slot_id(self, index: int) -> str:
        return self.slots[index].id or f"slot-{index}"

    def detect_conflicts(self) -> ConflictReport:
        conflicts: List[ConflictDetail] = []

        # Bucket by day; pairs on different days never clash
        indexes_by_day: Dict[str, List[int]] = defaultdict(list)
        for index, slot in enumerate(self.slots):
            indexes_by_day[slot.day].append(index)

        for day, day_indexes in indexes_by_day.items():
            n = len(day_indexes)
            for i in range(n):
                first_index = day_indexes[i]
                s1 = self.slots[first_index]
                id1 = self._slot_id(first_index)

                room = self.room_map.get(s1.room)
                if room is not None and s1.type == "lab" and room.kind != "lab":
                    conflicts.append(ConflictDetail(
                        id=f"type-{id1}",
                        conflict_type="room_type",
                        description=f"Lab session {s1.subject} in non-lab room {room.name}",
                        severity="hard",
                        affected_slots=[id1],
                    ))

                for j in range(i + 1, n):
                    second_index = day_indexes[j]
                    s2 = self.slots[second_index]
                    if not overlap(s1.time, s2.time):
                        continue
                    id2 = self._slot_id(second_index)

                    if s1.room == s2.room:
                        conflicts.append(ConflictDetail(
                            id=f"room-{id1}-{id2}",
                            conflict_type="room_conflict",
                            description=f"Room overlap in {s1.room} on {day}: {s1.subject} and {s2.subject}",
                            severity="hard",
                            affected_slots=[id1, id2],
                        ))
                    if s1.faculty == s2.faculty:
                        conflicts.append(ConflictDetail(
                            id=f"fac-{id1}-{id2}",
                            conflict_type="faculty_conflict",
                            description=f"Faculty overlap for {s1.faculty} on {day}: {s1.subject} and {s2.subject}",
                            severity="hard",
                            affected_slots=[id1, id2],
                        ))
                    if s1.year == s2.year:
                        # Parallel batches of one cohort may overlap
                        if s1.batch and s2.batch and s1.batch != s2.batch:
                            continue
                        conflicts.append(ConflictDetail(
                            id=f"coh-{id1}-{id2}",
                            conflict_type="cohort_conflict",
                            description=f"Cohort {s1.year} overlap on {day}: {s1.subject} and {s2.subject}",
                            severity="hard",
                            affected_slots=[id1, id2],
                        ))

        return ConflictReport(conflicts=conflicts, suggested_resolutions=[])

    def generate_resolutions(self, conflict: ConflictDetail) -> List[ResolutionAction]:
        resolutions = []
        if conflict.conflict_type in ("room_conflict", "room_type"):
            resolutions.append(ResolutionAction(
                action_type="change_room",
                description="Find a free room of the right kind",
                target_slot_id=conflict.affected_slots[-1],
            ))

        if conflict.conflict_type in ("faculty_conflict", "cohort_conflict"):
            resolutions.append(ResolutionAction(
                action_type="move_slot",
                description="Move to a different time slot",
                target_slot_id=conflict.affected_slots[-1],
            ))

        return resolutions
