from pydantic import BaseModel, Field
from typing import Literal, List

from deptgrid.schemas.catalog import Classroom, Lab
from deptgrid.schemas.timetable import ScheduledSlot


class ConflictDetail(BaseModel):
    id: str
    conflict_type: Literal[
        "room_conflict",
        "faculty_conflict",
        "cohort_conflict",
        "room_type",
    ]
    description: str
    severity: Literal["hard", "soft"]
    affected_slots: List[str]  # slot ids, or positional ids for slots posted without one


class ResolutionAction(BaseModel):
    action_type: Literal["move_slot", "change_room"]
    description: str
    target_slot_id: str
    parameters: dict = Field(default_factory=dict)


class ConflictReport(BaseModel):
    conflicts: List[ConflictDetail]
    suggested_resolutions: List[ResolutionAction]


class DetectConflictsRequest(BaseModel):
    slots: List[ScheduledSlot]
    classrooms: List[Classroom] = Field(default_factory=list)
    labs: List[Lab] = Field(default_factory=list)
