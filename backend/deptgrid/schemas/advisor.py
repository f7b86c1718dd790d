from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from deptgrid.schemas.catalog import Batch, Classroom, CohortYear, Faculty, Lab, SessionType, Subject
from deptgrid.schemas.constraints import TimetableConstraints
from deptgrid.schemas.timetable import Conflict, ScheduledSlot


class AdvisorModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _clamp_score(value: Any) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(100.0, number))


class AdvisorRecommendation(AdvisorModel):
    subject: str
    faculty: str = ""
    day: str
    time: str
    room: str = ""
    type: SessionType = "theory"
    batch: Batch | None = None
    confidence: float = 0.0
    reasoning: str = ""

    @model_validator(mode="before")
    @classmethod
    def coerce_loose_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = dict(data)
        for key in ("subject", "faculty", "day", "time", "room", "reasoning"):
            if cleaned.get(key) is not None:
                cleaned[key] = str(cleaned[key]).strip()
        if cleaned.get("type") not in {"theory", "lab"}:
            cleaned["type"] = "theory"
        if cleaned.get("batch") not in {"A", "B", "C"}:
            cleaned["batch"] = None
        return cleaned

    @field_validator("confidence", mode="before")
    @classmethod
    def clamp_confidence(cls, value: Any) -> float:
        return _clamp_score(value)


class AdvisorConflict(Conflict):
    suggested_fix: str | None = None

    @model_validator(mode="before")
    @classmethod
    def coerce_loose_fields(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        cleaned = dict(data)
        if cleaned.get("type") not in {"error", "warning", "info"}:
            cleaned["type"] = "info"
        if cleaned.get("severity") not in {"low", "medium", "high"}:
            cleaned["severity"] = "medium"
        cleaned["message"] = str(cleaned.get("message") or "")
        entities = cleaned.get("affectedEntities", cleaned.get("affected_entities"))
        cleaned.pop("affected_entities", None)
        cleaned["affectedEntities"] = [str(item) for item in entities] if isinstance(entities, list) else []
        return cleaned


class AdvisorAnalysis(AdvisorModel):
    is_valid: bool = False
    conflicts: list[AdvisorConflict] = Field(default_factory=list)
    optimization_suggestions: list[str] = Field(default_factory=list)
    constraint_score: float = 0.0
    recommended_slots: list[AdvisorRecommendation] = Field(default_factory=list)

    @field_validator("constraint_score", mode="before")
    @classmethod
    def clamp_constraint_score(cls, value: Any) -> float:
        return _clamp_score(value)

    @field_validator("optimization_suggestions", mode="before")
    @classmethod
    def stringify_suggestions(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(item) for item in value]

    def confidence_for(self, subject: str, session_type: str, batch: str | None = None) -> float:
        best = 0.0
        for item in self.recommended_slots:
            if item.type != session_type:
                continue
            if item.subject != subject and item.subject != f"{subject} Lab":
                continue
            if session_type == "lab" and item.batch != batch:
                continue
            best = max(best, item.confidence)
        return best


class AdvisorContext(AdvisorModel):
    subjects: list[Subject]
    faculty: list[Faculty]
    classrooms: list[Classroom]
    labs: list[Lab]
    constraints: TimetableConstraints
    existing_slots: list[ScheduledSlot] = Field(default_factory=list)
    target_year: CohortYear
    target_semester: int
