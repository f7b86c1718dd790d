from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from deptgrid.schemas.catalog import Batch, CohortYear, SessionType

ConflictType = Literal["error", "warning", "info", "success"]
Severity = Literal["low", "medium", "high"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScheduledSlot(CamelModel):
    id: str = ""
    day: str
    time: str
    subject: str
    subject_code: str | None = None
    faculty: str
    room: str
    type: SessionType
    year: CohortYear
    batch: Batch | None = None
    duration: int = Field(default=1, ge=1, le=8)
    semester: int = Field(default=1, ge=1, le=20)
    is_fill_in: bool = False

    def canonical_key(self) -> tuple[str, ...]:
        return (
            self.day,
            self.time,
            self.subject,
            self.faculty,
            self.room,
            self.type,
            self.year,
            self.batch or "",
        )


class Conflict(CamelModel):
    type: ConflictType
    message: str
    severity: Severity
    affected_entities: list[str] = Field(default_factory=list)

    @classmethod
    def error(cls, message: str, *entities: str) -> "Conflict":
        return cls(type="error", message=message, severity="high", affected_entities=list(entities))

    @classmethod
    def warning(cls, message: str, *entities: str) -> "Conflict":
        return cls(type="warning", message=message, severity="medium", affected_entities=list(entities))


class GenerationStatistics(CamelModel):
    total_slots: int = 0
    theory_slots: int = 0
    lab_slots: int = 0
    faculty_utilization: int = Field(default=0, ge=0, le=100)
    room_utilization: int = Field(default=0, ge=0, le=100)
    constraint_score: int = Field(default=0, ge=0, le=100)
    consistency_hash: str = ""


class ValidationReport(CamelModel):
    is_valid: bool
    conflicts: list[Conflict] = Field(default_factory=list)
    score: float = 0.0
    suggestions: list[str] = Field(default_factory=list)
