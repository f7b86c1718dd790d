from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from deptgrid.core.config import Settings
from deptgrid.schemas.advisor import AdvisorAnalysis
from deptgrid.schemas.catalog import Catalog, Classroom, CohortYear, Faculty, Lab, Subject
from deptgrid.schemas.constraints import TimetableConstraints
from deptgrid.schemas.timetable import Conflict, GenerationStatistics, ScheduledSlot


class SchedulerSettings(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    advisor_min_confidence: int = Field(default=70, ge=0, le=100)
    optimize_distribution: bool = True
    optimizer_max_iterations: int = Field(default=20, ge=0, le=500)

    @classmethod
    def from_settings(cls, settings: Settings) -> "SchedulerSettings":
        return cls(
            advisor_min_confidence=settings.advisor_min_confidence,
            optimize_distribution=settings.optimize_distribution,
            optimizer_max_iterations=settings.optimizer_max_iterations,
        )


class CatalogRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    subjects: list[Subject] = Field(default_factory=list)
    faculty: list[Faculty] = Field(default_factory=list)
    classrooms: list[Classroom] = Field(default_factory=list)
    labs: list[Lab] = Field(default_factory=list)
    constraints: TimetableConstraints = Field(default_factory=TimetableConstraints)

    def catalog(self) -> Catalog:
        return Catalog(
            subjects=self.subjects,
            faculty=self.faculty,
            classrooms=self.classrooms,
            labs=self.labs,
        )


class GenerateTimetableRequest(CatalogRequest):
    target_year: CohortYear
    target_semester: int = Field(ge=1, le=20)
    use_advisor: bool = True
    settings_override: SchedulerSettings | None = None


class GenerationResult(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    slots: list[ScheduledSlot] = Field(default_factory=list)
    conflicts: list[Conflict] = Field(default_factory=list)
    statistics: GenerationStatistics = Field(default_factory=GenerationStatistics)
    analysis: AdvisorAnalysis | None = None
    used_advisor: bool = False


class ValidateTimetableRequest(CatalogRequest):
    slots: list[ScheduledSlot]
