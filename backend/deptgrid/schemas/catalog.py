from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

CohortYear = Literal["SE", "TE", "BE"]
Batch = Literal["A", "B", "C"]
BandSet = Literal["Morning", "Afternoon"]
SessionType = Literal["theory", "lab"]

COHORT_YEARS: tuple[str, ...] = ("SE", "TE", "BE")
BATCHES: tuple[str, ...] = ("A", "B", "C")


class CatalogModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Subject(CatalogModel):
    name: str = Field(min_length=1, max_length=200)
    code: str = Field(min_length=1, max_length=50)
    year: CohortYear
    theory_hours: int = Field(default=0, ge=0, le=40)
    lab_hours: int = Field(default=0, ge=0, le=40)
    faculty: str = Field(min_length=1, max_length=200)
    semester: int = Field(ge=1, le=20)

    @property
    def lab_blocks(self) -> int:
        # every 2 lab hours make one block; odd hours round up
        return -(-self.lab_hours // 2)

    @property
    def lab_display_name(self) -> str:
        return f"{self.name} Lab"


class Faculty(CatalogModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(default=None, max_length=30)
    department: str | None = Field(default=None, max_length=200)
    subjects: list[str] = Field(default_factory=list)
    max_hours_per_day: int = Field(default=4, ge=1, le=24)
    preferred_slots: list[str] = Field(default_factory=list)

    @field_validator("preferred_slots")
    @classmethod
    def strip_preferred_slots(cls, value: list[str]) -> list[str]:
        return [item.strip() for item in value if item.strip()]


class RoomBase(CatalogModel):
    name: str = Field(min_length=1, max_length=100)
    capacity: int = Field(default=60, ge=1, le=1000)
    floor: int = 0


class Classroom(RoomBase):
    kind: Literal["classroom"] = "classroom"
    time_slot: str | None = Field(default=None, max_length=50)
    assigned_year: CohortYear
    amenities: list[str] = Field(default_factory=list)


class Lab(RoomBase):
    kind: Literal["lab"] = "lab"
    lab_type: str | None = Field(default=None, alias="type", max_length=100)
    equipment: list[str] = Field(default_factory=list)
    available_hours: list[str] = Field(default_factory=list)
    compatible_subjects: list[str] = Field(default_factory=list)

    def hosts(self, subject_code: str) -> bool:
        if not self.compatible_subjects:
            return True
        return subject_code in self.compatible_subjects


Room = Annotated[Union[Classroom, Lab], Field(discriminator="kind")]


class Catalog(CatalogModel):
    subjects: list[Subject] = Field(default_factory=list)
    faculty: list[Faculty] = Field(default_factory=list)
    classrooms: list[Classroom] = Field(default_factory=list)
    labs: list[Lab] = Field(default_factory=list)

    @property
    def rooms(self) -> list[Classroom | Lab]:
        return [*self.classrooms, *self.labs]

    def subjects_in_scope(self, year: str, semester: int) -> list[Subject]:
        return [item for item in self.subjects if item.year == year and item.semester == semester]

    def classrooms_for(self, year: str) -> list[Classroom]:
        return [item for item in self.classrooms if item.assigned_year == year]

    def faculty_by_name(self) -> dict[str, Faculty]:
        return {item.name: item for item in self.faculty}
