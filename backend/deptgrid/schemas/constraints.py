from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from deptgrid.schemas.catalog import BandSet, CohortYear


class TimetableConstraints(BaseModel):
    """Department-wide scheduling options.

    ``year_batch_type`` picks each cohort's band set. ``max_hours_per_day`` is
    the daily cap for faculty without a catalog record; a faculty record's own
    cap takes precedence. The remaining options are advisory: they are
    validated, echoed to the advisor and returned unchanged.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    max_hours_per_day: int = Field(default=6, ge=1, le=24)
    min_break_between_classes: int = Field(default=15, ge=0, le=240)
    max_consecutive_hours: int = Field(default=3, ge=1, le=24)
    prioritize_lab_afternoon: bool = True
    # Accepted but not wired: same-subject adjacency is always rejected.
    allow_back_to_back_theory: bool = False
    faculty_rest_slots: int = Field(default=1, ge=0, le=10)
    year_batch_type: dict[CohortYear, BandSet] | None = None
