import logging

from fastapi import APIRouter, Depends

from deptgrid.api.deps import get_advisor, get_advisory_cache
from deptgrid.core.config import Settings, get_settings
from deptgrid.core.exceptions import SchedulerError
from deptgrid.schemas.generator import (
    GenerateTimetableRequest,
    GenerationResult,
    SchedulerSettings,
    ValidateTimetableRequest,
)
from deptgrid.schemas.timetable import ValidationReport
from deptgrid.services.advisor import AdvisoryCache, ConstraintAdvisor
from deptgrid.services.rules import RuleContext, default_constraint_solver
from deptgrid.services.scheduler import TimetableScheduler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/generate", response_model=GenerationResult)
def generate_timetable(
    payload: GenerateTimetableRequest,
    settings: Settings = Depends(get_settings),
    advisor: ConstraintAdvisor | None = Depends(get_advisor),
    cache: AdvisoryCache = Depends(get_advisory_cache),
) -> GenerationResult:
    scheduler_settings = payload.settings_override or SchedulerSettings.from_settings(settings)
    scheduler = TimetableScheduler(
        payload.catalog(),
        constraints=payload.constraints,
        settings=scheduler_settings,
        advisor=advisor if payload.use_advisor else None,
        cache=cache,
    )
    return scheduler.generate(payload.target_year, payload.target_semester)


@router.post("/validate", response_model=ValidationReport)
def validate_timetable(payload: ValidateTimetableRequest) -> ValidationReport:
    if not payload.slots:
        raise SchedulerError("No slots to validate", details={"slots": 0})
    context = RuleContext(subjects=payload.subjects, faculty=payload.faculty, constraints=payload.constraints)
    report = default_constraint_solver.validate_timetable(payload.slots, context)
    report.suggestions = default_constraint_solver.optimization_suggestions(payload.slots, context)
    logger.info(
        "Validated %d slots: valid=%s, %d conflicts, score %.0f",
        len(payload.slots),
        report.is_valid,
        len(report.conflicts),
        report.score,
    )
    return report
