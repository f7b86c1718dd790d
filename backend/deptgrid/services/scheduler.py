"""Greedy weekly timetable construction for one cohort year and semester.

One engine serves both the advisory and the plain path: the advisor is an
optional collaborator whose output only seeds placements (phase 0) and orders
candidates. Phases run strictly in order and never reopen an earlier phase:

0. advisor-recommended placements above the confidence threshold
1. concurrent lab placement, one sweep per (day, lab band)
2. lecture placement in the cohort's native lecture bands
3. fill-in of leftover lectures over every lecture band of the day
4. reporting of demand units that were never placed
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable, Sequence

from deptgrid.schemas.advisor import AdvisorAnalysis, AdvisorContext, AdvisorRecommendation
from deptgrid.schemas.catalog import Catalog, Classroom, Lab, Subject
from deptgrid.schemas.constraints import TimetableConstraints
from deptgrid.schemas.generator import GenerationResult, SchedulerSettings
from deptgrid.schemas.timetable import Conflict, GenerationStatistics, ScheduledSlot
from deptgrid.services.advisor import AdvisoryCache, ConstraintAdvisor, context_key
from deptgrid.services.demand_pool import DemandUnit, build_lab_pool, build_lecture_pool
from deptgrid.services.optimizer import redistribute_lectures
from deptgrid.services.rules import ConstraintSolver, RuleContext, default_constraint_solver
from deptgrid.services.schedule_book import ScheduleBook
from deptgrid.services.time_grid import (
    ALL_LECTURE_BANDS,
    DAYS,
    band_duration,
    band_set_for,
    contains,
    lab_bands_for,
    lecture_bands_for,
)
from deptgrid.services.validation import compute_statistics, consistency_hash, validate_schedule

logger = logging.getLogger(__name__)


def slot_id(year: str, batch: str | None, day: str, time: str, room: str) -> str:
    return f"{year}-{batch or 'ALL'}-{day[:3]}-{time}-{room}"


def lab_open_during(lab: Lab, band: str) -> bool:
    """Whether the lab's declared opening hours cover the band.

    A lab with no usable opening hours is open all day.
    """
    parsed_any = False
    for window in lab.available_hours:
        try:
            inside = contains(window, band)
        except ValueError:
            logger.warning("Ignoring malformed available hours %r for lab %s", window, lab.name)
            continue
        parsed_any = True
        if inside:
            return True
    return not parsed_any


def _empty_statistics() -> GenerationStatistics:
    return GenerationStatistics(consistency_hash=consistency_hash([]))


class _Run:
    """Mutable state of one construction pass."""

    def __init__(
        self,
        scheduler: "TimetableScheduler",
        year: str,
        semester: int,
        subjects: list[Subject],
        classroom: Classroom,
        analysis: AdvisorAnalysis | None,
    ) -> None:
        self.scheduler = scheduler
        self.year = year
        self.semester = semester
        self.subjects = subjects
        self.classroom = classroom
        self.analysis = analysis

        constraints = scheduler.constraints
        band_set = band_set_for(year, constraints.year_batch_type)
        self.lecture_bands = lecture_bands_for(band_set)
        self.lab_bands = lab_bands_for(band_set)

        self.lecture_pool = build_lecture_pool(subjects)
        self.lab_pool = build_lab_pool(subjects)
        context = RuleContext(subjects=subjects, faculty=scheduler.catalog.faculty, constraints=constraints)
        self.book = ScheduleBook(subjects, scheduler.solver, context)

    # -- helpers -------------------------------------------------------------

    def make_slot(self, unit: DemandUnit, day: str, time: str, room: str, *, fill_in: bool = False) -> ScheduledSlot:
        return ScheduledSlot(
            id=slot_id(unit.year, unit.batch, day, time, room),
            day=day,
            time=time,
            subject=unit.display_name,
            subject_code=unit.subject.code,
            faculty=unit.faculty,
            room=room,
            type="lab" if unit.is_lab else "theory",
            year=unit.year,
            batch=unit.batch,
            duration=band_duration(time),
            semester=unit.subject.semester,
            is_fill_in=fill_in,
        )

    def ranking(self, session_type: str) -> Callable[[DemandUnit], float] | None:
        if self.analysis is None or not self.analysis.recommended_slots:
            return None
        analysis = self.analysis
        return lambda unit: -analysis.confidence_for(unit.subject.name, session_type, unit.batch)

    def lab_slot_open_for(self, unit: DemandUnit, day: str, band: str) -> bool:
        book = self.book
        return (
            book.cohort_free(self.year, day, band, unit.batch)
            and book.faculty_free(unit.faculty, day, band)
            and not book.batch_has_lab_on(self.year, unit.batch, day)
            and not book.faculty_had_previous_lab(unit.faculty, day, band)
            and not book.batch_had_previous_lab(self.year, unit.batch, day, band)
        )

    # -- phase 0 -------------------------------------------------------------

    def _unit_for(self, recommendation: AdvisorRecommendation) -> DemandUnit | None:
        name = recommendation.subject

        def matches(unit: DemandUnit) -> bool:
            subject = unit.subject
            if name not in {subject.name, subject.code, unit.display_name}:
                return False
            if recommendation.faculty and recommendation.faculty != unit.faculty:
                return False
            return unit.batch == recommendation.batch

        pool = self.lab_pool if recommendation.type == "lab" else self.lecture_pool
        return pool.find(matches)

    def _recommended_slot(self, recommendation: AdvisorRecommendation) -> tuple[DemandUnit, ScheduledSlot] | None:
        if recommendation.day not in DAYS:
            return None
        unit = self._unit_for(recommendation)
        if unit is None:
            return None

        if recommendation.type == "lab":
            if recommendation.time not in self.lab_bands:
                return None
            lab = next((item for item in self.scheduler.catalog.labs if item.name == recommendation.room), None)
            if lab is None or not lab.hosts(unit.subject.code) or not lab_open_during(lab, recommendation.time):
                return None
            if not self.lab_slot_open_for(unit, recommendation.day, recommendation.time):
                return None
            room = lab.name
        else:
            if recommendation.time not in ALL_LECTURE_BANDS:
                return None
            rooms = {item.name for item in self.scheduler.catalog.classrooms_for(self.year)}
            room = recommendation.room or self.classroom.name
            if room not in rooms:
                return None

        return unit, self.make_slot(unit, recommendation.day, recommendation.time, room)

    def place_recommendations(self) -> int:
        if self.analysis is None:
            return 0
        threshold = self.scheduler.settings.advisor_min_confidence
        placed = 0
        for recommendation in self.analysis.recommended_slots:
            if recommendation.confidence < threshold:
                continue
            resolved = self._recommended_slot(recommendation)
            if resolved is None:
                logger.warning(
                    "Discarding advisor recommendation %s on %s %s: does not match the catalog",
                    recommendation.subject,
                    recommendation.day,
                    recommendation.time,
                )
                continue
            unit, slot = resolved
            if self.book.try_accept(slot):
                pool = self.lab_pool if unit.is_lab else self.lecture_pool
                pool.consume(unit)
                placed += 1
        return placed

    # -- phase 1 -------------------------------------------------------------

    def place_labs(self) -> None:
        labs = self.scheduler.catalog.labs
        key = self.ranking("lab")
        for day in DAYS:
            for band in self.lab_bands:
                if not self.lab_pool:
                    return
                rooms = [
                    lab for lab in labs if lab_open_during(lab, band) and self.book.room_free(lab.name, day, band)
                ]
                if not rooms:
                    continue
                candidates = [
                    unit
                    for unit in self.lab_pool.ordered(key)
                    if unit.year == self.year and self.lab_slot_open_for(unit, day, band)
                ]
                self._match_rooms(day, band, rooms, candidates)

    def _match_rooms(self, day: str, band: str, rooms: list[Lab], candidates: list[DemandUnit]) -> None:
        used_rooms: set[str] = set()
        committed_faculty: set[str] = set()
        committed_batches: set[str] = set()
        for unit in candidates:
            if len(used_rooms) == len(rooms):
                break
            if unit.faculty in committed_faculty or unit.batch in committed_batches:
                continue
            room = next(
                (lab for lab in rooms if lab.name not in used_rooms and lab.hosts(unit.subject.code)),
                None,
            )
            if room is None:
                continue
            if not self.book.try_accept(self.make_slot(unit, day, band, room.name)):
                continue
            self.lab_pool.consume(unit)
            used_rooms.add(room.name)
            committed_faculty.add(unit.faculty)
            committed_batches.add(unit.batch)

    # -- phases 2 and 3 ------------------------------------------------------

    def _fill_band(self, day: str, band: str, key, *, fill_in: bool) -> None:
        book = self.book
        if not book.room_free(self.classroom.name, day, band) or not book.cohort_free(self.year, day, band):
            return
        for unit in self.lecture_pool.ordered(key):
            if not book.faculty_free(unit.faculty, day, band):
                continue
            slot = self.make_slot(unit, day, band, self.classroom.name, fill_in=fill_in)
            if book.creates_adjacent_repeat(slot):
                continue
            if book.try_accept(slot):
                self.lecture_pool.consume(unit)
                return

    def place_lectures(self, bands: Sequence[str], *, fill_in: bool = False) -> None:
        key = self.ranking("theory")
        for day in DAYS:
            for band in bands:
                if not self.lecture_pool:
                    return
                self._fill_band(day, band, key, fill_in=fill_in)

    # -- phase 4 -------------------------------------------------------------

    def unscheduled_conflicts(self) -> list[Conflict]:
        conflicts = [
            Conflict.error(
                f"Unscheduled Lab: {unit.display_name} ({unit.year}-{unit.batch})",
                unit.display_name,
                unit.faculty,
            )
            for unit in self.lab_pool
        ]
        leftover = Counter((unit.subject.name, unit.year, unit.faculty) for unit in self.lecture_pool)
        for (name, year, faculty), count in leftover.items():
            conflicts.append(Conflict.warning(f"Unscheduled Lectures: {count} for {name} ({year})", name, faculty))
        return conflicts

    def execute(self) -> GenerationResult:
        seeded = self.place_recommendations()
        self.place_labs()
        self.place_lectures(self.lecture_bands)
        self.place_lectures(ALL_LECTURE_BANDS, fill_in=True)
        conflicts = self.unscheduled_conflicts()
        logger.debug(
            "Construction for %s placed %d slots (%d advisor-seeded); %d lectures and %d labs left over",
            self.year,
            len(self.book),
            seeded,
            len(self.lecture_pool),
            len(self.lab_pool),
        )

        settings = self.scheduler.settings
        if settings.optimize_distribution:
            redistribute_lectures(self.book, settings.optimizer_max_iterations)

        slots = list(self.book.slots)
        catalog = self.scheduler.catalog
        conflicts.extend(validate_schedule(slots, self.subjects, catalog))
        advisor_score = 0.0
        if self.analysis is not None:
            conflicts.extend(self.analysis.conflicts)
            advisor_score = self.analysis.constraint_score
        statistics = compute_statistics(slots, catalog, conflicts, advisor_score)
        return GenerationResult(
            slots=slots,
            conflicts=conflicts,
            statistics=statistics,
            analysis=self.analysis,
            used_advisor=self.analysis is not None,
        )


class TimetableScheduler:
    """Builds a weekly timetable for one cohort year from a catalog.

    ``generate`` never raises: missing inputs, advisor failures and internal
    errors all come back as conflicts on the result.
    """

    def __init__(
        self,
        catalog: Catalog,
        constraints: TimetableConstraints | None = None,
        settings: SchedulerSettings | None = None,
        advisor: ConstraintAdvisor | None = None,
        cache: AdvisoryCache | None = None,
        solver: ConstraintSolver | None = None,
    ) -> None:
        self.catalog = catalog
        self.constraints = constraints or TimetableConstraints()
        self.settings = settings or SchedulerSettings()
        self.advisor = advisor
        self.cache = cache
        self.solver = solver or default_constraint_solver

    def _missing_inputs(self, year: str, semester: int, subjects: list[Subject], classrooms: list[Classroom]) -> list[Conflict]:
        conflicts = []
        if not subjects:
            conflicts.append(Conflict.error(f"No subjects found for {year} semester {semester}", year))
        if not classrooms:
            conflicts.append(Conflict.error(f"No classrooms configured for {year}", year))
        return conflicts

    def _consult_advisor(self, year: str, semester: int) -> AdvisorAnalysis:
        context = AdvisorContext(
            subjects=self.catalog.subjects,
            faculty=self.catalog.faculty,
            classrooms=self.catalog.classrooms,
            labs=self.catalog.labs,
            constraints=self.constraints,
            target_year=year,
            target_semester=semester,
        )
        key = context_key(context)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.debug("Using cached advisor analysis %s", key[:12])
                return cached
        analysis = self.advisor.analyze(context)
        if self.cache is not None:
            self.cache.put(key, analysis)
        return analysis

    def _build(
        self,
        year: str,
        semester: int,
        subjects: list[Subject],
        classrooms: list[Classroom],
        analysis: AdvisorAnalysis | None,
    ) -> GenerationResult:
        # the first classroom assigned to the cohort hosts every lecture
        return _Run(self, year, semester, subjects, classrooms[0], analysis).execute()

    def generate(self, target_year: str, target_semester: int) -> GenerationResult:
        subjects = self.catalog.subjects_in_scope(target_year, target_semester)
        classrooms = self.catalog.classrooms_for(target_year)
        logger.info(
            "Generating timetable for %s semester %d: %d subjects, %d classrooms, %d labs",
            target_year,
            target_semester,
            len(subjects),
            len(classrooms),
            len(self.catalog.labs),
        )

        missing = self._missing_inputs(target_year, target_semester, subjects, classrooms)
        if missing:
            return GenerationResult(conflicts=missing, statistics=_empty_statistics())

        result: GenerationResult | None = None
        if self.advisor is not None:
            try:
                analysis = self._consult_advisor(target_year, target_semester)
                result = self._build(target_year, target_semester, subjects, classrooms, analysis)
            except Exception:
                logger.exception(
                    "Advisory generation failed for %s semester %d; restarting without advisor",
                    target_year,
                    target_semester,
                )

        if result is None:
            try:
                result = self._build(target_year, target_semester, subjects, classrooms, None)
            except Exception as exc:
                logger.exception("Timetable generation failed for %s semester %d", target_year, target_semester)
                return GenerationResult(
                    conflicts=[Conflict.error(f"Timetable generation failed: {exc}", target_year)],
                    statistics=_empty_statistics(),
                )

        logger.info(
            "Generated %d slots with %d conflicts for %s semester %d (advisor: %s)",
            len(result.slots),
            len(result.conflicts),
            target_year,
            target_semester,
            result.used_advisor,
        )
        return result
