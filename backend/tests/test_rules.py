import pytest

from conftest import make_faculty, make_subject

from deptgrid.core.exceptions import SchedulerError
from deptgrid.schemas.constraints import TimetableConstraints
from deptgrid.schemas.timetable import ScheduledSlot
from deptgrid.services.rules import ConstraintRule, ConstraintSolver, RuleContext, batches_clash


def slot(**overrides):
    values = {
        "day": "Monday",
        "time": "08:10-09:10",
        "subject": "Data Structures",
        "faculty": "Prof A",
        "room": "SE-101",
        "type": "theory",
        "year": "SE",
    }
    values.update(overrides)
    return ScheduledSlot(**values)


@pytest.fixture
def context():
    return RuleContext(
        subjects=[make_subject()],
        faculty=[make_faculty("Prof A", max_hours_per_day=2), make_faculty("Prof B", preferred_slots=["Morning"])],
    )


def test_default_rules_are_registered_in_priority_order():
    solver = ConstraintSolver()
    assert [rule.id for rule in solver.rules] == [
        "no-faculty-conflict",
        "no-room-conflict",
        "no-student-conflict",
        "faculty-max-hours",
        "no-back-to-back-labs",
        "lab-afternoon-preference",
        "faculty-preferred-slots",
    ]
    assert [rule.kind for rule in solver.hard_rules] == ["hard", "hard", "hard"]


def test_hard_violations_detect_each_double_booking(context):
    solver = ConstraintSolver()
    accepted = [slot()]

    faculty_clash = slot(room="SE-102", year="TE")
    room_clash = slot(faculty="Prof B", year="TE")
    cohort_clash = slot(faculty="Prof B", room="SE-102")

    assert [rule.id for rule in solver.hard_violations(faculty_clash, accepted, context)] == ["no-faculty-conflict"]
    assert [rule.id for rule in solver.hard_violations(room_clash, accepted, context)] == ["no-room-conflict"]
    assert [rule.id for rule in solver.hard_violations(cohort_clash, accepted, context)] == ["no-student-conflict"]


def test_parallel_batches_do_not_clash_but_whole_cohort_does(context):
    solver = ConstraintSolver()
    lab_a = slot(type="lab", time="13:05-14:55", batch="A", room="Lab 1", duration=2)
    lab_b = slot(type="lab", time="13:05-14:55", batch="B", room="Lab 2", faculty="Prof B", duration=2)
    lecture = slot(time="13:05-14:00", faculty="Prof C", room="SE-101")

    assert solver.hard_violations(lab_b, [lab_a], context) == []
    assert [rule.id for rule in solver.hard_violations(lecture, [lab_a], context)] == ["no-student-conflict"]
    assert batches_clash(None, "A") is True
    assert batches_clash("A", "B") is False


def test_touching_slots_are_accepted(context):
    solver = ConstraintSolver()
    assert solver.hard_violations(slot(time="09:10-10:10"), [slot()], context) == []


def test_validate_timetable_scores_soft_rules(context):
    solver = ConstraintSolver()
    slots = [
        slot(time="08:10-09:10"),
        slot(time="10:25-11:20"),
        slot(time="13:05-14:00"),
    ]
    report = solver.validate_timetable(slots, context)

    assert report.is_valid is True
    # Prof A is capped at 2 hours a day, so every slot fails the daily cap
    cap_warnings = [c for c in report.conflicts if "exceeds preferred daily hours" in c.message]
    assert len(cap_warnings) == 3
    assert all(c.type == "warning" and c.severity == "medium" for c in cap_warnings)
    # per slot: +70 back-to-back, +60 afternoon (theory), +50 preference, -80 cap
    assert report.score == pytest.approx(3 * (70 + 60 + 50 - 80))


def test_validate_timetable_flags_hard_violations(context):
    solver = ConstraintSolver()
    report = solver.validate_timetable([slot(), slot(room="SE-102", year="TE")], context)
    assert report.is_valid is False
    errors = [c for c in report.conflicts if c.type == "error"]
    assert len(errors) == 2
    assert errors[0].severity == "high"
    assert "Prof A" in errors[0].message


def test_soft_lab_and_preference_rules(context):
    solver = ConstraintSolver()
    morning_lab = slot(type="lab", time="08:10-10:10", batch="A", room="Lab 1", faculty="Prof B", duration=2)
    afternoon_lecture = slot(time="14:00-14:55", faculty="Prof B", room="SE-102", year="TE")
    report = solver.validate_timetable([morning_lab, afternoon_lecture], context)
    messages = [c.message for c in report.conflicts]
    assert "Lab session Data Structures scheduled in morning hours" in messages
    assert "Faculty Prof B assigned outside preferred time slots" in messages


def test_back_to_back_labs_for_one_faculty(context):
    solver = ConstraintSolver()
    first = slot(type="lab", time="10:25-12:15", batch="A", room="Lab 1", faculty="Prof C", duration=2)
    second = slot(type="lab", time="13:05-14:55", batch="B", room="Lab 2", faculty="Prof C", duration=2)
    report = solver.validate_timetable([first, second], context)
    back_to_back = [c for c in report.conflicts if "back-to-back lab sessions" in c.message]
    assert len(back_to_back) == 2


def test_optimization_suggestions():
    solver = ConstraintSolver()
    context = RuleContext()
    slots = [slot(time=band, room="SE-101") for band in ("08:10-09:10", "10:25-11:20", "13:05-14:00", "15:05-16:00")]
    slots.append(slot(day="Tuesday", time="08:10-09:10"))
    slots.append(slot(day="Tuesday", time="13:05-14:55", type="lab", batch="A", room="Lab 1", faculty="Prof B", duration=2))

    suggestions = solver.optimization_suggestions(slots, context)
    assert "Consider redistributing Prof A's workload - varies from 1 to 4 hours per day" in suggestions
    assert not any("Prof B" in item for item in suggestions)
    assert any("Lab utilization is below optimal" in item for item in suggestions)


def test_add_and_remove_rules():
    solver = ConstraintSolver()
    no_saturday = ConstraintRule(
        id="no-saturday",
        name="No Saturday Classes",
        kind="hard",
        weight=100,
        predicate=lambda candidate, accepted, context: candidate.day != "Saturday",
        message=lambda candidate: f"{candidate.subject} is on Saturday",
    )
    solver.add_rule(no_saturday)
    assert [rule.id for rule in solver.hard_violations(slot(day="Saturday"), [], RuleContext())] == ["no-saturday"]

    with pytest.raises(SchedulerError):
        solver.add_rule(no_saturday)

    solver.remove_rule("no-saturday")
    assert solver.hard_violations(slot(day="Saturday"), [], RuleContext()) == []

    with pytest.raises(SchedulerError) as excinfo:
        solver.remove_rule("no-saturday")
    assert excinfo.value.status_code == 400


def test_department_daily_cap_applies_to_faculty_without_record():
    solver = ConstraintSolver()
    context = RuleContext(constraints=TimetableConstraints(max_hours_per_day=2))
    slots = [slot(faculty="Prof Z", time=band) for band in ("08:10-09:10", "10:25-11:20", "13:05-14:00")]

    report = solver.validate_timetable(slots, context)
    cap_warnings = [c for c in report.conflicts if c.message == "Faculty Prof Z exceeds preferred daily hours on Monday"]
    assert len(cap_warnings) == 3

    # a faculty record's own cap wins over the department default
    recorded = RuleContext(
        faculty=[make_faculty("Prof Z", max_hours_per_day=4)],
        constraints=TimetableConstraints(max_hours_per_day=2),
    )
    report = solver.validate_timetable(slots, recorded)
    assert not [c for c in report.conflicts if "exceeds preferred daily hours" in c.message]
