from conftest import make_faculty, make_subject

from deptgrid.schemas.timetable import ScheduledSlot
from deptgrid.services.optimizer import redistribute_lectures
from deptgrid.services.rules import ConstraintSolver, RuleContext
from deptgrid.services.schedule_book import ScheduleBook


def lecture(subject, faculty, day, time, code=None, year="SE", room="SE-101"):
    return ScheduledSlot(
        day=day,
        time=time,
        subject=subject,
        subject_code=code or subject[:2].upper(),
        faculty=faculty,
        room=room,
        type="theory",
        year=year,
    )


def make_book(*slots):
    subjects = [
        make_subject("Data Structures", "DS", theory_hours=3, faculty="Prof A"),
        make_subject("Discrete Mathematics", "DM", theory_hours=3, faculty="Prof B"),
        make_subject("Compilers", "CO", year="TE", theory_hours=3, faculty="Prof B"),
    ]
    faculty = [make_faculty("Prof A"), make_faculty("Prof B")]
    book = ScheduleBook(subjects, ConstraintSolver(), RuleContext(subjects=subjects, faculty=faculty))
    for slot in slots:
        assert book.try_accept(slot)
    return book


def test_swap_spreads_same_day_repeat():
    book = make_book(
        lecture("Data Structures", "Prof A", "Monday", "08:10-09:10", "DS"),
        lecture("Data Structures", "Prof A", "Monday", "10:25-11:20", "DS"),
        lecture("Discrete Mathematics", "Prof B", "Tuesday", "08:10-09:10", "DM"),
    )

    assert redistribute_lectures(book) == 1

    placed = {(slot.day, slot.time): (slot.subject, slot.faculty, slot.subject_code) for slot in book.slots}
    assert placed == {
        ("Monday", "08:10-09:10"): ("Data Structures", "Prof A", "DS"),
        ("Monday", "10:25-11:20"): ("Discrete Mathematics", "Prof B", "DM"),
        ("Tuesday", "08:10-09:10"): ("Data Structures", "Prof A", "DS"),
    }
    # rooms and positions never move
    assert {slot.room for slot in book.slots} == {"SE-101"}


def test_swap_blocked_when_faculty_busy_elsewhere():
    book = make_book(
        lecture("Data Structures", "Prof A", "Monday", "08:10-09:10", "DS"),
        lecture("Data Structures", "Prof A", "Monday", "10:25-11:20", "DS"),
        lecture("Discrete Mathematics", "Prof B", "Tuesday", "08:10-09:10", "DM"),
        lecture("Compilers", "Prof B", "Monday", "10:25-11:20", "CO", year="TE", room="TE-201"),
    )

    assert redistribute_lectures(book) == 0
    assert [slot.subject for slot in book.slots if slot.day == "Monday" and slot.year == "SE"] == [
        "Data Structures",
        "Data Structures",
    ]


def test_swap_skipped_when_target_day_already_has_subject():
    book = make_book(
        lecture("Data Structures", "Prof A", "Monday", "08:10-09:10", "DS"),
        lecture("Data Structures", "Prof A", "Monday", "10:25-11:20", "DS"),
        lecture("Data Structures", "Prof A", "Tuesday", "08:10-09:10", "DS"),
    )

    assert redistribute_lectures(book) == 0


def test_zero_iterations_leaves_schedule_untouched():
    book = make_book(
        lecture("Data Structures", "Prof A", "Monday", "08:10-09:10", "DS"),
        lecture("Data Structures", "Prof A", "Monday", "10:25-11:20", "DS"),
        lecture("Discrete Mathematics", "Prof B", "Tuesday", "08:10-09:10", "DM"),
    )

    assert redistribute_lectures(book, max_iterations=0) == 0
    assert book.slots[1].subject == "Data Structures"
