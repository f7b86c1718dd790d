import pytest
from fastapi.testclient import TestClient #fake http client that calls the FastAPI routes without a real server

from deptgrid.api.deps import get_advisor, get_advisory_cache
from deptgrid.main import app
from deptgrid.schemas.catalog import Catalog, Classroom, Faculty, Lab, Subject
from deptgrid.services.advisor import AdvisoryCache


def make_subject(name="Data Structures", code="DS", year="SE", theory_hours=3, lab_hours=0, faculty="Prof A", semester=3):
    return Subject(
        name=name,
        code=code,
        year=year,
        theory_hours=theory_hours,
        lab_hours=lab_hours,
        faculty=faculty,
        semester=semester,
    )


def make_faculty(name="Prof A", max_hours_per_day=6, preferred_slots=None):
    return Faculty(name=name, max_hours_per_day=max_hours_per_day, preferred_slots=preferred_slots or [])


def make_classroom(name="SE-101", year="SE"):
    return Classroom(name=name, assigned_year=year, capacity=70)


def make_lab(name="Lab 1", compatible_subjects=None, available_hours=None):
    return Lab(
        name=name,
        capacity=30,
        compatible_subjects=compatible_subjects or [],
        available_hours=available_hours or [],
    )


def make_catalog(subjects, faculty=None, classrooms=None, labs=None):
    if faculty is None:
        names = sorted({subject.faculty for subject in subjects})
        faculty = [make_faculty(name) for name in names]
    return Catalog(
        subjects=subjects,
        faculty=faculty,
        classrooms=[make_classroom()] if classrooms is None else classrooms,
        labs=labs or [],
    )


@pytest.fixture()
def catalog_factory():
    return make_catalog


@pytest.fixture()
def department_catalog():
    """Three lecture subjects, two lab subjects, three labs for SE semester 3."""
    subjects = [
        make_subject("Data Structures", "DS", theory_hours=3, lab_hours=2, faculty="Prof A"),
        make_subject("Discrete Mathematics", "DM", theory_hours=4, faculty="Prof B"),
        make_subject("Computer Graphics", "CG", theory_hours=3, lab_hours=2, faculty="Prof C"),
        make_subject("Digital Electronics", "DE", theory_hours=3, faculty="Prof D"),
    ]
    faculty = [make_faculty(name) for name in ("Prof A", "Prof B", "Prof C", "Prof D")]
    labs = [make_lab("Lab 1"), make_lab("Lab 2"), make_lab("Lab 3")]
    return make_catalog(subjects, faculty=faculty, classrooms=[make_classroom()], labs=labs)


@pytest.fixture() #test client
def client():
    cache = AdvisoryCache(max_entries=8, ttl_seconds=60)
    app.dependency_overrides[get_advisor] = lambda: None
    app.dependency_overrides[get_advisory_cache] = lambda: cache

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
