"""
Shared fixtures for registrar tests
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from registrar.core.issuer import AuthIssuer
from registrar.core.passwords import PasswordHasher
from registrar.core.subjects import StudentProfile, TokenManager
from registrar.enrollment.engine import EnrollmentEngine
from registrar.enrollment.models import Course
from registrar.storage.memory import MemoryStorage


class FakeClock:
    """Manually advanced clock"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def now():
    return datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def signing_key():
    return "test-signing-key-for-registrar-0123456789abcdef0123456789abcdef0123456789"


@pytest.fixture
def clock(now):
    return FakeClock(now)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=1000)


@pytest.fixture
def token_manager(signing_key):
    return TokenManager(signing_key)


@pytest.fixture
def auth_issuer(storage, token_manager, hasher, clock):
    return AuthIssuer(storage, token_manager, hasher, clock=clock)


@pytest.fixture
def courses(storage):
    """Seed a small catalogue: one capped course and one without a limit"""
    return {
        "algebra": storage.add_course(
            Course(id=1, code="MATH101", title="Algebra", capacity=2, lecturer_id=201)
        ),
        "history": storage.add_course(Course(id=2, code="HIST200", title="History")),
    }


@pytest.fixture
def students(storage):
    return [
        storage.add_student(StudentProfile(id=student_id, enrollment_date=date(2024, 1, 15)))
        for student_id in (101, 102, 103)
    ]


@pytest.fixture
def engine(storage, courses, students, clock):
    return EnrollmentEngine(storage, storage, storage, clock=clock)
