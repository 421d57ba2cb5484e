"""
Enrollment Models
Value types for enrollments, the courses they reference and their statistics
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict

from ..core.errors import InvalidGrade

MIN_GRADE = Decimal("0.0")
MAX_GRADE = Decimal("10.0")
GRADE_STEP = Decimal("0.1")


class EnrollmentStatus(str, Enum):
    ACTIVE = "Active"
    DROPPED = "Dropped"
    COMPLETED = "Completed"


def normalize_grade(value) -> Decimal:
    """Parse a grade, check it lies in [0.0, 10.0] and keep one fractional digit"""
    try:
        grade = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise InvalidGrade(f"Grade {value!r} is not a number")
    if not grade.is_finite() or grade < MIN_GRADE or grade > MAX_GRADE:
        raise InvalidGrade()
    return grade.quantize(GRADE_STEP, rounding=ROUND_HALF_UP)


class Course(BaseModel):
    """Course reference; only identity and capacity matter here"""
    model_config = ConfigDict(frozen=True)

    id: int
    code: str
    title: Optional[str] = None
    capacity: Optional[int] = None
    lecturer_id: Optional[int] = None


class Enrollment(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    student_id: int
    course_id: int
    enrolled_at: datetime
    status: EnrollmentStatus = EnrollmentStatus.ACTIVE
    grade: Optional[Decimal] = None
    last_updated: datetime

    @property
    def is_active(self) -> bool:
        return self.status == EnrollmentStatus.ACTIVE

    def dropped(self, now: datetime) -> "Enrollment":
        return self.model_copy(update={"status": EnrollmentStatus.DROPPED, "last_updated": now})

    def reactivated(self, now: datetime) -> "Enrollment":
        return self.model_copy(update={
            "status": EnrollmentStatus.ACTIVE,
            "grade": None,
            "enrolled_at": now,
            "last_updated": now,
        })

    def updated(
        self,
        now: datetime,
        status: Optional[EnrollmentStatus] = None,
        grade: Optional[Decimal] = None,
    ) -> "Enrollment":
        changes = {"last_updated": now}
        if status is not None:
            changes["status"] = status
        if grade is not None:
            changes["grade"] = grade
        return self.model_copy(update=changes)


class EnrollmentStats(BaseModel):
    total: int = 0
    active: int = 0
    completed: int = 0
    dropped: int = 0


class EnrollmentTrends(BaseModel):
    daily_counts: Dict[date, int] = {}
    total: int = 0
    average_per_day: float = 0.0


class CourseEnrollmentStats(BaseModel):
    course_id: int
    course_code: str
    title: str = ""
    enrollment_count: int
    capacity: Optional[int] = None
    enrollment_rate: float = 0.0
