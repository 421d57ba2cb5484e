"""
Enrollment Engine
Enforces enrollment rules and derives enrollment statistics
"""

import asyncio
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Dict, List, Optional

import structlog

from ..core.errors import AlreadyEnrolled, CapacityExceeded, InvalidTransition, NotFound
from ..storage.base import CourseStore, EnrollmentStore, StudentStore
from .models import (
    Course,
    CourseEnrollmentStats,
    Enrollment,
    EnrollmentStats,
    EnrollmentStatus,
    EnrollmentTrends,
    normalize_grade,
)

logger = structlog.get_logger()


class EnrollmentEngine:
    """Enrollment state machine: Active -> Dropped | Completed, grades on the way"""

    def __init__(
        self,
        enrollments: EnrollmentStore,
        courses: CourseStore,
        students: StudentStore,
        block_reenrollment_after_drop: bool = True,
        tz=timezone.utc,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.enrollments = enrollments
        self.courses = courses
        self.students = students
        self.block_reenrollment_after_drop = block_reenrollment_after_drop
        self.tz = tz
        self.clock = clock or (lambda: datetime.now(self.tz))
        self._course_locks: Dict[int, asyncio.Lock] = {}

    def _course_lock(self, course_id: int) -> asyncio.Lock:
        return self._course_locks.setdefault(course_id, asyncio.Lock())

    async def _require_course(self, course_id: int) -> Course:
        course = await self.courses.find_course(course_id)
        if not course:
            raise NotFound(f"Course with id {course_id} not found")
        return course

    async def _require_student(self, student_id: int) -> None:
        if not await self.students.find_student(student_id):
            raise NotFound(f"Student with id {student_id} not found")

    async def get(self, enrollment_id: int) -> Enrollment:
        enrollment = await self.enrollments.find_enrollment(enrollment_id)
        if not enrollment:
            raise NotFound(f"Enrollment with id {enrollment_id} not found")
        return enrollment

    async def enroll(self, student_id: int, course_id: int) -> Enrollment:
        """Enroll a student in a course"""
        await self._require_student(student_id)
        course = await self._require_course(course_id)

        async with self._course_lock(course_id):
            existing = await self.enrollments.find_enrollment_for(student_id, course_id)
            if existing and (
                self.block_reenrollment_after_drop or existing.status != EnrollmentStatus.DROPPED
            ):
                raise AlreadyEnrolled()

            if course.capacity is not None:
                active = await self.enrollments.count_active_enrollments(course_id)
                if active >= course.capacity:
                    logger.info(
                        "Enrollment rejected at capacity",
                        course_id=course_id,
                        capacity=course.capacity,
                    )
                    raise CapacityExceeded()

            now = self.clock()
            if existing:
                enrollment = existing.reactivated(now)
            else:
                enrollment = Enrollment(
                    student_id=student_id,
                    course_id=course_id,
                    enrolled_at=now,
                    status=EnrollmentStatus.ACTIVE,
                    last_updated=now,
                )
            saved = await self.enrollments.save_enrollment(enrollment)

        logger.info(
            "Student enrolled",
            enrollment_id=saved.id,
            student_id=student_id,
            course_id=course_id,
            reactivated=existing is not None,
        )
        return saved

    async def drop(self, enrollment_id: int) -> Enrollment:
        """Drop an active enrollment, freeing its seat"""
        enrollment = await self.get(enrollment_id)
        async with self._course_lock(enrollment.course_id):
            enrollment = await self.get(enrollment_id)
            if not enrollment.is_active:
                raise InvalidTransition(
                    f"Cannot drop an enrollment that is {enrollment.status.value}"
                )
            saved = await self.enrollments.save_enrollment(enrollment.dropped(self.clock()))

        logger.info("Enrollment dropped", enrollment_id=enrollment_id, course_id=saved.course_id)
        return saved

    async def update(
        self,
        enrollment_id: int,
        status: Optional[EnrollmentStatus] = None,
        grade=None,
    ) -> Enrollment:
        """Change status and/or grade; absent fields are left untouched"""
        new_grade = normalize_grade(grade) if grade is not None else None
        new_status = EnrollmentStatus(status) if status is not None else None

        enrollment = await self.get(enrollment_id)
        async with self._course_lock(enrollment.course_id):
            enrollment = await self.get(enrollment_id)
            if new_status is not None and new_status != enrollment.status and not enrollment.is_active:
                raise InvalidTransition(
                    f"Cannot move an enrollment from {enrollment.status.value} to {new_status.value}"
                )
            if new_grade is not None and (new_status or enrollment.status) == EnrollmentStatus.DROPPED:
                raise InvalidTransition("Cannot grade a dropped enrollment")

            saved = await self.enrollments.save_enrollment(
                enrollment.updated(self.clock(), status=new_status, grade=new_grade)
            )

        logger.info(
            "Enrollment updated",
            enrollment_id=enrollment_id,
            status=saved.status.value,
            graded=new_grade is not None,
        )
        return saved

    async def list_all(self) -> List[Enrollment]:
        return await self.enrollments.find_enrollments()

    async def list_for_student(self, student_id: int) -> List[Enrollment]:
        await self._require_student(student_id)
        return await self.enrollments.find_enrollments_by_student(student_id)

    async def list_for_course(self, course_id: int) -> List[Enrollment]:
        await self._require_course(course_id)
        return await self.enrollments.find_enrollments_by_course(course_id)

    async def list_for_lecturer(self, lecturer_id: int) -> List[Enrollment]:
        """Enrollments across every course taught by a lecturer"""
        courses = [c for c in await self.courses.find_courses() if c.lecturer_id == lecturer_id]
        enrollments = []
        for course in courses:
            enrollments.extend(await self.enrollments.find_enrollments_by_course(course.id))
        return enrollments

    async def list_by_status(self, status: EnrollmentStatus) -> List[Enrollment]:
        return await self.enrollments.find_enrollments_by_status(EnrollmentStatus(status))

    async def recent(self, days: int) -> List[Enrollment]:
        """Enrollments made within the last ``days`` days"""
        now = self.clock()
        return await self.enrollments.find_enrollments_between(now - timedelta(days=days), now)

    async def stats(self) -> EnrollmentStats:
        counts = await self.enrollments.count_enrollments_by_status()
        return EnrollmentStats(
            total=sum(counts.values()),
            active=counts.get(EnrollmentStatus.ACTIVE, 0),
            completed=counts.get(EnrollmentStatus.COMPLETED, 0),
            dropped=counts.get(EnrollmentStatus.DROPPED, 0),
        )

    async def trends(self, start_date: date, end_date: date) -> EnrollmentTrends:
        """Daily enrollment counts over an inclusive date range"""
        if end_date < start_date:
            return EnrollmentTrends()

        start = datetime.combine(start_date, time.min, tzinfo=self.tz)
        end = datetime.combine(end_date, time.max, tzinfo=self.tz)
        enrollments = await self.enrollments.find_enrollments_between(start, end)

        daily = Counter(e.enrolled_at.astimezone(self.tz).date() for e in enrollments)
        total = sum(daily.values())
        days = (end_date - start_date).days + 1
        return EnrollmentTrends(
            daily_counts=dict(sorted(daily.items())),
            total=total,
            average_per_day=total / days if total else 0.0,
        )

    async def course_popularity(self) -> List[CourseEnrollmentStats]:
        """Courses ranked by how many enrollments they hold"""
        results = []
        for course in await self.courses.find_courses():
            count = len(await self.enrollments.find_enrollments_by_course(course.id))
            rate = count / course.capacity if course.capacity else 0.0
            results.append(CourseEnrollmentStats(
                course_id=course.id,
                course_code=course.code,
                title=course.title or "",
                enrollment_count=count,
                capacity=course.capacity,
                enrollment_rate=rate,
            ))
        return sorted(results, key=lambda s: s.enrollment_count, reverse=True)
