"""
In-Memory Storage
Process-local implementation of every storage contract, used for development and tests
"""

import itertools
import threading
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..core.errors import AlreadyEnrolled, CapacityExceeded, DuplicateEmail, NotFound
from ..core.subjects import Identity, StudentProfile, normalize_email
from ..enrollment.models import Course, Enrollment, EnrollmentStatus
from .base import Storage


class MemoryStorage(Storage):
    """Dictionary-backed storage guarded by a single lock"""

    def __init__(self):
        self._lock = threading.RLock()
        self._identity_ids = itertools.count(1)
        self._enrollment_ids = itertools.count(1)
        self._identities: Dict[int, Identity] = {}
        self._emails: Dict[str, int] = {}
        self._students: Dict[int, StudentProfile] = {}
        self._courses: Dict[int, Course] = {}
        self._enrollments: Dict[int, Enrollment] = {}
        self._pairs: Dict[Tuple[int, int], int] = {}

    # Seeding helpers for entities managed outside this service

    def add_course(self, course: Course) -> Course:
        with self._lock:
            self._courses[course.id] = course
        return course

    def add_student(self, profile: StudentProfile) -> StudentProfile:
        if profile.id is None:
            raise ValueError("Student profile needs an id")
        with self._lock:
            self._students[profile.id] = profile
        return profile

    # IdentityStore

    async def find_identity_by_email(self, email: str) -> Optional[Identity]:
        with self._lock:
            identity_id = self._emails.get(normalize_email(email))
            return self._identities.get(identity_id) if identity_id is not None else None

    async def identity_exists(self, email: str) -> bool:
        with self._lock:
            return normalize_email(email) in self._emails

    async def save_identity(
        self, identity: Identity, student_profile: Optional[StudentProfile] = None
    ) -> Identity:
        email = normalize_email(identity.email)
        with self._lock:
            owner = self._emails.get(email)
            if owner is not None and owner != identity.id:
                raise DuplicateEmail()

            if identity.id is None:
                identity = identity.model_copy(update={"id": next(self._identity_ids), "email": email})
                if student_profile is not None:
                    self._students[identity.id] = student_profile.model_copy(update={"id": identity.id})
            elif identity.id not in self._identities:
                raise NotFound(f"Identity with id {identity.id} not found")
            else:
                previous = self._identities[identity.id]
                self._emails.pop(normalize_email(previous.email), None)

            self._identities[identity.id] = identity
            self._emails[email] = identity.id
            return identity

    # StudentStore

    async def find_student(self, student_id: int) -> Optional[StudentProfile]:
        with self._lock:
            return self._students.get(student_id)

    # CourseStore

    async def find_course(self, course_id: int) -> Optional[Course]:
        with self._lock:
            return self._courses.get(course_id)

    async def find_courses(self) -> List[Course]:
        with self._lock:
            return sorted(self._courses.values(), key=lambda c: c.id)

    # EnrollmentStore

    async def find_enrollment(self, enrollment_id: int) -> Optional[Enrollment]:
        with self._lock:
            return self._enrollments.get(enrollment_id)

    async def find_enrollment_for(self, student_id: int, course_id: int) -> Optional[Enrollment]:
        with self._lock:
            enrollment_id = self._pairs.get((student_id, course_id))
            return self._enrollments.get(enrollment_id) if enrollment_id is not None else None

    async def count_active_enrollments(self, course_id: int) -> int:
        with self._lock:
            return self._count_active(course_id)

    async def save_enrollment(self, enrollment: Enrollment) -> Enrollment:
        pair = (enrollment.student_id, enrollment.course_id)
        with self._lock:
            previous = None
            if enrollment.id is None:
                if pair in self._pairs:
                    raise AlreadyEnrolled()
            else:
                previous = self._enrollments.get(enrollment.id)
                if previous is None:
                    raise NotFound(f"Enrollment with id {enrollment.id} not found")

            becomes_active = enrollment.is_active and (previous is None or not previous.is_active)
            if becomes_active:
                course = self._courses.get(enrollment.course_id)
                if course is None:
                    raise NotFound(f"Course with id {enrollment.course_id} not found")
                if course.capacity is not None and self._count_active(course.id) >= course.capacity:
                    raise CapacityExceeded()

            if enrollment.id is None:
                enrollment = enrollment.model_copy(update={"id": next(self._enrollment_ids)})
            self._enrollments[enrollment.id] = enrollment
            self._pairs[pair] = enrollment.id
            return enrollment

    async def find_enrollments(self) -> List[Enrollment]:
        return self._select(lambda e: True)

    async def find_enrollments_by_student(self, student_id: int) -> List[Enrollment]:
        return self._select(lambda e: e.student_id == student_id)

    async def find_enrollments_by_course(self, course_id: int) -> List[Enrollment]:
        return self._select(lambda e: e.course_id == course_id)

    async def find_enrollments_by_status(self, status: EnrollmentStatus) -> List[Enrollment]:
        return self._select(lambda e: e.status == status)

    async def find_enrollments_between(self, start: datetime, end: datetime) -> List[Enrollment]:
        return self._select(lambda e: start <= e.enrolled_at <= end)

    async def count_enrollments_by_status(self) -> Dict[EnrollmentStatus, int]:
        with self._lock:
            return dict(Counter(e.status for e in self._enrollments.values()))

    def _count_active(self, course_id: int) -> int:
        return sum(1 for e in self._enrollments.values() if e.course_id == course_id and e.is_active)

    def _select(self, predicate) -> List[Enrollment]:
        with self._lock:
            return [e for e in sorted(self._enrollments.values(), key=lambda e: e.id) if predicate(e)]
