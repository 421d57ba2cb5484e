"""
Storage Contracts
Abstract collaborators the authentication and enrollment components rely on
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional

from ..core.subjects import Identity, StudentProfile
from ..enrollment.models import Course, Enrollment, EnrollmentStatus


class IdentityStore(ABC):
    """Durable record of identities; emails are passed normalised"""

    @abstractmethod
    async def find_identity_by_email(self, email: str) -> Optional[Identity]:
        pass

    @abstractmethod
    async def identity_exists(self, email: str) -> bool:
        pass

    @abstractmethod
    async def save_identity(
        self, identity: Identity, student_profile: Optional[StudentProfile] = None
    ) -> Identity:
        """Insert (no id) or update an identity.

        A new identity is written together with its student profile, if one
        is given, as a single unit. Raises DuplicateEmail when the email is
        already taken; this is the authoritative uniqueness signal.
        """
        pass


class StudentStore(ABC):

    @abstractmethod
    async def find_student(self, student_id: int) -> Optional[StudentProfile]:
        pass


class CourseStore(ABC):

    @abstractmethod
    async def find_course(self, course_id: int) -> Optional[Course]:
        pass

    @abstractmethod
    async def find_courses(self) -> List[Course]:
        pass


class EnrollmentStore(ABC):

    @abstractmethod
    async def find_enrollments(self) -> List[Enrollment]:
        pass

    @abstractmethod
    async def find_enrollment(self, enrollment_id: int) -> Optional[Enrollment]:
        pass

    @abstractmethod
    async def find_enrollment_for(self, student_id: int, course_id: int) -> Optional[Enrollment]:
        """Any enrollment row for the pair, whatever its status"""
        pass

    @abstractmethod
    async def count_active_enrollments(self, course_id: int) -> int:
        pass

    @abstractmethod
    async def save_enrollment(self, enrollment: Enrollment) -> Enrollment:
        """Insert (no id) or update an enrollment.

        Whenever the write leaves the row Active where it was not before, the
        store re-checks the pair uniqueness (AlreadyEnrolled) and the course
        capacity (CapacityExceeded) inside the same atomic unit as the write.
        Raises NotFound when updating a row that no longer exists.
        """
        pass

    @abstractmethod
    async def find_enrollments_by_student(self, student_id: int) -> List[Enrollment]:
        pass

    @abstractmethod
    async def find_enrollments_by_course(self, course_id: int) -> List[Enrollment]:
        pass

    @abstractmethod
    async def find_enrollments_by_status(self, status: EnrollmentStatus) -> List[Enrollment]:
        pass

    @abstractmethod
    async def find_enrollments_between(self, start: datetime, end: datetime) -> List[Enrollment]:
        """Enrollments whose enrollment timestamp lies in [start, end]"""
        pass

    @abstractmethod
    async def count_enrollments_by_status(self) -> Dict[EnrollmentStatus, int]:
        pass


class Storage(IdentityStore, StudentStore, CourseStore, EnrollmentStore):
    """Convenience base for backends implementing every contract"""
