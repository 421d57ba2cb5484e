"""
Tests for the in-memory store
The store rechecks uniqueness and capacity even when callers skip the engine
"""
from datetime import timedelta

import pytest

from registrar.core.errors import AlreadyEnrolled, CapacityExceeded, DuplicateEmail, NotFound
from registrar.core.subjects import Identity, StudentProfile
from registrar.enrollment.models import Enrollment, EnrollmentStatus


def _enrollment(student_id, course_id, at):
    return Enrollment(student_id=student_id, course_id=course_id, enrolled_at=at, last_updated=at)


def _identity(email, now, identity_id=None):
    return Identity(id=identity_id, email=email, password_hash="h", created_at=now, updated_at=now)


class TestIdentities:

    @pytest.mark.asyncio
    async def test_save_assigns_id_and_profile(self, storage, now):
        saved = await storage.save_identity(
            _identity("Ada@Example.edu", now), student_profile=StudentProfile(enrollment_date=now.date())
        )

        assert saved.id == 1
        assert saved.email == "ada@example.edu"
        assert (await storage.find_student(saved.id)).id == saved.id
        assert (await storage.find_identity_by_email("ADA@example.edu")) == saved

    @pytest.mark.asyncio
    async def test_email_taken(self, storage, now):
        await storage.save_identity(_identity("ada@example.edu", now))

        with pytest.raises(DuplicateEmail):
            await storage.save_identity(_identity("ada@example.edu", now))

    @pytest.mark.asyncio
    async def test_update_missing_identity(self, storage, now):
        with pytest.raises(NotFound):
            await storage.save_identity(_identity("ada@example.edu", now, identity_id=42))

    def test_student_seed_needs_id(self, storage, now):
        with pytest.raises(ValueError):
            storage.add_student(StudentProfile(enrollment_date=now.date()))


class TestEnrollments:

    @pytest.mark.asyncio
    async def test_rejects_duplicate_pair(self, storage, courses, students, now):
        await storage.save_enrollment(_enrollment(101, 2, now))

        with pytest.raises(AlreadyEnrolled):
            await storage.save_enrollment(_enrollment(101, 2, now))

    @pytest.mark.asyncio
    async def test_rejects_over_capacity(self, storage, courses, students, now):
        for student_id in (101, 102):
            await storage.save_enrollment(_enrollment(student_id, 1, now))

        with pytest.raises(CapacityExceeded):
            await storage.save_enrollment(_enrollment(103, 1, now))

        assert await storage.count_active_enrollments(1) == 2

    @pytest.mark.asyncio
    async def test_reactivation_counts_against_capacity(self, storage, courses, students, now):
        first = await storage.save_enrollment(_enrollment(101, 1, now))
        await storage.save_enrollment(first.dropped(now))
        await storage.save_enrollment(_enrollment(102, 1, now))
        await storage.save_enrollment(_enrollment(103, 1, now))

        with pytest.raises(CapacityExceeded):
            await storage.save_enrollment(first.reactivated(now))

    @pytest.mark.asyncio
    async def test_unknown_course(self, storage, students, now):
        with pytest.raises(NotFound):
            await storage.save_enrollment(_enrollment(101, 99, now))

    @pytest.mark.asyncio
    async def test_range_is_inclusive(self, storage, courses, students, now):
        end = now + timedelta(days=1)
        for student_id, at in ((101, now), (102, end), (103, end + timedelta(seconds=1))):
            await storage.save_enrollment(_enrollment(student_id, 2, at))

        found = await storage.find_enrollments_between(now, end)

        assert [e.student_id for e in found] == [101, 102]

    @pytest.mark.asyncio
    async def test_find_all_in_id_order(self, storage, courses, students, now):
        for student_id, course_id in ((102, 2), (101, 1), (103, 2)):
            await storage.save_enrollment(_enrollment(student_id, course_id, now))

        found = await storage.find_enrollments()

        assert [e.id for e in found] == [1, 2, 3]
        assert [e.student_id for e in found] == [102, 101, 103]

    @pytest.mark.asyncio
    async def test_counts_by_status(self, storage, courses, students, now):
        first = await storage.save_enrollment(_enrollment(101, 2, now))
        await storage.save_enrollment(_enrollment(102, 2, now))
        await storage.save_enrollment(first.dropped(now))

        counts = await storage.count_enrollments_by_status()

        assert counts == {EnrollmentStatus.ACTIVE: 1, EnrollmentStatus.DROPPED: 1}
