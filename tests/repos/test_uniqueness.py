"""Unique-key clashes surface as domain errors from every repo implementation.

The Pg repos are driven with a stand-in session whose SAVEPOINT fails the
way Postgres does when a concurrent insert wins the unique index.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from app.models.course import Course
from app.models.enrollment import Enrollment
from app.repos.certificate_repo import InMemoryCertificateRepo
from app.repos.course_repo import InMemoryCourseRepo
from app.repos.enrollment_repo import InMemoryEnrollmentRepo
from app.repos.grade_repo import InMemoryGradeRepo
from app.repos.pg_course_repo import PgCourseRepo
from app.repos.pg_enrollment_repo import PgEnrollmentRepo
from app.services.cache import InMemoryCacheService
from app.services.errors import AlreadyEnrolledError, DuplicateCourseError
from app.services.wiring import build_services
from tests.conftest import FakeClock


class _UniqueViolationSession:
    """Accepts the row, then fails when the savepoint flushes it."""

    def __init__(self) -> None:
        self.added: list[object] = []

    def add(self, row: object) -> None:
        self.added.append(row)

    @asynccontextmanager
    async def begin_nested(self):
        yield
        raise IntegrityError("INSERT", {}, Exception("duplicate key value"))


def _enrollment(user_id=None, course_id=None) -> Enrollment:
    return Enrollment.new(
        user_id=user_id or uuid4(), course_id=course_id or uuid4(), enrolled_at=0
    )


# ---- in-memory ----


def test_in_memory_course_add_twice() -> None:
    repo = InMemoryCourseRepo()

    async def scenario() -> None:
        await repo.add(Course.new(slug="dup", title="A"))
        await repo.add(Course.new(slug="dup", title="B"))

    with pytest.raises(DuplicateCourseError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.details == {"slug": "dup"}


def test_in_memory_enrollment_add_twice() -> None:
    repo = InMemoryEnrollmentRepo()
    user_id, course_id = uuid4(), uuid4()

    async def scenario() -> None:
        await repo.add(_enrollment(user_id, course_id))
        await repo.add(_enrollment(user_id, course_id))

    with pytest.raises(AlreadyEnrolledError):
        asyncio.run(scenario())


# ---- postgres ----


def test_pg_course_conflict_maps_to_duplicate_course() -> None:
    session = _UniqueViolationSession()
    repo = PgCourseRepo(session)  # type: ignore[arg-type]

    with pytest.raises(DuplicateCourseError):
        asyncio.run(repo.add(Course.new(slug="dup", title="A")))
    assert len(session.added) == 1


def test_pg_enrollment_conflict_maps_to_already_enrolled() -> None:
    session = _UniqueViolationSession()
    repo = PgEnrollmentRepo(session)  # type: ignore[arg-type]
    enrollment = _enrollment()

    with pytest.raises(AlreadyEnrolledError) as exc_info:
        asyncio.run(repo.add(enrollment))
    assert exc_info.value.details["course_id"] == str(enrollment.course_id)


# ---- through the catalog ----


class _SlowEnrollmentRepo(InMemoryEnrollmentRepo):
    """Yields after the existence check so concurrent enrolls both pass it."""

    async def get_for_user_course(self, user_id, course_id):
        found = await super().get_for_user_course(user_id, course_id)
        await asyncio.sleep(0)
        return found


def test_concurrent_enroll_one_wins_other_conflicts(clock: FakeClock) -> None:
    enrollments = _SlowEnrollmentRepo()
    services = build_services(
        InMemoryCourseRepo(),
        enrollments,
        InMemoryGradeRepo(),
        InMemoryCertificateRepo(),
        cache=InMemoryCacheService(),
        clock=clock,
    )
    user_id = uuid4()

    async def scenario():
        course = await services.catalog.create_course(slug="race", title="Race")
        return await asyncio.gather(
            services.catalog.enroll(user_id, course.id),
            services.catalog.enroll(user_id, course.id),
            return_exceptions=True,
        )

    results = asyncio.run(scenario())
    assert sum(isinstance(r, Enrollment) for r in results) == 1
    assert sum(isinstance(r, AlreadyEnrolledError) for r in results) == 1
