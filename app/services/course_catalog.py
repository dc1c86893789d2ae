"""Course configuration and enrollment.

A course's completion policy is editable until the first piece of
evidence (module completion, grade or attendance mark) lands on any of
its enrollments.  After that it is frozen; certificates already issued
carry their own snapshot and never depend on the live policy.
"""

from __future__ import annotations

import logging
import math
from uuid import UUID

from app.models.course import (
    GRADE_SCALE_MAX,
    Course,
    CourseCompletionPolicy,
    CourseModule,
)
from app.models.enrollment import Enrollment
from app.repos.course_repo import CourseRepo
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.grade_repo import GradeRepo
from app.services.clock import Clock, utc_now
from app.services.errors import (
    AlreadyEnrolledError,
    DuplicateCourseError,
    InvalidPolicyError,
    NotFoundError,
    PolicyLockedError,
)

logger = logging.getLogger(__name__)


def validate_policy(policy: CourseCompletionPolicy) -> None:
    """Raise InvalidPolicyError unless every threshold fits its kind's range."""
    for name in ("pass_threshold", "min_attendance_rate"):
        value = getattr(policy, name)
        if value is not None and not math.isfinite(value):
            raise InvalidPolicyError(
                f"{name} must be a finite number", {name: str(value)}
            )

    if policy.kind == "module_percentage":
        if not 0 <= policy.pass_threshold <= 100:
            raise InvalidPolicyError(
                "percentage threshold must be within 0-100",
                {"pass_threshold": policy.pass_threshold},
            )
        if policy.min_attendance_rate is not None:
            raise InvalidPolicyError(
                "attendance gate only applies to grade_and_attendance courses",
                {"min_attendance_rate": policy.min_attendance_rate},
            )
    elif policy.kind == "grade_and_attendance":
        if not 0 <= policy.pass_threshold <= GRADE_SCALE_MAX:
            raise InvalidPolicyError(
                f"grade threshold must be within 0-{GRADE_SCALE_MAX:g}",
                {"pass_threshold": policy.pass_threshold},
            )
        rate = policy.min_attendance_rate
        if rate is not None and not 0 <= rate <= 1:
            raise InvalidPolicyError(
                "attendance rate must be a fraction within 0-1",
                {"min_attendance_rate": rate},
            )
    else:
        raise InvalidPolicyError("unknown policy kind", {"kind": policy.kind})


class CourseCatalog:
    def __init__(
        self,
        courses: CourseRepo,
        enrollments: EnrollmentRepo,
        grades: GradeRepo,
        *,
        clock: Clock = utc_now,
    ) -> None:
        self._courses = courses
        self._enrollments = enrollments
        self._grades = grades
        self._clock = clock

    async def create_course(
        self,
        *,
        slug: str,
        title: str,
        policy: CourseCompletionPolicy | None = None,
        category: str | None = None,
        workload_hours: int | None = None,
    ) -> Course:
        slug = slug.strip().lower()
        policy = policy or CourseCompletionPolicy()
        validate_policy(policy)

        if await self._courses.get_by_slug(slug) is not None:
            raise DuplicateCourseError("course slug already exists", {"slug": slug})

        course = Course.new(
            slug=slug,
            title=title.strip(),
            policy=policy,
            category=category,
            workload_hours=workload_hours,
        )
        await self._courses.add(course)
        logger.info(
            "Created course slug=%s policy=%s",
            course.slug,
            policy.kind,
            extra={"course_id": str(course.id)},
        )
        return course

    async def list_courses(self) -> list[Course]:
        return await self._courses.list_all()

    async def get_course(self, course_id: UUID) -> Course:
        course = await self._courses.get(course_id)
        if course is None:
            raise NotFoundError("course not found", {"course_id": str(course_id)})
        return course

    async def add_module(
        self,
        course_id: UUID,
        *,
        title: str,
        position: int | None = None,
        is_required: bool = True,
    ) -> CourseModule:
        await self.get_course(course_id)
        if position is None:
            position = len(await self._courses.list_modules(course_id)) + 1

        module = CourseModule.new(
            course_id=course_id,
            position=position,
            title=title.strip(),
            is_required=is_required,
        )
        await self._courses.add_module(module)
        return module

    async def list_modules(self, course_id: UUID) -> list[CourseModule]:
        await self.get_course(course_id)
        return await self._courses.list_modules(course_id)

    async def set_policy(
        self, course_id: UUID, policy: CourseCompletionPolicy
    ) -> Course:
        validate_policy(policy)
        course = await self.get_course(course_id)
        if course.policy == policy:
            return course

        enrollment_ids = [
            e.id for e in await self._enrollments.list_for_course(course_id)
        ]
        if await self._enrollments.has_completions(
            enrollment_ids
        ) or await self._grades.has_records(enrollment_ids):
            logger.warning(
                "Rejected policy change on course with recorded progress",
                extra={"course_id": str(course_id)},
            )
            raise PolicyLockedError(
                "policy is frozen once progress has been recorded",
                {"course_id": str(course_id)},
            )

        updated = await self._courses.update_policy(course_id, policy)
        if updated is None:
            raise NotFoundError("course not found", {"course_id": str(course_id)})
        return updated

    async def enroll(self, user_id: UUID, course_id: UUID) -> Enrollment:
        await self.get_course(course_id)
        if await self._enrollments.get_for_user_course(user_id, course_id):
            raise AlreadyEnrolledError(
                "already enrolled",
                {"user_id": str(user_id), "course_id": str(course_id)},
            )

        enrollment = Enrollment.new(
            user_id=user_id, course_id=course_id, enrolled_at=self._clock()
        )
        await self._enrollments.add(enrollment)
        logger.info(
            "Enrolled user=%s",
            user_id,
            extra={"course_id": str(course_id), "enrollment_id": str(enrollment.id)},
        )
        return enrollment
