"""Grades and attendance for instructor-led courses."""

from __future__ import annotations

import datetime
import logging
import math
from uuid import UUID

from app.models.course import DEFAULT_PASS_GRADE, GRADE_SCALE_MAX
from app.models.enrollment import Enrollment
from app.models.grading import (
    ATTENDANCE_STATUSES,
    COURSE_FINAL,
    AttendanceRecord,
    AttendanceStatus,
    GradeAggregate,
    GradeRecord,
)
from app.repos.course_repo import CourseRepo
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.grade_repo import GradeRepo
from app.services.clock import Clock, utc_now
from app.services.errors import (
    InvalidAttendanceError,
    InvalidGradeError,
    ModuleNotInCourseError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


class GradeAggregator:
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

    async def record_grade(
        self,
        enrollment_id: UUID,
        scope: str,
        scale: float,
        feedback: str | None = None,
    ) -> GradeRecord:
        """Store the grade for a module or for the whole course.

        `scope` is "course-final" or a module id.  Grading the same scope
        again overwrites the previous value and re-stamps graded_at.
        """
        enrollment = await self._require_enrollment(enrollment_id)
        # nan and inf have no JSON form; report them as strings.
        if not math.isfinite(scale):
            raise InvalidGradeError(
                "grade must be a finite number", {"scale": str(scale)}
            )
        if not 0 <= scale <= GRADE_SCALE_MAX:
            raise InvalidGradeError(
                f"grade must be within 0-{GRADE_SCALE_MAX:g}", {"scale": scale}
            )

        if scope != COURSE_FINAL:
            scope = await self._module_scope(enrollment, scope)

        course = await self._courses.get(enrollment.course_id)
        if course is None:
            raise NotFoundError(
                "course not found", {"course_id": str(enrollment.course_id)}
            )
        threshold = (
            course.policy.pass_threshold
            if course.policy.is_graded
            else DEFAULT_PASS_GRADE
        )

        record = GradeRecord.new(
            enrollment_id=enrollment_id,
            scope=scope,
            scale=scale,
            passed=scale >= threshold,
            graded_at=self._clock(),
            feedback=feedback,
        )
        stored = await self._grades.upsert_grade(record)
        logger.info(
            "Graded scope=%s scale=%.2f passed=%s",
            scope,
            scale,
            stored.passed,
            extra={"enrollment_id": str(enrollment_id)},
        )
        return stored

    async def record_attendance(
        self,
        enrollment_id: UUID,
        session_date: datetime.date,
        session_title: str,
        status: AttendanceStatus,
        notes: str | None = None,
    ) -> AttendanceRecord:
        await self._require_enrollment(enrollment_id)
        if status not in ATTENDANCE_STATUSES:
            raise InvalidAttendanceError(
                "unknown attendance status", {"status": status}
            )
        title = session_title.strip()
        if not title:
            raise InvalidAttendanceError("session title must be non-empty")

        record = AttendanceRecord.new(
            enrollment_id=enrollment_id,
            session_date=session_date,
            session_title=title,
            status=status,
            marked_at=self._clock(),
            notes=notes,
        )
        await self._grades.add_attendance(record)
        return record

    async def list_attendance(self, enrollment_id: UUID) -> list[AttendanceRecord]:
        await self._require_enrollment(enrollment_id)
        return await self._grades.list_attendance(enrollment_id)

    async def get_aggregate(self, enrollment_id: UUID) -> GradeAggregate:
        enrollment = await self._require_enrollment(enrollment_id)
        return await self.aggregate(enrollment)

    async def aggregate(self, enrollment: Enrollment) -> GradeAggregate:
        grades = await self._grades.list_grades(enrollment.id)
        finals = [g for g in grades if g.is_course_final]
        # More than one final should never be stored; if it happens the
        # most recently graded one wins.
        final = max(finals, key=lambda g: g.graded_at) if finals else None

        module_scales = [g.scale for g in grades if not g.is_course_final]
        module_average = (
            round(sum(module_scales) / len(module_scales), 2) if module_scales else None
        )

        attendance = await self._grades.list_attendance(enrollment.id)
        counts = {s: 0 for s in ATTENDANCE_STATUSES}
        for a in attendance:
            counts[a.status] += 1
        total = len(attendance)

        return GradeAggregate(
            enrollment_id=enrollment.id,
            final_grade=final,
            attendance_rate=counts["present"] / total if total else 0.0,
            present_count=counts["present"],
            late_count=counts["late"],
            absent_count=counts["absent"],
            excused_count=counts["excused"],
            total_sessions=total,
            module_grade_average=module_average,
        )

    async def _module_scope(self, enrollment: Enrollment, scope: str) -> str:
        try:
            module_id = UUID(scope)
        except ValueError:
            raise InvalidGradeError(
                "scope must be 'course-final' or a module id", {"scope": scope}
            ) from None

        module = await self._courses.get_module(module_id)
        if module is None:
            raise NotFoundError("module not found", {"module_id": scope})
        if module.course_id != enrollment.course_id:
            raise ModuleNotInCourseError(
                "module belongs to a different course",
                {"module_id": scope, "course_id": str(enrollment.course_id)},
            )
        return str(module_id)

    async def _require_enrollment(self, enrollment_id: UUID) -> Enrollment:
        enrollment = await self._enrollments.get(enrollment_id)
        if enrollment is None:
            raise NotFoundError(
                "enrollment not found", {"enrollment_id": str(enrollment_id)}
            )
        return enrollment
