from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Literal
from uuid import UUID, uuid4

AttendanceStatus = Literal["present", "absent", "late", "excused"]
ATTENDANCE_STATUSES: tuple[str, ...] = ("present", "absent", "late", "excused")

# Scope value for the whole-course grade; any other scope is a module id.
COURSE_FINAL = "course-final"


@dataclass(frozen=True, slots=True)
class GradeRecord:
    id: UUID
    enrollment_id: UUID
    scope: str  # "course-final" or str(module_id)
    scale: float
    passed: bool
    graded_at: int
    feedback: str | None = None

    @property
    def is_course_final(self) -> bool:
        return self.scope == COURSE_FINAL

    @staticmethod
    def new(
        *,
        enrollment_id: UUID,
        scope: str,
        scale: float,
        passed: bool,
        graded_at: int,
        feedback: str | None = None,
    ) -> GradeRecord:
        return GradeRecord(
            id=uuid4(),
            enrollment_id=enrollment_id,
            scope=scope,
            scale=scale,
            passed=passed,
            graded_at=graded_at,
            feedback=feedback,
        )


@dataclass(frozen=True, slots=True)
class AttendanceRecord:
    id: UUID
    enrollment_id: UUID
    session_date: datetime.date
    session_title: str
    status: AttendanceStatus
    marked_at: int
    notes: str | None = None

    @staticmethod
    def new(
        *,
        enrollment_id: UUID,
        session_date: datetime.date,
        session_title: str,
        status: AttendanceStatus,
        marked_at: int,
        notes: str | None = None,
    ) -> AttendanceRecord:
        return AttendanceRecord(
            id=uuid4(),
            enrollment_id=enrollment_id,
            session_date=session_date,
            session_title=session_title,
            status=status,
            marked_at=marked_at,
            notes=notes,
        )


@dataclass(frozen=True, slots=True)
class GradeAggregate:
    enrollment_id: UUID
    final_grade: GradeRecord | None
    attendance_rate: float
    present_count: int
    late_count: int
    absent_count: int
    excused_count: int = 0
    total_sessions: int = 0
    module_grade_average: float | None = None
