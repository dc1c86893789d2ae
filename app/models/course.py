from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal
from uuid import UUID, uuid4

PolicyKind = Literal["module_percentage", "grade_and_attendance"]

# Grading diary scale: 0..10, pass mark 7.0 unless the course says otherwise.
GRADE_SCALE_MAX = 10.0
DEFAULT_PASS_GRADE = 7.0


@dataclass(frozen=True, slots=True)
class CourseCompletionPolicy:
    """What evidence qualifies a learner for a certificate.

    module_percentage:     pass_threshold is a percentage (0-100) of
                           required modules completed.
    grade_and_attendance:  pass_threshold is a minimum course-final grade
                           (0-10); min_attendance_rate, when set, is an
                           additional gate expressed as a fraction (0-1).
    """

    kind: PolicyKind = "module_percentage"
    pass_threshold: float = 100.0
    certificate_enabled: bool = True
    min_attendance_rate: float | None = None

    @property
    def is_graded(self) -> bool:
        return self.kind == "grade_and_attendance"


@dataclass(frozen=True, slots=True)
class Course:
    id: UUID
    slug: str
    title: str
    policy: CourseCompletionPolicy = field(default_factory=CourseCompletionPolicy)
    category: str | None = None
    workload_hours: int | None = None

    @staticmethod
    def new(
        *,
        slug: str,
        title: str,
        policy: CourseCompletionPolicy | None = None,
        category: str | None = None,
        workload_hours: int | None = None,
    ) -> Course:
        return Course(
            id=uuid4(),
            slug=slug,
            title=title,
            policy=policy or CourseCompletionPolicy(),
            category=category,
            workload_hours=workload_hours,
        )


@dataclass(frozen=True, slots=True)
class CourseModule:
    id: UUID
    course_id: UUID
    position: int
    title: str
    is_required: bool = True

    @staticmethod
    def new(
        *, course_id: UUID, position: int, title: str, is_required: bool = True
    ) -> CourseModule:
        return CourseModule(
            id=uuid4(),
            course_id=course_id,
            position=position,
            title=title,
            is_required=is_required,
        )
