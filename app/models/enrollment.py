from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Enrollment:
    """One learner in one course: the anchor for every progress record."""

    id: UUID
    user_id: UUID
    course_id: UUID
    enrolled_at: int

    @staticmethod
    def new(*, user_id: UUID, course_id: UUID, enrolled_at: int) -> Enrollment:
        return Enrollment(
            id=uuid4(), user_id=user_id, course_id=course_id, enrolled_at=enrolled_at
        )


@dataclass(frozen=True, slots=True)
class ModuleProgress:
    """Completion of one module; completed_at is None until completed.

    Only ever moves not-completed -> completed.
    """

    enrollment_id: UUID
    module_id: UUID
    completed_at: int | None = None

    @property
    def is_completed(self) -> bool:
        return self.completed_at is not None


@dataclass(frozen=True, slots=True)
class ProgressSnapshot:
    """Derived read model, recomputed from module_progress on every read."""

    enrollment_id: UUID
    completed_required: int
    total_required: int
    completed_optional: int
    percentage: int
    completed_module_ids: tuple[UUID, ...] = ()


def percent_complete(completed: int, total: int) -> int:
    """round(completed / total * 100) with halves rounded up; 0 when total is 0."""
    if total <= 0:
        return 0
    return (200 * completed + total) // (2 * total)
