from __future__ import annotations

from collections.abc import Collection
from typing import Protocol
from uuid import UUID

from app.models.enrollment import Enrollment, ModuleProgress
from app.services.errors import AlreadyEnrolledError


class EnrollmentRepo(Protocol):
    async def get(self, enrollment_id: UUID) -> Enrollment | None: ...
    async def get_for_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None: ...
    async def add(self, enrollment: Enrollment) -> None: ...
    async def list_for_course(self, course_id: UUID) -> list[Enrollment]: ...
    async def list_module_progress(
        self, enrollment_id: UUID
    ) -> list[ModuleProgress]: ...
    async def mark_completed(
        self, enrollment_id: UUID, module_id: UUID, completed_at: int
    ) -> tuple[ModuleProgress, bool]: ...
    async def has_completions(self, enrollment_ids: Collection[UUID]) -> bool: ...


class InMemoryEnrollmentRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Enrollment] = {}
        self._by_key: dict[tuple[UUID, UUID], Enrollment] = {}
        self._progress: dict[tuple[UUID, UUID], ModuleProgress] = {}

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        return self._by_id.get(enrollment_id)

    async def get_for_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        return self._by_key.get((user_id, course_id))

    async def add(self, enrollment: Enrollment) -> None:
        key = (enrollment.user_id, enrollment.course_id)
        if key in self._by_key:
            raise AlreadyEnrolledError(
                "already enrolled",
                {
                    "user_id": str(enrollment.user_id),
                    "course_id": str(enrollment.course_id),
                },
            )
        self._by_id[enrollment.id] = enrollment
        self._by_key[key] = enrollment

    async def list_for_course(self, course_id: UUID) -> list[Enrollment]:
        return [e for e in self._by_id.values() if e.course_id == course_id]

    async def list_module_progress(self, enrollment_id: UUID) -> list[ModuleProgress]:
        return [p for (eid, _), p in self._progress.items() if eid == enrollment_id]

    async def mark_completed(
        self, enrollment_id: UUID, module_id: UUID, completed_at: int
    ) -> tuple[ModuleProgress, bool]:
        """Set completed_at once.  Returns (row, newly_completed)."""
        key = (enrollment_id, module_id)
        existing = self._progress.get(key)
        if existing is not None and existing.is_completed:
            return existing, False

        row = ModuleProgress(
            enrollment_id=enrollment_id, module_id=module_id, completed_at=completed_at
        )
        self._progress[key] = row
        return row, True

    async def has_completions(self, enrollment_ids: Collection[UUID]) -> bool:
        wanted = set(enrollment_ids)
        return any(
            eid in wanted and p.is_completed for (eid, _), p in self._progress.items()
        )

    def clear(self) -> None:
        self._by_id.clear()
        self._by_key.clear()
        self._progress.clear()
