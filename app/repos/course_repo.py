from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.course import Course, CourseCompletionPolicy, CourseModule
from app.services.errors import DuplicateCourseError


class CourseRepo(Protocol):
    async def get(self, course_id: UUID) -> Course | None: ...
    async def get_by_slug(self, slug: str) -> Course | None: ...
    async def add(self, course: Course) -> None: ...
    async def list_all(self) -> list[Course]: ...
    async def update_policy(
        self, course_id: UUID, policy: CourseCompletionPolicy
    ) -> Course | None: ...
    async def get_module(self, module_id: UUID) -> CourseModule | None: ...
    async def list_modules(self, course_id: UUID) -> list[CourseModule]: ...
    async def add_module(self, module: CourseModule) -> None: ...


class InMemoryCourseRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Course] = {}
        self._by_slug: dict[str, Course] = {}
        self._modules: dict[UUID, CourseModule] = {}

    async def get(self, course_id: UUID) -> Course | None:
        return self._by_id.get(course_id)

    async def get_by_slug(self, slug: str) -> Course | None:
        return self._by_slug.get(slug)

    async def add(self, course: Course) -> None:
        if course.slug in self._by_slug:
            raise DuplicateCourseError(
                "course slug already exists", {"slug": course.slug}
            )
        self._by_id[course.id] = course
        self._by_slug[course.slug] = course

    async def list_all(self) -> list[Course]:
        return list(self._by_id.values())

    async def update_policy(
        self, course_id: UUID, policy: CourseCompletionPolicy
    ) -> Course | None:
        c = self._by_id.get(course_id)
        if c is None:
            return None

        updated = replace(c, policy=policy)
        self._by_id[course_id] = updated
        self._by_slug[updated.slug] = updated
        return updated

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        return self._modules.get(module_id)

    async def list_modules(self, course_id: UUID) -> list[CourseModule]:
        modules = [m for m in self._modules.values() if m.course_id == course_id]
        return sorted(modules, key=lambda m: m.position)

    async def add_module(self, module: CourseModule) -> None:
        self._modules[module.id] = module

    def clear(self) -> None:
        self._by_id.clear()
        self._by_slug.clear()
        self._modules.clear()
