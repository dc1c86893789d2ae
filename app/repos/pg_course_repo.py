"""PostgreSQL implementation of CourseRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CourseModuleRow, CourseRow
from app.models.course import Course, CourseCompletionPolicy, CourseModule
from app.services.errors import DuplicateCourseError


class PgCourseRepo:
    """Satisfies the CourseRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, course_id: UUID) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.id == course_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_course(row)

    async def get_by_slug(self, slug: str) -> Course | None:
        stmt = select(CourseRow).where(CourseRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_course(row)

    async def add(self, course: Course) -> None:
        row = CourseRow(
            id=course.id,
            slug=course.slug,
            title=course.title,
            category=course.category,
            workload_hours=course.workload_hours,
            policy_kind=course.policy.kind,
            pass_threshold=course.policy.pass_threshold,
            certificate_enabled=course.policy.certificate_enabled,
            min_attendance_rate=course.policy.min_attendance_rate,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise DuplicateCourseError(
                "course slug already exists", {"slug": course.slug}
            ) from None

    async def list_all(self) -> list[Course]:
        stmt = select(CourseRow).order_by(CourseRow.slug)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_course(r) for r in rows]

    async def update_policy(
        self, course_id: UUID, policy: CourseCompletionPolicy
    ) -> Course | None:
        stmt = (
            update(CourseRow)
            .where(CourseRow.id == course_id)
            .values(
                policy_kind=policy.kind,
                pass_threshold=policy.pass_threshold,
                certificate_enabled=policy.certificate_enabled,
                min_attendance_rate=policy.min_attendance_rate,
            )
            .execution_options(synchronize_session="fetch")
        )
        result = await self._session.execute(stmt)
        if result.rowcount == 0:
            return None
        return await self.get(course_id)

    async def get_module(self, module_id: UUID) -> CourseModule | None:
        stmt = select(CourseModuleRow).where(CourseModuleRow.id == module_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_module(row)

    async def list_modules(self, course_id: UUID) -> list[CourseModule]:
        stmt = (
            select(CourseModuleRow)
            .where(CourseModuleRow.course_id == course_id)
            .order_by(CourseModuleRow.position)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_module(r) for r in rows]

    async def add_module(self, module: CourseModule) -> None:
        row = CourseModuleRow(
            id=module.id,
            course_id=module.course_id,
            position=module.position,
            title=module.title,
            is_required=module.is_required,
        )
        self._session.add(row)
        await self._session.flush()


def _row_to_course(row: CourseRow) -> Course:
    return Course(
        id=row.id,
        slug=row.slug,
        title=row.title,
        policy=CourseCompletionPolicy(
            kind=row.policy_kind,  # type: ignore[arg-type]
            pass_threshold=row.pass_threshold,
            certificate_enabled=row.certificate_enabled,
            min_attendance_rate=row.min_attendance_rate,
        ),
        category=row.category,
        workload_hours=row.workload_hours,
    )


def _row_to_module(row: CourseModuleRow) -> CourseModule:
    return CourseModule(
        id=row.id,
        course_id=row.course_id,
        position=row.position,
        title=row.title,
        is_required=row.is_required,
    )
