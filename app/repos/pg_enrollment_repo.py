"""PostgreSQL implementation of EnrollmentRepo."""

from __future__ import annotations

from collections.abc import Collection
from uuid import UUID

from sqlalchemy import exists, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import EnrollmentRow, ModuleProgressRow
from app.models.enrollment import Enrollment, ModuleProgress
from app.services.errors import AlreadyEnrolledError


class PgEnrollmentRepo:
    """Satisfies the EnrollmentRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, enrollment_id: UUID) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(EnrollmentRow.id == enrollment_id)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def get_for_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Enrollment | None:
        stmt = select(EnrollmentRow).where(
            EnrollmentRow.user_id == user_id, EnrollmentRow.course_id == course_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_enrollment(row)

    async def add(self, enrollment: Enrollment) -> None:
        row = EnrollmentRow(
            id=enrollment.id,
            user_id=enrollment.user_id,
            course_id=enrollment.course_id,
            enrolled_at=enrollment.enrolled_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise AlreadyEnrolledError(
                "already enrolled",
                {
                    "user_id": str(enrollment.user_id),
                    "course_id": str(enrollment.course_id),
                },
            ) from None

    async def list_for_course(self, course_id: UUID) -> list[Enrollment]:
        stmt = select(EnrollmentRow).where(EnrollmentRow.course_id == course_id)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_enrollment(r) for r in rows]

    async def list_module_progress(self, enrollment_id: UUID) -> list[ModuleProgress]:
        stmt = select(ModuleProgressRow).where(
            ModuleProgressRow.enrollment_id == enrollment_id
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_progress(r) for r in rows]

    async def mark_completed(
        self, enrollment_id: UUID, module_id: UUID, completed_at: int
    ) -> tuple[ModuleProgress, bool]:
        # Single statement: insert, or fill completed_at only while it is NULL.
        # RETURNING is empty when the row was already completed.
        stmt = (
            insert(ModuleProgressRow)
            .values(
                enrollment_id=enrollment_id,
                module_id=module_id,
                completed_at=completed_at,
            )
            .on_conflict_do_update(
                index_elements=["enrollment_id", "module_id"],
                set_={"completed_at": completed_at},
                where=ModuleProgressRow.completed_at.is_(None),
            )
            .returning(ModuleProgressRow.completed_at)
        )
        stamped = (await self._session.execute(stmt)).scalar_one_or_none()
        if stamped is not None:
            return (
                ModuleProgress(
                    enrollment_id=enrollment_id,
                    module_id=module_id,
                    completed_at=stamped,
                ),
                True,
            )

        current = select(ModuleProgressRow).where(
            ModuleProgressRow.enrollment_id == enrollment_id,
            ModuleProgressRow.module_id == module_id,
        )
        row = (await self._session.execute(current)).scalar_one()
        return _row_to_progress(row), False

    async def has_completions(self, enrollment_ids: Collection[UUID]) -> bool:
        if not enrollment_ids:
            return False
        stmt = select(
            exists().where(
                ModuleProgressRow.enrollment_id.in_(list(enrollment_ids)),
                ModuleProgressRow.completed_at.is_not(None),
            )
        )
        return bool((await self._session.execute(stmt)).scalar())


def _row_to_enrollment(row: EnrollmentRow) -> Enrollment:
    return Enrollment(
        id=row.id,
        user_id=row.user_id,
        course_id=row.course_id,
        enrolled_at=row.enrolled_at,
    )


def _row_to_progress(row: ModuleProgressRow) -> ModuleProgress:
    return ModuleProgress(
        enrollment_id=row.enrollment_id,
        module_id=row.module_id,
        completed_at=row.completed_at,
    )
