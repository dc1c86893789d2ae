"""PostgreSQL implementation of GradeRepo."""

from __future__ import annotations

from collections.abc import Collection
from dataclasses import replace
from uuid import UUID

from sqlalchemy import exists, or_, select
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import AttendanceRecordRow, GradeRecordRow
from app.models.grading import AttendanceRecord, GradeRecord
from app.services.errors import DuplicateSessionError


class PgGradeRepo:
    """Satisfies the GradeRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def upsert_grade(self, record: GradeRecord) -> GradeRecord:
        # Last writer wins; the stored id survives an overwrite.
        stmt = (
            insert(GradeRecordRow)
            .values(
                id=record.id,
                enrollment_id=record.enrollment_id,
                scope=record.scope,
                scale=record.scale,
                passed=record.passed,
                graded_at=record.graded_at,
                feedback=record.feedback,
            )
            .on_conflict_do_update(
                constraint="uq_grade_records_scope",
                set_={
                    "scale": record.scale,
                    "passed": record.passed,
                    "graded_at": record.graded_at,
                    "feedback": record.feedback,
                },
            )
            .returning(GradeRecordRow.id)
        )
        stored_id = (await self._session.execute(stmt)).scalar_one()
        return replace(record, id=stored_id)

    async def list_grades(self, enrollment_id: UUID) -> list[GradeRecord]:
        stmt = select(GradeRecordRow).where(
            GradeRecordRow.enrollment_id == enrollment_id
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_grade(r) for r in rows]

    async def add_attendance(self, record: AttendanceRecord) -> None:
        row = AttendanceRecordRow(
            id=record.id,
            enrollment_id=record.enrollment_id,
            session_date=record.session_date,
            session_title=record.session_title,
            status=record.status,
            marked_at=record.marked_at,
            notes=record.notes,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise DuplicateSessionError(
                "attendance already recorded for this session",
                {
                    "session_date": record.session_date.isoformat(),
                    "session_title": record.session_title,
                },
            ) from None

    async def list_attendance(self, enrollment_id: UUID) -> list[AttendanceRecord]:
        stmt = (
            select(AttendanceRecordRow)
            .where(AttendanceRecordRow.enrollment_id == enrollment_id)
            .order_by(
                AttendanceRecordRow.session_date, AttendanceRecordRow.session_title
            )
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_attendance(r) for r in rows]

    async def has_records(self, enrollment_ids: Collection[UUID]) -> bool:
        if not enrollment_ids:
            return False
        ids = list(enrollment_ids)
        stmt = select(
            or_(
                exists().where(GradeRecordRow.enrollment_id.in_(ids)),
                exists().where(AttendanceRecordRow.enrollment_id.in_(ids)),
            )
        )
        return bool((await self._session.execute(stmt)).scalar())


def _row_to_grade(row: GradeRecordRow) -> GradeRecord:
    return GradeRecord(
        id=row.id,
        enrollment_id=row.enrollment_id,
        scope=row.scope,
        scale=row.scale,
        passed=row.passed,
        graded_at=row.graded_at,
        feedback=row.feedback,
    )


def _row_to_attendance(row: AttendanceRecordRow) -> AttendanceRecord:
    return AttendanceRecord(
        id=row.id,
        enrollment_id=row.enrollment_id,
        session_date=row.session_date,
        session_title=row.session_title,
        status=row.status,  # type: ignore[arg-type]
        marked_at=row.marked_at,
        notes=row.notes,
    )
