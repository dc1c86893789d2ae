from __future__ import annotations

from collections.abc import Collection
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from app.models.grading import AttendanceRecord, GradeRecord
from app.services.errors import DuplicateSessionError


class GradeRepo(Protocol):
    async def upsert_grade(self, record: GradeRecord) -> GradeRecord: ...
    async def list_grades(self, enrollment_id: UUID) -> list[GradeRecord]: ...
    async def add_attendance(self, record: AttendanceRecord) -> None: ...
    async def list_attendance(self, enrollment_id: UUID) -> list[AttendanceRecord]: ...
    async def has_records(self, enrollment_ids: Collection[UUID]) -> bool: ...


class InMemoryGradeRepo:
    def __init__(self) -> None:
        self._grades: dict[tuple[UUID, str], GradeRecord] = {}
        self._attendance: dict[tuple[UUID, object, str], AttendanceRecord] = {}

    async def upsert_grade(self, record: GradeRecord) -> GradeRecord:
        """Insert, or overwrite the grade already stored for this scope.

        An overwrite keeps the original id and re-stamps graded_at.
        """
        key = (record.enrollment_id, record.scope)
        existing = self._grades.get(key)
        stored = record if existing is None else replace(record, id=existing.id)
        self._grades[key] = stored
        return stored

    async def list_grades(self, enrollment_id: UUID) -> list[GradeRecord]:
        return [g for (eid, _), g in self._grades.items() if eid == enrollment_id]

    async def add_attendance(self, record: AttendanceRecord) -> None:
        key = (record.enrollment_id, record.session_date, record.session_title)
        if key in self._attendance:
            raise DuplicateSessionError(
                "attendance already recorded for this session",
                {
                    "session_date": record.session_date.isoformat(),
                    "session_title": record.session_title,
                },
            )
        self._attendance[key] = record

    async def list_attendance(self, enrollment_id: UUID) -> list[AttendanceRecord]:
        records = [
            a for a in self._attendance.values() if a.enrollment_id == enrollment_id
        ]
        return sorted(records, key=lambda a: (a.session_date, a.session_title))

    async def has_records(self, enrollment_ids: Collection[UUID]) -> bool:
        wanted = set(enrollment_ids)
        return any(eid in wanted for eid, _ in self._grades) or any(
            a.enrollment_id in wanted for a in self._attendance.values()
        )

    def clear(self) -> None:
        self._grades.clear()
        self._attendance.clear()
