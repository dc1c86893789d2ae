"""Per-enrollment endpoints: progress, grading, attendance, eligibility.

Progress, aggregates and eligibility are computed from stored records on
every request; nothing here is cached.

Refusing a certificate is a 409 with the reason the learner is not yet
eligible, e.g.:

    {"detail": {"reason": "insufficient_progress",
                "details": {"percentage": 67, "required": 100.0}, ...}}
"""

from __future__ import annotations

import datetime
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.api.certificates import CertificateOut, certificate_out
from app.api.dependencies import get_services
from app.models.enrollment import ProgressSnapshot
from app.models.grading import AttendanceRecord, AttendanceStatus, GradeRecord
from app.services.wiring import CertificationServices

router = APIRouter(prefix="/v1/enrollments", tags=["enrollments"])

Services = Annotated[CertificationServices, Depends(get_services)]


class ProgressOut(BaseModel):
    enrollment_id: str
    completed_required: int
    total_required: int
    completed_optional: int
    percentage: int
    completed_module_ids: list[str]


class GradeIn(BaseModel):
    scale: float
    feedback: str | None = Field(default=None, max_length=2000)


class GradeOut(BaseModel):
    id: str
    enrollment_id: str
    scope: str
    scale: float
    passed: bool
    graded_at: int
    feedback: str | None


class AttendanceIn(BaseModel):
    session_date: datetime.date
    session_title: str = Field(max_length=200)
    status: AttendanceStatus
    notes: str | None = Field(default=None, max_length=2000)


class AttendanceOut(BaseModel):
    id: str
    session_date: datetime.date
    session_title: str
    status: str
    marked_at: int
    notes: str | None


class AggregateOut(BaseModel):
    enrollment_id: str
    final_grade: GradeOut | None
    attendance_rate: float
    present_count: int
    late_count: int
    absent_count: int
    excused_count: int
    total_sessions: int
    module_grade_average: float | None


class EligibilityOut(BaseModel):
    eligible: bool
    reason: str | None
    details: dict


class StateOut(BaseModel):
    enrollment_id: str
    state: str


def _progress_out(p: ProgressSnapshot) -> ProgressOut:
    return ProgressOut(
        enrollment_id=str(p.enrollment_id),
        completed_required=p.completed_required,
        total_required=p.total_required,
        completed_optional=p.completed_optional,
        percentage=p.percentage,
        completed_module_ids=[str(m) for m in p.completed_module_ids],
    )


def _grade_out(g: GradeRecord) -> GradeOut:
    return GradeOut(
        id=str(g.id),
        enrollment_id=str(g.enrollment_id),
        scope=g.scope,
        scale=g.scale,
        passed=g.passed,
        graded_at=g.graded_at,
        feedback=g.feedback,
    )


def _attendance_out(a: AttendanceRecord) -> AttendanceOut:
    return AttendanceOut(
        id=str(a.id),
        session_date=a.session_date,
        session_title=a.session_title,
        status=a.status,
        marked_at=a.marked_at,
        notes=a.notes,
    )


@router.post(
    "/{enrollment_id}/modules/{module_id}/complete", response_model=ProgressOut
)
async def complete_module(
    enrollment_id: UUID, module_id: UUID, services: Services
) -> ProgressOut:
    snapshot = await services.tracker.mark_module_complete(enrollment_id, module_id)
    return _progress_out(snapshot)


@router.get("/{enrollment_id}/progress", response_model=ProgressOut)
async def get_progress(enrollment_id: UUID, services: Services) -> ProgressOut:
    return _progress_out(await services.tracker.get_progress(enrollment_id))


@router.put("/{enrollment_id}/grades/{scope}", response_model=GradeOut)
async def record_grade(
    enrollment_id: UUID, scope: str, body: GradeIn, services: Services
) -> GradeOut:
    grade = await services.aggregator.record_grade(
        enrollment_id, scope, body.scale, body.feedback
    )
    return _grade_out(grade)


@router.post(
    "/{enrollment_id}/attendance",
    response_model=AttendanceOut,
    status_code=status.HTTP_201_CREATED,
)
async def record_attendance(
    enrollment_id: UUID, body: AttendanceIn, services: Services
) -> AttendanceOut:
    record = await services.aggregator.record_attendance(
        enrollment_id, body.session_date, body.session_title, body.status, body.notes
    )
    return _attendance_out(record)


@router.get("/{enrollment_id}/attendance", response_model=list[AttendanceOut])
async def list_attendance(
    enrollment_id: UUID, services: Services
) -> list[AttendanceOut]:
    records = await services.aggregator.list_attendance(enrollment_id)
    return [_attendance_out(a) for a in records]


@router.get("/{enrollment_id}/aggregate", response_model=AggregateOut)
async def get_aggregate(enrollment_id: UUID, services: Services) -> AggregateOut:
    agg = await services.aggregator.get_aggregate(enrollment_id)
    return AggregateOut(
        enrollment_id=str(agg.enrollment_id),
        final_grade=_grade_out(agg.final_grade) if agg.final_grade else None,
        attendance_rate=round(agg.attendance_rate, 4),
        present_count=agg.present_count,
        late_count=agg.late_count,
        absent_count=agg.absent_count,
        excused_count=agg.excused_count,
        total_sessions=agg.total_sessions,
        module_grade_average=agg.module_grade_average,
    )


@router.get("/{enrollment_id}/eligibility", response_model=EligibilityOut)
async def get_eligibility(enrollment_id: UUID, services: Services) -> EligibilityOut:
    result = await services.evaluator.evaluate(enrollment_id)
    return EligibilityOut(
        eligible=result.eligible, reason=result.reason, details=result.details
    )


@router.get("/{enrollment_id}/state", response_model=StateOut)
async def get_state(enrollment_id: UUID, services: Services) -> StateOut:
    state = await services.evaluator.state(enrollment_id)
    return StateOut(enrollment_id=str(enrollment_id), state=state)


@router.post("/{enrollment_id}/certificate", response_model=CertificateOut)
async def issue_certificate(
    enrollment_id: UUID, services: Services
) -> CertificateOut:
    """Issue (or return the already issued) certificate.  Idempotent."""
    return certificate_out(await services.issuer.issue(enrollment_id))
