"""Public certificate lookups.

Verification needs no session: anyone holding a verification code (the
link printed on the certificate) can confirm it is genuine.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app.api.dependencies import get_services
from app.models.certificate import Certificate
from app.services.wiring import CertificationServices

router = APIRouter(tags=["certificates"])

Services = Annotated[CertificationServices, Depends(get_services)]


class SnapshotOut(BaseModel):
    policy_kind: str
    pass_threshold: float
    percentage: int | None
    final_grade: float | None
    attendance_rate: float | None
    min_attendance_rate: float | None


class CertificateOut(BaseModel):
    id: str
    enrollment_id: str
    user_id: str
    course_id: str
    issued_at: int
    certificate_number: str
    verification_code: str
    snapshot: SnapshotOut


class CertificateDocumentOut(BaseModel):
    certificate_number: str
    verification_code: str
    course_title: str
    course_category: str | None
    course_hours: int | None
    completion_date: str
    overall_score: float | None
    pass_score: float


def certificate_out(cert: Certificate) -> CertificateOut:
    s = cert.snapshot
    return CertificateOut(
        id=str(cert.id),
        enrollment_id=str(cert.enrollment_id),
        user_id=str(cert.user_id),
        course_id=str(cert.course_id),
        issued_at=cert.issued_at,
        certificate_number=cert.certificate_number,
        verification_code=cert.verification_code,
        snapshot=SnapshotOut(
            policy_kind=s.policy_kind,
            pass_threshold=s.pass_threshold,
            percentage=s.percentage,
            final_grade=s.final_grade,
            attendance_rate=s.attendance_rate,
            min_attendance_rate=s.min_attendance_rate,
        ),
    )


@router.get("/v1/certificates/verify/{code}", response_model=CertificateOut)
async def verify_certificate(code: str, services: Services) -> CertificateOut:
    return certificate_out(await services.issuer.verify(code))


@router.get(
    "/v1/certificates/verify/{code}/document", response_model=CertificateDocumentOut
)
async def get_certificate_document(
    code: str, services: Services
) -> CertificateDocumentOut:
    doc = await services.issuer.get_document(code)
    return CertificateDocumentOut(
        certificate_number=doc.certificate_number,
        verification_code=doc.verification_code,
        course_title=doc.course_title,
        course_category=doc.course_category,
        course_hours=doc.course_hours,
        completion_date=doc.completion_date,
        overall_score=doc.overall_score,
        pass_score=doc.pass_score,
    )


@router.get("/v1/users/{user_id}/certificates", response_model=list[CertificateOut])
async def list_user_certificates(
    user_id: UUID, services: Services
) -> list[CertificateOut]:
    return [certificate_out(c) for c in await services.issuer.list_for_user(user_id)]
