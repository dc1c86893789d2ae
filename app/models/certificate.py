from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

from app.models.course import PolicyKind


@dataclass(frozen=True, slots=True)
class QualifyingSnapshot:
    """Evidence values frozen at issuance.  Never recomputed."""

    policy_kind: PolicyKind
    pass_threshold: float
    percentage: int | None = None
    final_grade: float | None = None
    attendance_rate: float | None = None
    min_attendance_rate: float | None = None


@dataclass(frozen=True, slots=True)
class Certificate:
    """Issued certificate.  At most one per (user_id, course_id); never updated."""

    id: UUID
    enrollment_id: UUID
    user_id: UUID
    course_id: UUID
    issued_at: int
    certificate_number: str
    verification_code: str
    snapshot: QualifyingSnapshot

    @staticmethod
    def new(
        *,
        enrollment_id: UUID,
        user_id: UUID,
        course_id: UUID,
        issued_at: int,
        certificate_number: str,
        verification_code: str,
        snapshot: QualifyingSnapshot,
    ) -> Certificate:
        return Certificate(
            id=uuid4(),
            enrollment_id=enrollment_id,
            user_id=user_id,
            course_id=course_id,
            issued_at=issued_at,
            certificate_number=certificate_number,
            verification_code=verification_code,
            snapshot=snapshot,
        )


@dataclass(frozen=True, slots=True)
class CertificateDocument:
    """Fields a document renderer needs to lay out the certificate."""

    certificate_number: str
    verification_code: str
    course_title: str
    course_category: str | None
    course_hours: int | None
    completion_date: str  # ISO-8601 date, UTC
    overall_score: float | None
    pass_score: float
