"""PostgreSQL implementation of CertificateRepo.

The insert runs inside a SAVEPOINT so a unique-key clash rolls back only
that insert; the surrounding transaction stays usable for the re-read
the issuer does next.
"""

from __future__ import annotations

import json
from dataclasses import asdict
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.tables import CertificateRow
from app.models.certificate import Certificate, QualifyingSnapshot
from app.services.errors import CertificateAlreadyExistsError


class PgCertificateRepo:
    """Satisfies the CertificateRepo Protocol using PostgreSQL via SQLAlchemy."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_for_user_course(
        self, user_id: UUID, course_id: UUID
    ) -> Certificate | None:
        stmt = select(CertificateRow).where(
            CertificateRow.user_id == user_id, CertificateRow.course_id == course_id
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    async def get_by_verification_code(self, code: str) -> Certificate | None:
        stmt = select(CertificateRow).where(CertificateRow.verification_code == code)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        if row is None:
            return None
        return _row_to_certificate(row)

    async def list_for_user(self, user_id: UUID) -> list[Certificate]:
        stmt = (
            select(CertificateRow)
            .where(CertificateRow.user_id == user_id)
            .order_by(CertificateRow.issued_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_certificate(r) for r in rows]

    async def add(self, certificate: Certificate) -> None:
        row = CertificateRow(
            id=certificate.id,
            enrollment_id=certificate.enrollment_id,
            user_id=certificate.user_id,
            course_id=certificate.course_id,
            issued_at=certificate.issued_at,
            certificate_number=certificate.certificate_number,
            verification_code=certificate.verification_code,
            snapshot_json=json.dumps(asdict(certificate.snapshot)),
        )
        try:
            async with self._session.begin_nested():
                self._session.add(row)
        except IntegrityError:
            raise CertificateAlreadyExistsError(
                "certificate already exists",
                {
                    "user_id": str(certificate.user_id),
                    "course_id": str(certificate.course_id),
                },
            ) from None


def _row_to_certificate(row: CertificateRow) -> Certificate:
    return Certificate(
        id=row.id,
        enrollment_id=row.enrollment_id,
        user_id=row.user_id,
        course_id=row.course_id,
        issued_at=row.issued_at,
        certificate_number=row.certificate_number,
        verification_code=row.verification_code,
        snapshot=QualifyingSnapshot(**json.loads(row.snapshot_json)),
    )
