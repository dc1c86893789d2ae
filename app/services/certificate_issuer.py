"""Certificate issuance and verification.

The issuer is the only writer of certificate records.  "At most one
certificate per (user, course)" is enforced by a unique key in storage,
not by a lock here:

  1. existing certificate for (user, course)?  -> return it
  2. assess eligibility                        -> NotEligibleError if denied
  3. insert a new certificate
       unique key clash                        -> re-read and return the winner

Step 3 can also clash on certificate_number or verification_code (random
values).  In that case there is no winner to re-read, so fresh values are
generated and the insert retried.
"""

from __future__ import annotations

import datetime
import json
import logging
import secrets
from dataclasses import asdict
from uuid import UUID

from app.core.metrics import CERTIFICATES_ISSUED
from app.models.certificate import Certificate, CertificateDocument, QualifyingSnapshot
from app.repos.certificate_repo import CertificateRepo
from app.repos.course_repo import CourseRepo
from app.services.cache import CacheService
from app.services.clock import Clock, utc_now
from app.services.eligibility import EligibilityEvaluator
from app.services.errors import (
    CertificateAlreadyExistsError,
    NotEligibleError,
    NotFoundError,
)

logger = logging.getLogger(__name__)

_MAX_INSERT_ATTEMPTS = 3


def new_certificate_number(prefix: str, issued_at: int) -> str:
    """Human-presentable number, e.g. CERT-2026-3F9A0C1B7D2E."""
    year = datetime.datetime.fromtimestamp(issued_at, datetime.UTC).year
    return f"{prefix}-{year}-{secrets.token_hex(6).upper()}"


def new_verification_code() -> str:
    return secrets.token_hex(16)


def certificate_to_json(cert: Certificate) -> str:
    data = asdict(cert)
    for key in ("id", "enrollment_id", "user_id", "course_id"):
        data[key] = str(data[key])
    return json.dumps(data)


def certificate_from_json(raw: str) -> Certificate:
    data = json.loads(raw)
    return Certificate(
        id=UUID(data["id"]),
        enrollment_id=UUID(data["enrollment_id"]),
        user_id=UUID(data["user_id"]),
        course_id=UUID(data["course_id"]),
        issued_at=data["issued_at"],
        certificate_number=data["certificate_number"],
        verification_code=data["verification_code"],
        snapshot=QualifyingSnapshot(**data["snapshot"]),
    )


class CertificateIssuer:
    def __init__(
        self,
        courses: CourseRepo,
        certificates: CertificateRepo,
        evaluator: EligibilityEvaluator,
        *,
        cache: CacheService,
        prefix: str = "CERT",
        verify_ttl: int = 3600,
        clock: Clock = utc_now,
    ) -> None:
        self._courses = courses
        self._certificates = certificates
        self._evaluator = evaluator
        self._cache = cache
        self._prefix = prefix
        self._verify_ttl = verify_ttl
        self._clock = clock

    async def issue(self, enrollment_id: UUID) -> Certificate:
        """Return the enrollment's certificate, creating it if eligible.

        Safe to call any number of times, concurrently included: every
        caller gets the same certificate.
        """
        enrollment, course = await self._evaluator.load(enrollment_id)
        log_extra = {"enrollment_id": str(enrollment_id), "course_id": str(course.id)}

        existing = await self._certificates.get_for_user_course(
            enrollment.user_id, enrollment.course_id
        )
        if existing is not None:
            CERTIFICATES_ISSUED.labels(outcome="existing").inc()
            return existing

        result, snapshot = await self._evaluator.assess(enrollment, course)
        if not result.eligible:
            logger.info(
                "Certificate refused",
                extra={**log_extra, "reason": result.reason},
            )
            raise NotEligibleError(result.reason or "not_eligible", result.details)

        for _ in range(_MAX_INSERT_ATTEMPTS):
            issued_at = self._clock()
            cert = Certificate.new(
                enrollment_id=enrollment.id,
                user_id=enrollment.user_id,
                course_id=enrollment.course_id,
                issued_at=issued_at,
                certificate_number=new_certificate_number(self._prefix, issued_at),
                verification_code=new_verification_code(),
                snapshot=snapshot,
            )
            try:
                await self._certificates.add(cert)
            except CertificateAlreadyExistsError:
                winner = await self._certificates.get_for_user_course(
                    enrollment.user_id, enrollment.course_id
                )
                if winner is not None:
                    CERTIFICATES_ISSUED.labels(outcome="race").inc()
                    logger.info(
                        "Concurrent issuance resolved to existing certificate",
                        extra={
                            **log_extra,
                            "certificate_number": winner.certificate_number,
                        },
                    )
                    return winner
                logger.warning(
                    "Certificate number or code collision, retrying", extra=log_extra
                )
                continue

            CERTIFICATES_ISSUED.labels(outcome="created").inc()
            logger.info(
                "Certificate issued",
                extra={**log_extra, "certificate_number": cert.certificate_number},
            )
            return cert

        raise RuntimeError(
            f"could not allocate a unique certificate number after "
            f"{_MAX_INSERT_ATTEMPTS} attempts"
        )

    async def verify(self, verification_code: str) -> Certificate:
        """Public lookup by verification code.  Raises NotFoundError."""
        cache_key = f"verify:{verification_code}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return certificate_from_json(cached)

        cert = await self._certificates.get_by_verification_code(verification_code)
        if cert is None:
            raise NotFoundError("certificate not found")

        await self._cache.set(cache_key, certificate_to_json(cert), self._verify_ttl)
        return cert

    async def list_for_user(self, user_id: UUID) -> list[Certificate]:
        return await self._certificates.list_for_user(user_id)

    async def get_document(self, verification_code: str) -> CertificateDocument:
        cert = await self.verify(verification_code)
        course = await self._courses.get(cert.course_id)
        if course is None:
            raise NotFoundError("course not found", {"course_id": str(cert.course_id)})

        snap = cert.snapshot
        if snap.policy_kind == "grade_and_attendance":
            overall = snap.final_grade
        else:
            overall = float(snap.percentage) if snap.percentage is not None else None

        return CertificateDocument(
            certificate_number=cert.certificate_number,
            verification_code=cert.verification_code,
            course_title=course.title,
            course_category=course.category,
            course_hours=course.workload_hours,
            completion_date=datetime.datetime.fromtimestamp(
                cert.issued_at, datetime.UTC
            ).date().isoformat(),
            overall_score=overall,
            pass_score=snap.pass_threshold,
        )
