from __future__ import annotations

import asyncio
import re
from uuid import UUID, uuid4

import pytest

from app.models.certificate import Certificate, QualifyingSnapshot
from app.models.course import CourseCompletionPolicy
from app.repos.certificate_repo import InMemoryCertificateRepo
from app.repos.course_repo import InMemoryCourseRepo
from app.repos.enrollment_repo import InMemoryEnrollmentRepo
from app.repos.grade_repo import InMemoryGradeRepo
from app.services import certificate_issuer
from app.services.cache import InMemoryCacheService
from app.services.errors import NotEligibleError, NotFoundError
from app.services.wiring import CertificationServices, build_services
from tests.conftest import FakeClock

_NUMBER_RE = re.compile(r"^CERT-2026-[0-9A-F]{12}$")


async def _completed_enrollment(services: CertificationServices, modules: int = 3):
    course = await services.catalog.create_course(
        slug=f"i-{uuid4().hex[:6]}",
        title="Grant Writing",
        category="fundraising",
        workload_hours=8,
    )
    mods = [
        await services.catalog.add_module(course.id, title=f"M{i}")
        for i in range(modules)
    ]
    enrollment = await services.catalog.enroll(uuid4(), course.id)
    for m in mods:
        await services.tracker.mark_module_complete(enrollment.id, m.id)
    return course, enrollment


def test_end_to_end_module_course(services: CertificationServices) -> None:
    async def scenario():
        course = await services.catalog.create_course(slug="e2e", title="E2E")
        mods = [
            await services.catalog.add_module(course.id, title=f"M{i}")
            for i in (1, 2, 3)
        ]
        enrollment = await services.catalog.enroll(uuid4(), course.id)
        await services.tracker.mark_module_complete(enrollment.id, mods[0].id)
        await services.tracker.mark_module_complete(enrollment.id, mods[1].id)
        partial = await services.evaluator.evaluate(enrollment.id)
        await services.tracker.mark_module_complete(enrollment.id, mods[2].id)
        full = await services.evaluator.evaluate(enrollment.id)
        first = await services.issuer.issue(enrollment.id)
        second = await services.issuer.issue(enrollment.id)
        mine = await services.issuer.list_for_user(enrollment.user_id)
        return partial, full, first, second, mine

    partial, full, first, second, mine = asyncio.run(scenario())
    assert partial.reason == "insufficient_progress"
    assert partial.details == {"percentage": 67, "required": 100.0}
    assert full.eligible is True
    assert second == first
    assert mine == [first]
    assert _NUMBER_RE.match(first.certificate_number)
    assert re.fullmatch(r"[0-9a-f]{32}", first.verification_code)
    assert first.snapshot.percentage == 100
    assert first.snapshot.policy_kind == "module_percentage"


def test_not_eligible_raises_with_reason(services: CertificationServices) -> None:
    async def scenario() -> None:
        course = await services.catalog.create_course(slug="n", title="N")
        await services.catalog.add_module(course.id, title="M")
        enrollment = await services.catalog.enroll(uuid4(), course.id)
        await services.issuer.issue(enrollment.id)

    with pytest.raises(NotEligibleError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.reason == "insufficient_progress"
    assert exc_info.value.details == {"percentage": 0, "required": 100.0}


def test_disabled_course_never_issues(services: CertificationServices) -> None:
    async def scenario() -> None:
        course = await services.catalog.create_course(
            slug="off",
            title="Off",
            policy=CourseCompletionPolicy(pass_threshold=0, certificate_enabled=False),
        )
        enrollment = await services.catalog.enroll(uuid4(), course.id)
        await services.issuer.issue(enrollment.id)

    with pytest.raises(NotEligibleError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.reason == "certificates_disabled"


def test_snapshot_survives_grade_correction(
    services: CertificationServices,
) -> None:
    policy = CourseCompletionPolicy(kind="grade_and_attendance", pass_threshold=7.0)

    async def scenario():
        course = await services.catalog.create_course(
            slug="g", title="G", policy=policy
        )
        enrollment = await services.catalog.enroll(uuid4(), course.id)
        await services.aggregator.record_grade(enrollment.id, "course-final", 8.0)
        cert = await services.issuer.issue(enrollment.id)
        await services.aggregator.record_grade(enrollment.id, "course-final", 3.0)
        again = await services.issuer.issue(enrollment.id)
        verified = await services.issuer.verify(cert.verification_code)
        return cert, again, verified

    cert, again, verified = asyncio.run(scenario())
    assert again == cert
    assert verified == cert
    assert verified.snapshot.final_grade == 8.0


# ---- concurrency ----


class _SlowCertificateRepo(InMemoryCertificateRepo):
    """Yields after every read, so all concurrent callers see "no certificate"
    before any of them inserts.
    """

    async def get_for_user_course(self, user_id: UUID, course_id: UUID):
        found = await super().get_for_user_course(user_id, course_id)
        await asyncio.sleep(0)
        return found


def test_concurrent_issue_creates_exactly_one(clock: FakeClock) -> None:
    certificates = _SlowCertificateRepo()
    services = build_services(
        InMemoryCourseRepo(),
        InMemoryEnrollmentRepo(),
        InMemoryGradeRepo(),
        certificates,
        cache=InMemoryCacheService(),
        clock=clock,
    )

    async def scenario():
        _, enrollment = await _completed_enrollment(services)
        results = await asyncio.gather(
            *(services.issuer.issue(enrollment.id) for _ in range(50))
        )
        stored = await certificates.list_for_user(enrollment.user_id)
        return results, stored

    results, stored = asyncio.run(scenario())
    assert len({c.certificate_number for c in results}) == 1
    assert len(stored) == 1
    assert stored[0].certificate_number == results[0].certificate_number


def test_number_collision_is_retried(
    services: CertificationServices, monkeypatch: pytest.MonkeyPatch
) -> None:
    numbers = iter(
        [
            "CERT-2026-AAAAAAAAAAAA",
            "CERT-2026-AAAAAAAAAAAA",
            "CERT-2026-BBBBBBBBBBBB",
        ]
    )
    monkeypatch.setattr(
        certificate_issuer, "new_certificate_number", lambda prefix, ts: next(numbers)
    )

    async def scenario():
        _, first = await _completed_enrollment(services, modules=1)
        _, second = await _completed_enrollment(services, modules=1)
        return (
            await services.issuer.issue(first.id),
            await services.issuer.issue(second.id),
        )

    a, b = asyncio.run(scenario())
    assert a.certificate_number == "CERT-2026-AAAAAAAAAAAA"
    assert b.certificate_number == "CERT-2026-BBBBBBBBBBBB"


# ---- verification ----


def test_verify_unknown_code(services: CertificationServices) -> None:
    with pytest.raises(NotFoundError):
        asyncio.run(services.issuer.verify("0" * 32))


def test_verify_is_served_from_cache(clock: FakeClock) -> None:
    cache = InMemoryCacheService()
    certificates = InMemoryCertificateRepo()
    services = build_services(
        InMemoryCourseRepo(),
        InMemoryEnrollmentRepo(),
        InMemoryGradeRepo(),
        certificates,
        cache=cache,
        clock=clock,
    )

    async def scenario():
        _, enrollment = await _completed_enrollment(services)
        cert = await services.issuer.issue(enrollment.id)
        first = await services.issuer.verify(cert.verification_code)
        # Drop the stored row: a second lookup must come from the cache.
        certificates.clear()
        second = await services.issuer.verify(cert.verification_code)
        return cert, first, second

    cert, first, second = asyncio.run(scenario())
    assert first == cert
    assert second == cert
    assert f"verify:{cert.verification_code}" in cache._store


def test_verify_misses_are_not_cached(clock: FakeClock) -> None:
    cache = InMemoryCacheService()
    services = build_services(
        InMemoryCourseRepo(),
        InMemoryEnrollmentRepo(),
        InMemoryGradeRepo(),
        InMemoryCertificateRepo(),
        cache=cache,
        clock=clock,
    )
    with pytest.raises(NotFoundError):
        asyncio.run(services.issuer.verify("missing"))
    assert cache._store == {}


def test_certificate_json_round_trip() -> None:
    cert = Certificate.new(
        enrollment_id=uuid4(),
        user_id=uuid4(),
        course_id=uuid4(),
        issued_at=1772323200,
        certificate_number="CERT-2026-0123456789AB",
        verification_code="f" * 32,
        snapshot=QualifyingSnapshot(
            policy_kind="grade_and_attendance",
            pass_threshold=7.0,
            final_grade=8.25,
            attendance_rate=0.9,
            min_attendance_rate=0.75,
        ),
    )
    raw = certificate_issuer.certificate_to_json(cert)
    assert certificate_issuer.certificate_from_json(raw) == cert


# ---- document ----


def test_document_for_module_course(services: CertificationServices) -> None:
    async def scenario():
        _, enrollment = await _completed_enrollment(services)
        cert = await services.issuer.issue(enrollment.id)
        return cert, await services.issuer.get_document(cert.verification_code)

    cert, doc = asyncio.run(scenario())
    assert doc.certificate_number == cert.certificate_number
    assert doc.course_title == "Grant Writing"
    assert doc.course_category == "fundraising"
    assert doc.course_hours == 8
    assert doc.completion_date == "2026-03-01"
    assert doc.overall_score == 100.0
    assert doc.pass_score == 100.0


def test_document_for_graded_course(services: CertificationServices) -> None:
    policy = CourseCompletionPolicy(kind="grade_and_attendance", pass_threshold=6.0)

    async def scenario():
        course = await services.catalog.create_course(
            slug="doc", title="Doc", policy=policy
        )
        enrollment = await services.catalog.enroll(uuid4(), course.id)
        await services.aggregator.record_grade(enrollment.id, "course-final", 9.5)
        cert = await services.issuer.issue(enrollment.id)
        return await services.issuer.get_document(cert.verification_code)

    doc = asyncio.run(scenario())
    assert doc.overall_score == 9.5
    assert doc.pass_score == 6.0
