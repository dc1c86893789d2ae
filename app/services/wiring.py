"""Assemble the engine services over one set of repositories.

The API builds a fresh set per request when Postgres is configured (the
repos share that request's session), or reuses one in-memory set
otherwise.  The worker builds one per task.
"""

from __future__ import annotations

from dataclasses import dataclass

from app.core.config import SETTINGS
from app.repos.certificate_repo import CertificateRepo
from app.repos.course_repo import CourseRepo
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.grade_repo import GradeRepo
from app.services.cache import CacheService
from app.services.certificate_issuer import CertificateIssuer
from app.services.clock import Clock, utc_now
from app.services.course_catalog import CourseCatalog
from app.services.eligibility import EligibilityEvaluator
from app.services.grade_aggregator import GradeAggregator
from app.services.progress_tracker import ProgressTracker
from app.services.task_queue import TaskQueue


@dataclass(frozen=True, slots=True)
class CertificationServices:
    catalog: CourseCatalog
    tracker: ProgressTracker
    aggregator: GradeAggregator
    evaluator: EligibilityEvaluator
    issuer: CertificateIssuer


def build_services(
    courses: CourseRepo,
    enrollments: EnrollmentRepo,
    grades: GradeRepo,
    certificates: CertificateRepo,
    *,
    cache: CacheService,
    queue: TaskQueue | None = None,
    clock: Clock = utc_now,
) -> CertificationServices:
    tracker = ProgressTracker(courses, enrollments, queue=queue, clock=clock)
    aggregator = GradeAggregator(courses, enrollments, grades, clock=clock)
    evaluator = EligibilityEvaluator(
        courses, enrollments, grades, certificates, tracker, aggregator
    )
    return CertificationServices(
        catalog=CourseCatalog(courses, enrollments, grades, clock=clock),
        tracker=tracker,
        aggregator=aggregator,
        evaluator=evaluator,
        issuer=CertificateIssuer(
            courses,
            certificates,
            evaluator,
            cache=cache,
            prefix=SETTINGS.certificate_prefix,
            verify_ttl=SETTINGS.verify_cache_ttl,
            clock=clock,
        ),
    )
