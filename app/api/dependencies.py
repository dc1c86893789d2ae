from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from app.db.engine import async_session_factory, session_scope
from app.repos.certificate_repo import InMemoryCertificateRepo
from app.repos.course_repo import InMemoryCourseRepo
from app.repos.enrollment_repo import InMemoryEnrollmentRepo
from app.repos.grade_repo import InMemoryGradeRepo
from app.repos.pg_certificate_repo import PgCertificateRepo
from app.repos.pg_course_repo import PgCourseRepo
from app.repos.pg_enrollment_repo import PgEnrollmentRepo
from app.repos.pg_grade_repo import PgGradeRepo
from app.services.cache import cache_service
from app.services.task_queue import task_queue
from app.services.wiring import CertificationServices, build_services

logger = logging.getLogger(__name__)

# In-memory stores, used when DATABASE_URL is not configured.  Module-level
# so state survives across requests; tests reset them between cases.
course_repo = InMemoryCourseRepo()
enrollment_repo = InMemoryEnrollmentRepo()
grade_repo = InMemoryGradeRepo()
certificate_repo = InMemoryCertificateRepo()

_in_memory_services = build_services(
    course_repo,
    enrollment_repo,
    grade_repo,
    certificate_repo,
    cache=cache_service,
    queue=task_queue,
)


async def get_services() -> AsyncGenerator[CertificationServices, None]:
    """FastAPI dependency: the engine services for this request.

    With Postgres, every request is one unit of work: the repos share a
    session that commits when the handler returns and rolls back if it
    raises.
    """
    if async_session_factory is None:
        yield _in_memory_services
        return

    async with session_scope() as session:
        yield build_services(
            PgCourseRepo(session),
            PgEnrollmentRepo(session),
            PgGradeRepo(session),
            PgCertificateRepo(session),
            cache=cache_service,
            queue=task_queue,
        )
