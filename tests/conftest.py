from __future__ import annotations

import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from app.api.dependencies import (
    certificate_repo,
    course_repo,
    enrollment_repo,
    grade_repo,
)
from app.main import app
from app.repos.certificate_repo import InMemoryCertificateRepo
from app.repos.course_repo import InMemoryCourseRepo
from app.repos.enrollment_repo import InMemoryEnrollmentRepo
from app.repos.grade_repo import InMemoryGradeRepo
from app.services.cache import InMemoryCacheService, cache_service
from app.services.task_queue import InMemoryTaskQueue, task_queue
from app.services.wiring import CertificationServices, build_services

# Ensure repo root is on sys.path so `import app` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Clear the API's in-memory repos between tests."""
    course_repo.clear()
    enrollment_repo.clear()
    grade_repo.clear()
    certificate_repo.clear()


@pytest.fixture(autouse=True)
def reset_cache() -> None:
    """Clear cache between tests."""
    if hasattr(cache_service, "_store"):
        cache_service._store.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    """Clear task queues between tests."""
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Service-level helpers
# ---------------------------------------------------------------------------


class FakeClock:
    """Deterministic clock: starts at 2026-03-01T00:00:00Z, advance() by hand."""

    def __init__(self, start: int = 1772323200) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int = 1) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue() -> InMemoryTaskQueue:
    return InMemoryTaskQueue()


@pytest.fixture
def services(clock: FakeClock, queue: InMemoryTaskQueue) -> CertificationServices:
    """A private service set over fresh in-memory repos."""
    return build_services(
        InMemoryCourseRepo(),
        InMemoryEnrollmentRepo(),
        InMemoryGradeRepo(),
        InMemoryCertificateRepo(),
        cache=InMemoryCacheService(),
        queue=queue,
        clock=clock,
    )
