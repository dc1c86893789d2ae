"""Background worker process.

RUN:  python -m app.worker

Same image as the API, different command:
  api:    uvicorn app.main:app --host 0.0.0.0 --port 8000
  worker: python -m app.worker

Consumes the eligibility_evaluation queue that ProgressTracker feeds when
a module is newly completed.  For each task it re-evaluates the
enrollment; with AUTO_ISSUE_CERTIFICATES=true an eligible enrollment gets
its certificate issued right away instead of waiting for the learner to
ask.  Issuance is idempotent, so duplicate tasks are harmless.

The worker needs DATABASE_URL: without Postgres it shares no state with
the API process, and tasks are dropped with a warning.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any
from uuid import UUID

from app.core.config import SETTINGS
from app.core.logging import setup_logging
from app.db.engine import async_session_factory, session_scope
from app.repos.pg_certificate_repo import PgCertificateRepo
from app.repos.pg_course_repo import PgCourseRepo
from app.repos.pg_enrollment_repo import PgEnrollmentRepo
from app.repos.pg_grade_repo import PgGradeRepo
from app.services.cache import cache_service
from app.services.errors import NotFoundError
from app.services.task_queue import ELIGIBILITY_QUEUE, Task, TaskQueue, task_queue
from app.services.wiring import CertificationServices, build_services

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("worker")

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


async def reevaluate(
    services: CertificationServices, enrollment_id: UUID, *, auto_issue: bool
) -> bool:
    """Evaluate one enrollment; issue its certificate if asked to.

    Returns True when the enrollment is eligible.
    """
    try:
        result = await services.evaluator.evaluate(enrollment_id)
    except NotFoundError:
        # Enrollment removed between enqueue and processing.
        logger.warning(
            "Skipping re-evaluation of unknown enrollment",
            extra={"enrollment_id": str(enrollment_id)},
        )
        return False

    if not result.eligible:
        logger.info(
            "Enrollment not yet eligible",
            extra={"enrollment_id": str(enrollment_id), "reason": result.reason},
        )
        return False

    if auto_issue:
        cert = await services.issuer.issue(enrollment_id)
        logger.info(
            "Auto-issued certificate",
            extra={
                "enrollment_id": str(enrollment_id),
                "certificate_number": cert.certificate_number,
            },
        )
    return True


@register_handler(ELIGIBILITY_QUEUE)
async def handle_eligibility_evaluation(payload: dict) -> None:
    enrollment_id = UUID(payload["enrollment_id"])
    if async_session_factory is None:
        logger.warning(
            "DATABASE_URL not configured, dropping task",
            extra={"enrollment_id": str(enrollment_id)},
        )
        return

    async with session_scope() as session:
        services = build_services(
            PgCourseRepo(session),
            PgEnrollmentRepo(session),
            PgGradeRepo(session),
            PgCertificateRepo(session),
            cache=cache_service,
        )
        await reevaluate(
            services, enrollment_id, auto_issue=SETTINGS.auto_issue_certificates
        )


async def process_next(queue: TaskQueue, queue_name: str, timeout: int = 1) -> Task | None:
    """Pop one task from `queue_name` and run its handler.

    A failing handler is logged and the task dropped; the loop goes on.
    """
    task = await queue.dequeue(queue_name, timeout=timeout)
    if task is None:
        return None

    handler = HANDLERS[queue_name]
    try:
        await handler(task.payload)
        logger.info("Task %s on [%s] completed", task.id, queue_name)
    except Exception:
        logger.exception("Task %s on [%s] failed", task.id, queue_name)
    return task


async def run_worker() -> None:
    queues = list(HANDLERS.keys())
    logger.info("Worker started — listening on queues: %s", queues)
    while True:
        handled = [await process_next(task_queue, q) for q in queues]
        # The in-memory queue returns immediately instead of blocking.
        if not any(handled):
            await asyncio.sleep(1)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
