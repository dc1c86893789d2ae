"""Module progress tracking.

Percentages are never stored.  Every read rebuilds the snapshot from the
enrollment's module_progress rows and the course's current module list,
so adding or removing modules after enrollment can't leave a stale value
behind.  Only required modules count; optional ones are reported but
neither block nor inflate the percentage.
"""

from __future__ import annotations

import logging
from uuid import UUID

from app.core.metrics import MODULE_COMPLETIONS
from app.models.enrollment import Enrollment, ProgressSnapshot, percent_complete
from app.repos.course_repo import CourseRepo
from app.repos.enrollment_repo import EnrollmentRepo
from app.services.clock import Clock, utc_now
from app.services.errors import ModuleNotInCourseError, NotFoundError
from app.services.task_queue import ELIGIBILITY_QUEUE, TaskQueue

logger = logging.getLogger(__name__)


class ProgressTracker:
    def __init__(
        self,
        courses: CourseRepo,
        enrollments: EnrollmentRepo,
        *,
        queue: TaskQueue | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._courses = courses
        self._enrollments = enrollments
        self._queue = queue
        self._clock = clock

    async def mark_module_complete(
        self, enrollment_id: UUID, module_id: UUID
    ) -> ProgressSnapshot:
        """Record a module as completed and return the fresh snapshot.

        Repeating the call is a no-op: completed_at keeps its first value.
        """
        enrollment = await self._require_enrollment(enrollment_id)

        module = await self._courses.get_module(module_id)
        if module is None:
            raise NotFoundError("module not found", {"module_id": str(module_id)})
        if module.course_id != enrollment.course_id:
            raise ModuleNotInCourseError(
                "module belongs to a different course",
                {
                    "module_id": str(module_id),
                    "course_id": str(enrollment.course_id),
                },
            )

        _, newly_completed = await self._enrollments.mark_completed(
            enrollment_id, module_id, self._clock()
        )
        if newly_completed:
            MODULE_COMPLETIONS.inc()
            logger.info(
                "Module %s completed",
                module_id,
                extra={"enrollment_id": str(enrollment_id)},
            )
            await self._request_reevaluation(enrollment)

        return await self.snapshot(enrollment)

    async def get_progress(self, enrollment_id: UUID) -> ProgressSnapshot:
        enrollment = await self._require_enrollment(enrollment_id)
        return await self.snapshot(enrollment)

    async def snapshot(self, enrollment: Enrollment) -> ProgressSnapshot:
        modules = await self._courses.list_modules(enrollment.course_id)
        required = {m.id for m in modules if m.is_required}
        optional = {m.id for m in modules if not m.is_required}

        completed = {
            p.module_id
            for p in await self._enrollments.list_module_progress(enrollment.id)
            if p.is_completed
        }
        done_required = len(completed & required)
        done_optional = len(completed & optional)

        return ProgressSnapshot(
            enrollment_id=enrollment.id,
            completed_required=done_required,
            total_required=len(required),
            completed_optional=done_optional,
            percentage=percent_complete(done_required, len(required)),
            completed_module_ids=tuple(m.id for m in modules if m.id in completed),
        )

    async def _require_enrollment(self, enrollment_id: UUID) -> Enrollment:
        enrollment = await self._enrollments.get(enrollment_id)
        if enrollment is None:
            raise NotFoundError(
                "enrollment not found", {"enrollment_id": str(enrollment_id)}
            )
        return enrollment

    async def _request_reevaluation(self, enrollment: Enrollment) -> None:
        # Fire-and-forget: the completion is already stored, so a queue
        # outage only delays the background check.
        if self._queue is None:
            return
        try:
            await self._queue.enqueue(
                ELIGIBILITY_QUEUE, {"enrollment_id": str(enrollment.id)}
            )
        except Exception:
            logger.exception(
                "Could not enqueue eligibility re-evaluation",
                extra={"enrollment_id": str(enrollment.id)},
            )
