"""Certificate eligibility.

One dispatch on the course's policy kind decides eligibility for both
self-paced (module percentage) and instructor-led (grade + attendance)
courses:

  1. certificates disabled            -> certificates_disabled
  2. certificate already issued       -> eligible
  3. module_percentage:
       percentage < threshold         -> insufficient_progress
  4. grade_and_attendance:
       no course-final grade          -> not_graded
       final grade < threshold        -> grade_below_threshold
       attendance rate < gate (if set)-> insufficient_attendance
  otherwise                           -> eligible

`evaluate` only reads.  Its cost is bounded by one enrollment's records,
so callers may run it on every page load.
"""

from __future__ import annotations

import logging
from uuid import UUID

from app.core.metrics import ELIGIBILITY_EVALUATIONS
from app.models.certificate import QualifyingSnapshot
from app.models.course import Course
from app.models.eligibility import EligibilityResult, EnrollmentState
from app.models.enrollment import Enrollment
from app.repos.certificate_repo import CertificateRepo
from app.repos.course_repo import CourseRepo
from app.repos.enrollment_repo import EnrollmentRepo
from app.repos.grade_repo import GradeRepo
from app.services.errors import NotFoundError
from app.services.grade_aggregator import GradeAggregator
from app.services.progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)


class EligibilityEvaluator:
    def __init__(
        self,
        courses: CourseRepo,
        enrollments: EnrollmentRepo,
        grades: GradeRepo,
        certificates: CertificateRepo,
        tracker: ProgressTracker,
        aggregator: GradeAggregator,
    ) -> None:
        self._courses = courses
        self._enrollments = enrollments
        self._grades = grades
        self._certificates = certificates
        self._tracker = tracker
        self._aggregator = aggregator

    async def evaluate(self, enrollment_id: UUID) -> EligibilityResult:
        enrollment, course = await self.load(enrollment_id)
        result = await self._evaluate(enrollment, course)
        ELIGIBILITY_EVALUATIONS.labels(
            result="eligible" if result.eligible else result.reason
        ).inc()
        logger.debug(
            "Evaluated eligible=%s",
            result.eligible,
            extra={"enrollment_id": str(enrollment_id), "reason": result.reason},
        )
        return result

    async def state(self, enrollment_id: UUID) -> EnrollmentState:
        """Where the enrollment sits: not_started -> in_progress -> eligible -> certified."""
        enrollment, course = await self.load(enrollment_id)
        existing = await self._certificates.get_for_user_course(
            enrollment.user_id, enrollment.course_id
        )
        if existing is not None:
            return "certified"

        started = await self._enrollments.has_completions(
            [enrollment.id]
        ) or await self._grades.has_records([enrollment.id])
        if not started:
            return "not_started"

        result = await self._evaluate(enrollment, course)
        return "eligible" if result.eligible else "in_progress"

    async def assess(
        self, enrollment: Enrollment, course: Course
    ) -> tuple[EligibilityResult, QualifyingSnapshot]:
        """Decide from the stored evidence alone, ignoring issued certificates.

        Also returns the evidence values the decision was based on, which
        the issuer freezes into the certificate.
        """
        policy = course.policy
        snapshot = QualifyingSnapshot(
            policy_kind=policy.kind,
            pass_threshold=policy.pass_threshold,
            min_attendance_rate=policy.min_attendance_rate,
        )
        if not policy.certificate_enabled:
            return EligibilityResult.denied("certificates_disabled"), snapshot

        if policy.kind == "module_percentage":
            progress = await self._tracker.snapshot(enrollment)
            snapshot = QualifyingSnapshot(
                policy_kind=policy.kind,
                pass_threshold=policy.pass_threshold,
                percentage=progress.percentage,
            )
            if progress.percentage >= policy.pass_threshold:
                return EligibilityResult.ok(), snapshot
            return (
                EligibilityResult.denied(
                    "insufficient_progress",
                    {
                        "percentage": progress.percentage,
                        "required": policy.pass_threshold,
                    },
                ),
                snapshot,
            )

        agg = await self._aggregator.aggregate(enrollment)
        snapshot = QualifyingSnapshot(
            policy_kind=policy.kind,
            pass_threshold=policy.pass_threshold,
            final_grade=agg.final_grade.scale if agg.final_grade else None,
            attendance_rate=round(agg.attendance_rate, 4),
            min_attendance_rate=policy.min_attendance_rate,
        )
        if agg.final_grade is None:
            return EligibilityResult.denied("not_graded"), snapshot
        if agg.final_grade.scale < policy.pass_threshold:
            return (
                EligibilityResult.denied(
                    "grade_below_threshold",
                    {"scale": agg.final_grade.scale, "required": policy.pass_threshold},
                ),
                snapshot,
            )
        gate = policy.min_attendance_rate
        if gate is not None and agg.attendance_rate < gate:
            return (
                EligibilityResult.denied(
                    "insufficient_attendance",
                    {"rate": round(agg.attendance_rate, 4), "required": gate},
                ),
                snapshot,
            )
        return EligibilityResult.ok(), snapshot

    async def load(self, enrollment_id: UUID) -> tuple[Enrollment, Course]:
        enrollment = await self._enrollments.get(enrollment_id)
        if enrollment is None:
            raise NotFoundError(
                "enrollment not found", {"enrollment_id": str(enrollment_id)}
            )
        course = await self._courses.get(enrollment.course_id)
        if course is None:
            raise NotFoundError(
                "course not found", {"course_id": str(enrollment.course_id)}
            )
        return enrollment, course

    async def _evaluate(self, enrollment: Enrollment, course: Course) -> EligibilityResult:
        if not course.policy.certificate_enabled:
            return EligibilityResult.denied("certificates_disabled")

        # Eligibility is sticky once certified: later grade corrections
        # do not undo an issued certificate.
        existing = await self._certificates.get_for_user_course(
            enrollment.user_id, enrollment.course_id
        )
        if existing is not None:
            return EligibilityResult.ok()

        result, _ = await self.assess(enrollment, course)
        return result
