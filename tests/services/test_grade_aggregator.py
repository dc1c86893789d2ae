from __future__ import annotations

import asyncio
import datetime
from uuid import uuid4

import pytest

from app.models.course import CourseCompletionPolicy
from app.services.errors import (
    DuplicateSessionError,
    InvalidAttendanceError,
    InvalidGradeError,
    ModuleNotInCourseError,
    NotFoundError,
)
from app.services.wiring import CertificationServices
from tests.conftest import FakeClock

GRADED = CourseCompletionPolicy(kind="grade_and_attendance", pass_threshold=6.0)


async def _graded_enrollment(services: CertificationServices, policy=GRADED):
    course = await services.catalog.create_course(
        slug=f"g-{uuid4().hex[:6]}", title="Graded", policy=policy
    )
    return course, await services.catalog.enroll(uuid4(), course.id)


def _day(n: int) -> datetime.date:
    return datetime.date(2026, 3, n)


def test_final_grade_overwrites_and_restamps(
    services: CertificationServices, clock: FakeClock
) -> None:
    async def scenario():
        _, enrollment = await _graded_enrollment(services)
        first = await services.aggregator.record_grade(enrollment.id, "course-final", 5.0)
        clock.advance(100)
        second = await services.aggregator.record_grade(
            enrollment.id, "course-final", 8.5, "well done"
        )
        agg = await services.aggregator.get_aggregate(enrollment.id)
        return first, second, agg

    first, second, agg = asyncio.run(scenario())
    assert first.passed is False
    assert second.passed is True
    assert second.id == first.id
    assert second.graded_at == first.graded_at + 100
    assert agg.final_grade is not None
    assert agg.final_grade.scale == 8.5
    assert agg.final_grade.feedback == "well done"


@pytest.mark.parametrize("scale", [-0.1, 10.01, 42, float("nan"), float("inf")])
def test_grade_out_of_range_rejected(
    services: CertificationServices, scale: float
) -> None:
    async def scenario() -> None:
        _, enrollment = await _graded_enrollment(services)
        await services.aggregator.record_grade(enrollment.id, "course-final", scale)

    with pytest.raises(InvalidGradeError):
        asyncio.run(scenario())


def test_grade_bounds_accepted(services: CertificationServices) -> None:
    async def scenario():
        _, enrollment = await _graded_enrollment(services)
        low = await services.aggregator.record_grade(enrollment.id, "course-final", 0)
        high = await services.aggregator.record_grade(enrollment.id, "course-final", 10)
        return low, high

    low, high = asyncio.run(scenario())
    assert low.scale == 0
    assert high.scale == 10


def test_passed_uses_default_mark_on_module_percentage_course(
    services: CertificationServices,
) -> None:
    async def scenario():
        _, enrollment = await _graded_enrollment(services, CourseCompletionPolicy())
        below = await services.aggregator.record_grade(
            enrollment.id, "course-final", 6.99
        )
        at = await services.aggregator.record_grade(enrollment.id, "course-final", 7.0)
        return below, at

    below, at = asyncio.run(scenario())
    assert below.passed is False
    assert at.passed is True


def test_module_grades_are_averaged_not_final(services: CertificationServices) -> None:
    async def scenario():
        course, enrollment = await _graded_enrollment(services)
        m1 = await services.catalog.add_module(course.id, title="M1")
        m2 = await services.catalog.add_module(course.id, title="M2")
        await services.aggregator.record_grade(enrollment.id, str(m1.id), 9.0)
        await services.aggregator.record_grade(enrollment.id, str(m2.id), 6.5)
        return await services.aggregator.get_aggregate(enrollment.id)

    agg = asyncio.run(scenario())
    assert agg.final_grade is None
    assert agg.module_grade_average == 7.75


def test_module_grade_scope_validation(services: CertificationServices) -> None:
    async def bad_scope() -> None:
        _, enrollment = await _graded_enrollment(services)
        await services.aggregator.record_grade(enrollment.id, "midterm", 8)

    async def unknown_module() -> None:
        _, enrollment = await _graded_enrollment(services)
        await services.aggregator.record_grade(enrollment.id, str(uuid4()), 8)

    async def foreign_module() -> None:
        _, enrollment = await _graded_enrollment(services)
        other, _ = await _graded_enrollment(services)
        module = await services.catalog.add_module(other.id, title="Elsewhere")
        await services.aggregator.record_grade(enrollment.id, str(module.id), 8)

    with pytest.raises(InvalidGradeError):
        asyncio.run(bad_scope())
    with pytest.raises(NotFoundError):
        asyncio.run(unknown_module())
    with pytest.raises(ModuleNotInCourseError):
        asyncio.run(foreign_module())


# ---- attendance ----


def test_attendance_rate_counts_only_present(services: CertificationServices) -> None:
    async def scenario():
        _, enrollment = await _graded_enrollment(services)
        for day, status in [
            (2, "present"),
            (3, "present"),
            (4, "present"),
            (5, "late"),
            (6, "absent"),
            (7, "excused"),
            (8, "present"),
            (9, "present"),
        ]:
            await services.aggregator.record_attendance(
                enrollment.id, _day(day), "Lecture", status
            )
        return await services.aggregator.get_aggregate(enrollment.id)

    agg = asyncio.run(scenario())
    assert agg.present_count == 5
    assert agg.late_count == 1
    assert agg.absent_count == 1
    assert agg.excused_count == 1
    assert agg.total_sessions == 8
    assert agg.attendance_rate == pytest.approx(0.625)


def test_no_attendance_is_zero_rate(services: CertificationServices) -> None:
    async def scenario():
        _, enrollment = await _graded_enrollment(services)
        return await services.aggregator.get_aggregate(enrollment.id)

    agg = asyncio.run(scenario())
    assert agg.attendance_rate == 0.0
    assert agg.total_sessions == 0


def test_duplicate_session_rejected(services: CertificationServices) -> None:
    async def scenario() -> None:
        _, enrollment = await _graded_enrollment(services)
        await services.aggregator.record_attendance(
            enrollment.id, _day(2), "Workshop", "present"
        )
        await services.aggregator.record_attendance(
            enrollment.id, _day(2), "Workshop", "absent"
        )

    with pytest.raises(DuplicateSessionError):
        asyncio.run(scenario())


def test_same_day_different_sessions_allowed(services: CertificationServices) -> None:
    async def scenario():
        _, enrollment = await _graded_enrollment(services)
        await services.aggregator.record_attendance(
            enrollment.id, _day(2), "Morning", "present"
        )
        await services.aggregator.record_attendance(
            enrollment.id, _day(2), "Afternoon", "late", notes="traffic"
        )
        return await services.aggregator.list_attendance(enrollment.id)

    records = asyncio.run(scenario())
    assert [r.session_title for r in records] == ["Afternoon", "Morning"]
    assert records[0].notes == "traffic"


def test_invalid_attendance_input(services: CertificationServices) -> None:
    async def bad_status() -> None:
        _, enrollment = await _graded_enrollment(services)
        await services.aggregator.record_attendance(
            enrollment.id, _day(2), "Lecture", "asleep"  # type: ignore[arg-type]
        )

    async def blank_title() -> None:
        _, enrollment = await _graded_enrollment(services)
        await services.aggregator.record_attendance(
            enrollment.id, _day(2), "   ", "present"
        )

    with pytest.raises(InvalidAttendanceError):
        asyncio.run(bad_status())
    with pytest.raises(InvalidAttendanceError):
        asyncio.run(blank_title())


def test_non_finite_grade_reported_as_text(services: CertificationServices) -> None:
    async def scenario() -> None:
        _, enrollment = await _graded_enrollment(services)
        await services.aggregator.record_grade(
            enrollment.id, "course-final", float("nan")
        )

    with pytest.raises(InvalidGradeError) as exc_info:
        asyncio.run(scenario())
    assert exc_info.value.details == {"scale": "nan"}
