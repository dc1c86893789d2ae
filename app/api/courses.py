"""Course configuration and enrollment endpoints.

  POST /v1/courses                        create a course with its policy
  GET  /v1/courses                        list courses
  POST /v1/courses/{course_id}/modules    append a module
  GET  /v1/courses/{course_id}/modules    modules in position order
  PUT  /v1/courses/{course_id}/policy     replace the completion policy
  POST /v1/courses/{course_id}/enrollments
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from app.api.dependencies import get_services
from app.models.course import Course, CourseCompletionPolicy, CourseModule, PolicyKind
from app.models.enrollment import Enrollment
from app.services.wiring import CertificationServices

router = APIRouter(prefix="/v1/courses", tags=["courses"])

Services = Annotated[CertificationServices, Depends(get_services)]


class PolicyIn(BaseModel):
    kind: PolicyKind = "module_percentage"
    pass_threshold: float = 100.0
    certificate_enabled: bool = True
    min_attendance_rate: float | None = None

    def to_policy(self) -> CourseCompletionPolicy:
        return CourseCompletionPolicy(
            kind=self.kind,
            pass_threshold=self.pass_threshold,
            certificate_enabled=self.certificate_enabled,
            min_attendance_rate=self.min_attendance_rate,
        )


class PolicyOut(BaseModel):
    kind: str
    pass_threshold: float
    certificate_enabled: bool
    min_attendance_rate: float | None


class CourseIn(BaseModel):
    slug: str = Field(min_length=1, max_length=100)
    title: str = Field(min_length=1, max_length=200)
    category: str | None = None
    workload_hours: int | None = Field(default=None, ge=0)
    policy: PolicyIn = Field(default_factory=PolicyIn)


class CourseOut(BaseModel):
    id: str
    slug: str
    title: str
    category: str | None
    workload_hours: int | None
    policy: PolicyOut


class ModuleIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    position: int | None = Field(default=None, ge=1)
    is_required: bool = True


class ModuleOut(BaseModel):
    id: str
    course_id: str
    position: int
    title: str
    is_required: bool


class EnrollmentIn(BaseModel):
    user_id: UUID


class EnrollmentOut(BaseModel):
    id: str
    user_id: str
    course_id: str
    enrolled_at: int


def _course_out(course: Course) -> CourseOut:
    p = course.policy
    return CourseOut(
        id=str(course.id),
        slug=course.slug,
        title=course.title,
        category=course.category,
        workload_hours=course.workload_hours,
        policy=PolicyOut(
            kind=p.kind,
            pass_threshold=p.pass_threshold,
            certificate_enabled=p.certificate_enabled,
            min_attendance_rate=p.min_attendance_rate,
        ),
    )


def _module_out(module: CourseModule) -> ModuleOut:
    return ModuleOut(
        id=str(module.id),
        course_id=str(module.course_id),
        position=module.position,
        title=module.title,
        is_required=module.is_required,
    )


def enrollment_out(enrollment: Enrollment) -> EnrollmentOut:
    return EnrollmentOut(
        id=str(enrollment.id),
        user_id=str(enrollment.user_id),
        course_id=str(enrollment.course_id),
        enrolled_at=enrollment.enrolled_at,
    )


@router.post("", response_model=CourseOut, status_code=status.HTTP_201_CREATED)
async def create_course(body: CourseIn, services: Services) -> CourseOut:
    course = await services.catalog.create_course(
        slug=body.slug,
        title=body.title,
        policy=body.policy.to_policy(),
        category=body.category,
        workload_hours=body.workload_hours,
    )
    return _course_out(course)


@router.get("", response_model=list[CourseOut])
async def list_courses(services: Services) -> list[CourseOut]:
    return [_course_out(c) for c in await services.catalog.list_courses()]


@router.post(
    "/{course_id}/modules",
    response_model=ModuleOut,
    status_code=status.HTTP_201_CREATED,
)
async def add_module(course_id: UUID, body: ModuleIn, services: Services) -> ModuleOut:
    module = await services.catalog.add_module(
        course_id,
        title=body.title,
        position=body.position,
        is_required=body.is_required,
    )
    return _module_out(module)


@router.get("/{course_id}/modules", response_model=list[ModuleOut])
async def list_modules(course_id: UUID, services: Services) -> list[ModuleOut]:
    return [_module_out(m) for m in await services.catalog.list_modules(course_id)]


@router.put("/{course_id}/policy", response_model=CourseOut)
async def set_policy(course_id: UUID, body: PolicyIn, services: Services) -> CourseOut:
    course = await services.catalog.set_policy(course_id, body.to_policy())
    return _course_out(course)


@router.post(
    "/{course_id}/enrollments",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
async def enroll(course_id: UUID, body: EnrollmentIn, services: Services) -> EnrollmentOut:
    enrollment = await services.catalog.enroll(body.user_id, course_id)
    return enrollment_out(enrollment)
