"""Translate domain errors into HTTP responses.

Services raise CertificationError subclasses and never touch FastAPI;
this handler is the single place that picks a status code for each.
Body shape, for every case:

    {"detail": {"reason": "...", "message": "...", "details": {...}}}
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.services.errors import (
    AlreadyEnrolledError,
    CertificationError,
    DuplicateCourseError,
    DuplicateSessionError,
    InvalidAttendanceError,
    InvalidGradeError,
    InvalidPolicyError,
    ModuleNotInCourseError,
    NotEligibleError,
    NotFoundError,
    PolicyLockedError,
)

logger = logging.getLogger(__name__)

# Starlette renamed the 422 constant; the number is stable.
_UNPROCESSABLE = 422

_STATUS_BY_ERROR: dict[type[CertificationError], int] = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ModuleNotInCourseError: _UNPROCESSABLE,
    InvalidPolicyError: _UNPROCESSABLE,
    InvalidGradeError: _UNPROCESSABLE,
    InvalidAttendanceError: _UNPROCESSABLE,
    DuplicateSessionError: status.HTTP_409_CONFLICT,
    AlreadyEnrolledError: status.HTTP_409_CONFLICT,
    DuplicateCourseError: status.HTTP_409_CONFLICT,
    PolicyLockedError: status.HTTP_409_CONFLICT,
    NotEligibleError: status.HTTP_409_CONFLICT,
}


def status_for(exc: CertificationError) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


async def certification_error_handler(
    request: Request, exc: CertificationError
) -> JSONResponse:
    code = status_for(exc)
    # Client-side outcomes, NotEligibleError included, are not incidents.
    if code < 500:
        logger.info("%s %s -> %d %s", request.method, request.url.path, code, exc.reason)
    else:
        logger.error("Unmapped domain error: %s", exc)
    return JSONResponse(
        status_code=code,
        content={
            "detail": {
                "reason": exc.reason,
                "message": str(exc),
                "details": exc.details,
            }
        },
    )


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CertificationError, certification_error_handler)  # type: ignore[arg-type]
