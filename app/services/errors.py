"""Domain errors raised by the engine services.

Every error carries a machine-readable `reason` and a `details` dict so
the caller can render a specific message.  app.api.errors translates
these into HTTP responses; the services never import FastAPI.
"""

from __future__ import annotations

from typing import Any


class CertificationError(Exception):
    reason: str = "error"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


# --- Validation errors (caller-correctable) ---


class NotFoundError(CertificationError):
    reason = "not_found"


class ModuleNotInCourseError(CertificationError):
    reason = "module_not_in_course"


class DuplicateSessionError(CertificationError):
    reason = "duplicate_session"


class InvalidGradeError(CertificationError):
    reason = "invalid_grade"


class InvalidAttendanceError(CertificationError):
    reason = "invalid_attendance"


class InvalidPolicyError(CertificationError):
    reason = "invalid_policy"


class PolicyLockedError(CertificationError):
    reason = "policy_locked"


class AlreadyEnrolledError(CertificationError):
    reason = "already_enrolled"


class DuplicateCourseError(CertificationError):
    reason = "duplicate_course"


# --- Policy outcome ---


class NotEligibleError(CertificationError):
    """Not an alert-worthy failure: the learner simply isn't done yet."""

    def __init__(self, reason: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(f"not eligible: {reason}", details)
        self.reason = reason


# --- Storage ---


class CertificateAlreadyExistsError(CertificationError):
    """Raised by certificate repos when the (user, course) key is taken.

    The issuer absorbs it by re-reading the winning row.
    """

    reason = "certificate_exists"
