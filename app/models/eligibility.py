from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

IneligibilityReason = Literal[
    "certificates_disabled",
    "insufficient_progress",
    "not_graded",
    "grade_below_threshold",
    "insufficient_attendance",
]

EnrollmentState = Literal["not_started", "in_progress", "eligible", "certified"]


@dataclass(frozen=True, slots=True)
class EligibilityResult:
    eligible: bool
    reason: IneligibilityReason | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def ok() -> EligibilityResult:
        return EligibilityResult(eligible=True)

    @staticmethod
    def denied(
        reason: IneligibilityReason, details: dict[str, Any] | None = None
    ) -> EligibilityResult:
        return EligibilityResult(eligible=False, reason=reason, details=details or {})
