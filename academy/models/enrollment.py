from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

PROGRESS_MIN = 0
PROGRESS_MAX = 100

EnrollmentStatus = Literal["not_started", "in_progress", "completed"]


@dataclass(frozen=True, slots=True)
class Enrollment:
    """Learner-to-course edge. Completion is progress == 100, not a state."""

    learner_id: UUID
    course_id: UUID
    enrolled_at: int
    progress: int = PROGRESS_MIN
    last_progress_at: int | None = None

    @property
    def completed(self) -> bool:
        return self.progress == PROGRESS_MAX

    @property
    def status(self) -> EnrollmentStatus:
        if self.progress == PROGRESS_MIN:
            return "not_started"
        if self.completed:
            return "completed"
        return "in_progress"


@dataclass(frozen=True, slots=True)
class EnrollmentFilter:
    """Roster filter: progress status and an enrolled_at window (inclusive)."""

    status: EnrollmentStatus | None = None
    enrolled_after: int | None = None
    enrolled_before: int | None = None

    def matches(self, enrollment: Enrollment) -> bool:
        if self.status is not None and enrollment.status != self.status:
            return False
        if self.enrolled_after is not None and enrollment.enrolled_at < (
            self.enrolled_after
        ):
            return False
        if self.enrolled_before is not None and enrollment.enrolled_at > (
            self.enrolled_before
        ):
            return False
        return True
