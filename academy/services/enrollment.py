"""Enrollment state machine.

Per (learner, course) pair there are two states:

  Unenrolled  no record
  Enrolled    record exists, progress in [0, 100]

  enroll          Unenrolled -> Enrolled (progress 0)
  unenroll        Enrolled   -> Unenrolled
  update_progress Enrolled   -> Enrolled (progress never decreases)

Completion is progress == 100; it is a value, not a state.  Repeating
a transition is an error (ALREADY_ENROLLED, NOT_FOUND), never a silent
no-op.  Existence check and insert share one store transaction, so
concurrent enrolls for the same pair yield exactly one success.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import replace
from uuid import UUID

from academy.core.errors import (
    AlreadyEnrolled,
    CourseNotAvailable,
    DomainError,
    NotFound,
    ProgressOutOfRange,
    ProgressRegression,
    SubjectInactive,
)
from academy.core.metrics import ENROLLMENT_TRANSITIONS
from academy.models.course import Course
from academy.models.enrollment import (
    PROGRESS_MAX,
    PROGRESS_MIN,
    Enrollment,
    EnrollmentFilter,
)
from academy.models.subject import Subject
from academy.repos.errors import UniqueViolation
from academy.repos.store import InMemoryStore, UnitOfWork
from academy.services.access import authorize, path_to

logger = logging.getLogger(__name__)


def _now() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


def _require_course(uow: UnitOfWork, course_id: UUID) -> Course:
    course = uow.content.get_course(course_id)
    if course is None:
        raise NotFound(f"course {course_id} not found")
    return course


@contextmanager
def _tracked(transition: str) -> Iterator[None]:
    try:
        yield
    except DomainError as e:
        ENROLLMENT_TRANSITIONS.labels(transition=transition, result=e.code).inc()
        raise
    ENROLLMENT_TRANSITIONS.labels(transition=transition, result="ok").inc()


class EnrollmentLifecycle:
    def __init__(
        self, store: InMemoryStore, clock: Callable[[], int] = _now
    ) -> None:
        self._store = store
        self._clock = clock

    # --- transitions ---

    def enroll(self, learner: Subject, course_id: UUID) -> Enrollment:
        with _tracked("enroll"), self._store.transaction() as uow:
            course = _require_course(uow, course_id)
            authorize(uow, learner, "enroll", path_to(uow, course))
            if not course.published:
                raise CourseNotAvailable("course is not available for enrollment")

            enrollment = Enrollment(
                learner_id=learner.id,
                course_id=course_id,
                enrolled_at=self._clock(),
            )
            try:
                uow.enrollments.add(enrollment)
            except UniqueViolation:
                raise AlreadyEnrolled(
                    "already enrolled in this course",
                    details={"course_id": str(course_id)},
                ) from None

        logger.info("Enrolled learner=%s course=%s", learner.id, course_id)
        return enrollment

    def unenroll(self, learner: Subject, course_id: UUID) -> None:
        with _tracked("unenroll"), self._store.transaction() as uow:
            course = _require_course(uow, course_id)
            authorize(uow, learner, "unenroll", path_to(uow, course))
            if not uow.enrollments.remove(learner.id, course_id):
                raise NotFound("enrollment not found")

        logger.info("Unenrolled learner=%s course=%s", learner.id, course_id)

    def update_progress(
        self, learner: Subject, course_id: UUID, new_progress: int
    ) -> Enrollment:
        with _tracked("progress"), self._store.transaction() as uow:
            course = _require_course(uow, course_id)
            authorize(uow, learner, "update_progress", path_to(uow, course))
            if not PROGRESS_MIN <= new_progress <= PROGRESS_MAX:
                raise ProgressOutOfRange(
                    f"progress must be between {PROGRESS_MIN} and {PROGRESS_MAX}",
                    details={"progress": new_progress},
                )

            current = uow.enrollments.get(learner.id, course_id)
            if current is None:
                raise NotFound("enrollment not found")
            if new_progress < current.progress:
                raise ProgressRegression(
                    "progress cannot decrease",
                    details={"stored": current.progress, "requested": new_progress},
                )

            updated = replace(
                current, progress=new_progress, last_progress_at=self._clock()
            )
            uow.enrollments.replace(updated)

        logger.info(
            "Progress updated learner=%s course=%s progress=%d",
            learner.id,
            course_id,
            new_progress,
        )
        return updated

    # --- reads ---

    def get_enrollment(self, learner: Subject, course_id: UUID) -> Enrollment:
        if not learner.is_active:
            raise SubjectInactive("inactive subjects cannot read enrollments")
        with self._store.read() as uow:
            enrollment = uow.enrollments.get(learner.id, course_id)
        if enrollment is None:
            raise NotFound("enrollment not found")
        return enrollment

    def list_my_enrollments(self, learner: Subject) -> list[Enrollment]:
        if not learner.is_active:
            raise SubjectInactive("inactive subjects cannot read enrollments")
        with self._store.read() as uow:
            return uow.enrollments.list_by_learner(learner.id)

    def list_course_enrollments(
        self,
        actor: Subject,
        course_id: UUID,
        enrollment_filter: EnrollmentFilter | None = None,
    ) -> list[Enrollment]:
        enrollment_filter = enrollment_filter or EnrollmentFilter()
        with self._store.read() as uow:
            course = _require_course(uow, course_id)
            authorize(uow, actor, "read", path_to(uow, course, kind="enrollment"))
            return [
                e
                for e in uow.enrollments.list_by_course(course_id)
                if enrollment_filter.matches(e)
            ]
