"""Enrollment endpoints.

The caller always acts on their own enrollment: the learner id comes
from the verified token, never from the request body.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Response, status
from pydantic import BaseModel

from academy.api.dependencies import CurrentSubject, enrollments
from academy.models.enrollment import Enrollment, EnrollmentFilter, EnrollmentStatus

router = APIRouter(tags=["enrollments"])


class EnrollmentOut(BaseModel):
    learner_id: str
    course_id: str
    enrolled_at: int
    progress: int
    completed: bool
    status: str
    last_progress_at: int | None = None

    @staticmethod
    def of(e: Enrollment) -> EnrollmentOut:
        return EnrollmentOut(
            learner_id=str(e.learner_id),
            course_id=str(e.course_id),
            enrolled_at=e.enrolled_at,
            progress=e.progress,
            completed=e.completed,
            status=e.status,
            last_progress_at=e.last_progress_at,
        )


class ProgressIn(BaseModel):
    # Range is checked by the lifecycle so the error carries its own code.
    progress: int


@router.post(
    "/v1/courses/{course_id}/enrollment",
    response_model=EnrollmentOut,
    status_code=status.HTTP_201_CREATED,
)
def enroll(course_id: UUID, subject: CurrentSubject) -> EnrollmentOut:
    return EnrollmentOut.of(enrollments.enroll(subject, course_id))


@router.delete("/v1/courses/{course_id}/enrollment", status_code=204)
def unenroll(course_id: UUID, subject: CurrentSubject) -> Response:
    enrollments.unenroll(subject, course_id)
    return Response(status_code=204)


@router.get("/v1/courses/{course_id}/enrollment", response_model=EnrollmentOut)
def get_enrollment(course_id: UUID, subject: CurrentSubject) -> EnrollmentOut:
    return EnrollmentOut.of(enrollments.get_enrollment(subject, course_id))


@router.put(
    "/v1/courses/{course_id}/enrollment/progress", response_model=EnrollmentOut
)
def update_progress(
    course_id: UUID, body: ProgressIn, subject: CurrentSubject
) -> EnrollmentOut:
    updated = enrollments.update_progress(subject, course_id, body.progress)
    return EnrollmentOut.of(updated)


@router.get("/v1/courses/{course_id}/enrollments", response_model=list[EnrollmentOut])
def list_course_enrollments(
    course_id: UUID,
    subject: CurrentSubject,
    status: EnrollmentStatus | None = None,
    enrolled_after: int | None = None,
    enrolled_before: int | None = None,
) -> list[EnrollmentOut]:
    """Roster of a course, for owners and instructors of its organization.

    Optionally narrowed by progress status and an enrolled_at window.
    """
    roster_filter = EnrollmentFilter(
        status=status, enrolled_after=enrolled_after, enrolled_before=enrolled_before
    )
    return [
        EnrollmentOut.of(e)
        for e in enrollments.list_course_enrollments(subject, course_id, roster_filter)
    ]


@router.get("/v1/me/enrollments", response_model=list[EnrollmentOut])
def list_my_enrollments(subject: CurrentSubject) -> list[EnrollmentOut]:
    return [EnrollmentOut.of(e) for e in enrollments.list_my_enrollments(subject)]
