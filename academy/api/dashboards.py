"""Role landing pages.

Each area is only reachable by its own role: RouteGuardMiddleware
redirects everyone else to their landing page before these handlers
run.  The handlers still resolve the subject from the token so the
summaries are scoped to the caller.
"""

from __future__ import annotations

from fastapi import APIRouter
from pydantic import BaseModel

from academy.api.dependencies import (
    CurrentSubject,
    enrollments,
    hierarchy,
    membership_registry,
)
from academy.api.enrollments import EnrollmentOut
from academy.api.nodes import NodeOut
from academy.api.orgs import OrgOut

router = APIRouter(tags=["dashboards"])


class OwnerDashboard(BaseModel):
    role: str = "owner"
    organizations: list[OrgOut]


class InstructorDashboard(BaseModel):
    role: str = "instructor"
    organizations: list[OrgOut]
    courses_of_record: list[NodeOut]


class LearnerDashboard(BaseModel):
    role: str = "learner"
    enrollments: list[EnrollmentOut]


@router.get("/owner/dashboard", response_model=OwnerDashboard)
def owner_dashboard(subject: CurrentSubject) -> OwnerDashboard:
    orgs = membership_registry.organizations_of(subject)
    return OwnerDashboard(organizations=[OrgOut.of(o) for o in orgs])


@router.get("/instructor/dashboard", response_model=InstructorDashboard)
def instructor_dashboard(subject: CurrentSubject) -> InstructorDashboard:
    orgs = membership_registry.organizations_of(subject)
    courses = hierarchy.courses_of_record(subject)
    return InstructorDashboard(
        organizations=[OrgOut.of(o) for o in orgs],
        courses_of_record=[NodeOut.of(c) for c in courses],
    )


@router.get("/learner/dashboard", response_model=LearnerDashboard)
def learner_dashboard(subject: CurrentSubject) -> LearnerDashboard:
    mine = enrollments.list_my_enrollments(subject)
    return LearnerDashboard(enrollments=[EnrollmentOut.of(e) for e in mine])
