"""Organization and membership endpoints.

Every authorization decision happens in the MembershipRegistry; these
handlers only translate between JSON and domain objects.  Domain
errors propagate to the exception handler in academy.main.
"""

from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Response, status
from pydantic import BaseModel, Field

from academy.api.dependencies import CurrentSubject, membership_registry
from academy.models.organization import Membership, Organization
from academy.models.subject import Role

router = APIRouter(prefix="/v1/orgs", tags=["orgs"])


# --- Pydantic schemas ---

SLUG_PATTERN = r"^[a-z0-9][a-z0-9-]*$"


class OrgCreateIn(BaseModel):
    name: str = Field(min_length=1)
    slug: str = Field(min_length=1, pattern=SLUG_PATTERN)
    plan: str = "free"


class OrgUpdateIn(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    slug: str | None = Field(default=None, min_length=1, pattern=SLUG_PATTERN)
    plan: str | None = None


class OrgOut(BaseModel):
    id: str
    name: str
    slug: str
    plan: str
    status: str

    @staticmethod
    def of(org: Organization) -> OrgOut:
        return OrgOut(
            id=str(org.id),
            name=org.name,
            slug=org.slug,
            plan=org.plan,
            status=org.status,
        )


class MemberOut(BaseModel):
    org_id: str
    subject_id: str
    role: str

    @staticmethod
    def of(m: Membership) -> MemberOut:
        return MemberOut(
            org_id=str(m.org_id), subject_id=str(m.subject_id), role=m.role
        )


class AddMemberIn(BaseModel):
    subject_id: UUID
    role: Role = "learner"


class UpdateRoleIn(BaseModel):
    role: Role


# --- Endpoints ---


@router.post("", response_model=OrgOut, status_code=status.HTTP_201_CREATED)
def create_org(body: OrgCreateIn, subject: CurrentSubject) -> OrgOut:
    """Create a new organization. The creator becomes its first owner."""
    org = membership_registry.create_organization(
        subject, name=body.name, slug=body.slug, plan=body.plan
    )
    return OrgOut.of(org)


@router.get("", response_model=list[OrgOut])
def list_my_orgs(subject: CurrentSubject) -> list[OrgOut]:
    """Organizations the caller belongs to."""
    return [OrgOut.of(o) for o in membership_registry.organizations_of(subject)]


@router.get("/{org_id}", response_model=OrgOut)
def get_org(org_id: UUID, subject: CurrentSubject) -> OrgOut:
    return OrgOut.of(membership_registry.get_organization(subject, org_id))


@router.patch("/{org_id}", response_model=OrgOut)
def update_org(org_id: UUID, body: OrgUpdateIn, subject: CurrentSubject) -> OrgOut:
    """Rename, re-slug or re-plan an organization. Owners only."""
    org = membership_registry.update_organization(
        subject, org_id, name=body.name, slug=body.slug, plan=body.plan
    )
    return OrgOut.of(org)


@router.delete("/{org_id}", status_code=204)
def delete_org(org_id: UUID, subject: CurrentSubject) -> Response:
    """Delete an organization that no longer has courses."""
    membership_registry.delete_organization(subject, org_id)
    return Response(status_code=204)


@router.get("/{org_id}/members", response_model=list[MemberOut])
def list_members(org_id: UUID, subject: CurrentSubject) -> list[MemberOut]:
    """List org members. Owners and instructors of the org may read."""
    return [MemberOut.of(m) for m in membership_registry.list_members(subject, org_id)]


@router.post(
    "/{org_id}/members",
    response_model=MemberOut,
    status_code=status.HTTP_201_CREATED,
)
def add_member(org_id: UUID, body: AddMemberIn, subject: CurrentSubject) -> MemberOut:
    membership = membership_registry.add_member(
        subject, org_id, body.subject_id, body.role
    )
    return MemberOut.of(membership)


@router.patch("/{org_id}/members/{subject_id}", response_model=MemberOut)
def change_member_role(
    org_id: UUID, subject_id: UUID, body: UpdateRoleIn, subject: CurrentSubject
) -> MemberOut:
    membership = membership_registry.change_role(subject, org_id, subject_id, body.role)
    return MemberOut.of(membership)


@router.delete("/{org_id}/members/{subject_id}", status_code=204)
def remove_member(org_id: UUID, subject_id: UUID, subject: CurrentSubject) -> Response:
    membership_registry.remove_member(subject, org_id, subject_id)
    return Response(status_code=204)
