"""Organization membership registry.

Memberships are keyed by (org_id, subject_id) and never span
organizations.  Adding, removing and re-roling members requires the
actor to pass the policy table as an Owner of that organization.  The
first Owner is written by ``create_organization`` in the same
transaction as the organization itself, which is the only path that
bypasses the membership check.

Invariant: every organization keeps at least one Owner membership.

A member who is removed, or demoted to learner, stops being the
instructor of record on that organization's courses in the same
transaction.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from uuid import UUID

from academy.core.errors import (
    HasDependents,
    InvariantViolation,
    MembershipExists,
    NotFound,
    RoleForbidden,
    SlugTaken,
    SubjectInactive,
)
from academy.models.organization import Membership, Organization
from academy.models.subject import ROLES, Role, Subject
from academy.repos.errors import UniqueViolation
from academy.repos.store import InMemoryStore, UnitOfWork
from academy.services.access import authorize, org_path

logger = logging.getLogger(__name__)


def _require_org(uow: UnitOfWork, org_id: UUID) -> Organization:
    org = uow.orgs.get_by_id(org_id)
    if org is None:
        raise NotFound(f"organization {org_id} not found")
    return org


def _check_role(role: str) -> None:
    if role not in ROLES:
        raise InvariantViolation(
            f"role must be one of {sorted(ROLES)} (got {role!r})",
            details={"role": role},
        )


def _release_courses(uow: UnitOfWork, org_id: UUID, subject_id: UUID) -> int:
    """Clear ``subject_id`` as instructor of record on the org's courses."""
    released = 0
    for course in uow.content.courses_in_org(org_id):
        if course.owner_subject_id == subject_id:
            uow.content.put(replace(course, owner_subject_id=None))
            released += 1
    return released


class MembershipRegistry:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    # --- reads ---

    def membership_of(self, subject_id: UUID, org_id: UUID) -> Membership | None:
        with self._store.read() as uow:
            return uow.memberships.get(org_id, subject_id)

    def is_member(self, subject_id: UUID, org_id: UUID) -> bool:
        return self.membership_of(subject_id, org_id) is not None

    def get_organization(self, actor: Subject, org_id: UUID) -> Organization:
        with self._store.read() as uow:
            org = _require_org(uow, org_id)
            authorize(uow, actor, "read", org_path(org_id))
            return org

    def organizations_of(self, subject: Subject) -> list[Organization]:
        with self._store.read() as uow:
            ids = {m.org_id for m in uow.memberships.list_by_subject(subject.id)}
            return uow.orgs.list_by_ids(ids)

    def list_members(self, actor: Subject, org_id: UUID) -> list[Membership]:
        with self._store.read() as uow:
            _require_org(uow, org_id)
            authorize(uow, actor, "read", org_path(org_id, "membership"))
            return sorted(
                uow.memberships.list_by_org(org_id),
                key=lambda m: (m.role, str(m.subject_id)),
            )

    # --- bootstrap ---

    def create_organization(
        self, founder: Subject, *, name: str, slug: str, plan: str = "free"
    ) -> Organization:
        """Create an organization with ``founder`` as its first Owner."""
        if not founder.is_active:
            raise SubjectInactive("inactive subjects cannot create organizations")
        if founder.role != "owner":
            logger.warning(
                "Organization creation denied: subject=%s role=%s",
                founder.id,
                founder.role,
            )
            raise RoleForbidden("only owners can create organizations")

        org = Organization.new(name=name, slug=slug, plan=plan)
        with self._store.transaction() as uow:
            try:
                uow.orgs.add(org)
            except UniqueViolation:
                raise SlugTaken(f"slug {slug!r} is already taken") from None
            uow.memberships.add(
                Membership(org_id=org.id, subject_id=founder.id, role="owner")
            )

        logger.info(
            "Organization created org=%s slug=%s founder=%s", org.id, slug, founder.id
        )
        return org

    # --- mutations ---

    def add_member(
        self, actor: Subject, org_id: UUID, subject_id: UUID, role: Role
    ) -> Membership:
        _check_role(role)
        membership = Membership(org_id=org_id, subject_id=subject_id, role=role)
        with self._store.transaction() as uow:
            _require_org(uow, org_id)
            authorize(uow, actor, "create", org_path(org_id, "membership"))
            try:
                uow.memberships.add(membership)
            except UniqueViolation:
                raise MembershipExists(
                    "subject is already a member of this organization",
                    details={"subject_id": str(subject_id)},
                ) from None

        logger.info(
            "Member added org=%s subject=%s role=%s by=%s",
            org_id,
            subject_id,
            role,
            actor.id,
        )
        return membership

    def remove_member(self, actor: Subject, org_id: UUID, subject_id: UUID) -> None:
        with self._store.transaction() as uow:
            _require_org(uow, org_id)
            authorize(uow, actor, "delete", org_path(org_id, "membership"))
            existing = uow.memberships.get(org_id, subject_id)
            if existing is None:
                raise NotFound("membership not found")
            if (
                existing.role == "owner"
                and uow.memberships.count_role(org_id, "owner") == 1
            ):
                raise InvariantViolation(
                    "an organization must retain at least one owner",
                    details={"org_id": str(org_id)},
                )
            uow.memberships.remove(org_id, subject_id)
            released = _release_courses(uow, org_id, subject_id)

        logger.info(
            "Member removed org=%s subject=%s by=%s courses_released=%d",
            org_id,
            subject_id,
            actor.id,
            released,
        )

    def change_role(
        self, actor: Subject, org_id: UUID, subject_id: UUID, role: Role
    ) -> Membership:
        _check_role(role)
        with self._store.transaction() as uow:
            _require_org(uow, org_id)
            authorize(uow, actor, "update", org_path(org_id, "membership"))
            existing = uow.memberships.get(org_id, subject_id)
            if existing is None:
                raise NotFound("membership not found")
            if (
                existing.role == "owner"
                and role != "owner"
                and uow.memberships.count_role(org_id, "owner") == 1
            ):
                raise InvariantViolation(
                    "an organization must retain at least one owner",
                    details={"org_id": str(org_id)},
                )
            updated = replace(existing, role=role)
            uow.memberships.update_role(org_id, subject_id, role)
            released = (
                _release_courses(uow, org_id, subject_id) if role == "learner" else 0
            )

        logger.info(
            "Member role changed org=%s subject=%s role=%s by=%s courses_released=%d",
            org_id,
            subject_id,
            role,
            actor.id,
            released,
        )
        return updated

    # --- organization lifecycle ---

    def update_organization(
        self,
        actor: Subject,
        org_id: UUID,
        *,
        name: str | None = None,
        slug: str | None = None,
        plan: str | None = None,
    ) -> Organization:
        """Rename, re-slug or re-plan an organization.  Owners only."""
        changes = {
            k: v
            for k, v in (("name", name), ("slug", slug), ("plan", plan))
            if v is not None
        }
        with self._store.transaction() as uow:
            org = _require_org(uow, org_id)
            authorize(uow, actor, "update", org_path(org_id))
            updated = replace(org, **changes)
            try:
                uow.orgs.replace(updated)
            except UniqueViolation:
                raise SlugTaken(f"slug {updated.slug!r} is already taken") from None

        logger.info(
            "Organization updated org=%s fields=%s by=%s",
            org_id,
            sorted(changes),
            actor.id,
        )
        return updated

    def delete_organization(self, actor: Subject, org_id: UUID) -> None:
        """Delete an empty organization and all of its memberships.

        Courses are never removed implicitly: an organization that still
        has courses is rejected with HasDependents.
        """
        with self._store.transaction() as uow:
            _require_org(uow, org_id)
            authorize(uow, actor, "delete", org_path(org_id))
            courses = uow.content.courses_in_org(org_id)
            if courses:
                raise HasDependents(
                    "organization still has courses",
                    details={"org_id": str(org_id), "courses": len(courses)},
                )
            removed = uow.memberships.remove_by_org(org_id)
            uow.orgs.remove(org_id)

        logger.info(
            "Organization deleted org=%s memberships_removed=%d by=%s",
            org_id,
            removed,
            actor.id,
        )
