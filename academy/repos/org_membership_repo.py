from __future__ import annotations

from collections.abc import MutableMapping
from dataclasses import replace
from typing import Protocol
from uuid import UUID

from academy.models.organization import Membership
from academy.models.subject import Role
from academy.repos.errors import UniqueViolation


class MembershipRepo(Protocol):
    def get(self, org_id: UUID, subject_id: UUID) -> Membership | None: ...
    def add(self, membership: Membership) -> None: ...
    def remove(self, org_id: UUID, subject_id: UUID) -> bool: ...
    def remove_by_org(self, org_id: UUID) -> int: ...
    def update_role(
        self, org_id: UUID, subject_id: UUID, new_role: Role
    ) -> Membership | None: ...
    def list_by_org(self, org_id: UUID) -> list[Membership]: ...
    def list_by_subject(self, subject_id: UUID) -> list[Membership]: ...
    def count_role(self, org_id: UUID, role: Role) -> int: ...


class InMemoryMembershipRepo:
    def __init__(self, table: MutableMapping[tuple[UUID, UUID], Membership]) -> None:
        self._store = table

    def get(self, org_id: UUID, subject_id: UUID) -> Membership | None:
        return self._store.get((org_id, subject_id))

    def add(self, membership: Membership) -> None:
        key = (membership.org_id, membership.subject_id)
        if key in self._store:
            raise UniqueViolation("org_memberships.pkey")
        self._store[key] = membership

    def remove(self, org_id: UUID, subject_id: UUID) -> bool:
        return self._store.pop((org_id, subject_id), None) is not None

    def remove_by_org(self, org_id: UUID) -> int:
        keys = [key for key in self._store if key[0] == org_id]
        for key in keys:
            del self._store[key]
        return len(keys)

    def update_role(
        self, org_id: UUID, subject_id: UUID, new_role: Role
    ) -> Membership | None:
        key = (org_id, subject_id)
        existing = self._store.get(key)
        if existing is None:
            return None
        updated = replace(existing, role=new_role)
        self._store[key] = updated
        return updated

    def list_by_org(self, org_id: UUID) -> list[Membership]:
        return [m for m in self._store.values() if m.org_id == org_id]

    def list_by_subject(self, subject_id: UUID) -> list[Membership]:
        return [m for m in self._store.values() if m.subject_id == subject_id]

    def count_role(self, org_id: UUID, role: Role) -> int:
        return sum(1 for m in self.list_by_org(org_id) if m.role == role)
