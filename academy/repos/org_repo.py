from __future__ import annotations

from collections.abc import MutableMapping
from typing import Protocol
from uuid import UUID

from academy.models.organization import Organization
from academy.repos.errors import UniqueViolation


class OrgRepo(Protocol):
    def get_by_id(self, org_id: UUID) -> Organization | None: ...
    def get_by_slug(self, slug: str) -> Organization | None: ...
    def add(self, org: Organization) -> None: ...
    def replace(self, org: Organization) -> None: ...
    def remove(self, org_id: UUID) -> bool: ...
    def list_by_ids(self, org_ids: set[UUID]) -> list[Organization]: ...


class InMemoryOrgRepo:
    def __init__(self, table: MutableMapping[UUID, Organization]) -> None:
        self._by_id = table

    def get_by_id(self, org_id: UUID) -> Organization | None:
        return self._by_id.get(org_id)

    def get_by_slug(self, slug: str) -> Organization | None:
        return next((o for o in self._by_id.values() if o.slug == slug), None)

    def add(self, org: Organization) -> None:
        if org.id in self._by_id or self.get_by_slug(org.slug) is not None:
            raise UniqueViolation("organizations.slug")
        self._by_id[org.id] = org

    def replace(self, org: Organization) -> None:
        if org.id not in self._by_id:
            raise KeyError("organization not found")
        holder = self.get_by_slug(org.slug)
        if holder is not None and holder.id != org.id:
            raise UniqueViolation("organizations.slug")
        self._by_id[org.id] = org

    def remove(self, org_id: UUID) -> bool:
        return self._by_id.pop(org_id, None) is not None

    def list_by_ids(self, org_ids: set[UUID]) -> list[Organization]:
        return sorted(
            (o for o in self._by_id.values() if o.id in org_ids),
            key=lambda o: o.slug,
        )
