from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID, uuid4

from academy.models.subject import Role


@dataclass(frozen=True, slots=True)
class Organization:
    id: UUID
    name: str
    slug: str
    plan: str = "free"  # free|team|enterprise
    status: str = "active"  # active|suspended

    @staticmethod
    def new(*, name: str, slug: str, plan: str = "free") -> Organization:
        return Organization(id=uuid4(), name=name, slug=slug, plan=plan)


@dataclass(frozen=True, slots=True)
class Membership:
    org_id: UUID
    subject_id: UUID
    role: Role
