from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

Role = Literal["owner", "instructor", "learner"]
ROLES: frozenset[str] = frozenset({"owner", "instructor", "learner"})


@dataclass(frozen=True, slots=True)
class Subject:
    """Authenticated actor as supplied by the identity provider.

    This service never creates subjects; it only reads the id, the
    global role and the active flag carried by a verified token.
    Every operation takes the acting Subject explicitly.
    """

    id: UUID
    role: Role
    is_active: bool = True

    def has_role(self, role: str) -> bool:
        return self.role == role
