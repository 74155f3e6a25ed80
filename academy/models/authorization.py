from __future__ import annotations

from dataclasses import dataclass
from typing import Literal
from uuid import UUID

Action = Literal[
    "read",
    "create",
    "update",
    "delete",
    "reorder",
    "enroll",
    "unenroll",
    "update_progress",
]

READ_ACTIONS: frozenset[str] = frozenset({"read"})
CONTENT_ACTIONS: frozenset[str] = frozenset(
    {"read", "create", "update", "delete", "reorder"}
)
MUTATING_ACTIONS: frozenset[str] = CONTENT_ACTIONS - READ_ACTIONS
SELF_SERVICE_ACTIONS: frozenset[str] = frozenset(
    {"enroll", "unenroll", "update_progress"}
)

ResourceKind = Literal[
    "organization",
    "membership",
    "course",
    "subcourse",
    "lesson",
    "quiz",
    "enrollment",
]
CONTENT_KINDS: frozenset[str] = frozenset({"course", "subcourse", "lesson", "quiz"})


@dataclass(frozen=True, slots=True)
class ResourcePath:
    """Ownership chain of one resource, resolved by the caller.

    org_id is always set: every resource lives in exactly one
    organization.  The course_* fields describe the owning Course and
    are None/False for organization-level resources.
    """

    kind: ResourceKind
    org_id: UUID
    course_id: UUID | None = None
    course_owner_id: UUID | None = None
    course_published: bool = False
    node_id: UUID | None = None


Outcome = Literal["allow", "deny", "delegate"]


@dataclass(frozen=True, slots=True)
class Decision:
    outcome: Outcome
    rule: int
    reason: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome == "allow"

    @property
    def delegated(self) -> bool:
        return self.outcome == "delegate"
