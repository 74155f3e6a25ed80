"""Coarse route guard.

Maps a request path prefix to the one global role allowed inside it.
This runs before any fine-grained policy decision: a subject whose
role does not match the area is sent to its own landing page instead
of being refused.
"""

from __future__ import annotations

from dataclasses import dataclass

from academy.models.subject import Role, Subject

ROUTE_ROLES: tuple[tuple[str, Role], ...] = (
    ("/owner", "owner"),
    ("/instructor", "instructor"),
    ("/learner", "learner"),
)


@dataclass(frozen=True, slots=True)
class GuardResult:
    allowed: bool
    required_role: Role | None = None
    redirect_to: str | None = None


def landing_path(role: Role) -> str:
    return f"/{role}/dashboard"


def required_role(path: str) -> Role | None:
    for prefix, role in ROUTE_ROLES:
        if path == prefix or path.startswith(prefix + "/"):
            return role
    return None


def check_route(path: str, subject: Subject) -> GuardResult:
    role = required_role(path)
    if role is None or subject.role == role:
        return GuardResult(allowed=True, required_role=role)
    return GuardResult(
        allowed=False,
        required_role=role,
        redirect_to=landing_path(subject.role),
    )
