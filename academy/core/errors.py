"""Domain error taxonomy.

Every rejected operation raises exactly one of these, so callers and
tests can assert on the precise cause.  ``code`` is the stable,
caller-visible kind; ``status_class`` groups kinds by how the
transport layer should surface them:

  permission_denied  authorization failures, never retried
  not_found          referenced entity absent, never retried
  conflict           an invariant or input check failed; the caller
                     must correct its input
  transient          the store aborted the whole transaction; the
                     identical request may be retried
"""

from __future__ import annotations

from typing import Any, ClassVar, Literal

StatusClass = Literal["permission_denied", "not_found", "conflict", "transient"]


class DomainError(Exception):
    code: ClassVar[str] = "DOMAIN_ERROR"
    status_class: ClassVar[StatusClass] = "conflict"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code}: {self.message})"


# --- permission_denied ---


class SubjectInactive(DomainError):
    code = "SUBJECT_INACTIVE"
    status_class = "permission_denied"


class RoleForbidden(DomainError):
    code = "ROLE_FORBIDDEN"
    status_class = "permission_denied"


class CrossTenantMove(DomainError):
    code = "CROSS_TENANT_MOVE"
    status_class = "permission_denied"


class CourseNotAvailable(DomainError):
    code = "COURSE_NOT_AVAILABLE"
    status_class = "permission_denied"


# --- not_found ---


class NotFound(DomainError):
    code = "NOT_FOUND"
    status_class = "not_found"


# --- conflict ---


class AlreadyEnrolled(DomainError):
    code = "ALREADY_ENROLLED"


class ProgressRegression(DomainError):
    code = "PROGRESS_REGRESSION"


class ProgressOutOfRange(DomainError):
    code = "PROGRESS_OUT_OF_RANGE"


class InvalidReorder(DomainError):
    code = "INVALID_REORDER"


class HasDependents(DomainError):
    code = "HAS_DEPENDENTS"


class InvariantViolation(DomainError):
    code = "INVARIANT_VIOLATION"


class MembershipExists(DomainError):
    code = "MEMBERSHIP_EXISTS"


class SlugTaken(DomainError):
    code = "SLUG_TAKEN"


# --- transient ---


class StorageUnavailable(DomainError):
    code = "STORAGE_UNAVAILABLE"
    status_class = "transient"


_DENIALS: dict[str, type[DomainError]] = {
    SubjectInactive.code: SubjectInactive,
    RoleForbidden.code: RoleForbidden,
}


def denial_error(reason: str, message: str) -> DomainError:
    """Map a policy-table deny reason onto its exception type."""
    return _DENIALS.get(reason, RoleForbidden)(message)
