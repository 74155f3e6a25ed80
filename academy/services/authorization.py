"""Authorization policy table.

``decide`` is a pure function over facts the caller has already
fetched: the acting subject, the subject's membership in the
resource's organization (or None), and the resource's ownership chain.
It performs no I/O and records nothing; callers log and count the
decision.

Rules are evaluated top to bottom and the first match wins:

  1. inactive subject                                   -> deny SUBJECT_INACTIVE
  2. owner membership in the resource's org, content action -> allow
  3. instructor membership in the resource's org, read      -> allow
  4. instructor + mutation of content whose course has
     owner_subject_id == subject.id                       -> allow
  5. learner + read of content under a published course   -> allow
  6. learner + enroll/unenroll/update_progress            -> delegate
  7. anything else                                        -> deny ROLE_FORBIDDEN

Rules 2 and 3 read the role from the membership, not from the token:
an organization's owners are exactly its owner memberships, which is
also what the last-owner check counts.  A global Owner holding a
learner membership gets no owner power in that organization.

Rule 7 is the catch-all, so every (role, action, resource) reaches a
terminal rule.  Enrollment actions fall outside rules 2-4:
only the learner themself ever transitions an enrollment.
"""

from __future__ import annotations

from academy.core.errors import RoleForbidden, SubjectInactive
from academy.models.authorization import (
    CONTENT_ACTIONS,
    CONTENT_KINDS,
    MUTATING_ACTIONS,
    READ_ACTIONS,
    SELF_SERVICE_ACTIONS,
    Action,
    Decision,
    ResourcePath,
)
from academy.models.organization import Membership
from academy.models.subject import Subject


def _org_role(
    subject: Subject, path: ResourcePath, membership: Membership | None
) -> str | None:
    """The subject's role inside the resource's org, or None."""
    if (
        membership is None
        or membership.subject_id != subject.id
        or membership.org_id != path.org_id
    ):
        return None
    return membership.role


def decide(
    subject: Subject,
    action: Action,
    path: ResourcePath,
    membership: Membership | None = None,
) -> Decision:
    if not subject.is_active:
        return Decision("deny", 1, SubjectInactive.code)

    org_role = _org_role(subject, path, membership)
    if org_role == "owner" and action in CONTENT_ACTIONS:
        return Decision("allow", 2)

    if org_role == "instructor" and action in READ_ACTIONS:
        return Decision("allow", 3)

    if (
        subject.role == "instructor"
        and action in MUTATING_ACTIONS
        and path.kind in CONTENT_KINDS
        and path.course_owner_id is not None
        and path.course_owner_id == subject.id
    ):
        return Decision("allow", 4)

    if (
        subject.role == "learner"
        and action in READ_ACTIONS
        and path.kind in CONTENT_KINDS
        and path.course_published
    ):
        return Decision("allow", 5)

    if subject.role == "learner" and action in SELF_SERVICE_ACTIONS:
        return Decision("delegate", 6)

    return Decision("deny", 7, RoleForbidden.code)
