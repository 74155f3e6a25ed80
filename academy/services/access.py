"""Glue between the stores and the pure policy table.

Resolves a resource's ownership chain into a ResourcePath, fetches the
subject's membership, asks ``authorization.decide`` and turns a deny
into the matching DomainError.  Decisions are counted and denials are
logged here so ``decide`` itself stays side-effect free.
"""

from __future__ import annotations

import logging
from uuid import UUID

from academy.core.errors import NotFound, denial_error
from academy.core.metrics import AUTHZ_DECISIONS
from academy.models.authorization import Action, Decision, ResourceKind, ResourcePath
from academy.models.course import ContentNode, Course, SubCourse
from academy.models.subject import Subject
from academy.repos.store import UnitOfWork
from academy.services.authorization import decide

logger = logging.getLogger(__name__)


def org_path(org_id: UUID, kind: ResourceKind = "organization") -> ResourcePath:
    return ResourcePath(kind=kind, org_id=org_id)


def owning_course(uow: UnitOfWork, node: ContentNode) -> Course:
    """Walk up from any content node to its Course."""
    if isinstance(node, Course):
        return node
    if isinstance(node, SubCourse):
        course = uow.content.get_course(node.course_id)
    else:
        subcourse = uow.content.get_subcourse(node.subcourse_id)
        course = (
            uow.content.get_course(subcourse.course_id)
            if subcourse is not None
            else None
        )
    if course is None:
        # Parent links are immutable and deletes cascade, so this means
        # the tree is corrupt rather than that the caller asked badly.
        raise NotFound(f"course for {node.kind} {node.id} not found")
    return course


def path_to(
    uow: UnitOfWork, node: ContentNode, kind: ResourceKind | None = None
) -> ResourcePath:
    course = owning_course(uow, node)
    return ResourcePath(
        kind=kind or node.kind,
        org_id=course.org_id,
        course_id=course.id,
        course_owner_id=course.owner_subject_id,
        course_published=course.published,
        node_id=node.id,
    )


def record(decision: Decision) -> Decision:
    AUTHZ_DECISIONS.labels(rule=str(decision.rule), outcome=decision.outcome).inc()
    return decision


def evaluate(
    uow: UnitOfWork, subject: Subject, action: Action, path: ResourcePath
) -> Decision:
    membership = uow.memberships.get(path.org_id, subject.id)
    return record(decide(subject, action, path, membership))


def authorize(
    uow: UnitOfWork, subject: Subject, action: Action, path: ResourcePath
) -> Decision:
    """Return an allow/delegate decision or raise the deny reason."""
    decision = evaluate(uow, subject, action, path)
    if decision.outcome == "deny":
        logger.warning(
            "Access denied: subject=%s role=%s action=%s kind=%s org=%s node=%s "
            "rule=%d reason=%s",
            subject.id,
            subject.role,
            action,
            path.kind,
            path.org_id,
            path.node_id,
            decision.rule,
            decision.reason,
        )
        raise denial_error(
            decision.reason or "",
            f"{subject.role} may not {action} this {path.kind}",
        )
    return decision
