"""Structural mutation of the content tree.

Organization -> Course -> SubCourse -> {Lesson, Quiz}

Every operation runs inside one store transaction: existence checks,
the authorization decision, every sibling reindex and every cascaded
delete commit together or not at all.  The store re-checks sibling
order contiguity for each touched sequence before it commits, so a bug
here surfaces as INVARIANT_VIOLATION instead of a gap in the data.

Children inherit authorization from their ancestor chain: a mutation
is decided against the ResourcePath of the node's owning course (or of
the organization, for course creation).
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from typing import Any
from uuid import UUID

from academy.core.errors import (
    CrossTenantMove,
    DomainError,
    HasDependents,
    InvalidReorder,
    InvariantViolation,
    NotFound,
    SubjectInactive,
)
from academy.core.metrics import HIERARCHY_MUTATIONS
from academy.models.course import (
    UNIT_KINDS,
    ChildFilter,
    ContentNode,
    Course,
    Lesson,
    NodeKind,
    OrderedNode,
    Quiz,
    SubCourse,
)
from academy.models.subject import Subject
from academy.repos.store import InMemoryStore, UnitOfWork
from academy.services.access import authorize, evaluate, org_path, path_to

logger = logging.getLogger(__name__)

_EDITABLE: dict[str, frozenset[str]] = {
    "course": frozenset({"title", "description", "published", "owner_subject_id"}),
    "subcourse": frozenset({"title", "description", "published"}),
    "lesson": frozenset({"title", "content", "published"}),
    "quiz": frozenset({"title", "description", "published"}),
}


_NULLABLE: frozenset[str] = frozenset({"owner_subject_id"})


def _require_node(uow: UnitOfWork, node_id: UUID) -> ContentNode:
    node = uow.content.get(node_id)
    if node is None:
        raise NotFound(f"node {node_id} not found")
    return node


def _check_fields(kind: NodeKind, attrs: dict[str, Any]) -> None:
    unknown = set(attrs) - _EDITABLE.get(kind, frozenset())
    if unknown:
        raise InvariantViolation(
            f"fields {sorted(unknown)} do not apply to a {kind}",
            details={"fields": sorted(unknown)},
        )
    nulls = sorted(k for k, v in attrs.items() if v is None and k not in _NULLABLE)
    if nulls:
        raise InvariantViolation(
            f"fields {nulls} cannot be null", details={"fields": nulls}
        )


def _recompact(uow: UnitOfWork, parent_id: UUID, kind: NodeKind) -> None:
    for index, sibling in enumerate(uow.content.children(parent_id, kind)):
        if sibling.order != index:
            uow.content.put(replace(sibling, order=index))


def _delete_subtree(uow: UnitOfWork, node: ContentNode) -> int:
    """Delete ``node`` and everything below it. Returns the row count."""
    deleted = 0
    for child in uow.content.children(node.id):
        deleted += _delete_subtree(uow, child)
    uow.content.delete(node.id)
    return deleted + 1


def _check_instructor_of_record(
    uow: UnitOfWork, org_id: UUID, subject_id: UUID | None
) -> None:
    if subject_id is None:
        return
    membership = uow.memberships.get(org_id, subject_id)
    if membership is None or membership.role not in ("owner", "instructor"):
        raise InvariantViolation(
            "instructor of record must be an owner or instructor of the organization",
            details={"owner_subject_id": str(subject_id)},
        )


def _build_child(
    parent: ContentNode, kind: NodeKind, order: int, attrs: dict[str, Any]
) -> OrderedNode:
    _check_fields(kind, attrs)
    if isinstance(parent, Course) and kind == "subcourse":
        return SubCourse.new(course_id=parent.id, order=order, **attrs)
    if isinstance(parent, SubCourse) and kind == "lesson":
        return Lesson.new(subcourse_id=parent.id, order=order, **attrs)
    if isinstance(parent, SubCourse) and kind == "quiz":
        return Quiz.new(subcourse_id=parent.id, order=order, **attrs)
    raise InvariantViolation(
        f"a {parent.kind} cannot hold a {kind}",
        details={"parent_kind": parent.kind, "child_kind": kind},
    )


def _sequence_kind(
    uow: UnitOfWork,
    parent: ContentNode,
    ordered_child_ids: list[UUID],
    kind: NodeKind | None,
) -> NodeKind:
    """Which of ``parent``'s sequences a reorder addresses."""
    allowed: tuple[NodeKind, ...] = (
        ("subcourse",) if isinstance(parent, Course) else ("lesson", "quiz")
    )
    if kind is not None:
        if kind not in allowed:
            raise InvalidReorder(
                f"a {parent.kind} has no {kind} sequence",
                details={"kind": kind, "parent_kind": parent.kind},
            )
        return kind
    if len(allowed) == 1:
        return allowed[0]
    named = {
        node.kind
        for node in (uow.content.get(i) for i in ordered_child_ids)
        if node is not None and node.kind in allowed
    }
    if len(named) != 1:
        raise InvalidReorder(
            "kind is required to reorder a subcourse's lessons or quizzes",
            details={"kinds": sorted(named)},
        )
    return named.pop()


@contextmanager
def _tracked(operation: str) -> Iterator[None]:
    """Count the outcome of one hierarchy operation."""
    try:
        yield
    except DomainError as e:
        HIERARCHY_MUTATIONS.labels(operation=operation, result=e.code).inc()
        raise
    except Exception:
        HIERARCHY_MUTATIONS.labels(operation=operation, result="error").inc()
        raise
    HIERARCHY_MUTATIONS.labels(operation=operation, result="ok").inc()


class ResourceHierarchyManager:
    def __init__(self, store: InMemoryStore) -> None:
        self._store = store

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_node(self, actor: Subject, node_id: UUID) -> ContentNode:
        with self._store.read() as uow:
            node = _require_node(uow, node_id)
            authorize(uow, actor, "read", path_to(uow, node))
            return node

    def list_courses(self, actor: Subject, org_id: UUID) -> list[Course]:
        """Courses of an organization that ``actor`` may read.

        Members who may read the organization see every course; anyone
        else sees the courses the policy table lets them read one by
        one (for learners: the published ones).
        """
        with self._store.read() as uow:
            if uow.orgs.get_by_id(org_id) is None:
                raise NotFound(f"organization {org_id} not found")
            decision = evaluate(uow, actor, "read", org_path(org_id))
            if decision.reason == SubjectInactive.code:
                raise SubjectInactive("inactive subjects cannot read content")
            courses = uow.content.courses_in_org(org_id)
            if decision.allowed:
                return courses
            return [
                c
                for c in courses
                if evaluate(uow, actor, "read", path_to(uow, c)).allowed
            ]

    def courses_of_record(self, actor: Subject) -> list[Course]:
        with self._store.read() as uow:
            return uow.content.courses_owned_by(actor.id)

    def list_children(
        self, actor: Subject, parent_id: UUID, child_filter: ChildFilter | None = None
    ) -> list[OrderedNode]:
        child_filter = child_filter or ChildFilter()
        if actor.role == "learner" and not child_filter.published_only:
            child_filter = replace(child_filter, published_only=True)
        with self._store.read() as uow:
            parent = _require_node(uow, parent_id)
            authorize(uow, actor, "read", path_to(uow, parent))
            return [
                c for c in uow.content.children(parent_id) if child_filter.matches(c)
            ]

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_course(
        self,
        actor: Subject,
        org_id: UUID,
        *,
        title: str,
        description: str = "",
        owner_subject_id: UUID | None = None,
        published: bool = False,
    ) -> Course:
        course = Course.new(
            org_id=org_id,
            title=title,
            description=description,
            owner_subject_id=owner_subject_id,
            published=published,
        )
        with _tracked("create_course"), self._store.transaction() as uow:
            if uow.orgs.get_by_id(org_id) is None:
                raise NotFound(f"organization {org_id} not found")
            authorize(uow, actor, "create", org_path(org_id))
            _check_instructor_of_record(uow, org_id, owner_subject_id)
            uow.content.put(course)

        logger.info(
            "Course created course=%s org=%s by=%s", course.id, org_id, actor.id
        )
        return course

    def create_child(
        self,
        actor: Subject,
        parent_id: UUID,
        kind: NodeKind,
        *,
        order: int | None = None,
        **attrs: Any,
    ) -> OrderedNode:
        """Append a child, or insert it at ``order`` shifting later siblings."""
        with _tracked("create_child"), self._store.transaction() as uow:
            parent = _require_node(uow, parent_id)
            authorize(uow, actor, "create", path_to(uow, parent))

            siblings = uow.content.children(parent_id, kind)
            if order is None:
                order = len(siblings)
            elif not 0 <= order <= len(siblings):
                raise InvalidReorder(
                    f"order must be between 0 and {len(siblings)}",
                    details={"order": order, "child_count": len(siblings)},
                )

            child = _build_child(parent, kind, order, attrs)
            # Shift from the end so no two siblings ever share an order,
            # matching a per-row unique (parent, order) constraint.
            for sibling in reversed(siblings[order:]):
                uow.content.put(replace(sibling, order=sibling.order + 1))
            uow.content.put(child)

        logger.info(
            "Node created kind=%s node=%s parent=%s order=%d by=%s",
            kind,
            child.id,
            parent_id,
            child.order,
            actor.id,
        )
        return child

    # ------------------------------------------------------------------
    # Update / reorder
    # ------------------------------------------------------------------

    def update_node(
        self, actor: Subject, node_id: UUID, changes: dict[str, Any]
    ) -> ContentNode:
        with _tracked("update"), self._store.transaction() as uow:
            node = _require_node(uow, node_id)
            authorize(uow, actor, "update", path_to(uow, node))

            _check_fields(node.kind, changes)
            if isinstance(node, Course) and "owner_subject_id" in changes:
                _check_instructor_of_record(
                    uow, node.org_id, changes["owner_subject_id"]
                )

            updated = replace(node, **changes)
            uow.content.put(updated)

        logger.info(
            "Node updated kind=%s node=%s fields=%s by=%s",
            node.kind,
            node_id,
            sorted(changes),
            actor.id,
        )
        return updated

    def reorder(
        self,
        actor: Subject,
        parent_id: UUID,
        ordered_child_ids: list[UUID],
        kind: NodeKind | None = None,
    ) -> list[OrderedNode]:
        """Assign order = index for every child of one kind, all at once.

        A course has one sequence (its subcourses); a subcourse has a
        lesson sequence and a quiz sequence.  ``kind`` picks the
        sequence and may be omitted when the ids name it unambiguously.
        ``ordered_child_ids`` must be exactly that sequence's current
        members: no missing, duplicated or foreign ids.
        """
        with _tracked("reorder"), self._store.transaction() as uow:
            parent = _require_node(uow, parent_id)
            if parent.kind in UNIT_KINDS:
                raise InvalidReorder(f"a {parent.kind} has no ordered children")
            authorize(uow, actor, "reorder", path_to(uow, parent))

            kind = _sequence_kind(uow, parent, ordered_child_ids, kind)
            children = {c.id: c for c in uow.content.children(parent_id, kind)}
            counts = Counter(ordered_child_ids)
            duplicated = {i for i, n in counts.items() if n > 1}
            missing = set(children) - set(counts)
            foreign = set(counts) - set(children)
            if duplicated or missing or foreign:
                raise InvalidReorder(
                    f"ordered ids must be a permutation of the current {kind}s",
                    details={
                        "kind": kind,
                        "missing": sorted(str(i) for i in missing),
                        "duplicated": sorted(str(i) for i in duplicated),
                        "foreign": sorted(str(i) for i in foreign),
                    },
                )

            for index, child_id in enumerate(ordered_child_ids):
                child = children[child_id]
                if child.order != index:
                    uow.content.put(replace(child, order=index))
            result = uow.content.children(parent_id, kind)

        logger.info(
            "Children reordered parent=%s kind=%s count=%d by=%s",
            parent_id,
            kind,
            len(result),
            actor.id,
        )
        return result

    # ------------------------------------------------------------------
    # Delete / move
    # ------------------------------------------------------------------

    def delete_node(self, actor: Subject, node_id: UUID) -> int:
        """Delete a node and its subtree, then close the gap among its siblings.

        Returns the number of nodes removed.  A course with enrollments is
        never deleted: enrollments do not cascade.
        """
        with _tracked("delete"), self._store.transaction() as uow:
            node = _require_node(uow, node_id)
            authorize(uow, actor, "delete", path_to(uow, node))

            if isinstance(node, Course):
                enrolled = uow.enrollments.count_by_course(node.id)
                if enrolled:
                    raise HasDependents(
                        "course has active enrollments",
                        details={"course_id": str(node.id), "enrollments": enrolled},
                    )

            deleted = _delete_subtree(uow, node)
            if not isinstance(node, Course):
                _recompact(uow, node.parent_id, node.kind)

        logger.info(
            "Node deleted kind=%s node=%s cascaded=%d by=%s",
            node.kind,
            node_id,
            deleted - 1,
            actor.id,
        )
        return deleted

    def move(self, actor: Subject, node_id: UUID, new_parent_id: UUID) -> ContentNode:
        """Re-parent a node within its organization, appending it at the end."""
        with _tracked("move"), self._store.transaction() as uow:
            node = _require_node(uow, node_id)
            source = path_to(uow, node)
            authorize(uow, actor, "update", source)

            if isinstance(node, Course):
                if uow.orgs.get_by_id(new_parent_id) is None:
                    raise NotFound(f"organization {new_parent_id} not found")
                if new_parent_id != node.org_id:
                    raise CrossTenantMove("a course cannot leave its organization")
                return node

            if isinstance(node, SubCourse):
                new_parent: ContentNode | None = uow.content.get_course(new_parent_id)
            else:
                new_parent = uow.content.get_subcourse(new_parent_id)
            if new_parent is None:
                expected = "course" if isinstance(node, SubCourse) else "subcourse"
                raise NotFound(f"{expected} {new_parent_id} not found")

            destination = path_to(uow, new_parent)
            if destination.org_id != source.org_id:
                logger.warning(
                    "Cross-tenant move rejected: node=%s from org=%s to org=%s by=%s",
                    node_id,
                    source.org_id,
                    destination.org_id,
                    actor.id,
                )
                raise CrossTenantMove(
                    "nodes cannot move between organizations",
                    details={
                        "from_org": str(source.org_id),
                        "to_org": str(destination.org_id),
                    },
                )
            authorize(uow, actor, "create", destination)

            old_parent_id = node.parent_id
            if old_parent_id == new_parent_id:
                return node

            new_order = len(uow.content.children(new_parent_id, node.kind))
            if isinstance(node, SubCourse):
                moved: OrderedNode = replace(
                    node, course_id=new_parent_id, order=new_order
                )
            else:
                moved = replace(node, subcourse_id=new_parent_id, order=new_order)
            uow.content.put(moved)
            _recompact(uow, old_parent_id, node.kind)

        logger.info(
            "Node moved kind=%s node=%s from=%s to=%s by=%s",
            node.kind,
            node_id,
            old_parent_id,
            new_parent_id,
            actor.id,
        )
        return moved
