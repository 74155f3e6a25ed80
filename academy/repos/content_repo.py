"""Content tree repository (courses, subcourses, lessons, quizzes).

Ordered children are stored with their ``order`` column.  Each
(parent, kind) pair is its own sequence: a subcourse holds one lesson
sequence and one quiz sequence.  The repo does not keep sequences
contiguous by itself; it records every sequence it touched so the
unit of work can re-check contiguity before commit.
"""

from __future__ import annotations

from collections.abc import MutableMapping
from typing import Protocol
from uuid import UUID

from academy.models.course import (
    ContentNode,
    Course,
    NodeKind,
    OrderedNode,
    SubCourse,
    Unit,
)

Sequence = tuple[UUID, NodeKind]


class ContentRepo(Protocol):
    def get(self, node_id: UUID) -> ContentNode | None: ...
    def get_course(self, course_id: UUID) -> Course | None: ...
    def get_subcourse(self, subcourse_id: UUID) -> SubCourse | None: ...
    def courses_in_org(self, org_id: UUID) -> list[Course]: ...
    def courses_owned_by(self, subject_id: UUID) -> list[Course]: ...
    def children(
        self, parent_id: UUID, kind: NodeKind | None = None
    ) -> list[OrderedNode]: ...
    def put(self, node: ContentNode) -> None: ...
    def delete(self, node_id: UUID) -> None: ...


class InMemoryContentRepo:
    def __init__(
        self,
        courses: MutableMapping[UUID, Course],
        subcourses: MutableMapping[UUID, SubCourse],
        units: MutableMapping[UUID, Unit],
    ) -> None:
        self._courses = courses
        self._subcourses = subcourses
        self._units = units
        self.touched_sequences: set[Sequence] = set()

    def get(self, node_id: UUID) -> ContentNode | None:
        return (
            self._courses.get(node_id)
            or self._subcourses.get(node_id)
            or self._units.get(node_id)
        )

    def get_course(self, course_id: UUID) -> Course | None:
        return self._courses.get(course_id)

    def get_subcourse(self, subcourse_id: UUID) -> SubCourse | None:
        return self._subcourses.get(subcourse_id)

    def courses_in_org(self, org_id: UUID) -> list[Course]:
        return sorted(
            (c for c in self._courses.values() if c.org_id == org_id),
            key=lambda c: c.title,
        )

    def courses_owned_by(self, subject_id: UUID) -> list[Course]:
        return sorted(
            (c for c in self._courses.values() if c.owner_subject_id == subject_id),
            key=lambda c: c.title,
        )

    def children(
        self, parent_id: UUID, kind: NodeKind | None = None
    ) -> list[OrderedNode]:
        """Children of ``parent_id``, sequence by sequence.

        With ``kind`` set only that sequence is returned.  Without it
        a subcourse lists its lessons first, then its quizzes.
        """
        if parent_id in self._courses:
            found: list[OrderedNode] = [
                s for s in self._subcourses.values() if s.course_id == parent_id
            ]
        elif parent_id in self._subcourses:
            found = [u for u in self._units.values() if u.subcourse_id == parent_id]
        else:
            found = []
        if kind is not None:
            found = [n for n in found if n.kind == kind]
        return sorted(found, key=lambda n: (n.kind, n.order))

    def put(self, node: ContentNode) -> None:
        previous = self.get(node.id)
        if previous is not None and previous.kind != node.kind:
            raise ValueError(f"node {node.id} cannot change kind")

        if isinstance(node, Course):
            self._courses[node.id] = node
            return
        if isinstance(node, SubCourse):
            self._subcourses[node.id] = node
        else:
            self._units[node.id] = node

        self.touched_sequences.add((node.parent_id, node.kind))
        if previous is not None:
            self.touched_sequences.add((previous.parent_id, previous.kind))

    def delete(self, node_id: UUID) -> None:
        node = self.get(node_id)
        if node is None:
            raise KeyError("node not found")
        if isinstance(node, Course):
            del self._courses[node_id]
            return
        if isinstance(node, SubCourse):
            del self._subcourses[node_id]
        else:
            del self._units[node_id]
        self.touched_sequences.add((node.parent_id, node.kind))
