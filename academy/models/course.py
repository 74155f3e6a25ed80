"""Content tree: Organization -> Course -> SubCourse -> {Lesson, Quiz}.

Parent references are immutable once set.  SubCourses are ordered
within their course.  Lessons and quizzes (both "units") are ordered
per kind: a subcourse holds one lesson sequence and one quiz
sequence, each numbered from 0.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Literal
from uuid import UUID, uuid4

NodeKind = Literal["course", "subcourse", "lesson", "quiz"]
UNIT_KINDS: frozenset[str] = frozenset({"lesson", "quiz"})


@dataclass(frozen=True, slots=True)
class Course:
    kind: ClassVar[NodeKind] = "course"

    id: UUID
    org_id: UUID
    title: str
    description: str = ""
    owner_subject_id: UUID | None = None  # instructor of record
    published: bool = False

    @property
    def parent_id(self) -> UUID:
        return self.org_id

    @staticmethod
    def new(
        *,
        org_id: UUID,
        title: str,
        description: str = "",
        owner_subject_id: UUID | None = None,
        published: bool = False,
    ) -> Course:
        return Course(
            id=uuid4(),
            org_id=org_id,
            title=title,
            description=description,
            owner_subject_id=owner_subject_id,
            published=published,
        )


@dataclass(frozen=True, slots=True)
class SubCourse:
    kind: ClassVar[NodeKind] = "subcourse"

    id: UUID
    course_id: UUID
    order: int
    title: str
    description: str = ""
    published: bool = False

    @property
    def parent_id(self) -> UUID:
        return self.course_id

    @staticmethod
    def new(
        *,
        course_id: UUID,
        order: int,
        title: str,
        description: str = "",
        published: bool = False,
    ) -> SubCourse:
        return SubCourse(
            id=uuid4(),
            course_id=course_id,
            order=order,
            title=title,
            description=description,
            published=published,
        )


@dataclass(frozen=True, slots=True)
class Lesson:
    kind: ClassVar[NodeKind] = "lesson"

    id: UUID
    subcourse_id: UUID
    order: int
    title: str
    content: str = ""
    published: bool = False

    @property
    def parent_id(self) -> UUID:
        return self.subcourse_id

    @staticmethod
    def new(
        *,
        subcourse_id: UUID,
        order: int,
        title: str,
        content: str = "",
        published: bool = False,
    ) -> Lesson:
        return Lesson(
            id=uuid4(),
            subcourse_id=subcourse_id,
            order=order,
            title=title,
            content=content,
            published=published,
        )


@dataclass(frozen=True, slots=True)
class Quiz:
    kind: ClassVar[NodeKind] = "quiz"

    id: UUID
    subcourse_id: UUID
    order: int
    title: str
    description: str = ""
    published: bool = False

    @property
    def parent_id(self) -> UUID:
        return self.subcourse_id

    @staticmethod
    def new(
        *,
        subcourse_id: UUID,
        order: int,
        title: str,
        description: str = "",
        published: bool = False,
    ) -> Quiz:
        return Quiz(
            id=uuid4(),
            subcourse_id=subcourse_id,
            order=order,
            title=title,
            description=description,
            published=published,
        )


Unit = Lesson | Quiz
OrderedNode = SubCourse | Lesson | Quiz
ContentNode = Course | SubCourse | Lesson | Quiz


@dataclass(frozen=True, slots=True)
class ChildFilter:
    """Read filter for listing a node's children.

    Built once per request and passed down unchanged.
    """

    kind: NodeKind | None = None
    published_only: bool = False

    def matches(self, node: ContentNode) -> bool:
        if self.kind is not None and node.kind != self.kind:
            return False
        if self.published_only and not node.published:
            return False
        return True
