"""Content tree endpoints.

Courses are created under an organization; every other node is
addressed by id under /v1/nodes regardless of its kind.  Children are
returned one sequence at a time in ascending ``order``: a subcourse
lists its lessons, then its quizzes.
"""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, status
from pydantic import BaseModel, Field

from academy.api.dependencies import CurrentSubject, hierarchy
from academy.models.course import ChildFilter, ContentNode, Course, Lesson, NodeKind

router = APIRouter(tags=["content"])


# --- Pydantic schemas ---


class NodeOut(BaseModel):
    id: str
    kind: str
    parent_id: str
    order: int | None = None
    title: str
    description: str | None = None
    content: str | None = None
    published: bool
    owner_subject_id: str | None = None

    @staticmethod
    def of(node: ContentNode) -> NodeOut:
        out = NodeOut(
            id=str(node.id),
            kind=node.kind,
            parent_id=str(node.parent_id),
            title=node.title,
            published=node.published,
        )
        if isinstance(node, Course):
            out.description = node.description
            if node.owner_subject_id is not None:
                out.owner_subject_id = str(node.owner_subject_id)
            return out
        out.order = node.order
        if isinstance(node, Lesson):
            out.content = node.content
        else:
            out.description = node.description
        return out


class CourseCreateIn(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    owner_subject_id: UUID | None = None
    published: bool = False


class ChildCreateIn(BaseModel):
    kind: NodeKind
    title: str = Field(min_length=1)
    order: int | None = None
    description: str | None = None
    content: str | None = None
    published: bool | None = None


class NodeUpdateIn(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    content: str | None = None
    published: bool | None = None
    owner_subject_id: UUID | None = None


class ReorderIn(BaseModel):
    ordered_child_ids: list[UUID]
    kind: NodeKind | None = None  # required when a subcourse has both units


class MoveIn(BaseModel):
    new_parent_id: UUID


class DeleteOut(BaseModel):
    deleted: int


# --- Courses under an organization ---


@router.get("/v1/orgs/{org_id}/courses", response_model=list[NodeOut])
def list_courses(org_id: UUID, subject: CurrentSubject) -> list[NodeOut]:
    return [NodeOut.of(c) for c in hierarchy.list_courses(subject, org_id)]


@router.post(
    "/v1/orgs/{org_id}/courses",
    response_model=NodeOut,
    status_code=status.HTTP_201_CREATED,
)
def create_course(
    org_id: UUID, body: CourseCreateIn, subject: CurrentSubject
) -> NodeOut:
    course = hierarchy.create_course(
        subject,
        org_id,
        title=body.title,
        description=body.description,
        owner_subject_id=body.owner_subject_id,
        published=body.published,
    )
    return NodeOut.of(course)


# --- Any node ---


@router.get("/v1/nodes/{node_id}", response_model=NodeOut)
def get_node(node_id: UUID, subject: CurrentSubject) -> NodeOut:
    return NodeOut.of(hierarchy.get_node(subject, node_id))


@router.patch("/v1/nodes/{node_id}", response_model=NodeOut)
def update_node(node_id: UUID, body: NodeUpdateIn, subject: CurrentSubject) -> NodeOut:
    # owner_subject_id may be cleared with null; other fields may not
    changes: dict[str, Any] = {
        k: v
        for k, v in body.model_dump(exclude_unset=True).items()
        if v is not None or k == "owner_subject_id"
    }
    return NodeOut.of(hierarchy.update_node(subject, node_id, changes))


@router.delete("/v1/nodes/{node_id}", response_model=DeleteOut)
def delete_node(node_id: UUID, subject: CurrentSubject) -> DeleteOut:
    """Delete a node and its whole subtree."""
    return DeleteOut(deleted=hierarchy.delete_node(subject, node_id))


@router.get("/v1/nodes/{node_id}/children", response_model=list[NodeOut])
def list_children(
    node_id: UUID,
    subject: CurrentSubject,
    kind: NodeKind | None = None,
    published_only: bool = False,
) -> list[NodeOut]:
    child_filter = ChildFilter(kind=kind, published_only=published_only)
    return [
        NodeOut.of(c) for c in hierarchy.list_children(subject, node_id, child_filter)
    ]


@router.post(
    "/v1/nodes/{node_id}/children",
    response_model=NodeOut,
    status_code=status.HTTP_201_CREATED,
)
def create_child(
    node_id: UUID, body: ChildCreateIn, subject: CurrentSubject
) -> NodeOut:
    # an explicit null means "use the default"
    given = body.model_dump(exclude_unset=True, exclude={"kind", "order"})
    attrs = {k: v for k, v in given.items() if v is not None}
    child = hierarchy.create_child(
        subject, node_id, body.kind, order=body.order, **attrs
    )
    return NodeOut.of(child)


@router.put("/v1/nodes/{node_id}/children/order", response_model=list[NodeOut])
def reorder_children(
    node_id: UUID, body: ReorderIn, subject: CurrentSubject
) -> list[NodeOut]:
    children = hierarchy.reorder(
        subject, node_id, body.ordered_child_ids, kind=body.kind
    )
    return [NodeOut.of(c) for c in children]


@router.post("/v1/nodes/{node_id}/move", response_model=NodeOut)
def move_node(node_id: UUID, body: MoveIn, subject: CurrentSubject) -> NodeOut:
    return NodeOut.of(hierarchy.move(subject, node_id, body.new_parent_id))

