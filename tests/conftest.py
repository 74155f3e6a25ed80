from __future__ import annotations

import sys
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient

from academy.api.dependencies import hierarchy, membership_registry, store
from academy.main import app
from academy.models.course import Course, Lesson, Quiz, SubCourse
from academy.models.organization import Membership, Organization
from academy.models.subject import Role, Subject
from academy.services import token_service

# Ensure repo root is on sys.path so `import academy` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def reset_store() -> None:
    """Drop every organization, node and enrollment between tests."""
    store.reset()


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


# ---------------------------------------------------------------------------
# Subjects and tokens
# ---------------------------------------------------------------------------


def make_subject(role: Role = "learner", *, active: bool = True) -> Subject:
    return Subject(id=uuid4(), role=role, is_active=active)


def mint_token(subject: Subject | None = None, role: Role = "learner") -> str:
    """Create a valid ES256 JWT for testing."""
    subject = subject or make_subject(role)
    return token_service.create_access_token(
        sub=str(subject.id), role=subject.role, active=subject.is_active
    )


def auth(subject: Subject | None) -> dict[str, str]:
    if subject is None:
        return {}
    return {"Authorization": f"Bearer {mint_token(subject)}"}


# ---------------------------------------------------------------------------
# Tree builders (go through the services so every invariant holds)
# ---------------------------------------------------------------------------


def create_test_org(owner: Subject, slug: str = "test-org") -> Organization:
    return membership_registry.create_organization(
        owner, name=slug.replace("-", " ").title(), slug=slug
    )


def add_test_member(org_id: UUID, subject: Subject, role: Role | None = None) -> None:
    """Write a membership directly, bypassing the policy check."""
    with store.transaction() as uow:
        uow.memberships.add(
            Membership(org_id=org_id, subject_id=subject.id, role=role or subject.role)
        )


def create_test_course(
    owner: Subject,
    org_id: UUID,
    *,
    title: str = "Course",
    instructor: Subject | None = None,
    published: bool = True,
) -> Course:
    return hierarchy.create_course(
        owner,
        org_id,
        title=title,
        owner_subject_id=instructor.id if instructor else None,
        published=published,
    )


def add_subcourse(owner: Subject, course_id: UUID, title: str) -> SubCourse:
    node = hierarchy.create_child(owner, course_id, "subcourse", title=title)
    assert isinstance(node, SubCourse)
    return node


def add_lesson(owner: Subject, subcourse_id: UUID, title: str) -> Lesson:
    node = hierarchy.create_child(owner, subcourse_id, "lesson", title=title)
    assert isinstance(node, Lesson)
    return node


def add_quiz(owner: Subject, subcourse_id: UUID, title: str) -> Quiz:
    node = hierarchy.create_child(owner, subcourse_id, "quiz", title=title)
    assert isinstance(node, Quiz)
    return node


class Tenant:
    """One organization with an owner, an instructor and a learner member."""

    def __init__(self, slug: str = "acme") -> None:
        self.owner = make_subject("owner")
        self.instructor = make_subject("instructor")
        self.learner = make_subject("learner")
        self.org = create_test_org(self.owner, slug)
        add_test_member(self.org.id, self.instructor)
        add_test_member(self.org.id, self.learner)


@pytest.fixture
def tenant() -> Tenant:
    return Tenant()
