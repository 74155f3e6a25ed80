"""SQLAlchemy table definitions.

These mirror the frozen dataclass domain models in academy/models/ and
declare, in the schema, the same invariants the in-memory store
checks at commit time:

  - sibling order is unique per parent; the constraint is DEFERRABLE
    INITIALLY DEFERRED so a reorder can pass through transient
    duplicates inside one transaction
  - one enrollment per (learner, course)
  - deletes cascade down the content tree, but never through an
    enrollment: deleting an enrolled course is RESTRICTed

Lessons and quizzes share the ``units`` table; the unique key
(subcourse_id, kind, sort_order) gives each kind its own sequence.
"""

from __future__ import annotations

import uuid

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from academy.db.engine import Base


class OrganizationRow(Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    plan: Mapped[str] = mapped_column(
        String(32), nullable=False, default="free"
    )  # free|team|enterprise
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default="active"
    )  # active|suspended


class MembershipRow(Base):
    __tablename__ = "org_memberships"

    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        primary_key=True,
    )
    # Subjects live in the identity provider; no local FK.
    subject_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    role: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (
        CheckConstraint(
            "role IN ('owner', 'instructor', 'learner')", name="ck_membership_role"
        ),
    )


class CourseRow(Base):
    __tablename__ = "courses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    owner_subject_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), nullable=True, index=True
    )  # instructor of record
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class SubCourseRow(Base):
    __tablename__ = "subcourses"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("courses.id", ondelete="CASCADE"),
        nullable=False,
    )
    order: Mapped[int] = mapped_column("sort_order", Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Constraint columns are named by database column name ("sort_order").
    __table_args__ = (
        UniqueConstraint(
            "course_id",
            "sort_order",
            name="uq_subcourses_course_order",
            deferrable=True,
            initially="DEFERRED",
        ),
        CheckConstraint("sort_order >= 0", name="ck_subcourses_order_nonneg"),
    )


class UnitRow(Base):
    """Lessons and quizzes; ``kind`` tells them apart."""

    __tablename__ = "units"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    subcourse_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("subcourses.id", ondelete="CASCADE"),
        nullable=False,
    )
    kind: Mapped[str] = mapped_column(String(16), nullable=False)  # lesson|quiz
    order: Mapped[int] = mapped_column("sort_order", Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    published: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint(
            "subcourse_id",
            "kind",
            "sort_order",
            name="uq_units_subcourse_kind_order",
            deferrable=True,
            initially="DEFERRED",
        ),
        CheckConstraint("sort_order >= 0", name="ck_units_order_nonneg"),
        CheckConstraint("kind IN ('lesson', 'quiz')", name="ck_units_kind"),
    )


class EnrollmentRow(Base):
    __tablename__ = "enrollments"

    learner_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True)
    course_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("courses.id", ondelete="RESTRICT"),
        primary_key=True,
    )
    enrolled_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_progress_at: Mapped[int | None] = mapped_column(BigInteger, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "progress >= 0 AND progress <= 100", name="ck_enrollments_progress_range"
        ),
    )
