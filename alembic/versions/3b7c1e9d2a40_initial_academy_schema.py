"""initial academy schema

Revision ID: 3b7c1e9d2a40
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3b7c1e9d2a40"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.create_table(
        "organizations",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        sa.Column("plan", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=False),
    )
    op.create_table(
        "org_memberships",
        sa.Column(
            "org_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("subject_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("role", sa.String(length=32), nullable=False),
        sa.CheckConstraint(
            "role IN ('owner', 'instructor', 'learner')", name="ck_membership_role"
        ),
    )
    op.create_table(
        "courses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "org_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("organizations.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("owner_subject_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("published", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_courses_org_id", "courses", ["org_id"])
    op.create_index("ix_courses_owner_subject_id", "courses", ["owner_subject_id"])
    op.create_table(
        "subcourses",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("published", sa.Boolean(), nullable=False),
        sa.UniqueConstraint(
            "course_id",
            "sort_order",
            name="uq_subcourses_course_order",
            deferrable=True,
            initially="DEFERRED",
        ),
        sa.CheckConstraint("sort_order >= 0", name="ck_subcourses_order_nonneg"),
    )
    op.create_table(
        "units",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "subcourse_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("subcourses.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(length=16), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("published", sa.Boolean(), nullable=False),
        sa.UniqueConstraint(
            "subcourse_id",
            "sort_order",
            name="uq_units_subcourse_order",
            deferrable=True,
            initially="DEFERRED",
        ),
        sa.CheckConstraint("sort_order >= 0", name="ck_units_order_nonneg"),
        sa.CheckConstraint("kind IN ('lesson', 'quiz')", name="ck_units_kind"),
    )
    op.create_table(
        "enrollments",
        sa.Column("learner_id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column(
            "course_id",
            postgresql.UUID(as_uuid=True),
            sa.ForeignKey("courses.id", ondelete="RESTRICT"),
            primary_key=True,
        ),
        sa.Column("enrolled_at", sa.BigInteger(), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_progress_at", sa.BigInteger(), nullable=True),
        sa.CheckConstraint(
            "progress >= 0 AND progress <= 100", name="ck_enrollments_progress_range"
        ),
    )


def downgrade() -> None:
    op.drop_table("enrollments")
    op.drop_table("units")
    op.drop_table("subcourses")
    op.drop_index("ix_courses_owner_subject_id", table_name="courses")
    op.drop_index("ix_courses_org_id", table_name="courses")
    op.drop_table("courses")
    op.drop_table("org_memberships")
    op.drop_table("organizations")
