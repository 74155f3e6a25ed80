"""order units per kind

Revision ID: 7d2e4a61c9f3
Revises: 3b7c1e9d2a40
Create Date: 2026-10-18 12:00:00.000000

"""

from collections.abc import Sequence

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "7d2e4a61c9f3"
down_revision: str | Sequence[str] | None = "3b7c1e9d2a40"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    op.drop_constraint("uq_units_subcourse_order", "units", type_="unique")
    # Renumber each (subcourse, kind) sequence from 0.
    op.execute(
        """
        UPDATE units AS u
        SET sort_order = ranked.rn - 1
        FROM (
            SELECT id, row_number() OVER (
                PARTITION BY subcourse_id, kind ORDER BY sort_order
            ) AS rn
            FROM units
        ) AS ranked
        WHERE u.id = ranked.id
        """
    )
    op.create_unique_constraint(
        "uq_units_subcourse_kind_order",
        "units",
        ["subcourse_id", "kind", "sort_order"],
        deferrable=True,
        initially="DEFERRED",
    )


def downgrade() -> None:
    op.drop_constraint("uq_units_subcourse_kind_order", "units", type_="unique")
    op.execute(
        """
        UPDATE units AS u
        SET sort_order = ranked.rn - 1
        FROM (
            SELECT id, row_number() OVER (
                PARTITION BY subcourse_id ORDER BY kind, sort_order
            ) AS rn
            FROM units
        ) AS ranked
        WHERE u.id = ranked.id
        """
    )
    op.create_unique_constraint(
        "uq_units_subcourse_order",
        "units",
        ["subcourse_id", "sort_order"],
        deferrable=True,
        initially="DEFERRED",
    )
