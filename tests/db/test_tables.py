"""Schema-level invariants, checked against the SQLAlchemy metadata."""

from __future__ import annotations

import pytest
from sqlalchemy import CheckConstraint, UniqueConstraint

from academy.db.engine import Base
from academy.db.tables import SubCourseRow, UnitRow


def _constraint(table: str, name: str):
    found = [c for c in Base.metadata.tables[table].constraints if c.name == name]
    assert found, f"{table} has no constraint {name}"
    return found[0]


@pytest.mark.parametrize(
    "table,name",
    [
        ("subcourses", "uq_subcourses_course_order"),
        ("units", "uq_units_subcourse_kind_order"),
    ],
)
def test_sibling_order_unique_and_deferred(table: str, name: str) -> None:
    constraint = _constraint(table, name)
    assert isinstance(constraint, UniqueConstraint)
    assert constraint.deferrable is True
    assert constraint.initially == "DEFERRED"


@pytest.mark.parametrize(
    "table,name",
    [
        ("org_memberships", "ck_membership_role"),
        ("subcourses", "ck_subcourses_order_nonneg"),
        ("units", "ck_units_order_nonneg"),
        ("units", "ck_units_kind"),
        ("enrollments", "ck_enrollments_progress_range"),
    ],
)
def test_check_constraints_declared(table: str, name: str) -> None:
    assert isinstance(_constraint(table, name), CheckConstraint)


def test_order_attribute_maps_to_sort_order_column() -> None:
    for row in (SubCourseRow, UnitRow):
        column = row.__table__.c["order"]  # type: ignore[attr-defined]
        assert column.name == "sort_order"


def test_enrollment_key_is_learner_and_course() -> None:
    pk = Base.metadata.tables["enrollments"].primary_key
    assert [c.name for c in pk.columns] == ["learner_id", "course_id"]


@pytest.mark.parametrize(
    "table,column,ondelete",
    [
        ("org_memberships", "org_id", "CASCADE"),
        ("courses", "org_id", "CASCADE"),
        ("subcourses", "course_id", "CASCADE"),
        ("units", "subcourse_id", "CASCADE"),
        ("enrollments", "course_id", "RESTRICT"),
    ],
)
def test_delete_rules(table: str, column: str, ondelete: str) -> None:
    (fk,) = Base.metadata.tables[table].c[column].foreign_keys
    assert fk.ondelete == ondelete


def test_units_are_sequenced_per_kind() -> None:
    constraint = _constraint("units", "uq_units_subcourse_kind_order")
    assert [c.name for c in constraint.columns] == [
        "subcourse_id",
        "kind",
        "sort_order",
    ]
