"""PostgreSQL repositories over academy.db.tables.

They back PgStore: ``list_*`` hydrates the in-memory tables at
startup, and ``upsert``/``delete_*`` write one commit's changes.  Every
method runs inside the caller's session; the caller owns the
transaction.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any
from uuid import UUID

from sqlalchemy import Table, delete, inspect, select, text, tuple_
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.ext.asyncio import AsyncSession

from academy.db.tables import (
    CourseRow,
    EnrollmentRow,
    MembershipRow,
    OrganizationRow,
    SubCourseRow,
    UnitRow,
)
from academy.models.course import ContentNode, Course, Lesson, Quiz, SubCourse, Unit
from academy.models.enrollment import Enrollment
from academy.models.organization import Membership, Organization


def _table(row: type[Any]) -> Table:
    return row.__table__  # type: ignore[no-any-return]


async def _upsert(
    session: AsyncSession, row: type[Any], values: list[dict[str, Any]]
) -> None:
    """INSERT ... ON CONFLICT (pk) DO UPDATE for a batch of rows.

    ``values`` use mapped attribute names (``order``), which are translated
    to column keys (``sort_order``) for the Core statement.
    """
    if not values:
        return
    table = _table(row)
    columns = inspect(row).columns
    stmt = insert(table).values(
        [{columns[attr].key: value for attr, value in v.items()} for v in values]
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[c.name for c in table.primary_key.columns],
        set_={c: stmt.excluded[c.key] for c in table.columns if not c.primary_key},
    )
    await session.execute(stmt)


class PgOrgRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self) -> list[Organization]:
        rows = (await self._session.execute(select(OrganizationRow))).scalars()
        return [_row_to_org(r) for r in rows]

    async def upsert(self, orgs: Iterable[Organization]) -> None:
        values = [
            {
                "id": o.id,
                "name": o.name,
                "slug": o.slug,
                "plan": o.plan,
                "status": o.status,
            }
            for o in orgs
        ]
        await _upsert(self._session, OrganizationRow, values)

    async def delete(self, org_ids: Iterable[UUID]) -> None:
        ids = list(org_ids)
        if ids:
            stmt = delete(OrganizationRow).where(OrganizationRow.id.in_(ids))
            await self._session.execute(stmt)


class PgMembershipRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self) -> list[Membership]:
        rows = (await self._session.execute(select(MembershipRow))).scalars()
        return [
            Membership(
                org_id=r.org_id,
                subject_id=r.subject_id,
                role=r.role,  # type: ignore[arg-type]
            )
            for r in rows
        ]

    async def upsert(self, memberships: Iterable[Membership]) -> None:
        values = [
            {"org_id": m.org_id, "subject_id": m.subject_id, "role": m.role}
            for m in memberships
        ]
        await _upsert(self._session, MembershipRow, values)

    async def delete(self, keys: Iterable[tuple[UUID, UUID]]) -> None:
        """Delete by (org_id, subject_id)."""
        pairs = list(keys)
        if pairs:
            pk = tuple_(MembershipRow.org_id, MembershipRow.subject_id)
            await self._session.execute(delete(MembershipRow).where(pk.in_(pairs)))


class PgContentRepo:
    """Courses, subcourses and units (lessons and quizzes)."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_courses(self) -> list[Course]:
        rows = (await self._session.execute(select(CourseRow))).scalars()
        return [
            Course(
                id=r.id,
                org_id=r.org_id,
                title=r.title,
                description=r.description,
                owner_subject_id=r.owner_subject_id,
                published=r.published,
            )
            for r in rows
        ]

    async def list_subcourses(self) -> list[SubCourse]:
        rows = (await self._session.execute(select(SubCourseRow))).scalars()
        return [
            SubCourse(
                id=r.id,
                course_id=r.course_id,
                order=r.order,
                title=r.title,
                description=r.description,
                published=r.published,
            )
            for r in rows
        ]

    async def list_units(self) -> list[Unit]:
        rows = (await self._session.execute(select(UnitRow))).scalars()
        return [_row_to_unit(r) for r in rows]

    async def defer_order_checks(self) -> None:
        # Deferrable unique constraints allow in-place order updates
        await self._session.execute(
            text(
                "SET CONSTRAINTS uq_subcourses_course_order, "
                "uq_units_subcourse_kind_order DEFERRED"
            )
        )

    async def upsert(self, nodes: Iterable[ContentNode]) -> None:
        """Write nodes parents-first so foreign keys always resolve."""
        courses: list[dict[str, Any]] = []
        subcourses: list[dict[str, Any]] = []
        units: list[dict[str, Any]] = []
        for node in nodes:
            if isinstance(node, Course):
                courses.append(
                    {
                        "id": node.id,
                        "org_id": node.org_id,
                        "title": node.title,
                        "description": node.description,
                        "owner_subject_id": node.owner_subject_id,
                        "published": node.published,
                    }
                )
            elif isinstance(node, SubCourse):
                subcourses.append(
                    {
                        "id": node.id,
                        "course_id": node.course_id,
                        "order": node.order,
                        "title": node.title,
                        "description": node.description,
                        "published": node.published,
                    }
                )
            else:
                units.append(_unit_values(node))
        await _upsert(self._session, CourseRow, courses)
        await _upsert(self._session, SubCourseRow, subcourses)
        await _upsert(self._session, UnitRow, units)

    async def delete_units(self, unit_ids: Iterable[UUID]) -> None:
        ids = list(unit_ids)
        if ids:
            await self._session.execute(delete(UnitRow).where(UnitRow.id.in_(ids)))

    async def delete_subcourses(self, subcourse_ids: Iterable[UUID]) -> None:
        ids = list(subcourse_ids)
        if ids:
            stmt = delete(SubCourseRow).where(SubCourseRow.id.in_(ids))
            await self._session.execute(stmt)

    async def delete_courses(self, course_ids: Iterable[UUID]) -> None:
        ids = list(course_ids)
        if ids:
            stmt = delete(CourseRow).where(CourseRow.id.in_(ids))
            await self._session.execute(stmt)


class PgEnrollmentRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def list_all(self) -> list[Enrollment]:
        rows = (await self._session.execute(select(EnrollmentRow))).scalars()
        return [
            Enrollment(
                learner_id=r.learner_id,
                course_id=r.course_id,
                enrolled_at=r.enrolled_at,
                progress=r.progress,
                last_progress_at=r.last_progress_at,
            )
            for r in rows
        ]

    async def upsert(self, enrollments: Iterable[Enrollment]) -> None:
        values = [
            {
                "learner_id": e.learner_id,
                "course_id": e.course_id,
                "enrolled_at": e.enrolled_at,
                "progress": e.progress,
                "last_progress_at": e.last_progress_at,
            }
            for e in enrollments
        ]
        await _upsert(self._session, EnrollmentRow, values)

    async def delete(self, keys: Iterable[tuple[UUID, UUID]]) -> None:
        """Delete by (learner_id, course_id)."""
        pairs = list(keys)
        if pairs:
            pk = tuple_(EnrollmentRow.learner_id, EnrollmentRow.course_id)
            await self._session.execute(delete(EnrollmentRow).where(pk.in_(pairs)))


def _row_to_org(row: OrganizationRow) -> Organization:
    return Organization(
        id=row.id, name=row.name, slug=row.slug, plan=row.plan, status=row.status
    )


def _row_to_unit(row: UnitRow) -> Unit:
    if row.kind == "lesson":
        return Lesson(
            id=row.id,
            subcourse_id=row.subcourse_id,
            order=row.order,
            title=row.title,
            content=row.content,
            published=row.published,
        )
    return Quiz(
        id=row.id,
        subcourse_id=row.subcourse_id,
        order=row.order,
        title=row.title,
        description=row.description,
        published=row.published,
    )


def _unit_values(unit: Unit) -> dict[str, Any]:
    # units has both text columns; the one a kind does not use stays empty
    return {
        "id": unit.id,
        "subcourse_id": unit.subcourse_id,
        "kind": unit.kind,
        "order": unit.order,
        "title": unit.title,
        "description": unit.description if isinstance(unit, Quiz) else "",
        "content": unit.content if isinstance(unit, Lesson) else "",
        "published": unit.published,
    }
