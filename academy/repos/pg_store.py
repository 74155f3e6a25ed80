"""Postgres write-through for the transactional store.

PgStore keeps the in-memory store's locking and snapshot reads, and
adds durability: ``open()`` hydrates the tables from Postgres, and
every commit is written in one database transaction before the new
snapshot is published.  If the database write fails, the commit fails
too (StorageUnavailable) and memory keeps the previous snapshot.

The services are synchronous, so the async engine runs on a private
event loop thread and each write blocks on its result.  The writer
lock is held across the write, which keeps memory and database in the
same commit order.

Write order inside a transaction: order checks deferred, then deletes
children-first, then upserts parents-first.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine, Mapping
from dataclasses import dataclass, fields
from typing import Any, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from academy.core.errors import StorageUnavailable
from academy.db.engine import create_engine_for
from academy.repos.pg_repos import (
    PgContentRepo,
    PgEnrollmentRepo,
    PgMembershipRepo,
    PgOrgRepo,
)
from academy.repos.store import InMemoryStore, Tables

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class TableChanges:
    """Rows to write and keys to delete for one table."""

    upserts: tuple[Any, ...] = ()
    deletes: tuple[Any, ...] = ()

    def __bool__(self) -> bool:
        return bool(self.upserts or self.deletes)


def _diff(before: Mapping[Any, Any], after: Mapping[Any, Any]) -> TableChanges:
    return TableChanges(
        upserts=tuple(row for key, row in after.items() if before.get(key) != row),
        deletes=tuple(key for key in before if key not in after),
    )


def changes_between(before: Tables, after: Tables) -> dict[str, TableChanges]:
    """Per-table difference between two snapshots; unchanged tables omitted."""
    changes = {
        f.name: _diff(getattr(before, f.name), getattr(after, f.name))
        for f in fields(Tables)
    }
    return {name: change for name, change in changes.items() if change}


class PgStore(InMemoryStore):
    def __init__(
        self, database_url: str, *, lock_timeout: float = 5.0, db_timeout: float = 10.0
    ) -> None:
        super().__init__(lock_timeout=lock_timeout)
        self._db_timeout = db_timeout
        self._engine = create_engine_for(database_url)
        self._sessions = async_sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._loop.run_forever, name="pg-store", daemon=True
        )
        self._thread.start()

    def _call(self, coro: Coroutine[Any, Any, T]) -> T:
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout=self._db_timeout)
        except TimeoutError:
            future.cancel()
            logger.error("Postgres call timed out after %.2fs", self._db_timeout)
            raise StorageUnavailable("database did not answer in time") from None
        except (SQLAlchemyError, OSError) as e:
            logger.error("Postgres call failed: %s", e)
            raise StorageUnavailable("database unavailable; retry the request") from e

    # --- lifecycle ---

    def open(self) -> None:
        tables = self._call(self._load())
        with self._lock:
            self._tables = tables
        logger.info(
            "Store hydrated from Postgres: orgs=%d courses=%d enrollments=%d",
            len(tables.organizations),
            len(tables.courses),
            len(tables.enrollments),
        )

    def close(self) -> None:
        self._call(self._engine.dispose())
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join()
        self._loop.close()
        logger.info("Postgres store closed")

    # --- write-through ---

    def _persist(self, before: Tables, after: Tables) -> None:
        changes = changes_between(before, after)
        if changes:
            self._call(self._write(changes))

    async def _load(self) -> Tables:
        async with self._sessions() as session:
            orgs = await PgOrgRepo(session).list_all()
            memberships = await PgMembershipRepo(session).list_all()
            content = PgContentRepo(session)
            courses = await content.list_courses()
            subcourses = await content.list_subcourses()
            units = await content.list_units()
            enrollments = await PgEnrollmentRepo(session).list_all()
        return Tables(
            organizations={o.id: o for o in orgs},
            memberships={(m.org_id, m.subject_id): m for m in memberships},
            courses={c.id: c for c in courses},
            subcourses={s.id: s for s in subcourses},
            units={u.id: u for u in units},
            enrollments={(e.learner_id, e.course_id): e for e in enrollments},
        )

    async def _write(self, changes: dict[str, TableChanges]) -> None:
        empty = TableChanges()

        def of(table: str) -> TableChanges:
            return changes.get(table, empty)

        async with self._sessions() as session, session.begin():
            orgs = PgOrgRepo(session)
            memberships = PgMembershipRepo(session)
            content = PgContentRepo(session)
            enrollments = PgEnrollmentRepo(session)

            await content.defer_order_checks()

            await enrollments.delete(of("enrollments").deletes)
            await content.delete_units(of("units").deletes)
            await content.delete_subcourses(of("subcourses").deletes)
            await content.delete_courses(of("courses").deletes)
            await memberships.delete(of("memberships").deletes)
            await orgs.delete(of("organizations").deletes)

            await orgs.upsert(of("organizations").upserts)
            await memberships.upsert(of("memberships").upserts)
            await content.upsert(
                of("courses").upserts
                + of("subcourses").upserts
                + of("units").upserts
            )
            await enrollments.upsert(of("enrollments").upserts)

        logger.debug("Commit written through: tables=%s", sorted(changes))
