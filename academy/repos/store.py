"""Transactional in-memory store.

The committed state is a set of tables that is never mutated in place.
A transaction works on a shallow copy (rows are frozen dataclasses, so
copying the dicts is enough), re-validates the invariants it may have
broken, and publishes the copy with a single reference assignment.

  - Atomicity: an exception anywhere inside ``transaction()`` discards
    the working copy, so no partial reindex or cascade is ever visible.
  - Isolation: writers serialize on one lock.  Readers take the current
    committed tables and never see a half-applied write.
  - Timeout: a writer that cannot enter within ``lock_timeout`` seconds
    aborts with StorageUnavailable; retrying the identical call is safe.

Subclasses may write each commit through to durable storage by
overriding ``_persist`` (see academy.repos.pg_store).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from dataclasses import dataclass, field, fields
from types import MappingProxyType
from typing import Any
from uuid import UUID

from academy.core.errors import InvariantViolation, StorageUnavailable
from academy.core.metrics import STORE_TRANSACTIONS
from academy.models.course import Course, SubCourse, Unit
from academy.models.enrollment import Enrollment
from academy.models.organization import Membership, Organization
from academy.repos.content_repo import InMemoryContentRepo
from academy.repos.enrollment_repo import InMemoryEnrollmentRepo
from academy.repos.org_membership_repo import InMemoryMembershipRepo
from academy.repos.org_repo import InMemoryOrgRepo

logger = logging.getLogger(__name__)


@dataclass
class Tables:
    organizations: MutableMapping[UUID, Organization] = field(default_factory=dict)
    memberships: MutableMapping[tuple[UUID, UUID], Membership] = field(
        default_factory=dict
    )
    courses: MutableMapping[UUID, Course] = field(default_factory=dict)
    subcourses: MutableMapping[UUID, SubCourse] = field(default_factory=dict)
    units: MutableMapping[UUID, Unit] = field(default_factory=dict)
    enrollments: MutableMapping[tuple[UUID, UUID], Enrollment] = field(
        default_factory=dict
    )

    def copy(self) -> Tables:
        return Tables(**{f.name: dict(getattr(self, f.name)) for f in fields(self)})

    def read_only(self) -> Tables:
        view: dict[str, Any] = {
            f.name: MappingProxyType(getattr(self, f.name))  # type: ignore[arg-type]
            for f in fields(self)
        }
        return Tables(**view)


class UnitOfWork:
    """Repositories bound to one transaction's working tables."""

    def __init__(self, tables: Tables) -> None:
        self.orgs = InMemoryOrgRepo(tables.organizations)
        self.memberships = InMemoryMembershipRepo(tables.memberships)
        self.content = InMemoryContentRepo(
            tables.courses, tables.subcourses, tables.units
        )
        self.enrollments = InMemoryEnrollmentRepo(tables.enrollments)

    def validate(self) -> None:
        """Re-check order contiguity for every sequence touched in this unit."""
        for parent_id, kind in self.content.touched_sequences:
            if self.content.get(parent_id) is None:
                continue  # parent itself deleted in this unit
            orders = [n.order for n in self.content.children(parent_id, kind)]
            if orders != list(range(len(orders))):
                raise InvariantViolation(
                    "sibling order is not contiguous",
                    details={
                        "parent_id": str(parent_id),
                        "kind": kind,
                        "orders": orders,
                    },
                )


class InMemoryStore:
    def __init__(self, lock_timeout: float = 5.0) -> None:
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout
        self._tables = Tables()

    def open(self) -> None:
        """Load durable state, if any.  Called once at startup."""

    def close(self) -> None:
        """Release durable-storage resources.  Called once at shutdown."""

    def _persist(self, before: Tables, after: Tables) -> None:
        """Write a validated commit through before it is published.

        Raising here rolls the transaction back.
        """

    @contextmanager
    def transaction(self) -> Iterator[UnitOfWork]:
        if not self._lock.acquire(timeout=self._lock_timeout):
            STORE_TRANSACTIONS.labels(result="timeout").inc()
            logger.warning(
                "Store transaction aborted: lock not acquired within %.2fs",
                self._lock_timeout,
            )
            raise StorageUnavailable("store is busy; retry the request")
        try:
            working = self._tables.copy()
            uow = UnitOfWork(working)
            try:
                yield uow
                uow.validate()
                self._persist(self._tables, working)
            except BaseException:
                STORE_TRANSACTIONS.labels(result="rolled_back").inc()
                raise
            self._tables = working
            STORE_TRANSACTIONS.labels(result="committed").inc()
        finally:
            self._lock.release()

    @contextmanager
    def read(self) -> Iterator[UnitOfWork]:
        """Read-only repositories over the latest committed snapshot."""
        yield UnitOfWork(self._tables.read_only())

    def reset(self) -> None:
        with self._lock:
            self._tables = Tables()
