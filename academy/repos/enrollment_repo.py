from __future__ import annotations

from collections.abc import MutableMapping
from typing import Protocol
from uuid import UUID

from academy.models.enrollment import Enrollment
from academy.repos.errors import UniqueViolation


class EnrollmentRepo(Protocol):
    def get(self, learner_id: UUID, course_id: UUID) -> Enrollment | None: ...
    def add(self, enrollment: Enrollment) -> None: ...
    def replace(self, enrollment: Enrollment) -> None: ...
    def remove(self, learner_id: UUID, course_id: UUID) -> bool: ...
    def list_by_course(self, course_id: UUID) -> list[Enrollment]: ...
    def list_by_learner(self, learner_id: UUID) -> list[Enrollment]: ...
    def count_by_course(self, course_id: UUID) -> int: ...


class InMemoryEnrollmentRepo:
    def __init__(self, table: MutableMapping[tuple[UUID, UUID], Enrollment]) -> None:
        self._store = table

    def get(self, learner_id: UUID, course_id: UUID) -> Enrollment | None:
        return self._store.get((learner_id, course_id))

    def add(self, enrollment: Enrollment) -> None:
        key = (enrollment.learner_id, enrollment.course_id)
        if key in self._store:
            raise UniqueViolation("enrollments.learner_id_course_id")
        self._store[key] = enrollment

    def replace(self, enrollment: Enrollment) -> None:
        key = (enrollment.learner_id, enrollment.course_id)
        if key not in self._store:
            raise KeyError("enrollment not found")
        self._store[key] = enrollment

    def remove(self, learner_id: UUID, course_id: UUID) -> bool:
        return self._store.pop((learner_id, course_id), None) is not None

    def list_by_course(self, course_id: UUID) -> list[Enrollment]:
        return sorted(
            (e for e in self._store.values() if e.course_id == course_id),
            key=lambda e: e.enrolled_at,
        )

    def list_by_learner(self, learner_id: UUID) -> list[Enrollment]:
        return sorted(
            (e for e in self._store.values() if e.learner_id == learner_id),
            key=lambda e: e.enrolled_at,
        )

    def count_by_course(self, course_id: UUID) -> int:
        return sum(1 for e in self._store.values() if e.course_id == course_id)
