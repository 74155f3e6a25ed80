from __future__ import annotations

import random
import threading
from concurrent.futures import ThreadPoolExecutor
from uuid import UUID, uuid4

import pytest
from prometheus_client import REGISTRY

from academy.api.dependencies import enrollments, hierarchy, store
from academy.core.errors import (
    CrossTenantMove,
    HasDependents,
    InvalidReorder,
    InvariantViolation,
    NotFound,
    RoleForbidden,
)
from academy.models.course import ChildFilter
from tests.conftest import (
    Tenant,
    add_lesson,
    add_quiz,
    add_subcourse,
    add_test_member,
    create_test_course,
    make_subject,
)


def _orders(parent_id: UUID) -> dict[str, int]:
    with store.read() as uow:
        return {c.title: c.order for c in uow.content.children(parent_id)}


def _assert_contiguous(parent_id: UUID) -> None:
    with store.read() as uow:
        orders = [c.order for c in uow.content.children(parent_id)]
    assert orders == list(range(len(orders)))


@pytest.fixture
def course_abd(tenant: Tenant):
    """Course with SubCourses [A(0), B(1), D(2)], instructor of record set."""
    course = create_test_course(
        tenant.owner, tenant.org.id, instructor=tenant.instructor
    )
    subs = {t: add_subcourse(tenant.owner, course.id, t) for t in ("A", "B", "D")}
    return course, subs


# --- createChild ---


def test_children_append_in_creation_order(course_abd) -> None:
    course, _ = course_abd
    assert _orders(course.id) == {"A": 0, "B": 1, "D": 2}


def test_insert_at_order_shifts_later_siblings(tenant: Tenant, course_abd) -> None:
    course, _ = course_abd
    hierarchy.create_child(tenant.owner, course.id, "subcourse", order=1, title="C")
    assert _orders(course.id) == {"A": 0, "C": 1, "B": 2, "D": 3}


def test_insert_at_end_is_allowed(tenant: Tenant, course_abd) -> None:
    course, _ = course_abd
    hierarchy.create_child(tenant.owner, course.id, "subcourse", order=3, title="E")
    assert _orders(course.id)["E"] == 3


@pytest.mark.parametrize("order", [-1, 4, 10])
def test_insert_outside_range_rejected(tenant: Tenant, course_abd, order: int) -> None:
    course, _ = course_abd
    with pytest.raises(InvalidReorder):
        hierarchy.create_child(
            tenant.owner, course.id, "subcourse", order=order, title="X"
        )
    assert _orders(course.id) == {"A": 0, "B": 1, "D": 2}


def test_lessons_and_quizzes_have_separate_sequences(
    tenant: Tenant, course_abd
) -> None:
    _, subs = course_abd
    add_lesson(tenant.owner, subs["A"].id, "intro")
    add_quiz(tenant.owner, subs["A"].id, "check")
    add_lesson(tenant.owner, subs["A"].id, "wrap-up")
    assert _orders(subs["A"].id) == {"intro": 0, "wrap-up": 1, "check": 0}
    assert [c.title for c in hierarchy.list_children(tenant.owner, subs["A"].id)] == [
        "intro",
        "wrap-up",
        "check",
    ]


def test_insert_position_counts_siblings_of_the_same_kind(
    tenant: Tenant, course_abd
) -> None:
    _, subs = course_abd
    add_quiz(tenant.owner, subs["A"].id, "q0")
    add_quiz(tenant.owner, subs["A"].id, "q1")
    add_lesson(tenant.owner, subs["A"].id, "l0")

    with pytest.raises(InvalidReorder):
        hierarchy.create_child(
            tenant.owner, subs["A"].id, "lesson", order=2, title="too far"
        )
    hierarchy.create_child(tenant.owner, subs["A"].id, "quiz", order=1, title="mid")
    assert _orders(subs["A"].id) == {"l0": 0, "q0": 0, "mid": 1, "q1": 2}


def test_explicit_null_fields_rejected(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    with pytest.raises(InvariantViolation) as exc_info:
        hierarchy.create_child(
            tenant.owner, course.id, "subcourse", title="X", published=None
        )
    assert exc_info.value.details == {"fields": ["published"]}

    with pytest.raises(InvariantViolation):
        hierarchy.update_node(tenant.owner, subs["A"].id, {"title": None})
    assert _orders(course.id) == {"A": 0, "B": 1, "D": 2}


def test_instructor_of_record_can_be_cleared(tenant: Tenant, course_abd) -> None:
    course, _ = course_abd
    updated = hierarchy.update_node(
        tenant.owner, course.id, {"owner_subject_id": None}
    )
    assert updated.owner_subject_id is None


@pytest.mark.parametrize(
    "parent_key,kind",
    [("course", "lesson"), ("course", "quiz"), ("sub", "subcourse")],
)
def test_wrong_child_kind_rejected(
    tenant: Tenant, course_abd, parent_key: str, kind: str
) -> None:
    course, subs = course_abd
    parent_id = course.id if parent_key == "course" else subs["A"].id
    with pytest.raises(InvariantViolation):
        hierarchy.create_child(
            tenant.owner, parent_id, kind, title="X"  # type: ignore[arg-type]
        )


def test_unknown_fields_rejected(tenant: Tenant, course_abd) -> None:
    _, subs = course_abd
    with pytest.raises(InvariantViolation):
        hierarchy.create_child(
            tenant.owner, subs["A"].id, "lesson", title="X", description="nope"
        )


def test_create_under_missing_parent(tenant: Tenant) -> None:
    with pytest.raises(NotFound):
        hierarchy.create_child(tenant.owner, uuid4(), "subcourse", title="X")


# --- createCourse ---


def test_instructor_cannot_create_course(tenant: Tenant) -> None:
    with pytest.raises(RoleForbidden):
        create_test_course(tenant.instructor, tenant.org.id)


def test_instructor_of_record_must_be_staff(tenant: Tenant) -> None:
    with pytest.raises(InvariantViolation):
        create_test_course(tenant.owner, tenant.org.id, instructor=tenant.learner)
    with pytest.raises(InvariantViolation):
        create_test_course(
            tenant.owner, tenant.org.id, instructor=make_subject("instructor")
        )


# --- reorder (Scenario B) ---


def test_reorder_assigns_index_order(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    result = hierarchy.reorder(
        tenant.owner, course.id, [subs["D"].id, subs["A"].id, subs["B"].id]
    )
    assert [c.title for c in result] == ["D", "A", "B"]
    assert _orders(course.id) == {"D": 0, "A": 1, "B": 2}


def test_reorder_with_missing_id_changes_nothing(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    dab = [subs["D"].id, subs["A"].id, subs["B"].id]
    hierarchy.reorder(tenant.owner, course.id, dab)

    with pytest.raises(InvalidReorder) as exc_info:
        hierarchy.reorder(tenant.owner, course.id, [subs["D"].id, subs["A"].id])
    assert exc_info.value.details is not None
    assert exc_info.value.details["missing"] == [str(subs["B"].id)]
    assert _orders(course.id) == {"D": 0, "A": 1, "B": 2}


def test_reorder_rejects_duplicates_and_foreign_ids(
    tenant: Tenant, course_abd
) -> None:
    course, subs = course_abd
    a, b = subs["A"].id, subs["B"].id
    with pytest.raises(InvalidReorder):
        hierarchy.reorder(tenant.owner, course.id, [a, a, b])
    with pytest.raises(InvalidReorder):
        hierarchy.reorder(tenant.owner, course.id, [a, b, subs["D"].id, uuid4()])
    assert _orders(course.id) == {"A": 0, "B": 1, "D": 2}


def test_reorder_on_unit_rejected(tenant: Tenant, course_abd) -> None:
    _, subs = course_abd
    lesson = add_lesson(tenant.owner, subs["A"].id, "l")
    with pytest.raises(InvalidReorder):
        hierarchy.reorder(tenant.owner, lesson.id, [])


def test_instructor_of_record_may_reorder(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    hierarchy.reorder(
        tenant.instructor, course.id, [subs["B"].id, subs["A"].id, subs["D"].id]
    )
    assert _orders(course.id) == {"B": 0, "A": 1, "D": 2}


def test_learner_may_not_reorder(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    with pytest.raises(RoleForbidden):
        hierarchy.reorder(tenant.learner, course.id, [s.id for s in subs.values()])


def test_reorder_lessons_leaves_quizzes_alone(tenant: Tenant, course_abd) -> None:
    _, subs = course_abd
    l1 = add_lesson(tenant.owner, subs["A"].id, "l1")
    add_quiz(tenant.owner, subs["A"].id, "q1")
    l2 = add_lesson(tenant.owner, subs["A"].id, "l2")

    result = hierarchy.reorder(tenant.owner, subs["A"].id, [l2.id, l1.id])

    assert [c.title for c in result] == ["l2", "l1"]
    assert _orders(subs["A"].id) == {"l2": 0, "l1": 1, "q1": 0}


def test_reorder_needs_kind_when_ids_do_not_name_one(
    tenant: Tenant, course_abd
) -> None:
    _, subs = course_abd
    lesson = add_lesson(tenant.owner, subs["A"].id, "l")
    quiz = add_quiz(tenant.owner, subs["A"].id, "q")

    with pytest.raises(InvalidReorder):
        hierarchy.reorder(tenant.owner, subs["A"].id, [lesson.id, quiz.id])
    with pytest.raises(InvalidReorder):
        hierarchy.reorder(tenant.owner, subs["A"].id, [])
    assert hierarchy.reorder(tenant.owner, subs["A"].id, [quiz.id], kind="quiz")


def test_reorder_with_kind_foreign_to_parent_rejected(
    tenant: Tenant, course_abd
) -> None:
    course, subs = course_abd
    with pytest.raises(InvalidReorder):
        hierarchy.reorder(
            tenant.owner, course.id, [s.id for s in subs.values()], kind="lesson"
        )


def test_concurrent_reorders_serialize_and_reads_stay_contiguous(
    tenant: Tenant, course_abd
) -> None:
    course, _ = course_abd
    for title in ("E", "F", "G", "H"):
        add_subcourse(tenant.owner, course.id, title)
    initial = [c.id for c in hierarchy.list_children(tenant.owner, course.id)]

    rng = random.Random(99)
    orderings = []
    for _ in range(24):
        ordering = initial[:]
        rng.shuffle(ordering)
        orderings.append(ordering)

    done = threading.Event()

    def read_until_done() -> list[list[tuple[UUID, int]]]:
        seen = []
        while True:
            children = hierarchy.list_children(tenant.instructor, course.id)
            seen.append([(c.id, c.order) for c in children])
            if done.is_set():
                return seen

    with ThreadPoolExecutor(max_workers=8) as pool:
        readers = [pool.submit(read_until_done) for _ in range(2)]
        writers = [
            pool.submit(hierarchy.reorder, tenant.owner, course.id, ordering)
            for ordering in orderings
        ]
        for writer in writers:
            writer.result()
        done.set()
        reads = [snapshot for r in readers for snapshot in r.result()]

    assert reads
    for snapshot in reads:
        assert [order for _, order in snapshot] == list(range(len(initial)))
        assert [node_id for node_id, _ in snapshot] in [initial, *orderings]
    final = [c.id for c in hierarchy.list_children(tenant.owner, course.id)]
    assert final in orderings


# --- deleteNode (Scenario C) ---


def test_other_instructor_cannot_delete(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    i2 = make_subject("instructor")
    add_test_member(tenant.org.id, i2)

    with pytest.raises(RoleForbidden):
        hierarchy.delete_node(i2, subs["B"].id)

    assert hierarchy.delete_node(tenant.owner, subs["B"].id) == 1
    assert _orders(course.id) == {"A": 0, "D": 1}


def test_delete_cascades_within_subtree_only(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    add_lesson(tenant.owner, subs["A"].id, "a1")
    add_quiz(tenant.owner, subs["A"].id, "a2")
    kept = add_lesson(tenant.owner, subs["B"].id, "b1")

    assert hierarchy.delete_node(tenant.owner, subs["A"].id) == 3
    assert _orders(course.id) == {"B": 0, "D": 1}
    with store.read() as uow:
        assert uow.content.get(kept.id) == kept


def test_delete_unit_recompacts_siblings(tenant: Tenant, course_abd) -> None:
    _, subs = course_abd
    nodes = [add_lesson(tenant.owner, subs["A"].id, f"l{i}") for i in range(4)]
    hierarchy.delete_node(tenant.owner, nodes[1].id)
    assert _orders(subs["A"].id) == {"l0": 0, "l2": 1, "l3": 2}


def test_delete_quiz_recompacts_quizzes_only(tenant: Tenant, course_abd) -> None:
    _, subs = course_abd
    add_lesson(tenant.owner, subs["A"].id, "l0")
    q0 = add_quiz(tenant.owner, subs["A"].id, "q0")
    add_quiz(tenant.owner, subs["A"].id, "q1")
    add_lesson(tenant.owner, subs["A"].id, "l1")

    hierarchy.delete_node(tenant.owner, q0.id)
    assert _orders(subs["A"].id) == {"l0": 0, "l1": 1, "q1": 0}


def test_moved_lesson_joins_the_lesson_sequence(tenant: Tenant, course_abd) -> None:
    _, subs = course_abd
    add_quiz(tenant.owner, subs["B"].id, "bq")
    add_lesson(tenant.owner, subs["B"].id, "bl")
    lesson = add_lesson(tenant.owner, subs["A"].id, "moved")

    moved = hierarchy.move(tenant.owner, lesson.id, subs["B"].id)
    assert moved.order == 1
    assert _orders(subs["B"].id) == {"bl": 0, "moved": 1, "bq": 0}


def test_course_with_enrollments_cannot_be_deleted(tenant: Tenant, course_abd) -> None:
    course, _ = course_abd
    enrollments.enroll(tenant.learner, course.id)

    with pytest.raises(HasDependents):
        hierarchy.delete_node(tenant.owner, course.id)

    enrollments.unenroll(tenant.learner, course.id)
    assert hierarchy.delete_node(tenant.owner, course.id) == 4


def test_subcourse_of_enrolled_course_can_be_deleted(
    tenant: Tenant, course_abd
) -> None:
    course, subs = course_abd
    enrollments.enroll(tenant.learner, course.id)
    hierarchy.delete_node(tenant.owner, subs["A"].id)
    assert enrollments.get_enrollment(tenant.learner, course.id).progress == 0


# --- move ---


def test_move_subcourse_between_courses(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    other = create_test_course(tenant.owner, tenant.org.id, title="Other")
    add_subcourse(tenant.owner, other.id, "X")

    moved = hierarchy.move(tenant.owner, subs["A"].id, other.id)

    assert moved.parent_id == other.id
    assert _orders(other.id) == {"X": 0, "A": 1}
    assert _orders(course.id) == {"B": 0, "D": 1}


def test_move_lesson_between_subcourses(tenant: Tenant, course_abd) -> None:
    _, subs = course_abd
    lesson = add_lesson(tenant.owner, subs["A"].id, "l")
    hierarchy.move(tenant.owner, lesson.id, subs["B"].id)
    assert _orders(subs["A"].id) == {}
    assert _orders(subs["B"].id) == {"l": 0}


def test_move_across_organizations_rejected(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    other = Tenant("globex")
    foreign_course = create_test_course(other.owner, other.org.id)
    # Same owner in both orgs so the only obstacle is the tenancy boundary.
    add_test_member(other.org.id, tenant.owner)

    with pytest.raises(CrossTenantMove):
        hierarchy.move(tenant.owner, subs["A"].id, foreign_course.id)
    with pytest.raises(CrossTenantMove):
        hierarchy.move(tenant.owner, course.id, other.org.id)
    assert _orders(course.id) == {"A": 0, "B": 1, "D": 2}


def test_move_to_wrong_kind_parent_is_not_found(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    with pytest.raises(NotFound):
        hierarchy.move(tenant.owner, subs["A"].id, subs["B"].id)


def test_move_to_same_parent_is_a_no_op(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    hierarchy.move(tenant.owner, subs["A"].id, course.id)
    assert _orders(course.id) == {"A": 0, "B": 1, "D": 2}


# --- update / reads ---


def test_update_node_fields(tenant: Tenant, course_abd) -> None:
    course, _ = course_abd
    updated = hierarchy.update_node(
        tenant.instructor, course.id, {"title": "Renamed", "published": False}
    )
    assert updated.title == "Renamed"
    assert hierarchy.get_node(tenant.owner, course.id) == updated


def test_update_rejects_structural_fields(tenant: Tenant, course_abd) -> None:
    _, subs = course_abd
    with pytest.raises(InvariantViolation):
        hierarchy.update_node(tenant.owner, subs["A"].id, {"order": 2})


def test_learner_children_are_published_only(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    hierarchy.update_node(tenant.owner, subs["B"].id, {"published": True})

    staff_view = hierarchy.list_children(tenant.instructor, course.id)
    learner_view = hierarchy.list_children(tenant.learner, course.id, ChildFilter())
    assert [c.title for c in staff_view] == ["A", "B", "D"]
    assert [c.title for c in learner_view] == ["B"]


def test_learner_cannot_read_draft_course(tenant: Tenant) -> None:
    draft = create_test_course(tenant.owner, tenant.org.id, published=False)
    with pytest.raises(RoleForbidden):
        hierarchy.get_node(tenant.learner, draft.id)


def test_list_courses_scoped_by_role(tenant: Tenant) -> None:
    create_test_course(tenant.owner, tenant.org.id, title="Live", published=True)
    create_test_course(tenant.owner, tenant.org.id, title="Draft", published=False)

    assert [c.title for c in hierarchy.list_courses(tenant.owner, tenant.org.id)] == [
        "Draft",
        "Live",
    ]
    assert [c.title for c in hierarchy.list_courses(tenant.learner, tenant.org.id)] == [
        "Live"
    ]


def test_mutations_are_counted(tenant: Tenant, course_abd) -> None:
    course, subs = course_abd
    labels = {"operation": "reorder", "result": "INVALID_REORDER"}
    before = REGISTRY.get_sample_value("hierarchy_mutations_total", labels) or 0.0

    with pytest.raises(InvalidReorder):
        hierarchy.reorder(tenant.owner, course.id, [subs["A"].id])

    after = REGISTRY.get_sample_value("hierarchy_mutations_total", labels)
    assert after == before + 1


def test_random_mutation_sequences_keep_orders_contiguous(tenant: Tenant) -> None:
    rng = random.Random(1234)
    course = create_test_course(tenant.owner, tenant.org.id)
    for step in range(60):
        children = hierarchy.list_children(tenant.owner, course.id)
        op = rng.choice(["append", "insert", "reorder", "delete"])
        if op == "append" or not children:
            add_subcourse(tenant.owner, course.id, f"s{step}")
        elif op == "insert":
            hierarchy.create_child(
                tenant.owner,
                course.id,
                "subcourse",
                order=rng.randint(0, len(children)),
                title=f"s{step}",
            )
        elif op == "reorder":
            ids = [c.id for c in children]
            rng.shuffle(ids)
            hierarchy.reorder(tenant.owner, course.id, ids)
        else:
            hierarchy.delete_node(tenant.owner, rng.choice(children).id)
        _assert_contiguous(course.id)
