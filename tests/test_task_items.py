from __future__ import annotations

import pytest

from lifegit.errors import NotFoundError, ValidationError
from lifegit.memory.schema import Branch, TaskItem, TaskPlan, TaskTimeScope
from lifegit.memory.store import MemoryStore
from lifegit.planning.exceptions import TaskItemAddError
from lifegit.planning.items import TaskItemStore


@pytest.fixture()
def plan(store: MemoryStore, goal_branch: Branch) -> TaskPlan:
    plan = TaskPlan(
        branch_id=goal_branch.id,
        total_duration="3 weeks",
        tasks=[
            TaskItem(title="Learn greetings", estimated_duration=20),
            TaskItem(title="Learn numbers", estimated_duration=30),
            TaskItem(title="Order a coffee", estimated_duration=15),
            TaskItem(title="Ask for directions", estimated_duration=25),
        ],
    )
    store.create_task_plan(plan)
    return plan


def _titles(store: MemoryStore, plan_id: str) -> list[str]:
    loaded = store.get_task_plan(plan_id)
    assert loaded is not None
    return [task.title for task in loaded.tasks]


def _indexes(store: MemoryStore, plan_id: str) -> list[int]:
    loaded = store.get_task_plan(plan_id)
    assert loaded is not None
    return [task.order_index for task in loaded.tasks]


def test_add_appends_with_next_index(store: MemoryStore, plan: TaskPlan) -> None:
    items = TaskItemStore(store, plan.id)
    item = items.add(
        "Watch a film",
        "Spanish audio, Spanish subtitles",
        TaskTimeScope.WEEKLY,
        120,
        execution_tips="Pick something you already know",
    )

    assert item.order_index == 4
    assert _titles(store, plan.id)[-1] == "Watch a film"
    assert _indexes(store, plan.id) == [0, 1, 2, 3, 4]
    stored = store.get_task_plan(plan.id).find_task(item.id)
    assert stored is not None
    assert stored.time_scope is TaskTimeScope.WEEKLY
    assert stored.execution_tips == "Pick something you already know"


@pytest.mark.parametrize(
    ("title", "duration"),
    [("", 10), ("   ", 10), ("Valid title", -5)],
)
def test_add_rejects_invalid_fields(store: MemoryStore, plan: TaskPlan, title: str, duration: int) -> None:
    with pytest.raises(ValidationError):
        TaskItemStore(store, plan.id).add(title, estimated_duration=duration)
    assert len(_titles(store, plan.id)) == 4


def test_add_to_missing_plan_is_wrapped(store: MemoryStore) -> None:
    with pytest.raises(TaskItemAddError) as excinfo:
        TaskItemStore(store, "missing-plan").add("Anything", estimated_duration=5)
    assert isinstance(excinfo.value.__cause__, NotFoundError)


def test_remove_keeps_dense_indexes_in_prior_order(store: MemoryStore, plan: TaskPlan) -> None:
    TaskItemStore(store, plan.id).remove(plan.tasks[1].id)

    assert _titles(store, plan.id) == ["Learn greetings", "Order a coffee", "Ask for directions"]
    assert _indexes(store, plan.id) == [0, 1, 2]


def test_remove_unknown_item_raises_not_found(store: MemoryStore, plan: TaskPlan) -> None:
    with pytest.raises(NotFoundError):
        TaskItemStore(store, plan.id).remove("missing-item")
    assert _indexes(store, plan.id) == [0, 1, 2, 3]


def test_reorder_assigns_positions(store: MemoryStore, plan: TaskPlan) -> None:
    reordered = list(reversed(plan.tasks))
    result = TaskItemStore(store, plan.id).reorder(reordered)

    assert [item.order_index for item in result] == [0, 1, 2, 3]
    assert _titles(store, plan.id) == [
        "Ask for directions",
        "Order a coffee",
        "Learn numbers",
        "Learn greetings",
    ]
    assert _indexes(store, plan.id) == [0, 1, 2, 3]


def test_reorder_requires_permutation(store: MemoryStore, plan: TaskPlan) -> None:
    items = TaskItemStore(store, plan.id)
    with pytest.raises(ValidationError):
        items.reorder(plan.tasks[:2])
    with pytest.raises(ValidationError):
        items.reorder([plan.tasks[0], plan.tasks[0], plan.tasks[1], plan.tasks[2]])
    with pytest.raises(ValidationError):
        items.reorder(plan.tasks[:3] + [TaskItem(title="Stranger")])
    assert _titles(store, plan.id)[0] == "Learn greetings"


def test_toggle_twice_restores_state(store: MemoryStore, plan: TaskPlan) -> None:
    items = TaskItemStore(store, plan.id)
    target = plan.tasks[2].id

    first = items.toggle_completion(target)
    assert first.is_completed
    assert first.completed_at is not None
    stored = store.get_task_plan(plan.id).find_task(target)
    assert stored.is_completed and stored.completed_at is not None

    second = items.toggle_completion(target)
    assert not second.is_completed
    assert second.completed_at is None
    stored = store.get_task_plan(plan.id).find_task(target)
    assert not stored.is_completed and stored.completed_at is None


def test_toggle_unknown_item_raises_not_found(store: MemoryStore, plan: TaskPlan) -> None:
    with pytest.raises(NotFoundError):
        TaskItemStore(store, plan.id).toggle_completion("missing-item")


def test_toggle_ignores_items_of_other_plans(store: MemoryStore, plan: TaskPlan) -> None:
    other_branch = Branch(name="Run a marathon", owner_user_id="user-1")
    store.create_branch(other_branch)
    other = TaskPlan(branch_id=other_branch.id, tasks=[TaskItem(title="Buy running shoes")])
    store.create_task_plan(other)

    with pytest.raises(NotFoundError):
        TaskItemStore(store, plan.id).toggle_completion(other.tasks[0].id)
    assert not store.get_task_plan(other.id).tasks[0].is_completed


def test_update_changes_selected_fields(store: MemoryStore, plan: TaskPlan) -> None:
    items = TaskItemStore(store, plan.id)
    target = plan.tasks[0].id
    updated = items.update(target, title="Learn formal greetings", estimated_duration=40)

    assert updated.title == "Learn formal greetings"
    stored = store.get_task_plan(plan.id).find_task(target)
    assert stored.title == "Learn formal greetings"
    assert stored.estimated_duration == 40
    assert stored.order_index == 0

    with pytest.raises(ValidationError):
        items.update(target, estimated_duration=-1)
    with pytest.raises(NotFoundError):
        items.update("missing-item", title="x")
