from __future__ import annotations

import asyncio
from typing import List

import pytest

from lifegit.errors import NotFoundError, UpdateFailedError, ValidationError
from lifegit.memory.schema import Branch, TaskPlan, TaskTimeScope
from lifegit.memory.store import MemoryStore
from lifegit.planning import TaskPlanGenerator
from lifegit.planning.manager import (
    ManagerState,
    TaskCompletionError,
    TaskItemAddError,
    TaskPlanManager,
    TaskPlanNotFoundError,
)
from lifegit.planning.schemas import GeneratedPlan, GeneratedTask


def _fail_on(store: MemoryStore, event: str, table: str) -> None:
    store._conn.execute(
        f"""
        CREATE TRIGGER fail_{table} BEFORE {event} ON {table}
        BEGIN
            SELECT RAISE(ABORT, 'disk is full');
        END;
        """
    )
    store._conn.commit()


@pytest.fixture()
def manager(store: MemoryStore) -> TaskPlanManager:
    return TaskPlanManager(store, TaskPlanGenerator(store))


@pytest.fixture()
def plan(manager: TaskPlanManager, goal_branch: Branch) -> TaskPlan:
    return asyncio.run(
        manager.generate_task_plan(goal_branch.name, goal_branch.description, goal_branch.id)
    )


def test_subscribers_observe_generation(manager: TaskPlanManager, goal_branch: Branch) -> None:
    seen: List[ManagerState] = []
    unsubscribe = manager.subscribe(seen.append)

    asyncio.run(manager.generate_task_plan(goal_branch.name, goal_branch.description, goal_branch.id))

    assert seen[0] == ManagerState()
    assert any(state.is_generating for state in seen)
    assert seen[-1].is_generating is False
    assert seen[-1].loading_state is None

    unsubscribe()
    count = len(seen)
    manager.clear_error()
    assert len(seen) == count


def test_generating_flag_covers_overlapping_branches(store: MemoryStore, goal_branch: Branch) -> None:
    other = Branch(name="Run a marathon", owner_user_id="user-1")
    store.create_branch(other)

    class GatedBackend:
        def __init__(self) -> None:
            self.started = {goal_branch.name: asyncio.Event(), other.name: asyncio.Event()}
            self.gates = {goal_branch.name: asyncio.Event(), other.name: asyncio.Event()}

        async def generate_plan(self, goal_title, goal_description, timeframe=None):
            self.started[goal_title].set()
            await self.gates[goal_title].wait()
            return GeneratedPlan(
                total_duration="1 week",
                tasks=[GeneratedTask(title="Step", description="Do it", estimated_duration=10)],
            )

    async def scenario() -> None:
        backend = GatedBackend()
        generator = TaskPlanGenerator(store, backend)
        manager = TaskPlanManager(store, generator)
        first = asyncio.create_task(
            manager.generate_task_plan(goal_branch.name, goal_branch.description, goal_branch.id)
        )
        second = asyncio.create_task(manager.generate_task_plan(other.name, other.description, other.id))
        for event in backend.started.values():
            await event.wait()

        backend.gates[goal_branch.name].set()
        await first
        assert generator.is_generating(other.id)
        assert manager.state.is_generating is True
        assert manager.state.loading_state is not None

        backend.gates[other.name].set()
        await second
        assert manager.state.is_generating is False
        assert manager.state.loading_state is None

    asyncio.run(scenario())


def test_edit_operations_update_plan(manager: TaskPlanManager, plan: TaskPlan, store: MemoryStore) -> None:
    item = manager.add_task_item(plan, "Learn 20 verbs", "Flashcards", TaskTimeScope.WEEKLY, 45)
    assert [task.title for task in plan.tasks] == ["Get started: Learn Spanish", "Learn 20 verbs"]
    assert item.order_index == 1

    manager.update_task_item(plan, item.id, estimated_duration=50)
    manager.toggle_task_completion(plan, item.id)
    manager.update_task_plan(plan, total_duration=" 3 months ")

    stored = manager.require_task_plan(plan.branch_id)
    assert stored.total_duration == "3 months"
    assert stored.find_task(item.id).is_completed
    assert stored.find_task(item.id).estimated_duration == 50

    progress = manager.calculate_progress(stored)
    assert (progress.completed_tasks, progress.total_tasks) == (1, 2)

    manager.reorder_task_items(plan, list(reversed(stored.tasks)))
    assert [task.title for task in store.get_task_plan(plan.id).tasks][0] == "Learn 20 verbs"

    manager.remove_task_item(plan, item.id)
    assert [task.order_index for task in plan.tasks] == [0]
    assert manager.state.is_editing is False


def test_errors_are_recorded_until_cleared(manager: TaskPlanManager, plan: TaskPlan) -> None:
    with pytest.raises(NotFoundError):
        manager.toggle_task_completion(plan, "missing-item")
    assert isinstance(manager.state.error, NotFoundError)
    assert manager.state.is_editing is False

    manager.clear_error()
    assert manager.state.error is None

    with pytest.raises(ValidationError):
        manager.add_task_item(plan, "  ")
    assert isinstance(manager.state.error, ValidationError)


def test_storage_failure_on_add_is_reported(
    manager: TaskPlanManager, plan: TaskPlan, store: MemoryStore
) -> None:
    _fail_on(store, "INSERT", "task_items")
    with pytest.raises(TaskItemAddError):
        manager.add_task_item(plan, "Listen to a podcast")
    assert isinstance(manager.state.error, TaskItemAddError)
    assert len(plan.tasks) == 1


def test_storage_failure_on_toggle_is_wrapped(
    manager: TaskPlanManager, plan: TaskPlan, store: MemoryStore
) -> None:
    _fail_on(store, "UPDATE", "task_plans")
    with pytest.raises(TaskCompletionError) as excinfo:
        manager.toggle_task_completion(plan, plan.tasks[0].id)
    assert isinstance(excinfo.value.__cause__, UpdateFailedError)
    assert manager.state.error is excinfo.value
    assert not store.get_task_plan(plan.id).tasks[0].is_completed


def test_require_missing_plan(manager: TaskPlanManager, goal_branch: Branch) -> None:
    assert manager.get_task_plan(goal_branch.id) is None
    with pytest.raises(TaskPlanNotFoundError):
        manager.require_task_plan(goal_branch.id)
    assert isinstance(manager.state.error, TaskPlanNotFoundError)


def test_regenerate_through_manager(manager: TaskPlanManager, plan: TaskPlan, store: MemoryStore) -> None:
    replacement = asyncio.run(manager.regenerate_task_plan(plan))
    assert replacement.id != plan.id
    assert store.get_task_plan_for_branch(plan.branch_id).id == replacement.id
    assert manager.state.is_generating is False
