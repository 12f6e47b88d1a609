"""Coordinator for task plan generation and editing with observable state."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from collections import Counter
from dataclasses import dataclass, replace
from typing import Callable, Iterator, List, Optional, Sequence, Type

from ..errors import NotFoundError, PersistenceError, ValidationError
from ..memory.schema import TaskItem, TaskPlan, TaskTimeScope
from ..memory.store import MemoryStore
from .exceptions import (
    InvalidTaskPlanError,
    RegenerationFailedError,
    ReorderError,
    TaskCompletionError,
    TaskItemAddError,
    TaskItemRemoveError,
    TaskItemUpdateError,
    TaskPlanManagerError,
    TaskPlanNotFoundError,
    TaskPlanQueryError,
    TaskPlanUpdateError,
)
from .generator import TaskPlanGenerator
from .items import TaskItemStore
from .progress import TaskPlanProgress, calculate_progress

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class ManagerState:
    """Immutable snapshot pushed to subscribers after every change."""

    is_generating: bool = False
    is_editing: bool = False
    is_loading: bool = False
    loading_state: Optional[str] = None
    error: Optional[Exception] = None


Subscriber = Callable[[ManagerState], None]

# Errors the caller can act on directly; they are recorded but never re-wrapped.
_PASSTHROUGH = (ValidationError, NotFoundError, TaskPlanManagerError)


class TaskPlanManager:
    """Single entry point for plan operations.

    Each operation flips the relevant busy flag, notifies subscribers, and always
    clears the flag again when it finishes. The most recent failure stays visible in
    ``state.error`` until ``clear_error`` is called.
    """

    def __init__(self, store: MemoryStore, generator: TaskPlanGenerator) -> None:
        self._store = store
        self._generator = generator
        self._state = ManagerState()
        self._subscribers: List[Subscriber] = []
        self._active: Counter[str] = Counter()

    @property
    def state(self) -> ManagerState:
        return self._state

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` and return a function that unregisters it."""
        self._subscribers.append(callback)
        callback(self._state)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def clear_error(self) -> None:
        self._set_state(error=None)

    def _set_state(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for callback in list(self._subscribers):
            callback(self._state)

    @contextmanager
    def _busy(self, flag: str, label: str, error_type: Type[TaskPlanManagerError]) -> Iterator[None]:
        self._active[flag] += 1
        self._set_state(**{flag: True}, loading_state=label)
        try:
            yield
        except _PASSTHROUGH as error:
            self._set_state(error=error)
            raise
        except PersistenceError as error:
            wrapped = error_type(f"{label} failed: {error}")
            self._set_state(error=wrapped)
            raise wrapped from error
        except Exception as error:
            self._set_state(error=error)
            raise
        finally:
            # Overlapping operations share a flag; it drops only when the last one ends.
            self._active[flag] -= 1
            idle = not any(self._active.values())
            self._set_state(
                **{flag: self._active[flag] > 0},
                loading_state=None if idle else self._state.loading_state,
            )

    # Generation ----------------------------------------------------------------------
    async def generate_task_plan(
        self,
        goal_title: str,
        goal_description: str,
        branch_id: str,
        timeframe: Optional[str] = None,
    ) -> TaskPlan:
        with self._busy("is_generating", "Generating task plan", TaskPlanUpdateError):
            return await self._generator.generate(goal_title, goal_description, branch_id, timeframe)

    async def regenerate_task_plan(self, plan: TaskPlan) -> TaskPlan:
        with self._busy("is_generating", "Regenerating task plan", RegenerationFailedError):
            return await self._generator.regenerate(plan)

    # Editing -------------------------------------------------------------------------
    def update_task_plan(self, plan: TaskPlan, *, total_duration: str) -> TaskPlan:
        with self._busy("is_editing", "Updating task plan", TaskPlanUpdateError):
            plan.total_duration = total_duration.strip()
            self._store.update_task_plan(plan)
            return plan

    def add_task_item(
        self,
        plan: TaskPlan,
        title: str,
        description: str = "",
        time_scope: TaskTimeScope = TaskTimeScope.DAILY,
        estimated_duration: int = 0,
        execution_tips: Optional[str] = None,
    ) -> TaskItem:
        with self._busy("is_editing", "Adding task", TaskItemAddError):
            item = TaskItemStore(self._store, plan.id).add(
                title, description, time_scope, estimated_duration, execution_tips
            )
            plan.tasks.append(item)
            return item

    @staticmethod
    def _sync(plan: TaskPlan, item: TaskItem) -> TaskItem:
        """Replace the caller's copy of ``item`` so later plan writes stay current."""
        plan.tasks = [item if task.id == item.id else task for task in plan.tasks]
        return item

    def update_task_item(
        self,
        plan: TaskPlan,
        task_item_id: str,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        time_scope: Optional[TaskTimeScope] = None,
        estimated_duration: Optional[int] = None,
        execution_tips: Optional[str] = None,
    ) -> TaskItem:
        with self._busy("is_editing", "Updating task", TaskItemUpdateError):
            item = TaskItemStore(self._store, plan.id).update(
                task_item_id,
                title=title,
                description=description,
                time_scope=time_scope,
                estimated_duration=estimated_duration,
                execution_tips=execution_tips,
            )
            return self._sync(plan, item)

    def remove_task_item(self, plan: TaskPlan, task_item_id: str) -> None:
        with self._busy("is_editing", "Removing task", TaskItemRemoveError):
            TaskItemStore(self._store, plan.id).remove(task_item_id)
            plan.tasks = [task for task in plan.tasks if task.id != task_item_id]
            plan.reindex()

    def reorder_task_items(self, plan: TaskPlan, items: Sequence[TaskItem]) -> List[TaskItem]:
        with self._busy("is_editing", "Reordering tasks", ReorderError):
            ordered = TaskItemStore(self._store, plan.id).reorder(items)
            plan.tasks = ordered
            return ordered

    def toggle_task_completion(self, plan: TaskPlan, task_item_id: str) -> TaskItem:
        with self._busy("is_editing", "Updating task status", TaskCompletionError):
            item = TaskItemStore(self._store, plan.id).toggle_completion(task_item_id)
            return self._sync(plan, item)

    # Queries -------------------------------------------------------------------------
    def get_task_plan(self, branch_id: str) -> Optional[TaskPlan]:
        with self._busy("is_loading", "Loading task plan", TaskPlanQueryError):
            return self._store.get_task_plan_for_branch(branch_id)

    def require_task_plan(self, branch_id: str) -> TaskPlan:
        plan = self.get_task_plan(branch_id)
        if plan is None:
            error = TaskPlanNotFoundError(f"No task plan for branch {branch_id}")
            self._set_state(error=error)
            raise error
        return plan

    @staticmethod
    def calculate_progress(plan: TaskPlan) -> TaskPlanProgress:
        return calculate_progress(plan)


__all__ = [
    "InvalidTaskPlanError",
    "ManagerState",
    "RegenerationFailedError",
    "ReorderError",
    "TaskCompletionError",
    "TaskItemAddError",
    "TaskItemRemoveError",
    "TaskItemUpdateError",
    "TaskPlanManager",
    "TaskPlanManagerError",
    "TaskPlanNotFoundError",
    "TaskPlanQueryError",
    "TaskPlanUpdateError",
]
