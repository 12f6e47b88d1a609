"""Ordered task item lifecycle for a single task plan."""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from ..errors import NotFoundError, PersistenceError, ValidationError
from ..memory.schema import TaskItem, TaskPlan, TaskTimeScope
from ..memory.store import MemoryStore
from .exceptions import TaskItemAddError

LOGGER = logging.getLogger(__name__)


def _validate_fields(title: str, estimated_duration: int) -> None:
    if not title or not title.strip():
        raise ValidationError("Task title must not be empty")
    if estimated_duration < 0:
        raise ValidationError("Estimated duration must not be negative")


class TaskItemStore:
    """Add, remove, reorder and complete the items of one plan.

    Every mutation is a single storage call so order indexes stay dense and
    positional even when a write fails halfway.
    """

    def __init__(self, store: MemoryStore, plan_id: str) -> None:
        self._store = store
        self.plan_id = plan_id

    def _load_plan(self) -> TaskPlan:
        plan = self._store.get_task_plan(self.plan_id)
        if plan is None:
            raise NotFoundError("task plan", self.plan_id)
        return plan

    def items(self) -> List[TaskItem]:
        return self._load_plan().tasks

    def add(
        self,
        title: str,
        description: str = "",
        time_scope: TaskTimeScope = TaskTimeScope.DAILY,
        estimated_duration: int = 0,
        execution_tips: Optional[str] = None,
    ) -> TaskItem:
        _validate_fields(title, estimated_duration)
        item = TaskItem(
            title=title.strip(),
            description=description,
            time_scope=time_scope,
            estimated_duration=estimated_duration,
            execution_tips=execution_tips or None,
        )
        try:
            self._store.add_task_item(self.plan_id, item)
        except (PersistenceError, NotFoundError) as error:
            raise TaskItemAddError(f"Failed to add task item: {error}") from error
        LOGGER.debug("Added task item %s at index %d to plan %s", item.id, item.order_index, self.plan_id)
        return item

    def remove(self, task_item_id: str) -> None:
        self._store.remove_task_item(self.plan_id, task_item_id)
        LOGGER.debug("Removed task item %s from plan %s", task_item_id, self.plan_id)

    def reorder(self, items: Sequence[TaskItem]) -> List[TaskItem]:
        """Persist ``items`` in the given order; they must be exactly the plan's items."""
        ordered_ids = [item.id for item in items]
        if len(set(ordered_ids)) != len(ordered_ids):
            raise ValidationError("Reordered items must not contain duplicates")
        self._store.reorder_task_items(self.plan_id, ordered_ids)
        for index, item in enumerate(items):
            item.order_index = index
        LOGGER.debug("Reordered %d task item(s) in plan %s", len(ordered_ids), self.plan_id)
        return list(items)

    def toggle_completion(self, task_item_id: str) -> TaskItem:
        plan = self._store.find_plan_containing_item(task_item_id)
        if plan is None or plan.id != self.plan_id:
            raise NotFoundError("task item", task_item_id)
        item = plan.find_task(task_item_id)
        if item is None:
            raise NotFoundError("task item", task_item_id)
        if item.is_completed:
            item.mark_incomplete()
        else:
            item.mark_completed()
        self._store.update_task_plan(plan)
        LOGGER.debug("Task item %s completed=%s", task_item_id, item.is_completed)
        return item

    def update(
        self,
        task_item_id: str,
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        time_scope: Optional[TaskTimeScope] = None,
        estimated_duration: Optional[int] = None,
        execution_tips: Optional[str] = None,
    ) -> TaskItem:
        plan = self._load_plan()
        item = plan.find_task(task_item_id)
        if item is None:
            raise NotFoundError("task item", task_item_id)
        _validate_fields(
            title if title is not None else item.title,
            estimated_duration if estimated_duration is not None else item.estimated_duration,
        )
        if title is not None:
            item.title = title.strip()
        if description is not None:
            item.description = description
        if time_scope is not None:
            item.time_scope = time_scope
        if estimated_duration is not None:
            item.estimated_duration = estimated_duration
        if execution_tips is not None:
            item.execution_tips = execution_tips or None
        self._store.update_task_plan(plan)
        return item


__all__ = ["TaskItemStore"]
