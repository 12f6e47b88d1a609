"""Errors surfaced by the task plan manager and the task item store."""

from __future__ import annotations

from ..errors import LifeGitError


class TaskPlanManagerError(LifeGitError):
    """Base error for task plan management failures."""


class InvalidTaskPlanError(TaskPlanManagerError):
    """The plan does not resolve to an owning branch."""


class RegenerationFailedError(TaskPlanManagerError):
    """Deleting or regenerating an existing plan failed."""


class TaskPlanUpdateError(TaskPlanManagerError):
    pass


class TaskItemAddError(TaskPlanManagerError):
    pass


class TaskItemUpdateError(TaskPlanManagerError):
    pass


class TaskItemRemoveError(TaskPlanManagerError):
    pass


class ReorderError(TaskPlanManagerError):
    pass


class TaskCompletionError(TaskPlanManagerError):
    pass


class TaskPlanQueryError(TaskPlanManagerError):
    pass


class TaskPlanNotFoundError(TaskPlanManagerError):
    """No plan exists for the requested branch or identifier."""


__all__ = [
    "InvalidTaskPlanError",
    "RegenerationFailedError",
    "ReorderError",
    "TaskCompletionError",
    "TaskItemAddError",
    "TaskItemRemoveError",
    "TaskItemUpdateError",
    "TaskPlanManagerError",
    "TaskPlanNotFoundError",
    "TaskPlanQueryError",
    "TaskPlanUpdateError",
]
