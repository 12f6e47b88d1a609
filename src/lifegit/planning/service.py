"""AI-backed task plan service and conversion of its output into stored records."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Protocol

from ..memory.schema import TaskItem, TaskPlan, TaskTimeScope
from ..models.llm_client import (
    LLMClient,
    LLMEmptyResponseError,
    LLMRequest,
    LLMResponseFormatError,
    LLMRetryError,
)
from ..prompts import render_plan_prompt, render_system_prompt
from .schemas import GeneratedPlan

LOGGER = logging.getLogger(__name__)

_TIME_SCOPES = {scope.value for scope in TaskTimeScope}


class TaskPlanServiceError(RuntimeError):
    """Base error for failures while turning a backend answer into a plan."""


class EmptyResponseError(TaskPlanServiceError):
    """The backend answered without any content."""


class ParsingFailedError(TaskPlanServiceError):
    """The backend answer could not be parsed into the plan schema."""


class PlanValidationError(TaskPlanServiceError):
    """The parsed plan violates a content rule."""


class PlanBackend(Protocol):
    """Anything able to propose a plan for a goal."""

    async def generate_plan(
        self, goal_title: str, goal_description: str, timeframe: Optional[str] = None
    ) -> GeneratedPlan:
        ...


class TaskPlanService:
    """Ask a language model for a task plan and validate what comes back."""

    def __init__(self, client: LLMClient, *, temperature: float = 0.7, max_tokens: int = 2000) -> None:
        self._client = client
        self._temperature = temperature
        self._max_tokens = max_tokens

    @property
    def client(self) -> LLMClient:
        return self._client

    async def generate_plan(
        self, goal_title: str, goal_description: str, timeframe: Optional[str] = None
    ) -> GeneratedPlan:
        request = LLMRequest(
            prompt=render_plan_prompt(goal_title, goal_description, timeframe),
            response_model=GeneratedPlan,
            system_prompt=render_system_prompt(),
            metadata={"goal_title": goal_title},
            temperature=self._temperature,
            max_tokens=self._max_tokens,
        )
        try:
            plan = await asyncio.to_thread(self._client.invoke, request)
        except LLMRetryError as error:
            cause = error.__cause__
            if isinstance(cause, LLMEmptyResponseError):
                raise EmptyResponseError(str(cause)) from error
            raise ParsingFailedError(str(cause or error)) from error
        except LLMEmptyResponseError as error:
            raise EmptyResponseError(str(error)) from error
        except LLMResponseFormatError as error:
            raise ParsingFailedError(str(error)) from error

        validate_generated_plan(plan)
        LOGGER.debug("Backend proposed %d task(s) for %r", len(plan.tasks), goal_title)
        return plan


def validate_generated_plan(plan: GeneratedPlan) -> None:
    """Raise ``PlanValidationError`` unless ``plan`` is usable as-is."""
    if not plan.tasks:
        raise PlanValidationError("Task plan must contain at least one task")
    if not plan.total_duration.strip():
        raise PlanValidationError("Total duration must not be empty")
    for index, task in enumerate(plan.tasks):
        if not task.title.strip():
            raise PlanValidationError(f"Task {index} title must not be empty")
        if not task.description.strip():
            raise PlanValidationError(f"Task {index} description must not be empty")
        if task.estimated_duration <= 0:
            raise PlanValidationError(f"Task {index} estimated duration must be positive")
        if task.time_scope.strip().lower() not in _TIME_SCOPES:
            raise PlanValidationError(f"Task {index} has invalid time scope: {task.time_scope}")


def to_task_plan(generated: GeneratedPlan, branch_id: str) -> TaskPlan:
    """Convert backend output into an AI-generated ``TaskPlan`` with dense order indexes."""
    positioned: list[tuple[int, int, Dict[str, Any]]] = []
    for position, task in enumerate(generated.tasks):
        scope = task.time_scope.strip().lower()
        rank = task.order_index if task.order_index is not None else position
        positioned.append(
            (
                rank,
                position,
                {
                    "title": task.title.strip(),
                    "description": task.description.strip(),
                    "time_scope": TaskTimeScope(scope) if scope in _TIME_SCOPES else TaskTimeScope.DAILY,
                    "estimated_duration": max(task.estimated_duration, 0),
                    "execution_tips": task.execution_tips or None,
                },
            )
        )
    positioned.sort(key=lambda entry: (entry[0], entry[1]))
    items = [
        TaskItem(order_index=index, **fields) for index, (_, _, fields) in enumerate(positioned)
    ]
    return TaskPlan(
        branch_id=branch_id,
        total_duration=generated.total_duration.strip(),
        is_ai_generated=True,
        tasks=items,
    )


__all__ = [
    "EmptyResponseError",
    "ParsingFailedError",
    "PlanBackend",
    "PlanValidationError",
    "TaskPlanService",
    "TaskPlanServiceError",
    "to_task_plan",
    "validate_generated_plan",
]
