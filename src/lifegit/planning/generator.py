"""Task plan generation with bounded retries and a deterministic manual fallback."""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, Set

from ..errors import LifeGitError
from ..memory.schema import TaskItem, TaskPlan, TaskTimeScope, utc_now
from ..memory.store import MemoryStore
from .errors import DEFAULT_BASE_DELAY, DEFAULT_MAX_ATTEMPTS, ErrorClassifier, ErrorInfo
from .exceptions import InvalidTaskPlanError, RegenerationFailedError
from .service import PlanBackend, to_task_plan

LOGGER = logging.getLogger(__name__)

FALLBACK_TOTAL_DURATION = "Manually created task plan"
FALLBACK_TASK_DURATION = 60
GENERATION_LOG_NAME = "generation.jsonl"

Sleeper = Callable[[float], Awaitable[Any]]


class PlanAlreadyExistsError(LifeGitError):
    """The branch already owns a task plan."""

    def __init__(self, branch_id: str) -> None:
        super().__init__(f"Branch {branch_id} already has a task plan; regenerate it instead")
        self.branch_id = branch_id


class GenerationInProgressError(LifeGitError):
    """A generation for the same branch is still running."""

    def __init__(self, branch_id: str) -> None:
        super().__init__(f"A task plan is already being generated for branch {branch_id}")
        self.branch_id = branch_id


def build_fallback_plan(goal_title: str, goal_description: str, branch_id: str) -> TaskPlan:
    """Single-task plan the user is expected to edit by hand."""
    task = TaskItem(
        title=f"Get started: {goal_title}",
        description=f"Break this goal into concrete steps based on its description: {goal_description}",
        time_scope=TaskTimeScope.DAILY,
        estimated_duration=FALLBACK_TASK_DURATION,
        order_index=0,
        execution_tips=(
            "This task was created manually. Edit its content and schedule to match your situation."
        ),
    )
    return TaskPlan(
        branch_id=branch_id,
        total_duration=FALLBACK_TOTAL_DURATION,
        is_ai_generated=False,
        tasks=[task],
    )


class GenerationLog:
    """Append one JSON line per generation attempt."""

    def __init__(self, directory: Optional[Path | str]) -> None:
        self.path = Path(directory) / GENERATION_LOG_NAME if directory else None

    def record(
        self,
        branch_id: str,
        attempt: int,
        outcome: str,
        info: Optional[ErrorInfo] = None,
    ) -> None:
        if self.path is None:
            return
        entry: Dict[str, Any] = {
            "timestamp": utc_now().isoformat(),
            "branch_id": branch_id,
            "attempt": attempt,
            "outcome": outcome,
        }
        if info is not None:
            entry["error"] = {
                "title": info.title,
                "message": info.message,
                "action": info.action.value,
                "retryable": info.retryable,
            }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(entry, sort_keys=True) + "\n")
        except OSError as error:
            LOGGER.warning("Unable to write generation log %s: %s", self.path, error)


class TaskPlanGenerator:
    """Produce and persist a task plan for a branch.

    AI failures are retried with exponential backoff while the classifier deems them
    transient; once the budget is spent, or on a fatal error, a manual fallback plan
    is stored instead. Only one generation per branch may be in flight: a concurrent
    request for the same branch is rejected with ``GenerationInProgressError``.
    """

    def __init__(
        self,
        store: MemoryStore,
        backend: Optional[PlanBackend] = None,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY,
        is_online: bool = True,
        generation_log: Optional[GenerationLog] = None,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._store = store
        self._backend = backend
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self.is_online = is_online
        self._log = generation_log or GenerationLog(None)
        self._sleep = sleep
        self._in_flight: Set[str] = set()
        self.classifiers: Dict[str, ErrorClassifier] = {}

    def is_generating(self, branch_id: str) -> bool:
        return branch_id in self._in_flight

    @contextmanager
    def _claim(self, branch_id: str) -> Iterator[None]:
        if branch_id in self._in_flight:
            raise GenerationInProgressError(branch_id)
        self._in_flight.add(branch_id)
        try:
            yield
        finally:
            self._in_flight.discard(branch_id)

    async def generate(
        self,
        goal_title: str,
        goal_description: str,
        branch_id: str,
        timeframe: Optional[str] = None,
    ) -> TaskPlan:
        with self._claim(branch_id):
            if self._store.get_task_plan_for_branch(branch_id) is not None:
                raise PlanAlreadyExistsError(branch_id)
            return await self._generate(goal_title, goal_description, branch_id, timeframe)

    async def regenerate(self, existing_plan: TaskPlan) -> TaskPlan:
        branch = self._store.get_branch(existing_plan.branch_id)
        if branch is None:
            raise InvalidTaskPlanError(f"Task plan {existing_plan.id} has no associated branch")
        with self._claim(branch.id):
            try:
                self._store.delete_task_plan(existing_plan.id)
                return await self._generate(branch.name, branch.description, branch.id, None)
            except Exception as error:
                raise RegenerationFailedError(f"Failed to regenerate task plan: {error}") from error

    async def _generate(
        self,
        goal_title: str,
        goal_description: str,
        branch_id: str,
        timeframe: Optional[str],
    ) -> TaskPlan:
        classifier = ErrorClassifier(
            max_attempts=self._max_attempts,
            base_delay=self._base_delay,
            is_online=self.is_online,
        )
        self.classifiers[branch_id] = classifier

        plan: Optional[TaskPlan] = None
        attempt = 0
        while self._backend is not None:
            attempt += 1
            try:
                generated = await self._backend.generate_plan(goal_title, goal_description, timeframe)
                plan = to_task_plan(generated, branch_id)
            except Exception as error:
                info = classifier.handle(error)
                self._log.record(branch_id, attempt, "error", info)
                if info.retryable and classifier.should_retry():
                    delay = classifier.retry_delay()
                    LOGGER.warning(
                        "Plan generation for branch %s failed (%s); retry %d/%d in %.1fs",
                        branch_id,
                        info.title,
                        classifier.attempts,
                        classifier.max_attempts,
                        delay,
                    )
                    await self._sleep(delay)
                    continue
                LOGGER.warning(
                    "Plan generation for branch %s gave up (%s: %s); using manual plan",
                    branch_id,
                    info.title,
                    info.message,
                )
                break
            self._log.record(branch_id, attempt, "success")
            break

        if plan is None:
            plan = build_fallback_plan(goal_title, goal_description, branch_id)
            self._log.record(branch_id, attempt, "fallback")
        self._store.create_task_plan(plan)
        if plan.is_ai_generated:
            classifier.reset_retry_count()
        LOGGER.info(
            "Stored %s task plan %s with %d task(s) for branch %s",
            "AI" if plan.is_ai_generated else "manual",
            plan.id,
            len(plan.tasks),
            branch_id,
        )
        return plan


__all__ = [
    "FALLBACK_TASK_DURATION",
    "FALLBACK_TOTAL_DURATION",
    "GenerationInProgressError",
    "GenerationLog",
    "PlanAlreadyExistsError",
    "TaskPlanGenerator",
    "build_fallback_plan",
]
