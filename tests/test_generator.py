from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional, Union

import pytest

from lifegit.memory.schema import Branch, TaskItem, TaskPlan, TaskTimeScope
from lifegit.memory.store import MemoryStore
from lifegit.models.llm_client import LLMAuthenticationError, LLMServerError
from lifegit.models.offline import OfflineLLMClient
from lifegit.planning.exceptions import InvalidTaskPlanError, RegenerationFailedError
from lifegit.planning.generator import (
    GenerationInProgressError,
    GenerationLog,
    PlanAlreadyExistsError,
    TaskPlanGenerator,
)
from lifegit.planning.schemas import GeneratedPlan, GeneratedTask
from lifegit.planning.service import EmptyResponseError, TaskPlanService

Outcome = Union[GeneratedPlan, Exception]


def _generated(*titles: str) -> GeneratedPlan:
    return GeneratedPlan(
        total_duration="4 weeks",
        tasks=[
            GeneratedTask(
                title=title,
                description=f"Do {title.lower()}",
                time_scope="daily",
                estimated_duration=25,
                order_index=index,
            )
            for index, title in enumerate(titles)
        ],
    )


class ScriptedBackend:
    def __init__(self, outcomes: List[Outcome]) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    async def generate_plan(
        self, goal_title: str, goal_description: str, timeframe: Optional[str] = None
    ) -> GeneratedPlan:
        self.calls += 1
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def _generator(store: MemoryStore, backend, **kwargs) -> tuple[TaskPlanGenerator, RecordingSleep]:
    sleep = RecordingSleep()
    return TaskPlanGenerator(store, backend, sleep=sleep, **kwargs), sleep


def test_fatal_error_falls_back_to_manual_plan(store: MemoryStore, goal_branch: Branch) -> None:
    backend = ScriptedBackend([LLMAuthenticationError("401 unauthorized")])
    generator, sleep = _generator(store, backend)

    plan = asyncio.run(generator.generate(goal_branch.name, goal_branch.description, goal_branch.id))

    assert backend.calls == 1
    assert sleep.delays == []
    assert not plan.is_ai_generated
    assert plan.total_duration == "Manually created task plan"
    assert len(plan.tasks) == 1
    task = plan.tasks[0]
    assert task.title == "Get started: Learn Spanish"
    assert "Hold a 10 minute conversation" in task.description
    assert task.time_scope is TaskTimeScope.DAILY
    assert task.estimated_duration == 60
    assert task.order_index == 0
    assert task.execution_tips

    stored = store.get_task_plan_for_branch(goal_branch.id)
    assert stored is not None and stored.id == plan.id


def test_transient_failures_retry_then_succeed(store: MemoryStore, goal_branch: Branch) -> None:
    backend = ScriptedBackend(
        [LLMServerError("502"), EmptyResponseError("empty"), _generated("Greetings", "Numbers")]
    )
    generator, sleep = _generator(store, backend)

    plan = asyncio.run(generator.generate(goal_branch.name, goal_branch.description, goal_branch.id))

    assert backend.calls == 3
    assert sleep.delays == [2.0, 4.0]
    assert plan.is_ai_generated
    assert [task.title for task in plan.tasks] == ["Greetings", "Numbers"]
    assert generator.classifiers[goal_branch.id].attempts == 0


def test_retry_budget_is_bounded(store: MemoryStore, goal_branch: Branch) -> None:
    backend = ScriptedBackend([LLMServerError("503")])
    generator, sleep = _generator(store, backend, base_delay=1.0)

    plan = asyncio.run(generator.generate(goal_branch.name, goal_branch.description, goal_branch.id))

    assert backend.calls == 4
    assert sleep.delays == [1.0, 2.0, 4.0]
    assert not plan.is_ai_generated


def test_offline_client_produces_fallback(store: MemoryStore, goal_branch: Branch) -> None:
    generator, sleep = _generator(store, TaskPlanService(OfflineLLMClient()), is_online=False)

    plan = asyncio.run(generator.generate(goal_branch.name, goal_branch.description, goal_branch.id))

    assert not plan.is_ai_generated
    assert sleep.delays == []


def test_no_backend_produces_fallback(store: MemoryStore, goal_branch: Branch) -> None:
    generator, _ = _generator(store, None)
    plan = asyncio.run(generator.generate("Read 12 books", "One per month", goal_branch.id))
    assert plan.tasks[0].title == "Get started: Read 12 books"


def test_generate_refuses_to_overwrite_existing_plan(store: MemoryStore, goal_branch: Branch) -> None:
    generator, _ = _generator(store, ScriptedBackend([_generated("Greetings")]))
    asyncio.run(generator.generate(goal_branch.name, goal_branch.description, goal_branch.id))

    with pytest.raises(PlanAlreadyExistsError):
        asyncio.run(generator.generate(goal_branch.name, goal_branch.description, goal_branch.id))


def test_concurrent_generation_for_same_branch_is_rejected(
    store: MemoryStore, goal_branch: Branch
) -> None:
    class BlockingBackend:
        def __init__(self) -> None:
            self.started = asyncio.Event()
            self.release = asyncio.Event()

        async def generate_plan(self, goal_title, goal_description, timeframe=None):
            self.started.set()
            await self.release.wait()
            return _generated("Greetings")

    async def scenario() -> TaskPlan:
        backend = BlockingBackend()
        generator = TaskPlanGenerator(store, backend)
        first = asyncio.create_task(
            generator.generate(goal_branch.name, goal_branch.description, goal_branch.id)
        )
        await backend.started.wait()
        assert generator.is_generating(goal_branch.id)
        with pytest.raises(GenerationInProgressError):
            await generator.generate(goal_branch.name, goal_branch.description, goal_branch.id)
        backend.release.set()
        plan = await first
        assert not generator.is_generating(goal_branch.id)
        return plan

    plan = asyncio.run(scenario())
    assert plan.is_ai_generated


def test_generations_for_different_branches_run_concurrently(
    store: MemoryStore, goal_branch: Branch
) -> None:
    other = Branch(name="Run a marathon", owner_user_id="user-1")
    store.create_branch(other)

    async def scenario() -> list[TaskPlan]:
        generator = TaskPlanGenerator(store, ScriptedBackend([_generated("Step")]))
        return await asyncio.gather(
            generator.generate(goal_branch.name, goal_branch.description, goal_branch.id),
            generator.generate(other.name, other.description, other.id),
        )

    plans = asyncio.run(scenario())
    assert {plan.branch_id for plan in plans} == {goal_branch.id, other.id}


def test_regenerate_replaces_existing_plan(store: MemoryStore, goal_branch: Branch) -> None:
    generator, _ = _generator(
        store, ScriptedBackend([_generated("Old task"), _generated("New task", "Another")])
    )
    original = asyncio.run(generator.generate(goal_branch.name, goal_branch.description, goal_branch.id))

    replacement = asyncio.run(generator.regenerate(original))

    assert replacement.id != original.id
    assert store.get_task_plan(original.id) is None
    stored = store.get_task_plan_for_branch(goal_branch.id)
    assert stored is not None
    assert [task.title for task in stored.tasks] == ["New task", "Another"]


def test_regenerate_requires_owning_branch(store: MemoryStore) -> None:
    generator, _ = _generator(store, None)
    orphan = TaskPlan(branch_id="missing-branch", tasks=[TaskItem(title="x")])
    with pytest.raises(InvalidTaskPlanError):
        asyncio.run(generator.regenerate(orphan))


def test_regenerate_wraps_failures(store: MemoryStore, goal_branch: Branch) -> None:
    generator, _ = _generator(store, None)
    never_stored = TaskPlan(branch_id=goal_branch.id, tasks=[TaskItem(title="x")])
    with pytest.raises(RegenerationFailedError):
        asyncio.run(generator.regenerate(never_stored))


def test_generation_log_records_attempts(store: MemoryStore, goal_branch: Branch, tmp_path: Path) -> None:
    log = GenerationLog(tmp_path / "logs")
    backend = ScriptedBackend([LLMServerError("502"), LLMAuthenticationError("403")])
    generator, _ = _generator(store, backend, generation_log=log)

    asyncio.run(generator.generate(goal_branch.name, goal_branch.description, goal_branch.id))

    lines = [json.loads(line) for line in log.path.read_text(encoding="utf-8").splitlines()]
    assert [entry["outcome"] for entry in lines] == ["error", "error", "fallback"]
    assert lines[0]["error"]["retryable"] is True
    assert lines[1]["error"]["action"] == "check_settings"
    assert all(entry["branch_id"] == goal_branch.id for entry in lines)
