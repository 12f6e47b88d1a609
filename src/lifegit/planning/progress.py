"""Progress statistics derived from a task plan."""

from __future__ import annotations

from dataclasses import dataclass

from ..memory.schema import TaskPlan


@dataclass(slots=True, frozen=True)
class TaskPlanProgress:
    """Snapshot of how far a plan has advanced."""

    total_tasks: int
    completed_tasks: int
    progress: float
    total_estimated_duration: int
    completed_duration: int

    @property
    def remaining_tasks(self) -> int:
        return self.total_tasks - self.completed_tasks

    @property
    def remaining_duration(self) -> int:
        return self.total_estimated_duration - self.completed_duration

    @property
    def is_completed(self) -> bool:
        return self.progress >= 1.0


def calculate_progress(plan: TaskPlan) -> TaskPlanProgress:
    total = len(plan.tasks)
    completed = plan.completed_tasks_count
    return TaskPlanProgress(
        total_tasks=total,
        completed_tasks=completed,
        progress=completed / total if total else 0.0,
        total_estimated_duration=plan.total_estimated_duration,
        completed_duration=sum(task.estimated_duration for task in plan.tasks if task.is_completed),
    )


__all__ = ["TaskPlanProgress", "calculate_progress"]
