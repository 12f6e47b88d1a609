"""Goal branch lifecycle: status transitions, completion, abandonment and merging."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from ..errors import LifeGitError, NotFoundError
from ..memory.schema import Branch, BranchStatus, Commit, CommitType, TaskPlan, utc_now
from ..memory.store import MemoryStore
from ..planning.generator import TaskPlanGenerator

LOGGER = logging.getLogger(__name__)

MASTER_BRANCH_NAME = "master"
MASTER_BRANCH_DESCRIPTION = "Main line of your life story"

_TRANSITIONS: Dict[BranchStatus, FrozenSet[BranchStatus]] = {
    BranchStatus.ACTIVE: frozenset({BranchStatus.COMPLETED, BranchStatus.ABANDONED}),
    BranchStatus.COMPLETED: frozenset(),
    BranchStatus.ABANDONED: frozenset(),
}


class InvalidTransitionError(LifeGitError):
    """The requested status change is not allowed."""


class InvalidOperationError(LifeGitError):
    """The operation does not apply to this branch."""


class MasterBranchNotFoundError(LifeGitError):
    """The owner has no master branch yet."""


def can_transition(source: BranchStatus, target: BranchStatus) -> bool:
    return target in _TRANSITIONS[source]


def transition(branch: Branch, target: BranchStatus) -> Branch:
    """Move ``branch`` to ``target`` in place, enforcing the status machine."""
    if branch.is_master and target is BranchStatus.ABANDONED:
        raise InvalidTransitionError("The master branch cannot be abandoned")
    if not can_transition(branch.status, target):
        raise InvalidTransitionError(
            f"Cannot move branch '{branch.name}' from {branch.status.value} to {target.value}"
        )
    branch.status = target
    if target is BranchStatus.COMPLETED:
        branch.completed_at = utc_now()
    return branch


@dataclass(slots=True, frozen=True)
class BranchStatistics:
    commit_count: int
    total_tasks: int
    completed_tasks: int
    progress: float
    estimated_duration: int


class BranchManager:
    """Branch operations that keep commits and task plans consistent with status."""

    def __init__(self, store: MemoryStore, generator: Optional[TaskPlanGenerator] = None) -> None:
        self._store = store
        self._generator = generator

    def ensure_master_branch(self, owner_user_id: str) -> Branch:
        master = self._store.get_master_branch(owner_user_id)
        if master is not None:
            return master
        master = Branch(
            name=MASTER_BRANCH_NAME,
            description=MASTER_BRANCH_DESCRIPTION,
            is_master=True,
            owner_user_id=owner_user_id,
        )
        self._store.create_branch(master)
        LOGGER.info("Created master branch for user %s", owner_user_id)
        return master

    def get_branch(self, branch_id: str) -> Branch:
        branch = self._store.get_branch(branch_id)
        if branch is None:
            raise NotFoundError("branch", branch_id)
        return branch

    async def create_branch(
        self,
        name: str,
        description: str,
        owner_user_id: str,
        *,
        timeframe: Optional[str] = None,
        expected_completion_date: Optional[datetime] = None,
        generate_plan: bool = True,
    ) -> tuple[Branch, Optional[TaskPlan]]:
        """Create an active goal branch and, when a generator is set, its task plan."""
        if not name.strip():
            raise InvalidOperationError("Branch name must not be empty")
        master = self._store.get_master_branch(owner_user_id)
        branch = Branch(
            name=name.strip(),
            description=description.strip(),
            owner_user_id=owner_user_id,
            parent_branch_id=master.id if master else None,
            expected_completion_date=expected_completion_date,
        )
        self._store.create_branch(branch)
        LOGGER.info("Created branch %s (%s)", branch.id, branch.name)

        plan: Optional[TaskPlan] = None
        if generate_plan and self._generator is not None:
            plan = await self._generator.generate(branch.name, branch.description, branch.id, timeframe)
        return branch, plan

    def _apply_transition(self, branch: Branch, target: BranchStatus) -> None:
        """Persist ``target`` and update ``branch`` only once the write succeeded."""
        updated = transition(branch.model_copy(), target)
        self._store.update_branch(updated)
        branch.status = updated.status
        branch.completed_at = updated.completed_at

    def complete_branch(self, branch: Branch) -> Commit:
        self._apply_transition(branch, BranchStatus.COMPLETED)
        commit = Commit(
            branch_id=branch.id,
            type=CommitType.MILESTONE,
            message=f"Completed goal: {branch.name}",
        )
        self._store.create_commit(commit)
        LOGGER.info("Completed branch %s", branch.id)
        return commit

    def abandon_branch(self, branch: Branch) -> Branch:
        if branch.is_master:
            raise InvalidOperationError("Cannot abandon the master branch")
        self._apply_transition(branch, BranchStatus.ABANDONED)
        LOGGER.info("Abandoned branch %s", branch.id)
        return branch

    def merge_branch(self, branch: Branch) -> Commit:
        """Record a completed goal on the owner's master branch."""
        if branch.is_master:
            raise InvalidOperationError("Cannot merge the master branch")
        if branch.status is not BranchStatus.COMPLETED:
            raise InvalidOperationError("Branch must be completed before merging")
        master = self._store.get_master_branch(branch.owner_user_id)
        if master is None:
            raise MasterBranchNotFoundError(f"Master branch not found for user {branch.owner_user_id}")
        commit = Commit(
            branch_id=master.id,
            type=CommitType.MILESTONE,
            message=f"Merged goal: {branch.name}",
        )
        self._store.create_commit(commit)
        LOGGER.info("Merged branch %s into %s", branch.id, master.id)
        return commit

    def branch_statistics(self, branch: Branch) -> BranchStatistics:
        plan = self._store.get_task_plan_for_branch(branch.id)
        total = len(plan.tasks) if plan else 0
        completed = plan.completed_tasks_count if plan else 0
        return BranchStatistics(
            commit_count=self._store.count_commits(branch.id),
            total_tasks=total,
            completed_tasks=completed,
            progress=completed / total if total else 0.0,
            estimated_duration=plan.total_estimated_duration if plan else 0,
        )


__all__ = [
    "BranchManager",
    "BranchStatistics",
    "InvalidOperationError",
    "InvalidTransitionError",
    "MasterBranchNotFoundError",
    "can_transition",
    "transition",
]
