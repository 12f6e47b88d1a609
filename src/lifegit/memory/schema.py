"""Typed records tracked by the LifeGit memory store."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def utc_now() -> datetime:
    """Return a timezone-aware UTC timestamp."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Return a fresh random identifier for a record."""
    return str(uuid.uuid4())


class RecordModel(BaseModel):
    """Base Pydantic model with strict field handling."""

    model_config = ConfigDict(extra="forbid", frozen=False, validate_assignment=True)


class BranchStatus(str, Enum):
    """Lifecycle states for a goal branch."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class CommitCategory(str, Enum):
    """Analytics grouping for commit types."""

    ACHIEVEMENT = "achievement"
    LEARNING = "learning"
    PERSONAL = "personal"
    LIFESTYLE = "lifestyle"
    SOCIAL = "social"
    EXPERIENCE = "experience"
    PROFESSIONAL = "professional"
    GROWTH = "growth"
    OTHER = "other"


class CommitType(str, Enum):
    """Kinds of progress records a user can commit to a branch."""

    TASK_COMPLETE = "task_complete"
    LEARNING = "learning"
    REFLECTION = "reflection"
    MILESTONE = "milestone"
    HABIT = "habit"
    EXERCISE = "exercise"
    READING = "reading"
    CREATIVITY = "creativity"
    SOCIAL = "social"
    HEALTH = "health"
    FINANCE = "finance"
    CAREER = "career"
    RELATIONSHIP = "relationship"
    TRAVEL = "travel"
    SKILL = "skill"
    PROJECT = "project"
    IDEA = "idea"
    CHALLENGE = "challenge"
    GRATITUDE = "gratitude"
    CUSTOM = "custom"

    @property
    def category(self) -> CommitCategory:
        return COMMIT_CATEGORIES[self]


COMMIT_CATEGORIES: dict[CommitType, CommitCategory] = {
    CommitType.TASK_COMPLETE: CommitCategory.ACHIEVEMENT,
    CommitType.MILESTONE: CommitCategory.ACHIEVEMENT,
    CommitType.PROJECT: CommitCategory.ACHIEVEMENT,
    CommitType.LEARNING: CommitCategory.LEARNING,
    CommitType.READING: CommitCategory.LEARNING,
    CommitType.SKILL: CommitCategory.LEARNING,
    CommitType.REFLECTION: CommitCategory.PERSONAL,
    CommitType.IDEA: CommitCategory.PERSONAL,
    CommitType.GRATITUDE: CommitCategory.PERSONAL,
    CommitType.HABIT: CommitCategory.LIFESTYLE,
    CommitType.EXERCISE: CommitCategory.LIFESTYLE,
    CommitType.HEALTH: CommitCategory.LIFESTYLE,
    CommitType.SOCIAL: CommitCategory.SOCIAL,
    CommitType.RELATIONSHIP: CommitCategory.SOCIAL,
    CommitType.CREATIVITY: CommitCategory.EXPERIENCE,
    CommitType.TRAVEL: CommitCategory.EXPERIENCE,
    CommitType.FINANCE: CommitCategory.PROFESSIONAL,
    CommitType.CAREER: CommitCategory.PROFESSIONAL,
    CommitType.CHALLENGE: CommitCategory.GROWTH,
    CommitType.CUSTOM: CommitCategory.OTHER,
}


class TagType(str, Enum):
    """Kinds of life milestones a tag can mark."""

    MILESTONE = "milestone"
    BIRTHDAY = "birthday"
    CAREER = "career"
    RELATIONSHIP = "relationship"
    EDUCATION = "education"
    ACHIEVEMENT = "achievement"


class TaskTimeScope(str, Enum):
    """Cadence at which a task item is expected to be worked on."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Branch(RecordModel):
    """A tracked long-term goal."""

    id: str = Field(default_factory=new_id)
    name: str
    description: str = ""
    status: BranchStatus = BranchStatus.ACTIVE
    is_master: bool = False
    owner_user_id: str
    parent_branch_id: Optional[str] = None
    expected_completion_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=utc_now)


class Commit(RecordModel):
    """Timestamped, typed progress record attached to a branch."""

    id: str = Field(default_factory=new_id)
    branch_id: str
    type: CommitType
    message: str
    related_task_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def category(self) -> CommitCategory:
        return self.type.category


class Tag(RecordModel):
    """Labeled milestone marker, optionally tied to a life version."""

    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    type: TagType
    associated_version: Optional[str] = None
    is_important: bool = False
    owner_user_id: str
    created_at: datetime = Field(default_factory=utc_now)

    @property
    def is_version_associated(self) -> bool:
        return bool(self.associated_version)


class TaskItem(RecordModel):
    """One actionable step inside a task plan."""

    id: str = Field(default_factory=new_id)
    title: str
    description: str = ""
    time_scope: TaskTimeScope = TaskTimeScope.DAILY
    estimated_duration: int = Field(default=0, ge=0)
    order_index: int = 0
    is_completed: bool = False
    completed_at: Optional[datetime] = None
    execution_tips: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)

    @model_validator(mode="after")
    def _sync_completion(self) -> "TaskItem":
        # is_completed and completed_at always agree; is_completed wins.
        if self.is_completed and self.completed_at is None:
            self.completed_at = utc_now()
        elif not self.is_completed and self.completed_at is not None:
            self.completed_at = None
        return self

    def mark_completed(self, when: Optional[datetime] = None) -> None:
        self.is_completed = True
        self.completed_at = when or utc_now()

    def mark_incomplete(self) -> None:
        self.is_completed = False
        self.completed_at = None


class TaskPlan(RecordModel):
    """Ordered decomposition of a branch goal into task items."""

    id: str = Field(default_factory=new_id)
    branch_id: str
    total_duration: str = ""
    is_ai_generated: bool = False
    tasks: List[TaskItem] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def completed_tasks_count(self) -> int:
        return sum(1 for task in self.tasks if task.is_completed)

    @property
    def total_estimated_duration(self) -> int:
        return sum(task.estimated_duration for task in self.tasks)

    def find_task(self, task_item_id: str) -> Optional[TaskItem]:
        for task in self.tasks:
            if task.id == task_item_id:
                return task
        return None

    def reindex(self) -> None:
        """Rewrite ``order_index`` so it matches each task's position."""
        for index, task in enumerate(self.tasks):
            task.order_index = index
