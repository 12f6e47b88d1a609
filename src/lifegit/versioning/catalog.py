"""Static display metadata for commit types, categories, tags, branch states and scopes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from ..memory.schema import BranchStatus, CommitCategory, CommitType, TagType, TaskTimeScope


@dataclass(slots=True, frozen=True)
class CommitTypeInfo:
    emoji: str
    color: str
    display_name: str
    description: str
    category: CommitCategory


@dataclass(slots=True, frozen=True)
class DisplayInfo:
    emoji: str
    display_name: str
    color: str = "gray"


def _commit(emoji: str, color: str, name: str, description: str, commit_type: CommitType) -> CommitTypeInfo:
    return CommitTypeInfo(emoji, color, name, description, commit_type.category)


COMMIT_TYPE_CATALOG: Dict[CommitType, CommitTypeInfo] = {
    CommitType.TASK_COMPLETE: _commit("✅", "green", "Task complete", "Completed tasks and goals", CommitType.TASK_COMPLETE),
    CommitType.LEARNING: _commit("📚", "blue", "Learning", "Learning progress and takeaways", CommitType.LEARNING),
    CommitType.REFLECTION: _commit("🌟", "purple", "Reflection", "Thoughts and insights about life", CommitType.REFLECTION),
    CommitType.MILESTONE: _commit("🏆", "orange", "Milestone", "Important life moments", CommitType.MILESTONE),
    CommitType.HABIT: _commit("🔄", "cyan", "Habit", "Building and keeping habits", CommitType.HABIT),
    CommitType.EXERCISE: _commit("💪", "red", "Exercise", "Workouts and physical activity", CommitType.EXERCISE),
    CommitType.READING: _commit("📖", "brown", "Reading", "Reading notes and impressions", CommitType.READING),
    CommitType.CREATIVITY: _commit("🎨", "pink", "Creativity", "Creative ideas and works", CommitType.CREATIVITY),
    CommitType.SOCIAL: _commit("👥", "yellow", "Social", "Social activities and gatherings", CommitType.SOCIAL),
    CommitType.HEALTH: _commit("🏥", "mint", "Health", "Health and medical care", CommitType.HEALTH),
    CommitType.FINANCE: _commit("💰", "green", "Finance", "Money management and investing", CommitType.FINANCE),
    CommitType.CAREER: _commit("💼", "indigo", "Career", "Work and career development", CommitType.CAREER),
    CommitType.RELATIONSHIP: _commit("💑", "pink", "Relationship", "How relationships develop", CommitType.RELATIONSHIP),
    CommitType.TRAVEL: _commit("✈️", "teal", "Travel", "Trips and experiences", CommitType.TRAVEL),
    CommitType.SKILL: _commit("🛠️", "blue", "Skill", "Practising and learning skills", CommitType.SKILL),
    CommitType.PROJECT: _commit("📋", "gray", "Project", "Project progress and results", CommitType.PROJECT),
    CommitType.IDEA: _commit("💡", "yellow", "Idea", "Inspiration and ideas", CommitType.IDEA),
    CommitType.CHALLENGE: _commit("⚡", "red", "Challenge", "Overcoming difficulties", CommitType.CHALLENGE),
    CommitType.GRATITUDE: _commit("🙏", "purple", "Gratitude", "Things to be thankful for", CommitType.GRATITUDE),
    CommitType.CUSTOM: _commit("⭐", "secondary", "Custom", "Commit with a custom type", CommitType.CUSTOM),
}

CATEGORY_CATALOG: Dict[CommitCategory, DisplayInfo] = {
    CommitCategory.ACHIEVEMENT: DisplayInfo("🏆", "Achievement", "orange"),
    CommitCategory.LEARNING: DisplayInfo("📚", "Learning", "blue"),
    CommitCategory.PERSONAL: DisplayInfo("🌟", "Personal", "purple"),
    CommitCategory.LIFESTYLE: DisplayInfo("🌱", "Lifestyle", "green"),
    CommitCategory.SOCIAL: DisplayInfo("👥", "Social", "yellow"),
    CommitCategory.EXPERIENCE: DisplayInfo("🎨", "Experience", "pink"),
    CommitCategory.PROFESSIONAL: DisplayInfo("💼", "Professional", "indigo"),
    CommitCategory.GROWTH: DisplayInfo("⚡", "Growth", "red"),
    CommitCategory.OTHER: DisplayInfo("📝", "Other", "gray"),
}

TAG_TYPE_CATALOG: Dict[TagType, DisplayInfo] = {
    TagType.MILESTONE: DisplayInfo("🎯", "Milestone", "orange"),
    TagType.BIRTHDAY: DisplayInfo("🎂", "Birthday", "pink"),
    TagType.CAREER: DisplayInfo("💼", "Career", "blue"),
    TagType.RELATIONSHIP: DisplayInfo("💑", "Relationship", "red"),
    TagType.EDUCATION: DisplayInfo("🎓", "Education", "green"),
    TagType.ACHIEVEMENT: DisplayInfo("🏆", "Achievement", "yellow"),
}

BRANCH_STATUS_CATALOG: Dict[BranchStatus, DisplayInfo] = {
    BranchStatus.ACTIVE: DisplayInfo("🔵", "Active", "blue"),
    BranchStatus.COMPLETED: DisplayInfo("✅", "Completed", "green"),
    BranchStatus.ABANDONED: DisplayInfo("❌", "Abandoned", "red"),
}

MASTER_BRANCH_DISPLAY = DisplayInfo("🏠", "Master", "purple")

TIME_SCOPE_CATALOG: Dict[TaskTimeScope, DisplayInfo] = {
    TaskTimeScope.DAILY: DisplayInfo("📅", "Daily"),
    TaskTimeScope.WEEKLY: DisplayInfo("📆", "Weekly"),
    TaskTimeScope.MONTHLY: DisplayInfo("🗓️", "Monthly"),
}


def commit_label(commit_type: CommitType) -> str:
    info = COMMIT_TYPE_CATALOG[commit_type]
    return f"{info.emoji} {info.display_name}"


__all__ = [
    "BRANCH_STATUS_CATALOG",
    "CATEGORY_CATALOG",
    "COMMIT_TYPE_CATALOG",
    "CommitTypeInfo",
    "DisplayInfo",
    "MASTER_BRANCH_DISPLAY",
    "TAG_TYPE_CATALOG",
    "TIME_SCOPE_CATALOG",
    "commit_label",
]
