"""Goal version model: branches, commits and tags."""

from .branches import (
    BranchManager,
    BranchStatistics,
    InvalidOperationError,
    InvalidTransitionError,
    MasterBranchNotFoundError,
    can_transition,
    transition,
)
from .commits import CommitManager, CommitStatistics, recommend_commit_types
from .tags import TagManager

__all__ = [
    "BranchManager",
    "BranchStatistics",
    "CommitManager",
    "CommitStatistics",
    "InvalidOperationError",
    "InvalidTransitionError",
    "MasterBranchNotFoundError",
    "TagManager",
    "can_transition",
    "recommend_commit_types",
    "transition",
]
