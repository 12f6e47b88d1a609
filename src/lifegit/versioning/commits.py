"""Commit recording, statistics and type recommendation."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

from ..errors import NotFoundError, ValidationError
from ..memory.schema import Commit, CommitCategory, CommitType, utc_now
from ..memory.store import MemoryStore

LOGGER = logging.getLogger(__name__)

DEFAULT_RECOMMENDATIONS = (
    CommitType.TASK_COMPLETE,
    CommitType.LEARNING,
    CommitType.REFLECTION,
    CommitType.MILESTONE,
)
TOP_FREQUENT = 6
MAX_RECOMMENDATIONS = 8
RECENT_WINDOW_DAYS = 30

QUICK_MESSAGES: Dict[CommitType, str] = {
    CommitType.TASK_COMPLETE: "Completed a task",
    CommitType.LEARNING: "Learned something new",
    CommitType.REFLECTION: "Wrote down some thoughts",
    CommitType.MILESTONE: "Reached a milestone",
}

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")


def _as_utc(moment: Optional[datetime]) -> datetime:
    """Return ``moment`` as an aware UTC timestamp; naive values are taken as UTC."""
    if moment is None:
        return utc_now()
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def recommend_commit_types(recent_commits: Iterable[Commit]) -> List[CommitType]:
    """Rank the most used types first, then fill with the defaults.

    Ties keep the order in which each type first appears in ``recent_commits``.
    """
    counts = Counter(commit.type for commit in recent_commits)
    # Counter preserves insertion order and sorted() is stable.
    ranked = sorted(counts, key=lambda commit_type: counts[commit_type], reverse=True)
    recommended = ranked[:TOP_FREQUENT]
    for commit_type in DEFAULT_RECOMMENDATIONS:
        if commit_type not in recommended:
            recommended.append(commit_type)
    return recommended[:MAX_RECOMMENDATIONS]


@dataclass(slots=True)
class CommitStatistics:
    total_commits: int = 0
    by_type: Dict[CommitType, int] = field(default_factory=dict)
    by_category: Dict[CommitCategory, int] = field(default_factory=dict)
    commit_frequency: float = 0.0
    most_active_day: Optional[str] = None
    first_commit_date: Optional[datetime] = None
    last_commit_date: Optional[datetime] = None


class CommitManager:
    def __init__(self, store: MemoryStore) -> None:
        self._store = store

    def create_commit(
        self,
        branch_id: str,
        commit_type: CommitType,
        message: str,
        *,
        related_task_id: Optional[str] = None,
    ) -> Commit:
        if not message.strip():
            raise ValidationError("Commit message must not be empty")
        if self._store.get_branch(branch_id) is None:
            raise NotFoundError("branch", branch_id)
        commit = Commit(
            branch_id=branch_id,
            type=commit_type,
            message=message.strip(),
            related_task_id=related_task_id,
        )
        self._store.create_commit(commit)
        LOGGER.debug("Recorded %s commit %s on branch %s", commit_type.value, commit.id, branch_id)
        return commit

    def create_quick_commit(
        self, branch_id: str, commit_type: CommitType, message: Optional[str] = None
    ) -> Commit:
        text = message or QUICK_MESSAGES.get(commit_type, f"Recorded {commit_type.value.replace('_', ' ')}")
        return self.create_commit(branch_id, commit_type, text)

    def recent_commits(self, limit: int = 20, *, branch_id: Optional[str] = None) -> List[Commit]:
        return self._store.list_commits(branch_id=branch_id, limit=limit)

    def search(self, text: str) -> List[Commit]:
        if not text.strip():
            return self._store.list_commits()
        return self._store.search_commits(text.strip())

    def commit_statistics(self, branch_id: str, *, now: Optional[datetime] = None) -> CommitStatistics:
        commits = self._store.list_commits(branch_id=branch_id)
        if not commits:
            return CommitStatistics()
        window_start = _as_utc(now) - timedelta(days=RECENT_WINDOW_DAYS)
        recent = [commit for commit in commits if commit.created_at >= window_start]
        weekdays = Counter(commit.created_at.weekday() for commit in commits)
        busiest = max(weekdays.items(), key=lambda entry: entry[1])[0]
        return CommitStatistics(
            total_commits=len(commits),
            by_type=dict(Counter(commit.type for commit in commits)),
            by_category=dict(Counter(commit.category for commit in commits)),
            commit_frequency=len(recent) / RECENT_WINDOW_DAYS,
            most_active_day=WEEKDAYS[busiest],
            # Listing is newest first.
            first_commit_date=commits[-1].created_at,
            last_commit_date=commits[0].created_at,
        )

    def commit_streak(self, branch_id: str, *, today: Optional[date] = None) -> int:
        """Count consecutive days with at least one commit, ending ``today``."""
        days = {commit.created_at.date() for commit in self._store.list_commits(branch_id=branch_id)}
        current = today or utc_now().date()
        streak = 0
        while current in days:
            streak += 1
            current -= timedelta(days=1)
        return streak

    def recommended_types(
        self, branch_id: Optional[str] = None, *, now: Optional[datetime] = None
    ) -> List[CommitType]:
        start = _as_utc(now) - timedelta(days=RECENT_WINDOW_DAYS)
        return recommend_commit_types(self._store.list_commits(branch_id=branch_id, start=start))


__all__ = [
    "CommitManager",
    "CommitStatistics",
    "DEFAULT_RECOMMENDATIONS",
    "QUICK_MESSAGES",
    "recommend_commit_types",
]
