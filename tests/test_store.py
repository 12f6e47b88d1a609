from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone

import pytest

from lifegit.errors import CreationFailedError, NotFoundError
from lifegit.memory.schema import (
    Branch,
    BranchStatus,
    Commit,
    CommitType,
    Tag,
    TagType,
    TaskItem,
    TaskPlan,
)
from lifegit.memory.store import MemoryStore


def _plan(branch_id: str, *, ai: bool = True, titles: tuple[str, ...] = ("one", "two")) -> TaskPlan:
    return TaskPlan(
        branch_id=branch_id,
        total_duration="2 weeks",
        is_ai_generated=ai,
        tasks=[TaskItem(title=title, estimated_duration=10) for title in titles],
    )


def test_branch_roundtrip_and_status_filter(store: MemoryStore, goal_branch: Branch) -> None:
    loaded = store.get_branch(goal_branch.id)
    assert loaded is not None
    assert loaded.name == "Learn Spanish"
    assert loaded.created_at.tzinfo is not None

    goal_branch.status = BranchStatus.ABANDONED
    store.update_branch(goal_branch)

    abandoned = store.list_branches(owner_user_id="user-1", status=BranchStatus.ABANDONED)
    assert [branch.id for branch in abandoned] == [goal_branch.id]
    assert store.get_master_branch("user-1") is not None
    assert store.get_master_branch("someone-else") is None


def test_second_master_branch_is_rejected(store: MemoryStore, goal_branch: Branch) -> None:
    duplicate = Branch(name="master", is_master=True, owner_user_id="user-1")
    with pytest.raises(CreationFailedError) as excinfo:
        store.create_branch(duplicate)
    assert isinstance(excinfo.value.__cause__, sqlite3.IntegrityError)


def test_update_and_delete_missing_records_raise_not_found(store: MemoryStore) -> None:
    ghost = Branch(name="ghost", owner_user_id="user-1")
    with pytest.raises(NotFoundError):
        store.update_branch(ghost)
    with pytest.raises(NotFoundError):
        store.delete_commit("missing")


def test_deleting_branch_cascades_to_plan_items_and_commits(
    store: MemoryStore, goal_branch: Branch
) -> None:
    plan = _plan(goal_branch.id)
    store.create_task_plan(plan)
    store.create_commit(Commit(branch_id=goal_branch.id, type=CommitType.LEARNING, message="Lesson 1"))

    store.delete_branch(goal_branch.id)

    assert store.get_task_plan(plan.id) is None
    assert store.find_plan_containing_item(plan.tasks[0].id) is None
    assert store.count_commits(goal_branch.id) == 0


def test_task_plan_roundtrip_keeps_item_order(store: MemoryStore, goal_branch: Branch) -> None:
    plan = _plan(goal_branch.id, titles=("first", "second", "third"))
    store.create_task_plan(plan)

    loaded = store.get_task_plan_for_branch(goal_branch.id)
    assert loaded is not None
    assert [task.title for task in loaded.tasks] == ["first", "second", "third"]
    assert [task.order_index for task in loaded.tasks] == [0, 1, 2]

    container = store.find_plan_containing_item(plan.tasks[1].id)
    assert container is not None and container.id == plan.id


def test_completion_flag_and_timestamp_stay_in_step(store: MemoryStore, goal_branch: Branch) -> None:
    done = TaskItem(title="done", is_completed=True)
    assert done.completed_at is not None
    stray = TaskItem(title="stray", completed_at=datetime(2026, 1, 5, tzinfo=timezone.utc))
    assert stray.completed_at is None

    store.create_task_plan(TaskPlan(branch_id=goal_branch.id, tasks=[done, stray]))
    loaded = store.get_task_plan_for_branch(goal_branch.id)
    assert [(task.is_completed, task.completed_at is not None) for task in loaded.tasks] == [
        (True, True),
        (False, False),
    ]

    item = loaded.tasks[1]
    item.is_completed = True
    assert item.completed_at is not None
    item.is_completed = False
    assert item.completed_at is None


def test_one_plan_per_branch(store: MemoryStore, goal_branch: Branch) -> None:
    store.create_task_plan(_plan(goal_branch.id))
    with pytest.raises(CreationFailedError):
        store.create_task_plan(_plan(goal_branch.id))


def test_list_task_plans_by_origin(store: MemoryStore, goal_branch: Branch) -> None:
    other = Branch(name="Run a marathon", owner_user_id="user-1")
    store.create_branch(other)
    ai_plan = _plan(goal_branch.id, ai=True)
    manual_plan = _plan(other.id, ai=False)
    store.create_task_plan(ai_plan)
    store.create_task_plan(manual_plan)

    assert [plan.id for plan in store.list_task_plans(ai_generated=True)] == [ai_plan.id]
    assert [plan.id for plan in store.list_task_plans(ai_generated=False)] == [manual_plan.id]
    assert len(store.list_task_plans()) == 2


def test_commit_queries(store: MemoryStore, goal_branch: Branch) -> None:
    base = datetime(2024, 5, 1, 9, 0, tzinfo=timezone.utc)
    for offset, (commit_type, message) in enumerate(
        [
            (CommitType.LEARNING, "Finished unit 1"),
            (CommitType.HABIT, "Practised vocabulary"),
            (CommitType.LEARNING, "Finished unit 2"),
        ]
    ):
        store.create_commit(
            Commit(
                branch_id=goal_branch.id,
                type=commit_type,
                message=message,
                created_at=base + timedelta(days=offset),
            )
        )

    newest_first = store.list_commits(branch_id=goal_branch.id)
    assert [commit.message for commit in newest_first] == [
        "Finished unit 2",
        "Practised vocabulary",
        "Finished unit 1",
    ]
    learning = store.list_commits(branch_id=goal_branch.id, commit_type=CommitType.LEARNING)
    assert len(learning) == 2
    window = store.list_commits(start=base + timedelta(hours=12), end=base + timedelta(days=1, hours=12))
    assert [commit.message for commit in window] == ["Practised vocabulary"]
    assert len(store.list_commits(limit=1)) == 1
    assert [commit.message for commit in store.search_commits("unit")] == [
        "Finished unit 2",
        "Finished unit 1",
    ]
    assert store.count_commits(goal_branch.id) == 3


def test_tag_filters(store: MemoryStore) -> None:
    graduation = Tag(
        title="Graduated",
        type=TagType.EDUCATION,
        associated_version="v2.0",
        owner_user_id="user-1",
    )
    promotion = Tag(title="Promotion", description="Team lead", type=TagType.CAREER, owner_user_id="user-1")
    store.create_tag(graduation)
    store.create_tag(promotion)

    assert [tag.id for tag in store.list_tags(owner_user_id="user-1", version_associated=True)] == [
        graduation.id
    ]
    assert [tag.id for tag in store.list_tags(owner_user_id="user-1", version_associated=False)] == [
        promotion.id
    ]
    assert [tag.id for tag in store.list_tags(tag_type=TagType.CAREER)] == [promotion.id]
    assert [tag.id for tag in store.list_tags(text="team")] == [promotion.id]
    assert graduation.is_version_associated
    assert not promotion.is_version_associated
