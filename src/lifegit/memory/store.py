"""Durable storage layer for branches, commits, tags, and task plans."""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import sqlite3
import tempfile
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator, List, Mapping, Optional, Sequence, Type

from ..errors import (
    CreationFailedError,
    DeletionFailedError,
    NotFoundError,
    PersistenceError,
    QueryFailedError,
    UpdateFailedError,
    ValidationError,
)
from .schema import (
    Branch,
    BranchStatus,
    Commit,
    CommitType,
    Tag,
    TagType,
    TaskItem,
    TaskPlan,
    TaskTimeScope,
    utc_now,
)

DEFAULT_DB_PATH = Path("data/lifegit.sqlite")
LOGGER = logging.getLogger(__name__)


def _as_iso(timestamp: datetime) -> str:
    """Serialise a timestamp to a timezone-aware ISO 8601 string."""
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_iso(value: str) -> datetime:
    """Parse an ISO 8601 timestamp produced by `_as_iso`."""
    return datetime.fromisoformat(value)


def _optional_iso(timestamp: Optional[datetime]) -> Optional[str]:
    return _as_iso(timestamp) if timestamp is not None else None


def _optional_from_iso(value: Optional[str]) -> Optional[datetime]:
    return _from_iso(value) if value else None


class MemoryStore:
    """SQLite-backed persistence for the LifeGit runtime."""

    @staticmethod
    def _is_writable(path: Path) -> bool:
        parent = path.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            return False
        if path.exists():
            return os.access(path, os.W_OK)
        return os.access(parent, os.W_OK)

    @staticmethod
    def _fallback_db_path(source: Path) -> Path:
        digest = hashlib.sha1(source.as_posix().encode("utf-8")).hexdigest()[:12]
        fallback_dir = Path(tempfile.gettempdir()) / "lifegit" / "db" / digest
        fallback_dir.mkdir(parents=True, exist_ok=True)
        return fallback_dir / source.name

    @classmethod
    def _resolve_db_path(cls, requested: Path) -> Path:
        resolved = requested.resolve()
        if cls._is_writable(resolved):
            return resolved
        fallback = cls._fallback_db_path(resolved)
        if not fallback.exists():
            if resolved.exists() and os.access(resolved, os.R_OK):
                try:
                    shutil.copy2(resolved, fallback)
                except OSError:
                    fallback.touch(exist_ok=True)
            else:
                fallback.touch(exist_ok=True)
        try:
            fallback.chmod(0o600)
        except OSError:
            pass
        if not cls._is_writable(fallback):
            raise OSError(f"Unable to locate writable database path (attempted {requested})")
        return fallback

    def __init__(self, db_path: Path | str = DEFAULT_DB_PATH) -> None:
        requested_path = Path(db_path)
        self.db_path = self._resolve_db_path(requested_path)
        if self.db_path != requested_path.resolve():
            LOGGER.warning(
                "Database path %s is not writable; using fallback %s",
                requested_path,
                self.db_path,
            )
        self._conn = self._open_connection()
        self._bootstrap()

    def close(self) -> None:
        if getattr(self, "_conn", None) is not None:
            try:
                self._conn.close()
            finally:
                self._conn = None

    def __enter__(self) -> "MemoryStore":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _open_connection(self) -> sqlite3.Connection:
        connection = sqlite3.connect(str(self.db_path))
        connection.row_factory = sqlite3.Row
        connection.execute("PRAGMA foreign_keys = ON")
        return connection

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "MemoryStore":
        paths = config.get("paths") or {}
        db_path = paths.get("db_path")
        if db_path:
            return cls(Path(db_path))

        data_path = paths.get("data") or "data"
        return cls(Path(data_path) / "lifegit.sqlite")

    def _bootstrap(self) -> None:
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS branches (
                id TEXT PRIMARY KEY,
                name TEXT NOT NULL,
                description TEXT NOT NULL,
                status TEXT NOT NULL,
                is_master INTEGER NOT NULL DEFAULT 0,
                owner_user_id TEXT NOT NULL,
                parent_branch_id TEXT,
                expected_completion_date TEXT,
                completed_at TEXT,
                created_at TEXT NOT NULL
            );
            CREATE UNIQUE INDEX IF NOT EXISTS idx_branches_single_master
                ON branches(owner_user_id) WHERE is_master = 1;
            CREATE INDEX IF NOT EXISTS idx_branches_owner_status
                ON branches(owner_user_id, status);

            CREATE TABLE IF NOT EXISTS commits (
                id TEXT PRIMARY KEY,
                branch_id TEXT NOT NULL,
                type TEXT NOT NULL,
                message TEXT NOT NULL,
                related_task_id TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY(branch_id) REFERENCES branches(id) ON DELETE CASCADE
            );
            CREATE INDEX IF NOT EXISTS idx_commits_branch_created
                ON commits(branch_id, created_at DESC);

            CREATE TABLE IF NOT EXISTS tags (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                type TEXT NOT NULL,
                associated_version TEXT,
                is_important INTEGER NOT NULL DEFAULT 0,
                owner_user_id TEXT NOT NULL,
                created_at TEXT NOT NULL
            );
            CREATE INDEX IF NOT EXISTS idx_tags_owner
                ON tags(owner_user_id, created_at DESC);

            CREATE TABLE IF NOT EXISTS task_plans (
                id TEXT PRIMARY KEY,
                branch_id TEXT NOT NULL UNIQUE,
                total_duration TEXT NOT NULL,
                is_ai_generated INTEGER NOT NULL DEFAULT 0,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                FOREIGN KEY(branch_id) REFERENCES branches(id) ON DELETE CASCADE
            );

            CREATE TABLE IF NOT EXISTS task_items (
                id TEXT PRIMARY KEY,
                plan_id TEXT NOT NULL,
                title TEXT NOT NULL,
                description TEXT NOT NULL,
                time_scope TEXT NOT NULL,
                estimated_duration INTEGER NOT NULL DEFAULT 0,
                order_index INTEGER NOT NULL,
                is_completed INTEGER NOT NULL DEFAULT 0,
                completed_at TEXT,
                execution_tips TEXT,
                created_at TEXT NOT NULL,
                FOREIGN KEY(plan_id) REFERENCES task_plans(id) ON DELETE CASCADE
            );
            CREATE INDEX IF NOT EXISTS idx_task_items_plan_order
                ON task_items(plan_id, order_index);
            """
        )
        self._conn.commit()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    @contextmanager
    def _guard(self, error_type: Type[PersistenceError], entity: str) -> Iterator[None]:
        """Translate SQLite failures into the storage error taxonomy."""
        try:
            yield
        except sqlite3.Error as error:
            raise error_type(entity, str(error)) from error

    def _query(self, entity: str, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        with self._guard(QueryFailedError, entity):
            return self._conn.execute(sql, params).fetchall()

    # Branch operations ---------------------------------------------------------------
    def create_branch(self, branch: Branch) -> None:
        with self._guard(CreationFailedError, "branch"), self._transaction():
            self._conn.execute(
                """
                INSERT INTO branches (
                    id, name, description, status, is_master, owner_user_id,
                    parent_branch_id, expected_completion_date, completed_at, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._branch_params(branch),
            )

    def update_branch(self, branch: Branch) -> None:
        with self._guard(UpdateFailedError, "branch"), self._transaction():
            cursor = self._conn.execute(
                """
                UPDATE branches SET
                    name = ?, description = ?, status = ?, is_master = ?,
                    owner_user_id = ?, parent_branch_id = ?,
                    expected_completion_date = ?, completed_at = ?, created_at = ?
                WHERE id = ?
                """,
                (*self._branch_params(branch)[1:], branch.id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError("branch", branch.id)

    def delete_branch(self, branch_id: str) -> None:
        self._delete("branches", "branch", branch_id)

    def get_branch(self, branch_id: str) -> Optional[Branch]:
        rows = self._query("branch", "SELECT * FROM branches WHERE id = ?", (branch_id,))
        return self._row_to_branch(rows[0]) if rows else None

    def list_branches(
        self,
        *,
        owner_user_id: Optional[str] = None,
        status: Optional[BranchStatus] = None,
    ) -> List[Branch]:
        query = "SELECT * FROM branches"
        clauses = []
        params: List[Any] = []
        if owner_user_id:
            clauses.append("owner_user_id = ?")
            params.append(owner_user_id)
        if status is not None:
            clauses.append("status = ?")
            params.append(status.value)
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, rowid DESC"
        return [self._row_to_branch(row) for row in self._query("branch", query, params)]

    def get_master_branch(self, owner_user_id: str) -> Optional[Branch]:
        rows = self._query(
            "branch",
            "SELECT * FROM branches WHERE owner_user_id = ? AND is_master = 1",
            (owner_user_id,),
        )
        return self._row_to_branch(rows[0]) if rows else None

    # Commit operations ---------------------------------------------------------------
    def create_commit(self, commit: Commit) -> None:
        with self._guard(CreationFailedError, "commit"), self._transaction():
            self._conn.execute(
                """
                INSERT INTO commits (id, branch_id, type, message, related_task_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    commit.id,
                    commit.branch_id,
                    commit.type.value,
                    commit.message,
                    commit.related_task_id,
                    _as_iso(commit.created_at),
                ),
            )

    def update_commit(self, commit: Commit) -> None:
        with self._guard(UpdateFailedError, "commit"), self._transaction():
            cursor = self._conn.execute(
                """
                UPDATE commits SET branch_id = ?, type = ?, message = ?, related_task_id = ?
                WHERE id = ?
                """,
                (commit.branch_id, commit.type.value, commit.message, commit.related_task_id, commit.id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError("commit", commit.id)

    def delete_commit(self, commit_id: str) -> None:
        self._delete("commits", "commit", commit_id)

    def get_commit(self, commit_id: str) -> Optional[Commit]:
        rows = self._query("commit", "SELECT * FROM commits WHERE id = ?", (commit_id,))
        return self._row_to_commit(rows[0]) if rows else None

    def list_commits(
        self,
        *,
        branch_id: Optional[str] = None,
        commit_type: Optional[CommitType] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: Optional[int] = None,
    ) -> List[Commit]:
        query = "SELECT * FROM commits"
        clauses = []
        params: List[Any] = []
        if branch_id:
            clauses.append("branch_id = ?")
            params.append(branch_id)
        if commit_type is not None:
            clauses.append("type = ?")
            params.append(commit_type.value)
        if start is not None:
            clauses.append("created_at >= ?")
            params.append(_as_iso(start))
        if end is not None:
            clauses.append("created_at <= ?")
            params.append(_as_iso(end))
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, rowid DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        return [self._row_to_commit(row) for row in self._query("commit", query, params)]

    def search_commits(self, text: str) -> List[Commit]:
        rows = self._query(
            "commit",
            "SELECT * FROM commits WHERE message LIKE ? ORDER BY created_at DESC, rowid DESC",
            (f"%{text}%",),
        )
        return [self._row_to_commit(row) for row in rows]

    def count_commits(self, branch_id: str) -> int:
        rows = self._query("commit", "SELECT COUNT(*) FROM commits WHERE branch_id = ?", (branch_id,))
        return int(rows[0][0])

    # Tag operations ------------------------------------------------------------------
    def create_tag(self, tag: Tag) -> None:
        with self._guard(CreationFailedError, "tag"), self._transaction():
            self._conn.execute(
                """
                INSERT INTO tags (
                    id, title, description, type, associated_version, is_important,
                    owner_user_id, created_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                self._tag_params(tag),
            )

    def update_tag(self, tag: Tag) -> None:
        with self._guard(UpdateFailedError, "tag"), self._transaction():
            cursor = self._conn.execute(
                """
                UPDATE tags SET
                    title = ?, description = ?, type = ?, associated_version = ?,
                    is_important = ?, owner_user_id = ?, created_at = ?
                WHERE id = ?
                """,
                (*self._tag_params(tag)[1:], tag.id),
            )
        if cursor.rowcount == 0:
            raise NotFoundError("tag", tag.id)

    def delete_tag(self, tag_id: str) -> None:
        self._delete("tags", "tag", tag_id)

    def get_tag(self, tag_id: str) -> Optional[Tag]:
        rows = self._query("tag", "SELECT * FROM tags WHERE id = ?", (tag_id,))
        return self._row_to_tag(rows[0]) if rows else None

    def list_tags(
        self,
        *,
        owner_user_id: Optional[str] = None,
        tag_type: Optional[TagType] = None,
        version_associated: Optional[bool] = None,
        text: Optional[str] = None,
    ) -> List[Tag]:
        query = "SELECT * FROM tags"
        clauses = []
        params: List[Any] = []
        if owner_user_id:
            clauses.append("owner_user_id = ?")
            params.append(owner_user_id)
        if tag_type is not None:
            clauses.append("type = ?")
            params.append(tag_type.value)
        if version_associated is True:
            clauses.append("COALESCE(associated_version, '') != ''")
        elif version_associated is False:
            clauses.append("COALESCE(associated_version, '') = ''")
        if text:
            clauses.append("(title LIKE ? OR description LIKE ?)")
            params.extend([f"%{text}%", f"%{text}%"])
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at DESC, rowid DESC"
        return [self._row_to_tag(row) for row in self._query("tag", query, params)]

    # Task plan operations ------------------------------------------------------------
    def create_task_plan(self, plan: TaskPlan) -> None:
        plan.reindex()
        record = plan.model_copy(update={"updated_at": utc_now()})
        with self._guard(CreationFailedError, "task plan"), self._transaction():
            self._conn.execute(
                """
                INSERT INTO task_plans (
                    id, branch_id, total_duration, is_ai_generated, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.branch_id,
                    record.total_duration,
                    int(record.is_ai_generated),
                    _as_iso(record.created_at),
                    _as_iso(record.updated_at),
                ),
            )
            self._write_items(record.id, record.tasks)
        plan.updated_at = record.updated_at

    def update_task_plan(self, plan: TaskPlan) -> None:
        """Persist the plan row and replace its item sequence in one transaction."""
        plan.reindex()
        record = plan.model_copy(update={"updated_at": utc_now()})
        with self._guard(UpdateFailedError, "task plan"), self._transaction():
            cursor = self._conn.execute(
                """
                UPDATE task_plans SET
                    branch_id = ?, total_duration = ?, is_ai_generated = ?, updated_at = ?
                WHERE id = ?
                """,
                (
                    record.branch_id,
                    record.total_duration,
                    int(record.is_ai_generated),
                    _as_iso(record.updated_at),
                    record.id,
                ),
            )
            if cursor.rowcount == 0:
                raise NotFoundError("task plan", plan.id)
            self._conn.execute("DELETE FROM task_items WHERE plan_id = ?", (record.id,))
            self._write_items(record.id, record.tasks)
        plan.updated_at = record.updated_at

    def delete_task_plan(self, plan_id: str) -> None:
        self._delete("task_plans", "task plan", plan_id)

    def get_task_plan(self, plan_id: str) -> Optional[TaskPlan]:
        rows = self._query("task plan", "SELECT * FROM task_plans WHERE id = ?", (plan_id,))
        return self._row_to_plan(rows[0]) if rows else None

    def get_task_plan_for_branch(self, branch_id: str) -> Optional[TaskPlan]:
        rows = self._query("task plan", "SELECT * FROM task_plans WHERE branch_id = ?", (branch_id,))
        return self._row_to_plan(rows[0]) if rows else None

    def list_task_plans(self, *, ai_generated: Optional[bool] = None) -> List[TaskPlan]:
        query = "SELECT * FROM task_plans"
        params: List[Any] = []
        if ai_generated is not None:
            query += " WHERE is_ai_generated = ?"
            params.append(int(ai_generated))
        query += " ORDER BY created_at DESC, rowid DESC"
        return [self._row_to_plan(row) for row in self._query("task plan", query, params)]

    def find_plan_containing_item(self, task_item_id: str) -> Optional[TaskPlan]:
        rows = self._query(
            "task plan",
            """
            SELECT task_plans.* FROM task_plans
            JOIN task_items ON task_items.plan_id = task_plans.id
            WHERE task_items.id = ?
            """,
            (task_item_id,),
        )
        return self._row_to_plan(rows[0]) if rows else None

    def add_task_item(self, plan_id: str, item: TaskItem) -> TaskItem:
        """Append ``item`` to the plan, assigning the next order index."""
        with self._guard(UpdateFailedError, "task plan"), self._transaction():
            if not self._plan_exists(plan_id):
                raise NotFoundError("task plan", plan_id)
            count = self._conn.execute(
                "SELECT COUNT(*) FROM task_items WHERE plan_id = ?", (plan_id,)
            ).fetchone()[0]
            item.order_index = int(count)
            self._write_items(plan_id, [item], start=item.order_index)
            self._touch_plan(plan_id)
        return item

    def remove_task_item(self, plan_id: str, task_item_id: str) -> None:
        """Delete one item and re-densify the remaining order indexes atomically."""
        with self._guard(UpdateFailedError, "task plan"), self._transaction():
            cursor = self._conn.execute(
                "DELETE FROM task_items WHERE id = ? AND plan_id = ?", (task_item_id, plan_id)
            )
            if cursor.rowcount == 0:
                raise NotFoundError("task item", task_item_id)
            remaining = self._conn.execute(
                "SELECT id FROM task_items WHERE plan_id = ? ORDER BY order_index ASC",
                (plan_id,),
            ).fetchall()
            self._conn.executemany(
                "UPDATE task_items SET order_index = ? WHERE id = ?",
                [(index, row["id"]) for index, row in enumerate(remaining)],
            )
            self._touch_plan(plan_id)

    def reorder_task_items(self, plan_id: str, ordered_ids: Sequence[str]) -> None:
        """Assign ``order_index`` from the position of each id in ``ordered_ids``."""
        with self._guard(UpdateFailedError, "task plan"), self._transaction():
            current = {
                row["id"]
                for row in self._conn.execute(
                    "SELECT id FROM task_items WHERE plan_id = ?", (plan_id,)
                ).fetchall()
            }
            if len(ordered_ids) != len(current) or set(ordered_ids) != current:
                raise ValidationError(
                    "Reordered items must be a permutation of the plan's current task items."
                )
            self._conn.executemany(
                "UPDATE task_items SET order_index = ? WHERE id = ?",
                [(index, item_id) for index, item_id in enumerate(ordered_ids)],
            )
            self._touch_plan(plan_id)

    # Helpers -------------------------------------------------------------------------
    def _delete(self, table: str, entity: str, identifier: str) -> None:
        with self._guard(DeletionFailedError, entity), self._transaction():
            cursor = self._conn.execute(f"DELETE FROM {table} WHERE id = ?", (identifier,))
        if cursor.rowcount == 0:
            raise NotFoundError(entity, identifier)

    def _plan_exists(self, plan_id: str) -> bool:
        row = self._conn.execute("SELECT 1 FROM task_plans WHERE id = ?", (plan_id,)).fetchone()
        return row is not None

    def _touch_plan(self, plan_id: str) -> None:
        self._conn.execute(
            "UPDATE task_plans SET updated_at = ? WHERE id = ?",
            (_as_iso(utc_now()), plan_id),
        )

    def _write_items(self, plan_id: str, items: Sequence[TaskItem], *, start: int = 0) -> None:
        self._conn.executemany(
            """
            INSERT INTO task_items (
                id, plan_id, title, description, time_scope, estimated_duration,
                order_index, is_completed, completed_at, execution_tips, created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    item.id,
                    plan_id,
                    item.title,
                    item.description,
                    item.time_scope.value,
                    item.estimated_duration,
                    start + offset,
                    int(item.is_completed),
                    _optional_iso(item.completed_at),
                    item.execution_tips,
                    _as_iso(item.created_at),
                )
                for offset, item in enumerate(items)
            ],
        )

    @staticmethod
    def _branch_params(branch: Branch) -> tuple:
        return (
            branch.id,
            branch.name,
            branch.description,
            branch.status.value,
            int(branch.is_master),
            branch.owner_user_id,
            branch.parent_branch_id,
            _optional_iso(branch.expected_completion_date),
            _optional_iso(branch.completed_at),
            _as_iso(branch.created_at),
        )

    @staticmethod
    def _tag_params(tag: Tag) -> tuple:
        return (
            tag.id,
            tag.title,
            tag.description,
            tag.type.value,
            tag.associated_version,
            int(tag.is_important),
            tag.owner_user_id,
            _as_iso(tag.created_at),
        )

    def _row_to_branch(self, row: sqlite3.Row) -> Branch:
        return Branch(
            id=row["id"],
            name=row["name"],
            description=row["description"],
            status=BranchStatus(row["status"]),
            is_master=bool(row["is_master"]),
            owner_user_id=row["owner_user_id"],
            parent_branch_id=row["parent_branch_id"],
            expected_completion_date=_optional_from_iso(row["expected_completion_date"]),
            completed_at=_optional_from_iso(row["completed_at"]),
            created_at=_from_iso(row["created_at"]),
        )

    def _row_to_commit(self, row: sqlite3.Row) -> Commit:
        return Commit(
            id=row["id"],
            branch_id=row["branch_id"],
            type=CommitType(row["type"]),
            message=row["message"],
            related_task_id=row["related_task_id"],
            created_at=_from_iso(row["created_at"]),
        )

    def _row_to_tag(self, row: sqlite3.Row) -> Tag:
        return Tag(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            type=TagType(row["type"]),
            associated_version=row["associated_version"],
            is_important=bool(row["is_important"]),
            owner_user_id=row["owner_user_id"],
            created_at=_from_iso(row["created_at"]),
        )

    def _row_to_plan(self, row: sqlite3.Row) -> TaskPlan:
        items = self._query(
            "task plan",
            "SELECT * FROM task_items WHERE plan_id = ? ORDER BY order_index ASC",
            (row["id"],),
        )
        return TaskPlan(
            id=row["id"],
            branch_id=row["branch_id"],
            total_duration=row["total_duration"],
            is_ai_generated=bool(row["is_ai_generated"]),
            tasks=[self._row_to_item(item) for item in items],
            created_at=_from_iso(row["created_at"]),
            updated_at=_from_iso(row["updated_at"]),
        )

    def _row_to_item(self, row: sqlite3.Row) -> TaskItem:
        return TaskItem(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            time_scope=TaskTimeScope(row["time_scope"]),
            estimated_duration=row["estimated_duration"],
            order_index=row["order_index"],
            is_completed=bool(row["is_completed"]),
            completed_at=_optional_from_iso(row["completed_at"]),
            execution_tips=row["execution_tips"],
            created_at=_from_iso(row["created_at"]),
        )
