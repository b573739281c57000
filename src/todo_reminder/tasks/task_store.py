# src/todo_reminder/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from .task_models import Priority, Task, TaskStatus

logger = logging.getLogger(__name__)

TITLE_MAX_LEN = 50
DESCRIPTION_MAX_LEN = 500


class TaskNotFoundError(LookupError):
    """Raised when a task id does not exist."""

    def __init__(self, task_id: int) -> None:
        super().__init__(f"task {task_id} not found")
        self.task_id = task_id


def _to_ts(dt: datetime | None) -> float | None:
    # Naive datetimes are taken as UTC.
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.timestamp()


def _from_ts(ts: Any) -> datetime | None:
    if ts is None:
        return None
    return datetime.fromtimestamp(float(ts), tz=UTC)


class TaskStore:
    """
    SQLite task store.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Times are stored as POSIX timestamps (REAL, UTC).

    Thread-safety:
    - each method opens its own SQLite connection, so the reminder loop thread
      and the console thread can share one instance.
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'open',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    due_at REAL,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    finished_at REAL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("priority", "TEXT NOT NULL DEFAULT 'medium'")
            add_col("finished_at", "REAL")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status_due ON tasks(status, due_at)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            title=str(row["title"] or ""),
            status=TaskStatus.from_db(row["status"]),
            due_at=_from_ts(row["due_at"]),
            description=str(row["description"] or ""),
            priority=Priority.from_db(row["priority"]),
            created_at=_from_ts(row["created_at"]),
            updated_at=_from_ts(row["updated_at"]),
            finished_at=_from_ts(row["finished_at"]),
        )

    @staticmethod
    def _clean_title(title: str) -> str:
        title = (title or "").strip()
        if not title:
            raise ValueError("title is required")
        if len(title) > TITLE_MAX_LEN:
            raise ValueError(f"title must be at most {TITLE_MAX_LEN} characters")
        return title

    @staticmethod
    def _clean_description(description: str | None) -> str:
        description = (description or "").strip()
        if len(description) > DESCRIPTION_MAX_LEN:
            raise ValueError(f"description must be at most {DESCRIPTION_MAX_LEN} characters")
        return description

    # ---- CRUD ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def add_task(
        self,
        *,
        title: str,
        description: str = "",
        due_at: datetime | None = None,
        priority: Priority | None = None,
    ) -> int:
        title = self._clean_title(title)
        description = self._clean_description(description)
        priority = priority or Priority.MEDIUM

        now = time.time()
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(title, description, status, priority, due_at, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    title,
                    description,
                    TaskStatus.OPEN.value,
                    priority.value,
                    _to_ts(due_at),
                    now,
                    now,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug("Task added id=%s priority=%s due_at=%s", task_id, priority.value, due_at)
            return task_id
        finally:
            conn.close()

    def get_task(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def update_task(
        self,
        task_id: int,
        *,
        title: str,
        description: str = "",
        due_at: datetime | None = None,
        priority: Priority | None = None,
    ) -> Task:
        """Full update: title/description/due_at are replaced, priority kept when None."""
        title = self._clean_title(title)
        description = self._clean_description(description)

        fields = ["title = ?", "description = ?", "due_at = ?"]
        params: list[Any] = [title, description, _to_ts(due_at)]
        if priority is not None:
            fields.append("priority = ?")
            params.append(priority.value)
        fields.append("updated_at = ?")
        params.append(time.time())
        params.append(int(task_id))

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
            if cur.rowcount != 1:
                raise TaskNotFoundError(task_id)
        finally:
            conn.close()

        task = self.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def set_status(self, task_id: int, status: TaskStatus) -> None:
        """Mark a task open/done; finished_at is set on done and cleared on reopen."""
        now = time.time()
        finished_at = now if status == TaskStatus.DONE else None

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "UPDATE tasks SET status = ?, finished_at = ?, updated_at = ? WHERE id = ?",
                (status.value, finished_at, now, int(task_id)),
            )
            conn.commit()
            if cur.rowcount != 1:
                raise TaskNotFoundError(task_id)
        finally:
            conn.close()

    def delete_task(self, task_id: int) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            if cur.rowcount != 1:
                raise TaskNotFoundError(task_id)
        finally:
            conn.close()

    def list_tasks(self, *, status: TaskStatus | None = None, limit: int = 50) -> list[Task]:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if status is None:
                cur.execute("SELECT * FROM tasks ORDER BY id ASC LIMIT ?", (int(limit),))
            else:
                cur.execute(
                    "SELECT * FROM tasks WHERE status = ? ORDER BY id ASC LIMIT ?",
                    (status.value, int(limit)),
                )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    # ---- reminder read port ----

    def find_open_tasks_due_between(self, start: datetime, end: datetime) -> list[Task]:
        """Open tasks with start <= due_at <= end (inclusive), earliest first."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM tasks
                WHERE status = 'open'
                  AND due_at IS NOT NULL
                  AND due_at BETWEEN ? AND ?
                ORDER BY due_at ASC, id ASC
                """,
                (_to_ts(start), _to_ts(end)),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def find_open_tasks_overdue_before(self, now: datetime) -> list[Task]:
        """Open tasks whose due_at is strictly before now, earliest first."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM tasks
                WHERE status = 'open'
                  AND due_at IS NOT NULL
                  AND due_at < ?
                ORDER BY due_at ASC, id ASC
                """,
                (_to_ts(now),),
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()
