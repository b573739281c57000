# src/todo_reminder/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Only OPEN tasks are eligible for reminders.
    """

    OPEN = "open"
    DONE = "done"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.OPEN
        try:
            return cls(raw)
        except Exception:
            return cls.OPEN


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def from_db(cls, raw: str | None) -> Priority:
        if not raw:
            return cls.MEDIUM
        try:
            return cls(raw)
        except Exception:
            return cls.MEDIUM


@dataclass(slots=True)
class Task:
    id: int
    title: str
    status: TaskStatus
    # None means "no deadline": never reminded.
    due_at: datetime | None

    description: str = ""
    priority: Priority = Priority.MEDIUM
    created_at: datetime | None = None
    updated_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def is_open(self) -> bool:
        return self.status == TaskStatus.OPEN
