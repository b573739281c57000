# src/todo_reminder/reminders/models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any


class ReminderPolicy(StrEnum):
    """Reminder policy tag; the value is the wire string and the lock key suffix."""

    PRE_DUE = "before30min"
    DUE_NOW = "due"
    OVERDUE = "overdue"


POLICY_MESSAGES: dict[ReminderPolicy, str] = {
    ReminderPolicy.PRE_DUE: "task due in 30 minutes",
    ReminderPolicy.DUE_NOW: "task due now",
    ReminderPolicy.OVERDUE: "task overdue",
}


@dataclass(slots=True, frozen=True)
class Reminder:
    """
    One fired reminder occasion.

    Built fresh on every scan and never persisted: the caller (scheduler log,
    poll response, Matrix notifier) consumes it immediately.
    """

    task_id: int
    title: str
    due_at: datetime | None
    policy: ReminderPolicy
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "taskId": self.task_id,
            "title": self.title,
            "dueTime": self.due_at.isoformat() if self.due_at is not None else None,
            "reminderType": self.policy.value,
            "message": self.message,
        }

    def render_text(self) -> str:
        """Single-line text used by console and chat transports."""
        due = self.due_at.astimezone().strftime("%Y-%m-%d %H:%M") if self.due_at is not None else "-"
        return f"[{self.policy.value}] #{self.task_id} {self.title} (due {due}): {self.message}"
