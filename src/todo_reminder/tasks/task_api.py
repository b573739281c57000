# src/todo_reminder/tasks/task_api.py

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from ..core.state import AppState
from .task_models import Priority, Task, TaskStatus
from .task_store import TaskNotFoundError

logger = logging.getLogger(__name__)


def _due_at(due_in_minutes: int | None, now: datetime | None) -> datetime | None:
    if due_in_minutes is None:
        return None
    base = now or datetime.now(UTC)
    # Whole minutes, so the task lines up with top-of-minute scans.
    base = base.replace(second=0, microsecond=0)
    return base + timedelta(minutes=max(0, int(due_in_minutes)))


def schedule_task(
    state: AppState,
    *,
    title: str,
    due_in_minutes: int | None,
    description: str = "",
    priority: Priority = Priority.MEDIUM,
    now: datetime | None = None,
) -> int:
    """
    Convenience helper: create an open task due N minutes from now.
    due_in_minutes=None creates a task without a deadline (never reminded).
    """
    due_at = _due_at(due_in_minutes, now)
    task_id = state.task_store.add_task(
        title=title,
        description=description,
        due_at=due_at,
        priority=priority,
    )
    logger.info("Scheduled task id=%s due_at=%s", task_id, due_at)
    return task_id


def complete_task(state: AppState, task_id: int) -> None:
    """Mark done; done tasks drop out of every reminder policy on the next scan."""
    state.task_store.set_status(task_id, TaskStatus.DONE)
    logger.info("Task %s -> done", task_id)


def reopen_task(state: AppState, task_id: int) -> None:
    state.task_store.set_status(task_id, TaskStatus.OPEN)
    logger.info("Task %s -> open", task_id)


def edit_task(
    state: AppState,
    task_id: int,
    *,
    title: str,
    due_in_minutes: int | None,
    now: datetime | None = None,
) -> Task:
    """
    Replace title and deadline; description and priority are kept.
    Raises TaskNotFoundError for unknown ids and ValueError for an invalid title.
    """
    task = state.task_store.get_task(task_id)
    if task is None:
        raise TaskNotFoundError(task_id)

    updated = state.task_store.update_task(
        task_id,
        title=title,
        description=task.description,
        due_at=_due_at(due_in_minutes, now),
    )
    logger.info("Task %s edited due_at=%s", task_id, updated.due_at)
    return updated
