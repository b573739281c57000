# src/todo_reminder/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (tasks/key-value store/reminders).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.ports import KeyValueStore
from ..core.state import AppState
from ..reminders.engine import ReminderEngine
from ..reminders.kv_store import InMemoryKeyValueStore, RedisKeyValueStore
from ..reminders.scheduler import ReminderScheduler
from ..reminders.setting_store import ReminderSettingStore
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    if settings.matrix_enabled:
        settings.matrix_store_path.mkdir(parents=True, exist_ok=True)


def create_kv_store(settings) -> KeyValueStore:
    """Redis when TODO_REDIS_URL is set; otherwise a process-local store."""
    url = (getattr(settings, "redis_url", None) or "").strip()
    if url:
        return RedisKeyValueStore.from_url(url, socket_timeout=settings.redis_socket_timeout)

    logger.warning(
        "TODO_REDIS_URL is not set: using in-memory reminder state "
        "(dedup is per-process and lost on restart)."
    )
    return InMemoryKeyValueStore()


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    task_store = TaskStore(settings.tasks_db_path)
    kv = create_kv_store(settings)
    reminder_settings = ReminderSettingStore(kv)

    scheduler = ReminderScheduler(
        ReminderEngine(task_store, kv),
        reminder_settings,
        scan_timeout=settings.reminder_scan_timeout,
    )

    return AppState(
        settings=settings,
        task_store=task_store,
        kv=kv,
        reminder_settings=reminder_settings,
        reminders=scheduler,
    )
