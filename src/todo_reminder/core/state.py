# src/todo_reminder/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..core.ports import KeyValueStore, TaskRepo
from ..reminders.scheduler import ReminderScheduler
from ..reminders.setting_store import ReminderSettingStore


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    task_store: TaskRepo
    kv: KeyValueStore
    reminder_settings: ReminderSettingStore
    reminders: ReminderScheduler
