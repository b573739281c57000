# tests/conftest.py

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from todo_reminder.core.state import AppState
from todo_reminder.reminders.engine import ReminderEngine
from todo_reminder.reminders.scheduler import ReminderScheduler
from todo_reminder.reminders.setting_store import ReminderSettingStore
from todo_reminder.tasks.task_store import TaskStore

from .fakes import FakeKeyValueStore, FakeTaskRepo

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


@pytest.fixture()
def now() -> datetime:
    return T0


@pytest.fixture()
def kv(now: datetime) -> FakeKeyValueStore:
    return FakeKeyValueStore(now)


@pytest.fixture()
def repo() -> FakeTaskRepo:
    return FakeTaskRepo()


@pytest.fixture()
def engine(repo: FakeTaskRepo, kv: FakeKeyValueStore) -> ReminderEngine:
    return ReminderEngine(repo, kv)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="todo-test",
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        matrix_store_path=tmp_path / "matrix_store",
        matrix_enabled=False,
        matrix_rooms=[],
        console_enabled=False,
        redis_url=None,
        redis_socket_timeout=1.0,
        reminder_scheduler_enabled=True,
        reminder_scan_timeout=5.0,
    )


@pytest.fixture()
def state(settings: SimpleNamespace) -> AppState:
    """
    AppState wired with a real SQLite TaskStore and a fake key/value store.

    The scheduler clock is the real wall clock so commands see tasks created
    "N minutes from now".
    """
    task_store = TaskStore(settings.tasks_db_path)
    kv = FakeKeyValueStore(datetime.now(UTC))
    reminder_settings = ReminderSettingStore(kv)
    return AppState(
        settings=settings,
        task_store=task_store,
        kv=kv,
        reminder_settings=reminder_settings,
        reminders=ReminderScheduler(ReminderEngine(task_store, kv), reminder_settings),
    )
