# tests/test_reminder_scheduler.py

from __future__ import annotations

import asyncio
import logging
import time
from datetime import UTC, datetime, timedelta

import pytest

from todo_reminder.reminders.engine import ReminderEngine
from todo_reminder.reminders.models import ReminderPolicy
from todo_reminder.reminders.scheduler import (
    ReminderScanError,
    ReminderScheduler,
    run_reminder_scheduler,
    seconds_until_next_minute,
)
from todo_reminder.reminders.setting_store import (
    REMINDER_ENABLED_KEY,
    SETTING_TTL,
    ReminderSettingStore,
)
from todo_reminder.tasks.task_models import Task, TaskStatus

from .fakes import FakeKeyValueStore, FakeMessenger, FakeTaskRepo


def make_scheduler(repo: FakeTaskRepo, kv: FakeKeyValueStore, now: datetime) -> ReminderScheduler:
    return ReminderScheduler(
        ReminderEngine(repo, kv),
        ReminderSettingStore(kv),
        clock=lambda: now,
        scan_timeout=2.0,
    )


def due_task(task_id: int, due_at: datetime) -> Task:
    return Task(id=task_id, title=f"task {task_id}", status=TaskStatus.OPEN, due_at=due_at)


# ---- setting store ----


def test_setting_defaults_to_enabled_and_is_persisted(kv) -> None:
    store = ReminderSettingStore(kv)

    assert kv.get(REMINDER_ENABLED_KEY) is None
    assert store.get_reminder_enabled() is True
    assert kv.get(REMINDER_ENABLED_KEY) == "true"
    assert kv.ttl(REMINDER_ENABLED_KEY) == SETTING_TTL == timedelta(days=365)


def test_setting_roundtrip(kv) -> None:
    store = ReminderSettingStore(kv)

    store.set_reminder_enabled(False)
    assert kv.get(REMINDER_ENABLED_KEY) == "false"
    assert store.get_reminder_enabled() is False

    store.set_reminder_enabled(True)
    assert store.get_reminder_enabled() is True


@pytest.mark.parametrize("raw, expected", [("TRUE", True), ("True", True), ("yes", False), ("", False)])
def test_setting_parses_like_boolean_string(kv, raw, expected) -> None:
    kv.set(REMINDER_ENABLED_KEY, raw, SETTING_TTL)
    assert ReminderSettingStore(kv).get_reminder_enabled() is expected


# ---- gate ----


def test_disabled_poll_touches_nothing_and_reenable_still_fires(repo, kv, now) -> None:
    repo.add(due_task(4, now))
    scheduler = make_scheduler(repo, kv, now)
    scheduler.settings_store.set_reminder_enabled(False)

    assert scheduler.poll() == []
    assert repo.calls == []
    assert kv.keys("reminder:lock:") == []

    scheduler.settings_store.set_reminder_enabled(True)
    fired = scheduler.poll()
    assert [(r.task_id, r.policy) for r in fired] == [(4, ReminderPolicy.DUE_NOW)]


def test_disabled_tick_returns_empty(repo, kv, now) -> None:
    repo.add(due_task(1, now))
    scheduler = make_scheduler(repo, kv, now)
    scheduler.settings_store.set_reminder_enabled(False)

    assert scheduler.tick() == []
    assert repo.calls == []


# ---- error policy ----


def test_tick_swallows_and_logs_errors(repo, kv, now, caplog) -> None:
    repo.fail = True
    scheduler = make_scheduler(repo, kv, now)

    with caplog.at_level(logging.ERROR, logger="todo_reminder.reminders.scheduler"):
        assert scheduler.tick() == []

    assert "Reminder scan failed" in caplog.text


def test_poll_surfaces_errors(repo, kv, now) -> None:
    repo.fail = True
    scheduler = make_scheduler(repo, kv, now)

    with pytest.raises(ReminderScanError) as exc_info:
        scheduler.poll()
    assert isinstance(exc_info.value.__cause__, RuntimeError)


def test_poll_surfaces_setting_store_outage(repo, kv, now) -> None:
    kv.unavailable = True
    scheduler = make_scheduler(repo, kv, now)

    with pytest.raises(ReminderScanError):
        scheduler.poll()
    assert scheduler.tick() == []


def test_tick_logs_count(repo, kv, now, caplog) -> None:
    repo.add(due_task(1, now))
    repo.add(due_task(2, now + timedelta(minutes=30)))
    scheduler = make_scheduler(repo, kv, now)

    with caplog.at_level(logging.INFO, logger="todo_reminder.reminders.scheduler"):
        fired = scheduler.tick()

    assert len(fired) == 2
    assert "fired 2 reminder(s)" in caplog.text


def test_tick_and_poll_share_dedup(repo, kv, now) -> None:
    repo.add(due_task(1, now))
    scheduler = make_scheduler(repo, kv, now)

    assert len(scheduler.tick(now)) == 1
    assert scheduler.poll(now) == []


def test_poll_gives_up_after_scan_timeout(kv, now) -> None:
    class SlowRepo(FakeTaskRepo):
        def find_open_tasks_due_between(self, start, end):
            time.sleep(0.3)
            return []

    scheduler = make_scheduler(SlowRepo(), kv, now)
    scheduler.scan_timeout = 0.05

    started = time.monotonic()
    with pytest.raises(ReminderScanError, match="timed out"):
        scheduler.poll()
    assert time.monotonic() - started < 0.25

    scheduler.close()


# ---- loop ----


def test_seconds_until_next_minute() -> None:
    assert seconds_until_next_minute(datetime(2026, 1, 1, 10, 0, 30, 500_000, tzinfo=UTC)) == 29.5
    assert seconds_until_next_minute(datetime(2026, 1, 1, 10, 0, 0, tzinfo=UTC)) == 60.0


@pytest.mark.asyncio
async def test_scheduler_loop_delivers_each_reminder_once(repo, kv, now) -> None:
    repo.add(due_task(1, now))
    scheduler = make_scheduler(repo, kv, now)
    messenger = FakeMessenger()

    runner = asyncio.create_task(run_reminder_scheduler(scheduler, messenger, interval_seconds=0.01))

    await asyncio.sleep(0.2)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert len(messenger.sent) == 1
    assert "task due now" in messenger.sent[0].text
    assert "#1" in messenger.sent[0].text


@pytest.mark.asyncio
async def test_scheduler_loop_survives_failing_ticks_and_messenger(repo, kv, now) -> None:
    class BrokenMessenger:
        def __init__(self) -> None:
            self.calls = 0

        async def send_text(self, *, text: str, room_id: str | None = None) -> None:
            self.calls += 1
            raise RuntimeError("transport down")

    repo.add(due_task(2, now))
    repo.fail = True
    scheduler = make_scheduler(repo, kv, now)
    messenger = BrokenMessenger()
    stop = asyncio.Event()

    runner = asyncio.create_task(
        run_reminder_scheduler(scheduler, messenger, interval_seconds=0.01, stop_event=stop)
    )
    await asyncio.sleep(0.05)

    repo.fail = False
    await asyncio.sleep(0.1)

    stop.set()
    await asyncio.wait_for(runner, timeout=1.0)

    assert messenger.calls == 1
    assert runner.done() and runner.exception() is None


@pytest.mark.asyncio
async def test_scheduler_loop_abandons_slow_tick(kv, now, caplog) -> None:
    class SlowRepo(FakeTaskRepo):
        def find_open_tasks_due_between(self, start, end):
            time.sleep(0.3)
            return []

    scheduler = make_scheduler(SlowRepo(), kv, now)
    scheduler.scan_timeout = 0.05
    stop = asyncio.Event()

    with caplog.at_level(logging.ERROR, logger="todo_reminder.reminders.scheduler"):
        runner = asyncio.create_task(
            run_reminder_scheduler(scheduler, interval_seconds=0.01, stop_event=stop)
        )
        await asyncio.sleep(0.15)
        stop.set()
        await asyncio.wait_for(runner, timeout=2.0)

    assert "tick abandoned" in caplog.text
