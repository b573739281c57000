# src/todo_reminder/reminders/engine.py

from __future__ import annotations

"""
Reminder engine.

One scan evaluates three policies against "now" and returns the reminders that
fired for the first time:

- PRE_DUE: due_at within +-1 min of now + 30 min, once per task.
- DUE_NOW: due_at within +-1 min of now, once per task.
- OVERDUE: due_at < now, at most 3 times per task, >= 24 h apart.

All cross-scan state lives in the key/value store. Every state transition is a
single SET NX (lock) or SET (counter / last-fired), so concurrent scans (timer
tick and on-demand poll) can run in parallel: only the SET NX winner emits
the reminder and writes the follow-up counters.

Key layout (shared with existing deployments):

    reminder:lock:{id}:before30min
    reminder:lock:{id}:due
    reminder:lock:{id}:overdue:{n}
    reminder:lock:{id}:overdue:count
    reminder:lock:{id}:overdue:last
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime, timedelta
from typing import Any

from ..core.ports import KeyValueStore, TaskReadPort
from ..tasks.task_models import TaskStatus
from .kv_store import KeyValueStoreUnavailable
from .models import POLICY_MESSAGES, Reminder, ReminderPolicy

logger = logging.getLogger(__name__)

LOCK_PREFIX = "reminder:lock:"

PRE_DUE_LEAD = timedelta(minutes=30)
WINDOW_TOLERANCE = timedelta(minutes=1)

LOCK_TTL = timedelta(minutes=5)
# Must outlive the whole overdue schedule (3 firings, 24 h apart).
OVERDUE_STATE_TTL = timedelta(days=7)
OVERDUE_SPACING = timedelta(hours=24)
OVERDUE_MAX_FIRINGS = 3


def lock_key(task_id: Any, suffix: str) -> str:
    return f"{LOCK_PREFIX}{task_id}:{suffix}"


def overdue_count_key(task_id: Any) -> str:
    return lock_key(task_id, "overdue:count")


def overdue_last_key(task_id: Any) -> str:
    return lock_key(task_id, "overdue:last")


def overdue_lock_key(task_id: Any, occasion: int) -> str:
    return lock_key(task_id, f"overdue:{occasion}")


def _as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


def parse_overdue_count(raw: str | None) -> int:
    """Missing or malformed counter reads as 0 (one more reminder is allowed)."""
    if raw is None:
        return 0
    try:
        return max(0, int(raw.strip()))
    except ValueError:
        logger.warning("Malformed overdue counter %r; treating as 0.", raw)
        return 0


def parse_last_fired(raw: str | None) -> datetime | None:
    """
    Parse the ISO timestamp of the last overdue firing.

    Naive values (the stored format, see format_last_fired) are read as local
    time; values with an offset are taken as-is. Malformed values read as
    "never fired".
    """
    if raw is None:
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        logger.warning("Malformed overdue last-fired timestamp %r; ignoring.", raw)
        return None
    return parsed if parsed.tzinfo is not None else parsed.astimezone()


def format_last_fired(now: datetime) -> str:
    """
    Naive local ISO-8601 (no offset), the format existing deployments write and
    parse for this key. parse_last_fired reads it back as local time.
    """
    return now.astimezone().replace(tzinfo=None).isoformat()


def _is_eligible(task: Any) -> bool:
    return getattr(task, "due_at", None) is not None and getattr(task, "status", None) == TaskStatus.OPEN


class ReminderEngine:
    """Runs the three reminder policies and enforces at-most-once per occasion."""

    def __init__(
            self,
            tasks: TaskReadPort,
            kv: KeyValueStore,
            *,
            lock_ttl: timedelta = LOCK_TTL,
            overdue_state_ttl: timedelta = OVERDUE_STATE_TTL,
    ) -> None:
        self._tasks = tasks
        self._kv = kv
        self._lock_ttl = lock_ttl
        self._overdue_state_ttl = overdue_state_ttl

    def scan(self, now: datetime) -> list[Reminder]:
        """
        Evaluate all policies at `now`, in order PRE_DUE -> DUE_NOW -> OVERDUE.

        Task-store failures and an unreachable key/value store abort the scan
        (the exception propagates, nothing is returned). Any other failure while
        handling a single task is logged and the task is skipped.
        """
        now = _as_utc(now)
        reminders: list[Reminder] = []

        pre_due = self._tasks.find_open_tasks_due_between(
            now + PRE_DUE_LEAD - WINDOW_TOLERANCE,
            now + PRE_DUE_LEAD + WINDOW_TOLERANCE,
        )
        reminders.extend(self._fire_once(pre_due, ReminderPolicy.PRE_DUE))

        due_now = self._tasks.find_open_tasks_due_between(now - WINDOW_TOLERANCE, now + WINDOW_TOLERANCE)
        reminders.extend(self._fire_once(due_now, ReminderPolicy.DUE_NOW))

        overdue = self._tasks.find_open_tasks_overdue_before(now)
        reminders.extend(self._fire_overdue(overdue, now))

        return reminders

    def _fire_once(self, tasks: Iterable[Any], policy: ReminderPolicy) -> list[Reminder]:
        out: list[Reminder] = []
        for task in tasks:
            if not _is_eligible(task):
                continue
            try:
                if not self._kv.set_if_absent(lock_key(task.id, policy.value), "1", self._lock_ttl):
                    continue
            except KeyValueStoreUnavailable:
                raise
            except Exception:
                logger.exception("Reminder lock failed task_id=%s policy=%s", task.id, policy.value)
                continue

            logger.debug("Reminder fired task_id=%s policy=%s", task.id, policy.value)
            out.append(_build_reminder(task, policy))
        return out

    def _fire_overdue(self, tasks: Iterable[Any], now: datetime) -> list[Reminder]:
        out: list[Reminder] = []
        for task in tasks:
            if not _is_eligible(task):
                continue
            try:
                reminder = self._fire_overdue_one(task, now)
            except KeyValueStoreUnavailable:
                raise
            except Exception:
                logger.exception("Overdue reminder failed task_id=%s", task.id)
                continue
            if reminder is not None:
                out.append(reminder)
        return out

    def _fire_overdue_one(self, task: Any, now: datetime) -> Reminder | None:
        count_key = overdue_count_key(task.id)
        count = parse_overdue_count(self._kv.get(count_key))
        last_fired = parse_last_fired(self._kv.get(overdue_last_key(task.id)))
        spacing_elapsed = last_fired is None or now > last_fired + OVERDUE_SPACING

        if count >= OVERDUE_MAX_FIRINGS:
            # Keep the cap alive while the task stays overdue: one refresh per
            # spacing period, well inside the state TTL.
            if spacing_elapsed:
                self._write_overdue_state(task.id, count, now)
            return None

        if not spacing_elapsed:
            return None

        if not self._kv.set_if_absent(overdue_lock_key(task.id, count), "1", self._lock_ttl):
            # A concurrent scan already claimed this occasion.
            return None

        reminder = _build_reminder(task, ReminderPolicy.OVERDUE)
        logger.debug("Reminder fired task_id=%s policy=overdue occasion=%s", task.id, count)

        try:
            self._write_overdue_state(task.id, count + 1, now)
        except KeyValueStoreUnavailable:
            raise
        except Exception:
            # The occasion is already claimed; report it anyway.
            logger.exception("Overdue state update failed task_id=%s occasion=%s", task.id, count)
        return reminder

    def _write_overdue_state(self, task_id: Any, count: int, now: datetime) -> None:
        self._kv.set(overdue_count_key(task_id), str(count), self._overdue_state_ttl)
        self._kv.set(overdue_last_key(task_id), format_last_fired(now), self._overdue_state_ttl)


def _build_reminder(task: Any, policy: ReminderPolicy) -> Reminder:
    return Reminder(
        task_id=task.id,
        title=str(getattr(task, "title", "") or ""),
        due_at=getattr(task, "due_at", None),
        policy=policy,
        message=POLICY_MESSAGES[policy],
    )
