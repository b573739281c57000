# tests/fakes.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from todo_reminder.core.ports import OutboundMessenger
from todo_reminder.reminders.kv_store import KeyValueStoreUnavailable
from todo_reminder.tasks.task_models import Task, TaskStatus


class FakeKeyValueStore:
    """
    In-memory KeyValueStore with expiry driven by a settable clock (`now`).

    Tests move `now` forward together with the scan time, so TTLs expire
    exactly as they would in Redis.
    """

    def __init__(self, now: datetime) -> None:
        self.now = now
        self.data: dict[str, tuple[str, datetime]] = {}
        self.unavailable = False

    def _check(self) -> None:
        if self.unavailable:
            raise KeyValueStoreUnavailable("fake store is down")

    def _alive(self, key: str) -> str | None:
        item = self.data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at <= self.now:
            del self.data[key]
            return None
        return value

    def get(self, key: str) -> str | None:
        self._check()
        return self._alive(key)

    def set(self, key: str, value: str, ttl: timedelta) -> None:
        self._check()
        self.data[key] = (value, self.now + ttl)

    def set_if_absent(self, key: str, value: str, ttl: timedelta) -> bool:
        self._check()
        if self._alive(key) is not None:
            return False
        self.data[key] = (value, self.now + ttl)
        return True

    def ttl(self, key: str) -> timedelta | None:
        item = self.data.get(key)
        return None if item is None else item[1] - self.now

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in list(self.data) if k.startswith(prefix) and self._alive(k) is not None)


class FakeTaskRepo:
    """
    In-memory TaskReadPort used for engine unit tests.

    This avoids SQLite and makes tests purely about reminder logic:
    windows, locks, counters and spacing.
    """

    def __init__(self, tasks: list[Task] | None = None) -> None:
        self.tasks: dict[int, Task] = {t.id: t for t in (tasks or [])}
        self.calls: list[str] = []
        self.fail = False

    def add(self, task: Task) -> None:
        self.tasks[task.id] = task

    def _open_with_due(self) -> list[Task]:
        return [t for t in self.tasks.values() if t.status == TaskStatus.OPEN and t.due_at is not None]

    def find_open_tasks_due_between(self, start: datetime, end: datetime) -> list[Task]:
        self.calls.append("due_between")
        if self.fail:
            raise RuntimeError("task store unavailable")
        out = [t for t in self._open_with_due() if start <= t.due_at <= end]
        return sorted(out, key=lambda t: (t.due_at, t.id))

    def find_open_tasks_overdue_before(self, now: datetime) -> list[Task]:
        self.calls.append("overdue_before")
        if self.fail:
            raise RuntimeError("task store unavailable")
        out = [t for t in self._open_with_due() if t.due_at < now]
        return sorted(out, key=lambda t: (t.due_at, t.id))


@dataclass(slots=True)
class SentMessage:
    text: str
    room_id: str | None


@dataclass(slots=True)
class FakeMessenger(OutboundMessenger):
    """
    Fake OutboundMessenger used by scheduler tests.
    """

    sent: list[SentMessage] = field(default_factory=list)

    async def send_text(self, *, text: str, room_id: str | None = None) -> None:
        self.sent.append(SentMessage(text=text, room_id=room_id))
