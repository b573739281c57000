# src/todo_reminder/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The reminder engine depends on Protocols instead of concrete implementations.
This keeps the key/value backend, task storage and delivery transport
swappable and makes testing easier.
"""

from datetime import datetime, timedelta
from typing import Any, Awaitable, Protocol


class KeyValueStore(Protocol):
    """
    String key/value store with expiry (Redis semantics).

    set_if_absent is the primitive the reminder dedup relies on: it must be
    atomic across every process sharing the store.
    """

    def get(self, key: str) -> str | None: ...
    def set(self, key: str, value: str, ttl: timedelta) -> None: ...
    def set_if_absent(self, key: str, value: str, ttl: timedelta) -> bool: ...


class TaskReadPort(Protocol):
    """Read-only queries the reminder engine runs against task storage."""

    def find_open_tasks_due_between(self, start: datetime, end: datetime) -> list[Any]: ...
    def find_open_tasks_overdue_before(self, now: datetime) -> list[Any]: ...


class TaskRepo(TaskReadPort, Protocol):
    """Full task storage API used by commands."""

    def add_task(
            self,
            *,
            title: str,
            description: str = "",
            due_at: datetime | None = None,
            priority: Any = None,
    ) -> int: ...

    def get_task(self, task_id: int) -> Any | None: ...

    def update_task(
            self,
            task_id: int,
            *,
            title: str,
            description: str = "",
            due_at: datetime | None = None,
            priority: Any = None,
    ) -> Any: ...

    def list_tasks(self, *, status: Any | None = None, limit: int = 50) -> list[Any]: ...
    def set_status(self, task_id: int, status: Any) -> None: ...
    def delete_task(self, task_id: int) -> None: ...
    def count_tasks(self) -> int: ...


class OutboundMessenger(Protocol):
    """
    Connector-side port: how the reminder scheduler sends text outward.

    The connector decides how to interpret room_id (can be None);
    e.g. the Matrix notifier broadcasts to its configured rooms.
    """

    def send_text(
            self,
            *,
            text: str,
            room_id: str | None = None,
    ) -> Awaitable[None]: ...
