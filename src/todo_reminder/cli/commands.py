# src/todo_reminder/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.state import AppState
from ..reminders.scheduler import ReminderScanError
from ..tasks.task_api import complete_task, edit_task, reopen_task, schedule_task
from ..tasks.task_models import Priority, Task, TaskStatus
from ..tasks.task_store import TaskNotFoundError

CommandEmitter = Callable[[str], None]
CommandHandler4 = Callable[[AppState, list[str], str | None, str | None], str]
CommandHandler5 = Callable[
    [AppState, list[str], str | None, str | None, CommandEmitter | None], str
]
CommandHandler = CommandHandler4 | CommandHandler5

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /add, /reminders, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        user_id: str | None = None,
        room_id: str | None = None,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 5

        if nparams >= 5:
            h5 = cast(CommandHandler5, handler)
            return h5(state, args, user_id, room_id, emit)

        h4 = cast(CommandHandler4, handler)
        return h4(state, args, user_id, room_id)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _format_task(task: Task) -> str:
    due = task.due_at.astimezone().strftime("%Y-%m-%d %H:%M") if task.due_at else "no deadline"
    mark = "x" if task.status == TaskStatus.DONE else " "
    return f"[{mark}] #{task.id} {task.title} ({task.priority.value}, due {due})"


def _parse_task_id(args: list[str]) -> int | None:
    if not args:
        return None
    try:
        return int(args[0].lstrip("#"))
    except ValueError:
        return None


def cmd_help(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
    emit: CommandEmitter | None = None,
) -> str:
    return registry.build_help()


def cmd_status(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    try:
        enabled = "ON" if state.reminder_settings.get_reminder_enabled() else "OFF"
    except Exception:
        logger.exception("Reading reminder setting failed.")
        enabled = "UNKNOWN (store unavailable)"
    open_tasks = len(state.task_store.list_tasks(status=TaskStatus.OPEN, limit=10_000))
    return (
        "Status:\n"
        f"  Reminders: {enabled}\n"
        f"  Reminder state backend: {type(state.kv).__name__}\n"
        f"  Tasks: {state.task_store.count_tasks()} total, {open_tasks} open"
    )


def _parse_add_args(args: list[str]) -> tuple[int | None, str] | None:
    """'<minutes|-> <title...>' -> (minutes or None, title); None when malformed."""
    if len(args) < 2:
        return None
    raw_minutes, title = args[0], " ".join(args[1:])
    if raw_minutes == "-":
        return None, title
    try:
        minutes = int(raw_minutes)
    except ValueError:
        return None
    if minutes < 0:
        return None
    return minutes, title


def _add(state: AppState, args: list[str], priority: Priority, usage: str) -> str:
    parsed = _parse_add_args(args)
    if parsed is None:
        return usage
    minutes, title = parsed

    try:
        task_id = schedule_task(state, title=title, due_in_minutes=minutes, priority=priority)
    except ValueError as e:
        return f"Cannot add task: {e}"

    task = state.task_store.get_task(task_id)
    return f"Added {_format_task(task)}" if task else f"Added task #{task_id}."


def cmd_add(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    """
    /add <minutes> <title...>   -> task due in N minutes
    /add - <title...>           -> task without deadline
    """
    return _add(state, args, Priority.MEDIUM, "Usage: /add <minutes|-> <title>")


def cmd_add_high(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    return _add(state, args, Priority.HIGH, "Usage: /add! <minutes|-> <title>")


def cmd_edit(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    """
    /edit <id> <minutes> <title...>   -> new title, due N minutes from now
    /edit <id> - <title...>           -> new title, no deadline
    """
    usage = "Usage: /edit <id> <minutes|-> <title>"
    task_id = _parse_task_id(args)
    parsed = _parse_add_args(args[1:])
    if task_id is None or parsed is None:
        return usage
    minutes, title = parsed

    try:
        task = edit_task(state, task_id, title=title, due_in_minutes=minutes)
    except TaskNotFoundError:
        return f"Task #{task_id} not found."
    except ValueError as e:
        return f"Cannot edit task: {e}"
    return f"Updated {_format_task(task)}"


def cmd_tasks(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    """
    /tasks        -> all tasks
    /tasks open   -> open tasks only
    /tasks done   -> done tasks only
    """
    status: TaskStatus | None = None
    if args:
        try:
            status = TaskStatus(args[0].lower())
        except ValueError:
            return "Usage: /tasks [open|done]"

    tasks = state.task_store.list_tasks(status=status)
    if not tasks:
        return "No tasks."
    return "\n".join(_format_task(t) for t in tasks)


def cmd_done(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    task_id = _parse_task_id(args)
    if task_id is None:
        return "Usage: /done <id>"
    try:
        complete_task(state, task_id)
    except TaskNotFoundError:
        return f"Task #{task_id} not found."
    return f"Task #{task_id} marked done."


def cmd_undo(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    task_id = _parse_task_id(args)
    if task_id is None:
        return "Usage: /undo <id>"
    try:
        reopen_task(state, task_id)
    except TaskNotFoundError:
        return f"Task #{task_id} not found."
    return f"Task #{task_id} reopened."


def cmd_delete(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    task_id = _parse_task_id(args)
    if task_id is None:
        return "Usage: /delete <id>"
    try:
        state.task_store.delete_task(task_id)
    except TaskNotFoundError:
        return f"Task #{task_id} not found."
    return f"Task #{task_id} deleted."


def cmd_reminders(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    """On-demand poll: run a scan now and show what fired (or why it failed)."""
    try:
        reminders = state.reminders.poll()
    except ReminderScanError as e:
        return f"Reminder check failed: {e}"

    if not reminders:
        return "No new reminders."
    return "\n".join(r.render_text() for r in reminders)


def cmd_reminder_setting(
    state: AppState,
    args: list[str],
    user_id: str | None,
    room_id: str | None,
) -> str:
    """
    /reminder       -> show global reminder switch
    /reminder on    -> enable reminders
    /reminder off   -> disable reminders
    """
    try:
        if not args:
            enabled = state.reminder_settings.get_reminder_enabled()
            return f"Reminders are currently {'ON' if enabled else 'OFF'}. Use /reminder on or /reminder off."

        arg = args[0].lower()
        if arg in ("on", "1", "true", "yes"):
            state.reminder_settings.set_reminder_enabled(True)
            return "Reminders enabled."
        if arg in ("off", "0", "false", "no"):
            state.reminder_settings.set_reminder_enabled(False)
            return "Reminders disabled."
    except ConnectionError as e:
        return f"Reminder setting unavailable: {e}"

    return "Usage: /reminder on or /reminder off."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show reminder switch, backend and task counts.")
registry.register("add", cmd_add, help_text="Add a task: /add <minutes|-> <title>.")
registry.register("add!", cmd_add_high, help_text="Add a high-priority task: /add! <minutes|-> <title>.")
registry.register("edit", cmd_edit, help_text="Edit a task: /edit <id> <minutes|-> <title>.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [open|done].", aliases=["ls"])
registry.register("done", cmd_done, help_text="Mark a task done: /done <id>.")
registry.register("undo", cmd_undo, help_text="Reopen a task: /undo <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.", aliases=["rm"])
registry.register("reminders", cmd_reminders, help_text="Check for reminders now.", aliases=["poll"])
registry.register("reminder", cmd_reminder_setting, help_text="Reminder switch: /reminder on | /reminder off.")
