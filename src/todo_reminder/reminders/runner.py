# src/todo_reminder/reminders/runner.py

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from dataclasses import dataclass

from ..core.ports import OutboundMessenger
from ..core.state import AppState
from .scheduler import run_reminder_scheduler

logger = logging.getLogger(__name__)


class FanoutMessenger:
    """Sends every reminder to all wrapped messengers; one failing does not stop the rest."""

    def __init__(self, messengers: list[OutboundMessenger]) -> None:
        self._messengers = list(messengers)

    async def send_text(self, *, text: str, room_id: str | None = None) -> None:
        for messenger in self._messengers:
            try:
                await messenger.send_text(text=text, room_id=room_id)
            except Exception:
                logger.exception("Messenger %s failed.", type(messenger).__name__)


async def _run_reminders(
        state: AppState,
        stop_event: asyncio.Event,
        messengers: list[OutboundMessenger],
) -> None:
    """
    init (optional Matrix client) -> tick loop until stop_event.

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    """
    settings = state.settings
    matrix_client = None

    if getattr(settings, "matrix_enabled", False):
        from ..connectors.matrix_client import create_matrix_client
        from ..connectors.matrix_notifier import MatrixNotifier

        matrix_client = await create_matrix_client(settings)
        if matrix_client is None:
            logger.error("Matrix client creation failed; reminders will not be posted to Matrix.")
        else:
            try:
                # Room list + device keys are needed before the first send.
                await matrix_client.sync(timeout=30000, full_state=True)
                logger.info("Matrix initial sync done. Joined rooms: %d", len(matrix_client.rooms))
            except Exception:
                logger.exception("Matrix initial sync failed.")
            messengers = [*messengers, MatrixNotifier(matrix_client, getattr(settings, "matrix_rooms", []))]

    messenger = FanoutMessenger(messengers) if messengers else None

    try:
        logger.info("Reminder scheduler started (messengers=%d).", len(messengers))
        await run_reminder_scheduler(state.reminders, messenger, stop_event=stop_event)
    except asyncio.CancelledError:
        logger.info("Reminder scheduler cancelled.")
    except Exception:
        logger.exception("Reminder scheduler crashed.")
    finally:
        if matrix_client is not None:
            with contextlib.suppress(Exception):
                await matrix_client.close()


@dataclass
class ReminderBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal reminder scheduler stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_reminders_in_background(
        state: AppState,
        messengers: list[OutboundMessenger] | None = None,
) -> ReminderBackgroundRunner | None:
    """
    Start the reminder tick loop in a background thread with its own event loop,
    so the blocking console REPL can run in the main thread.
    """
    if not getattr(state.settings, "reminder_scheduler_enabled", True):
        logger.info("Reminder scheduler disabled, not starting.")
        return None

    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_reminders(state, stop_event, list(messengers or [])))
        finally:
            with contextlib.suppress(Exception):
                loop.stop()
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="reminder-scheduler", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Reminder thread did not initialize properly.")
        return None

    logger.info("Reminder background thread started.")
    return ReminderBackgroundRunner(thread=t, loop=loop, stop_event=stop_event)
