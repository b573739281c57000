# src/todo_reminder/reminders/scheduler.py

from __future__ import annotations

"""
Reminder scheduler.

Two thin entry points around ReminderEngine.scan():
- tick(): timer path; errors are logged and swallowed so the next tick still runs.
- poll(): on-demand path for clients; errors surface as ReminderScanError.

Both check the global setting first and return [] without touching tasks or
reminder locks when reminders are disabled.

run_reminder_scheduler() is the async loop that fires tick() at the top of
every minute and forwards results to an optional OutboundMessenger.
"""

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor, wait
from datetime import UTC, datetime

from ..core.ports import OutboundMessenger
from .engine import ReminderEngine
from .models import Reminder
from .setting_store import ReminderSettingStore

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class ReminderScanError(RuntimeError):
    """A reminder scan failed (task store or key/value store unavailable)."""


def utc_now() -> datetime:
    return datetime.now(UTC)


class ReminderScheduler:
    def __init__(
            self,
            engine: ReminderEngine,
            settings_store: ReminderSettingStore,
            *,
            clock: Clock = utc_now,
            scan_timeout: float = 50.0,
    ) -> None:
        self.engine = engine
        self.settings_store = settings_store
        self.clock = clock
        self.scan_timeout = float(scan_timeout)
        # poll() runs scans here so the caller can stop waiting after scan_timeout.
        self._poll_pool = ThreadPoolExecutor(max_workers=2, thread_name_prefix="reminder-poll")

    def _scan(self, now: datetime | None) -> list[Reminder]:
        if not self.settings_store.get_reminder_enabled():
            logger.debug("Reminders disabled; scan skipped.")
            return []
        return self.engine.scan(now if now is not None else self.clock())

    def tick(self, now: datetime | None = None) -> list[Reminder]:
        """Timer-driven scan. Never raises; a failed tick returns []."""
        try:
            reminders = self._scan(now)
        except Exception:
            logger.exception("Reminder scan failed; will retry on next tick.")
            return []

        if reminders:
            logger.info("Reminder scan fired %d reminder(s).", len(reminders))
        return reminders

    def poll(self, now: datetime | None = None) -> list[Reminder]:
        """
        On-demand scan for polling clients.

        Raises ReminderScanError when the scan fails or does not finish within
        scan_timeout. A timed-out scan keeps running in its worker thread (each
        store call is bounded by its own timeout); its reminders are lost.
        """
        future = self._poll_pool.submit(self._scan, now)
        done, _ = wait([future], timeout=self.scan_timeout)
        if not done:
            logger.error("Reminder poll exceeded %.1fs; giving up.", self.scan_timeout)
            raise ReminderScanError(f"reminder scan timed out after {self.scan_timeout:.1f}s")

        try:
            return future.result()
        except Exception as e:
            logger.warning("Reminder poll failed: %r", e)
            raise ReminderScanError(f"reminder scan failed: {e}") from e

    def close(self) -> None:
        self._poll_pool.shutdown(wait=False, cancel_futures=True)


def seconds_until_next_minute(now: datetime) -> float:
    """Delay until the next whole minute (never 0, so a tick cannot repeat)."""
    elapsed = now.second + now.microsecond / 1_000_000
    return 60.0 - elapsed


async def _deliver(messenger: OutboundMessenger, reminders: list[Reminder]) -> None:
    for reminder in reminders:
        try:
            await messenger.send_text(text=reminder.render_text())
        except Exception:
            # The occasion is consumed either way; no redelivery.
            logger.exception("Reminder delivery failed task_id=%s", reminder.task_id)


async def run_reminder_scheduler(
        scheduler: ReminderScheduler,
        messenger: OutboundMessenger | None = None,
        *,
        interval_seconds: float | None = None,
        stop_event: asyncio.Event | None = None,
) -> None:
    """
    Tick loop.

    By default sleeps until the top of each minute; interval_seconds switches to
    a fixed cadence. Each tick runs in a worker thread (the stores are blocking)
    bounded by scheduler.scan_timeout; a timed-out tick is abandoned and logged.

    To stop the scheduler, cancel the coroutine/task or set stop_event.
    """
    while stop_event is None or not stop_event.is_set():
        if interval_seconds is not None:
            delay = max(0.01, float(interval_seconds))
        else:
            delay = seconds_until_next_minute(scheduler.clock())

        if stop_event is not None:
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=delay)
                break
            except asyncio.TimeoutError:
                pass
        else:
            await asyncio.sleep(delay)

        try:
            reminders = await asyncio.wait_for(
                asyncio.to_thread(scheduler.tick),
                timeout=scheduler.scan_timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Reminder scan exceeded %.1fs; tick abandoned.", scheduler.scan_timeout)
            continue

        if reminders and messenger is not None:
            await _deliver(messenger, reminders)

    logger.info("Reminder scheduler stopped.")
