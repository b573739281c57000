# src/todo_reminder/reminders/setting_store.py

from __future__ import annotations

import logging
from datetime import timedelta

from ..core.ports import KeyValueStore

logger = logging.getLogger(__name__)

REMINDER_ENABLED_KEY = "setting:reminder:enabled"
SETTING_TTL = timedelta(days=365)


class ReminderSettingStore:
    """
    Global "reminders enabled" flag kept in the key/value store.

    The first read of a missing key writes "true" and returns True, so the
    setting is on by default and never reads as missing.
    """

    def __init__(self, kv: KeyValueStore) -> None:
        self._kv = kv

    def get_reminder_enabled(self) -> bool:
        raw = self._kv.get(REMINDER_ENABLED_KEY)
        if raw is None:
            logger.info("Reminder setting missing; initializing to enabled.")
            self.set_reminder_enabled(True)
            return True
        # Anything but "true" (any case) is off.
        return raw.strip().lower() == "true"

    def set_reminder_enabled(self, enabled: bool) -> None:
        self._kv.set(REMINDER_ENABLED_KEY, "true" if enabled else "false", SETTING_TTL)
        logger.debug("Reminder setting stored enabled=%s", enabled)
