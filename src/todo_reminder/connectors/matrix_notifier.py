# src/todo_reminder/connectors/matrix_notifier.py

from __future__ import annotations

import logging

from nio import AsyncClient, RoomSendResponse

logger = logging.getLogger(__name__)


class MatrixNotifier:
    """
    OutboundMessenger that posts reminder text to Matrix rooms.

    room_id=None broadcasts to every configured room; with no configured rooms
    the first joined room is used.
    """

    def __init__(self, client: AsyncClient, rooms: list[str] | None = None) -> None:
        self._client = client
        self._rooms = [r.strip() for r in (rooms or []) if str(r).strip()]

    def _targets(self, room_id: str | None) -> list[str]:
        if room_id:
            return [room_id]
        if self._rooms:
            return list(self._rooms)
        if self._client.rooms:
            return [next(iter(self._client.rooms.keys()))]
        return []

    async def send_text(self, *, text: str, room_id: str | None = None) -> None:
        targets = self._targets(room_id)
        if not targets:
            logger.warning("No Matrix room to post reminder to; dropped.")
            return

        for target in targets:
            resp = await self._client.room_send(
                room_id=target,
                message_type="m.room.message",
                content={"msgtype": "m.text", "body": text},
                ignore_unverified_devices=True,
            )
            if isinstance(resp, RoomSendResponse):
                logger.info("Reminder posted to %s", target)
            else:
                logger.error("Matrix room_send to %s failed: %r", target, resp)
