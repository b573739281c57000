# tests/test_messengers.py

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest
from nio import RoomSendError, RoomSendResponse

from todo_reminder.connectors.console_connector import ConsoleNotifier
from todo_reminder.connectors.matrix_client import MatrixSession, create_matrix_client
from todo_reminder.connectors.matrix_notifier import MatrixNotifier
from todo_reminder.reminders.runner import FanoutMessenger, start_reminders_in_background

from .fakes import FakeMessenger


def make_client(joined: list[str] | None = None) -> MagicMock:
    client = MagicMock()
    client.rooms = {room: object() for room in (joined or [])}
    client.room_send = AsyncMock(return_value=MagicMock(spec=RoomSendResponse))
    return client


@pytest.mark.asyncio
async def test_matrix_notifier_posts_to_configured_rooms() -> None:
    client = make_client(joined=["!joined:hs"])
    notifier = MatrixNotifier(client, ["!a:hs", " ", "!b:hs"])

    await notifier.send_text(text="[due] #1 x")

    targets = [c.kwargs["room_id"] for c in client.room_send.await_args_list]
    assert targets == ["!a:hs", "!b:hs"]
    kwargs = client.room_send.await_args_list[0].kwargs
    assert kwargs["message_type"] == "m.room.message"
    assert kwargs["content"] == {"msgtype": "m.text", "body": "[due] #1 x"}


@pytest.mark.asyncio
async def test_matrix_notifier_explicit_room_wins() -> None:
    client = make_client()
    await MatrixNotifier(client, ["!a:hs"]).send_text(text="hi", room_id="!x:hs")

    client.room_send.assert_awaited_once()
    assert client.room_send.await_args.kwargs["room_id"] == "!x:hs"


@pytest.mark.asyncio
async def test_matrix_notifier_falls_back_to_first_joined_room() -> None:
    client = make_client(joined=["!first:hs", "!second:hs"])
    await MatrixNotifier(client).send_text(text="hi")

    assert client.room_send.await_args.kwargs["room_id"] == "!first:hs"


@pytest.mark.asyncio
async def test_matrix_notifier_without_rooms_drops(caplog) -> None:
    client = make_client()
    await MatrixNotifier(client).send_text(text="hi")

    client.room_send.assert_not_awaited()
    assert "dropped" in caplog.text


@pytest.mark.asyncio
async def test_matrix_notifier_logs_send_error(caplog) -> None:
    client = make_client()
    client.room_send.return_value = MagicMock(spec=RoomSendError)

    await MatrixNotifier(client, ["!a:hs"]).send_text(text="hi")

    assert "room_send to !a:hs failed" in caplog.text


@pytest.mark.asyncio
async def test_fanout_isolates_failures() -> None:
    class Broken:
        async def send_text(self, *, text: str, room_id: str | None = None) -> None:
            raise RuntimeError("boom")

    first, last = FakeMessenger(), FakeMessenger()
    await FanoutMessenger([first, Broken(), last]).send_text(text="hello", room_id="!r:hs")

    assert [m.text for m in first.sent] == ["hello"]
    assert [(m.text, m.room_id) for m in last.sent] == [("hello", "!r:hs")]


@pytest.mark.asyncio
async def test_console_notifier_prints(capsys) -> None:
    await ConsoleNotifier().send_text(text="[due] #1 x (due -): task due now")

    assert "[REMINDER] [due] #1 x" in capsys.readouterr().out


def test_background_runner_starts_and_stops(state) -> None:
    runner = start_reminders_in_background(state)
    assert runner is not None
    assert runner.thread.is_alive()

    runner.stop()
    runner.join(timeout=5.0)
    assert not runner.thread.is_alive()


def test_background_runner_respects_switch(state) -> None:
    state.settings.reminder_scheduler_enabled = False
    assert start_reminders_in_background(state) is None


def test_matrix_session_roundtrip(tmp_path) -> None:
    path = tmp_path / "session.json"
    MatrixSession(user_id="@bot:hs", device_id="DEV", access_token="tok").save(path)

    assert MatrixSession.load(path) == MatrixSession(user_id="@bot:hs", device_id="DEV", access_token="tok")


def test_matrix_session_rejects_broken_files(tmp_path) -> None:
    path = tmp_path / "session.json"
    assert MatrixSession.load(path) is None

    path.write_text("not json", "utf-8")
    assert MatrixSession.load(path) is None

    path.write_text('{"user_id": "@bot:hs", "device_id": "", "access_token": "t"}', "utf-8")
    assert MatrixSession.load(path) is None


@pytest.mark.asyncio
async def test_create_matrix_client_requires_homeserver(settings) -> None:
    settings.matrix_homeserver = ""
    settings.matrix_user_id = "@bot:hs"
    assert await create_matrix_client(settings) is None
