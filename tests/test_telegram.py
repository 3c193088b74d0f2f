"""
Tests for the Telegram transport.
Run with: pytest tests/test_telegram.py
"""

import asyncio

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from friendline.transport.base import InboundEvent
from friendline.transport.telegram import TelegramTransport


def _mock_client(mock_client_cls, payload=None, status_code=200, side_effect=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload or {}
    mock_client = AsyncMock()
    if side_effect is not None:
        mock_client.post.side_effect = side_effect
    else:
        mock_client.post.return_value = resp
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client


# ---------------------------------------------------------------------------
# parse_update
# ---------------------------------------------------------------------------

def test_parse_text_update():
    event = TelegramTransport.parse_update({
        "update_id": 1,
        "message": {"chat": {"id": 42, "first_name": "Sam"}, "date": 1700000000, "text": "yo"},
    })
    assert event.conversation_id == "42"
    assert event.display_name == "Sam"
    assert event.text == "yo"
    assert event.media_kind is None
    assert event.arrival_time == 1700000000.0


@pytest.mark.parametrize("kind,value", [
    ("voice", {"file_id": "v"}),
    ("sticker", {"file_id": "s"}),
    ("photo", [{"file_id": "p"}]),
    ("video", {"file_id": "m"}),
])
def test_parse_media_update(kind, value):
    event = TelegramTransport.parse_update({
        "message": {"chat": {"id": 7}, "from": {"first_name": "Alex"}, kind: value},
    })
    assert event.media_kind == kind
    assert event.text is None
    assert event.display_name == "Alex"


@pytest.mark.parametrize("update", [
    {},
    {"edited_message": {"chat": {"id": 1}, "text": "x"}},
    {"message": {"chat": {}, "text": "x"}},
    {"message": {"chat": {"id": 1}, "document": {"file_id": "d"}}},
])
def test_parse_ignored_updates(update):
    assert TelegramTransport.parse_update(update) is None


def test_inbound_event_command():
    assert InboundEvent("1", "Sam", text="/start").command == "start"
    assert InboundEvent("1", "Sam", text="/Start@FriendBot now").command == "start"
    assert InboundEvent("1", "Sam", text="/").command == ""
    assert InboundEvent("1", "Sam", text="hi").command == ""


# ---------------------------------------------------------------------------
# Outbound
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_send_message():
    t = TelegramTransport(token="123:abc")
    with patch("friendline.transport.telegram.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, {"ok": True, "result": {"message_id": 5}})
        assert await t.send("42", "hey")

    args, kwargs = client.post.call_args
    assert args[0] == "https://api.telegram.org/bot123:abc/sendMessage"
    assert kwargs["json"] == {"chat_id": "42", "text": "hey"}


@pytest.mark.asyncio
async def test_send_typing():
    t = TelegramTransport(token="123:abc")
    with patch("friendline.transport.telegram.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, {"ok": True, "result": True})
        assert await t.send_typing("42")
    assert client.post.call_args.kwargs["json"] == {"chat_id": "42", "action": "typing"}


@pytest.mark.asyncio
async def test_send_rejected_returns_false():
    t = TelegramTransport(token="123:abc")
    with patch("friendline.transport.telegram.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, {"ok": False, "description": "chat not found"}, status_code=400)
        assert not await t.send("42", "hey")


@pytest.mark.asyncio
async def test_send_network_error_returns_false():
    t = TelegramTransport(token="123:abc")
    with patch("friendline.transport.telegram.httpx.AsyncClient") as mock_client_cls:
        _mock_client(mock_client_cls, side_effect=httpx.ConnectError("down"))
        assert not await t.send("42", "hey")


# ---------------------------------------------------------------------------
# Polling
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_get_updates_advances_offset():
    t = TelegramTransport(token="123:abc", poll_timeout=1)
    payload = {"ok": True, "result": [{"update_id": 10}, {"update_id": 11}]}
    with patch("friendline.transport.telegram.httpx.AsyncClient") as mock_client_cls:
        client = _mock_client(mock_client_cls, payload)
        updates = await t.get_updates()
        await t.get_updates()

    assert len(updates) == 2
    assert client.post.call_args.kwargs["json"]["offset"] == 12


@pytest.mark.asyncio
async def test_poll_dispatches_in_order():
    t = TelegramTransport(token="123:abc")
    seen = []

    async def handler(event):
        seen.append(event.text)

    updates = [
        {"update_id": 1, "message": {"chat": {"id": 1}, "text": "first"}},
        {"update_id": 2, "message": {"chat": {"id": 1}, "text": "second"}},
    ]

    async def one_round():
        t.stop()
        return updates

    t.delete_webhook = AsyncMock(return_value=True)
    t.get_updates = one_round
    await t.poll(handler)
    await asyncio.gather(*list(t._tasks))

    assert seen == ["first", "second"]


@pytest.mark.asyncio
async def test_poll_survives_errors():
    t = TelegramTransport(token="123:abc", retry_seconds=0)
    calls = 0

    async def flaky():
        nonlocal calls
        calls += 1
        if calls == 1:
            raise httpx.ConnectError("down")
        t.stop()
        return []

    t.delete_webhook = AsyncMock(return_value=True)
    t.get_updates = flaky
    await t.poll(AsyncMock())
    assert calls == 2


@pytest.mark.asyncio
async def test_cancel_pending_stops_in_flight_events():
    t = TelegramTransport(token="123:abc")
    started = asyncio.Event()

    async def slow_handler(event):
        started.set()
        await asyncio.sleep(3600)

    task = t.dispatch(InboundEvent(conversation_id="1", display_name="Sam", text="yo"), slow_handler)
    await started.wait()

    pending = t.cancel_pending()
    assert pending == [task]
    await asyncio.gather(*pending, return_exceptions=True)

    assert task.cancelled()
    assert not t._tasks


@pytest.mark.asyncio
async def test_cancel_pending_with_nothing_in_flight():
    t = TelegramTransport(token="123:abc")
    assert t.cancel_pending() == []
