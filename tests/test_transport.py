import pytest
import requests

from printbot.transport import OutboxTransport, WebhookTransport


@pytest.mark.anyio
async def test_outbox_reply_edit_and_send():
    outbox = OutboxTransport()
    message_id = await outbox.reply("c1", "first")
    await outbox.edit_last_reply("c1", "second")
    await outbox.send("u2", "news")

    events = outbox.drain("c1")
    assert [(e["type"], e["text"]) for e in events] == [("reply", "first"), ("edit", "second")]
    assert events[1]["id"] == message_id
    assert outbox.peek("u2")[0]["type"] == "message"
    assert outbox.drain("c1") == []


@pytest.mark.anyio
async def test_edit_without_previous_reply_sends_reply():
    outbox = OutboxTransport()
    await outbox.edit_last_reply("c1", "hello")
    assert outbox.drain("c1")[0]["type"] == "reply"


class FakeResponse:
    def __init__(self, data=None):
        self._data = data or {}
        self.content = b"{}" if data else b""

    def raise_for_status(self):
        pass

    def json(self):
        return self._data


@pytest.mark.anyio
async def test_webhook_posts_to_gateway(monkeypatch):
    calls = []

    def fake_post(url, json, headers, timeout):
        calls.append((url, json, headers))
        return FakeResponse({"message_id": "m-1"})

    monkeypatch.setattr(requests, "post", fake_post)
    transport = WebhookTransport("http://gw/", token="secret")

    assert await transport.reply("c1", "hi") == "m-1"
    await transport.edit_last_reply("c1", "edited")
    await transport.send("u2", "news")

    assert [c[0] for c in calls] == ["http://gw/messages", "http://gw/messages/m-1/edit", "http://gw/messages"]
    assert calls[0][2]["X-Bot-Token"] == "secret"
    assert calls[2][1] == {"recipient_id": "u2", "text": "news"}
