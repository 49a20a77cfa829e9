import json

import httpx
from httpx import MockTransport, Response

from notifier import RelayNotifier


def test_notify_posts_room_and_message():
    captured: dict = {}

    def handler(request):
        captured["path"] = request.url.path
        captured["body"] = json.loads(request.content)
        captured["auth"] = request.headers.get("Authorization")
        return Response(200, json={"status": "accepted"})

    notifier = RelayNotifier(base_url="http://relay.internal", token=None, transport=MockTransport(handler))

    assert notifier.notify("conv-42", {"id": "m1", "text": "hi"}) is True
    assert captured["path"] == "/emit"
    assert captured["body"] == {"conversationId": "conv-42", "message": {"id": "m1", "text": "hi"}}
    assert captured["auth"] is None
    assert notifier.sent == 1
    assert notifier.failures == 0


def test_notify_sends_bearer_token():
    captured: dict = {}

    def handler(request):
        captured["auth"] = request.headers.get("Authorization")
        return Response(200, json={"status": "accepted"})

    with RelayNotifier(base_url="http://relay.internal", token="s3cret", transport=MockTransport(handler)) as notifier:
        notifier.notify("conv-1", "hi")

    assert captured["auth"] == "Bearer s3cret"


def test_notify_counts_rejections_without_raising():
    def handler(request):
        return Response(400, json={"detail": "Invalid publish request: conversationId"})

    notifier = RelayNotifier(base_url="http://relay.internal", token=None, transport=MockTransport(handler))

    assert notifier.notify("", "hi") is False
    assert notifier.failures == 1
    assert notifier.sent == 0


def test_notify_survives_relay_outage():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    notifier = RelayNotifier(base_url="http://relay.internal", token=None, transport=MockTransport(handler))

    assert notifier.notify("conv-1", {"id": "m1"}) is False
    assert notifier.notify("conv-1", {"id": "m2"}) is False
    assert notifier.failures == 2
