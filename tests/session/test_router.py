"""Message routing: send gating, delivery mode and inbound dispatch."""

import pytest

from peerlink.session.api import EventBus
from peerlink.session.channels import ChannelStateTracker
from peerlink.session.router import MessageRouter
from peerlink.session.subscriptions import SubscriptionRegistry


@pytest.fixture
def parts(adapter, sink):
    channels = ChannelStateTracker(sink=sink, events=EventBus())
    subscriptions = SubscriptionRegistry(sink)
    router = MessageRouter(adapter=adapter, channels=channels, subscriptions=subscriptions)
    return router, channels, subscriptions


def test_send_without_channel_is_dropped(parts, adapter):
    router, _, _ = parts
    router.send("p", "chat", {"text": "hi"}, False)
    router.send("p", "chat", {"text": "hi"}, True)
    assert adapter.calls == []


def test_send_after_close_is_dropped(parts, adapter):
    router, channels, _ = parts
    channels.on_open("p")
    channels.on_close("p")
    router.send("p", "chat", 1)
    assert adapter.calls == []


def test_best_effort_send(parts, adapter):
    router, channels, _ = parts
    channels.on_open("p")
    router.send("p", "chat", {"text": "hi"}, False)
    assert adapter.calls == [("send", "p", "chat", {"text": "hi"})]


def test_guaranteed_send(parts, adapter):
    router, channels, _ = parts
    channels.on_open("p")
    router.send("p", "chat", {"text": "hi"}, True)
    assert adapter.calls == [("send_guaranteed", "p", "chat", {"text": "hi"})]


def test_send_guaranteed_shorthand(parts, adapter):
    router, channels, _ = parts
    channels.on_open("p")
    router.send_guaranteed("p", "chat", 1)
    assert adapter.calls == [("send_guaranteed", "p", "chat", 1)]


def test_broadcast_ignores_channel_state(parts, adapter):
    router, _, _ = parts
    router.broadcast("chat", 1)
    router.broadcast("chat", 2, guaranteed=True)
    assert adapter.calls == [("broadcast", "chat", 1), ("broadcast_guaranteed", "chat", 2)]


def test_receive_unknown_tag_is_absorbed(parts, caplog):
    router, _, _ = parts
    assert router.receive("p", "no-such-tag", {}) is False
    assert "no-such-tag" in caplog.text


def test_receive_dispatches(parts):
    router, _, subscriptions = parts
    got = []
    subscriptions.subscribe("chat", lambda *args: got.append(args))
    assert router.receive("p", "chat", "hi") is True
    assert got == [("p", "chat", "hi")]
