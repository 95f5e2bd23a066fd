"""Channel state tracking."""

from peerlink.session.api import ChannelClosed, ChannelOpened, EventBus
from peerlink.session.channels import ChannelStateTracker


def _tracker(sink):
    bus = EventBus()
    seen = []
    bus.subscribe(seen.append)
    return ChannelStateTracker(sink=sink, events=bus), seen


def test_unknown_peer_is_inactive(sink):
    tracker, _ = _tracker(sink)
    assert tracker.is_active("nobody") is False


def test_open_marks_active_requests_sync_and_notifies(sink):
    tracker, seen = _tracker(sink)
    tracker.on_open("a")
    assert tracker.is_active("a")
    assert sink.full_syncs == 1
    assert seen == [ChannelOpened("a")]


def test_close_marks_inactive_clears_entities_and_notifies(sink):
    tracker, seen = _tracker(sink)
    tracker.on_open("a")
    tracker.on_close("a")
    assert tracker.is_active("a") is False
    assert sink.cleared == ["a"]
    assert seen == [ChannelOpened("a"), ChannelClosed("a")]


def test_active_peers(sink):
    tracker, _ = _tracker(sink)
    tracker.on_open("a")
    tracker.on_open("b")
    tracker.on_close("a")
    assert tracker.active_peers() == ["b"]
