"""
Pytest configuration and shared fixtures.
"""

import pytest

from peerlink.session import ConnectionSession
from peerlink.session.ports import ConnectStatus


class RecordingAdapter:
    """AdapterPort double: records every call and lets tests fire callbacks."""

    def __init__(self):
        self.calls = []
        self.status = {}
        self.media = None
        self.on_success = self.on_failure = None
        self.on_open = self.on_close = self.on_message = None
        self.on_occupants = None

    def set_server_url(self, url):
        self.calls.append(("set_server_url", url))

    def set_app(self, app):
        self.calls.append(("set_app", app))

    def set_room(self, room):
        self.calls.append(("set_room", room))

    def set_media_options(self, options):
        self.media = options

    def set_server_connect_listeners(self, on_success, on_failure):
        self.on_success, self.on_failure = on_success, on_failure

    def set_data_channel_listeners(self, on_open, on_close, on_message):
        self.on_open, self.on_close, self.on_message = on_open, on_close, on_message

    def set_room_occupant_listener(self, on_occupants):
        self.on_occupants = on_occupants

    def connect(self):
        self.calls.append(("connect",))

    def disconnect(self):
        self.calls.append(("disconnect",))

    def should_initiate(self, meta):
        return bool(meta.get("initiate"))

    def open_channel(self, peer_id):
        self.calls.append(("open_channel", peer_id))

    def close_channel(self, peer_id):
        self.calls.append(("close_channel", peer_id))

    def connection_status(self, peer_id):
        return self.status.get(peer_id, ConnectStatus.NOT_CONNECTED)

    def send(self, peer_id, tag, payload):
        self.calls.append(("send", peer_id, tag, payload))

    def send_guaranteed(self, peer_id, tag, payload):
        self.calls.append(("send_guaranteed", peer_id, tag, payload))

    def broadcast(self, tag, payload):
        self.calls.append(("broadcast", tag, payload))

    def broadcast_guaranteed(self, tag, payload):
        self.calls.append(("broadcast_guaranteed", tag, payload))

    def calls_named(self, name):
        return [c for c in self.calls if c[0] == name]


class RecordingSink:
    """EntitySinkPort double."""

    def __init__(self):
        self.updates = []
        self.removes = []
        self.full_syncs = 0
        self.cleared = []

    def apply_remote_update(self, from_peer, tag, payload):
        self.updates.append((from_peer, tag, payload))

    def remove_remote_entity(self, from_peer, tag, payload):
        self.removes.append((from_peer, tag, payload))

    def request_full_sync(self):
        self.full_syncs += 1

    def remove_all_entities_from_peer(self, peer_id):
        self.cleared.append(peer_id)


@pytest.fixture
def adapter():
    return RecordingAdapter()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def session(adapter, sink):
    return ConnectionSession(adapter, sink)


@pytest.fixture
def events(session):
    """Every notification the session emits, in order."""
    seen = []
    session.add_listener(seen.append)
    return seen


@pytest.fixture
def connected(session, adapter):
    """A session that has logged in as 'me'."""
    session.connect("ws://relay", "app", "room")
    adapter.on_success("me")
    return session
