"""XMPP room adapter: stanza extension helpers and inbound routing.

No XMPP server is involved; RoomBot is replaced by a recorder.
"""

import pytest
from slixmpp.xmlstream import ET

from peerlink.adapters.base import SIGNAL_OPEN, SIGNAL_OPEN_ACK
from peerlink.adapters.xmpp import (
    DATA_NS,
    HINTS_NS,
    KIND_DATA,
    XmppRoomAdapter,
    build_data_element,
    build_hint_element,
    extract_data_element,
    parse_server_url,
    room_node,
)
from peerlink.config import XmppConfig
from peerlink.session.ports import Occupant


def _stanza(*children):
    root = ET.Element("{jabber:client}message")
    for child in children:
        root.append(child)
    return root


class TestDataElement:
    def test_build_and_extract(self):
        el = build_data_element(KIND_DATA, tag="chat", payload={"text": "hi", "n": [1, 2]})
        assert el.tag == f"{{{DATA_NS}}}data"
        assert extract_data_element(_stanza(el)) == (KIND_DATA, "chat", {"text": "hi", "n": [1, 2]})

    def test_signal_has_no_payload(self):
        el = build_data_element(SIGNAL_OPEN)
        assert extract_data_element(_stanza(el)) == (SIGNAL_OPEN, None, None)

    def test_absent_extension(self):
        body = ET.Element("{jabber:client}body")
        body.text = "plain chat"
        assert extract_data_element(_stanza(body)) == (None, None, None)

    def test_malformed_json_raises_value_error(self):
        el = ET.Element(f"{{{DATA_NS}}}data", {"kind": KIND_DATA, "tag": "t", "format": "json"})
        el.text = "{not json"
        with pytest.raises(ValueError):
            extract_data_element(_stanza(el))

    def test_hints(self):
        assert build_hint_element(True).tag == f"{{{HINTS_NS}}}store"
        assert build_hint_element(False).tag == f"{{{HINTS_NS}}}no-store"


def test_room_node_is_sanitized():
    assert room_node("My App", "Room/1") == "myapp.room1"
    assert room_node("", "") == "."


def test_parse_server_url():
    assert parse_server_url(None, default_host="example.org", default_port=5222) == ("example.org", 5222)
    assert parse_server_url("xmpp.example.org", default_host="d", default_port=5222) == ("xmpp.example.org", 5222)
    assert parse_server_url("xmpp://xmpp.example.org:5223", default_host="d", default_port=5222) == (
        "xmpp.example.org",
        5223,
    )


class FakeBot:
    def __init__(self):
        self.sent = []
        self.occupants = set()
        self.left = False

    def send_data(self, nick, kind, *, tag=None, payload=None, guaranteed=True):
        self.sent.append((nick, kind, tag, payload, guaranteed))

    def leave(self):
        self.left = True


@pytest.fixture
def xmpp():
    adapter = XmppRoomAdapter(XmppConfig(jid="me@example.org", password="pw"))
    adapter.set_app("app")
    adapter.set_room("lobby")
    adapter.bot = FakeBot()
    events = {"success": [], "failure": [], "open": [], "close": [], "data": [], "occupants": []}
    adapter.set_server_connect_listeners(events["success"].append, lambda c, m: events["failure"].append((c, m)))
    adapter.set_data_channel_listeners(
        events["open"].append, events["close"].append, lambda *a: events["data"].append(a)
    )
    adapter.set_room_occupant_listener(events["occupants"].append)
    return adapter, events


def test_room_jid_uses_default_conference_service(xmpp):
    adapter, _ = xmpp
    assert adapter.room_jid() == "app.lobby@conference.example.org"


def test_joined_reports_login_and_snapshot(xmpp):
    adapter, events = xmpp
    adapter.bot.occupants.update({"bob", "carol"})
    adapter.on_joined("alice")
    assert events["success"] == ["alice"]
    assert events["occupants"] == [{"bob": Occupant("bob", "bob"), "carol": Occupant("carol", "carol")}]
    assert adapter.should_initiate(Occupant("bob", "bob"))


def test_login_failure_only_before_join(xmpp):
    adapter, events = xmpp
    adapter.on_login_failed("auth", "authentication failed")
    adapter.on_joined("alice")
    adapter.on_login_failed("connection_failed", "later")
    assert events["failure"] == [("auth", "authentication failed")]


def test_handshake_and_data_over_stanzas(xmpp):
    adapter, events = xmpp
    adapter.on_joined("alice")
    adapter.open_channel("bob")
    assert adapter.bot.sent[-1] == ("bob", SIGNAL_OPEN, None, None, True)

    adapter.on_stanza("bob", SIGNAL_OPEN_ACK, None, None)
    assert events["open"] == ["bob"]

    adapter.send("bob", "chat", {"text": "hi"})
    assert adapter.bot.sent[-1] == ("bob", KIND_DATA, "chat", {"text": "hi"}, False)

    adapter.broadcast_guaranteed("chat", 1)
    assert adapter.bot.sent[-1] == (None, KIND_DATA, "chat", 1, True)

    adapter.on_stanza("bob", KIND_DATA, "chat", {"text": "yo"})
    assert events["data"] == [("bob", "chat", {"text": "yo"})]


def test_stream_lost_closes_channels(xmpp):
    adapter, events = xmpp
    adapter.on_joined("alice")
    adapter.on_stanza("bob", SIGNAL_OPEN, None, None)
    adapter.on_stream_lost()
    assert events["close"] == ["bob"]


def test_connect_without_jid_reports_failure(monkeypatch):
    monkeypatch.delenv("XMPP_JID", raising=False)
    adapter = XmppRoomAdapter(XmppConfig())
    failures = []
    adapter.set_server_connect_listeners(lambda local_id: None, lambda c, m: failures.append(c))
    adapter.set_app("app")
    adapter.set_room("lobby")
    adapter.connect()
    assert failures == ["config"]
