"""XMPP multi-user chat transport (XEP-0045).

The session room is a MUC room named "{app}.{room}" on the configured MUC
service. Occupants come from room presence and are keyed by nick. Channel
signals and per-peer data travel as private room messages; broadcasts are
groupchat messages. Both carry a <data xmlns="urn:peerlink:data"/> element
with a JSON payload, so clients that ignore unknown extensions are unaffected.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, cast

from slixmpp import ClientXMPP
from slixmpp.exceptions import PresenceError
from slixmpp.xmlstream import ET

from peerlink.adapters.base import SIGNAL_KINDS, BaseAdapter
from peerlink.config import XmppConfig
from peerlink.session.ports import Occupant, OccupantSnapshot, PeerId

log = logging.getLogger("xmpp")

DATA_NS = "urn:peerlink:data"
HINTS_NS = "urn:xmpp:hints"
KIND_DATA = "data"


def build_data_element(
    kind: str,
    *,
    tag: str | None = None,
    payload: object | None = None,
) -> ET.Element:
    """Build the peerlink data extension element."""

    el = ET.Element(f"{{{DATA_NS}}}data")
    el.set("kind", kind)
    if tag:
        el.set("tag", tag)
    if payload is not None:
        el.set("format", "json")
        el.text = json.dumps(payload, ensure_ascii=True, separators=(",", ":"))
    return el


def build_hint_element(guaranteed: bool) -> ET.Element:
    # XEP-0334: best-effort traffic must not end up in archives/offline storage.
    name = "store" if guaranteed else "no-store"
    return ET.Element(f"{{{HINTS_NS}}}{name}")


def extract_data_element(xml) -> tuple[str | None, str | None, object | None]:
    """Return (kind, tag, payload) from a stanza, or Nones if absent."""
    for child in xml if xml is not None else []:
        if getattr(child, "tag", None) != f"{{{DATA_NS}}}data":
            continue
        kind = child.get("kind")
        tag = child.get("tag")
        payload: object | None = None
        if (child.get("format") or "").lower() == "json":
            raw = (child.text or "").strip()
            if raw:
                payload = json.loads(raw)
        return kind, tag, payload
    return None, None, None


def room_node(app: str, room: str) -> str:
    raw = f"{app}.{room}".lower()
    out = [ch for ch in raw if ch.isalnum() or ch in {"-", "_", "."}]
    return "".join(out) or "_"


def parse_server_url(url: str | None, *, default_host: str, default_port: int) -> tuple[str, int]:
    raw = (url or "").strip()
    if not raw:
        return default_host, default_port
    if "://" in raw:
        raw = raw.split("://", 1)[1]
    raw = raw.split("/", 1)[0]
    host, sep, port = raw.rpartition(":")
    if sep and port.isdigit():
        return host or default_host, int(port)
    return raw, default_port


class RoomBot(ClientXMPP):
    """XMPP client that sits in one MUC room on behalf of an adapter."""

    def __init__(
        self,
        jid: str,
        password: str,
        *,
        room_jid: str,
        nick: str,
        adapter: XmppRoomAdapter,
    ):
        super().__init__(jid, password)
        self.log = logging.getLogger(f"xmpp.{nick}")
        self.room_jid = room_jid
        self.nick = nick
        self.adapter = adapter
        self.joined = False
        self.occupants: set[str] = set()

        self.register_plugin("xep_0030")  # Service Discovery
        self.register_plugin("xep_0045")  # Multi-User Chat
        self.register_plugin("xep_0199")  # Ping

        self.add_event_handler("session_start", self.on_start)
        self.add_event_handler("failed_auth", self.on_failed_auth)
        self.add_event_handler("connection_failed", self.on_connection_failed)
        self.add_event_handler("disconnected", self.on_disconnected)
        self.add_event_handler("message", self.on_message)
        self.add_event_handler("groupchat_message", self.on_groupchat)
        self.add_event_handler(f"muc::{room_jid}::got_online", self.on_got_online)
        self.add_event_handler(f"muc::{room_jid}::got_offline", self.on_got_offline)

    def connect_to_server(self, server: str, port: int = 5222, *, plaintext: bool = False):
        if plaintext:
            self["feature_mechanisms"].unencrypted_plain = True  # type: ignore[attr-defined]
            self.enable_starttls = False
            self.enable_direct_tls = False
            self.enable_plaintext = True
        # slixmpp.ClientXMPP.connect expects a single address tuple.
        self.connect((server, port))  # type: ignore[arg-type]

    async def on_start(self, event):
        self.send_presence()
        muc = cast(Any, self["xep_0045"])
        try:
            # No history replay: old data messages are meaningless to a new peer.
            await muc.join_muc_wait(self.room_jid, self.nick, maxstanzas=0, timeout=30)
        except (PresenceError, asyncio.TimeoutError) as exc:
            self.log.error("Failed to join %s: %s", self.room_jid, exc)
            self.adapter.on_login_failed("join", str(exc) or type(exc).__name__)
            self.disconnect()
            return
        self.joined = True
        self.log.info("Joined %s as %s", self.room_jid, self.nick)
        self.adapter.on_joined(self.nick)

    def on_failed_auth(self, event):
        self.adapter.on_login_failed("auth", "authentication failed")
        self.disconnect()

    def on_connection_failed(self, event):
        self.adapter.on_login_failed("connection_failed", str(event))

    def on_disconnected(self, event):
        was_joined = self.joined
        self.joined = False
        self.occupants.clear()
        if was_joined:
            self.adapter.on_stream_lost()

    def on_got_online(self, presence):
        nick = presence["from"].resource
        if not nick or nick == self.nick:
            return
        self.occupants.add(nick)
        if self.joined:
            self.adapter.on_room_changed()

    def on_got_offline(self, presence):
        nick = presence["from"].resource
        if not nick or nick == self.nick:
            return
        self.occupants.discard(nick)
        if self.joined:
            self.adapter.on_room_changed()

    def on_message(self, msg):
        # groupchat has its own handler; errors are not ours to route.
        if msg["type"] not in ("chat", "normal"):
            return
        frm = msg["from"]
        if str(frm.bare) != self.room_jid or not frm.resource:
            return
        self._route(frm.resource, msg)

    def on_groupchat(self, msg):
        frm = msg["from"]
        if not self.joined or not frm.resource or frm.resource == self.nick:
            return
        self._route(frm.resource, msg)

    def _route(self, nick: str, msg) -> None:
        try:
            kind, tag, payload = extract_data_element(msg.xml)
        except ValueError:
            self.log.warning("Malformed data payload from %s", nick)
            return
        if kind is None:
            return
        self.adapter.on_stanza(nick, kind, tag, payload)

    def send_data(
        self,
        nick: str | None,
        kind: str,
        *,
        tag: str | None = None,
        payload: object | None = None,
        guaranteed: bool = True,
    ) -> None:
        if nick is None:
            msg = self.make_message(mto=self.room_jid, mtype="groupchat")
        else:
            msg = self.make_message(mto=f"{self.room_jid}/{nick}", mtype="chat")
        msg.xml.append(build_data_element(kind, tag=tag, payload=payload))
        msg.xml.append(build_hint_element(guaranteed))
        msg.send()

    def leave(self) -> None:
        if self.joined:
            muc = cast(Any, self["xep_0045"])
            muc.leave_muc(self.room_jid, self.nick)
        self.joined = False
        self.disconnect()


class XmppRoomAdapter(BaseAdapter):
    def __init__(self, config: XmppConfig | None = None):
        super().__init__()
        self.xmpp_config = config or XmppConfig()
        self.bot: RoomBot | None = None

    def room_jid(self) -> str:
        return f"{room_node(self.app or '', self.room or '')}@{self.xmpp_config.resolve_muc_service()}"

    def connect(self) -> None:
        if not self.app or not self.room:
            self._failed("bad-request", "app and room must be set before connect")
            return
        cfg = self.xmpp_config
        try:
            jid = cfg.resolve_jid()
            room_jid = self.room_jid()
        except ValueError as exc:
            self._failed("config", str(exc))
            return

        domain = jid.split("@", 1)[-1].split("/", 1)[0]
        host, port = parse_server_url(
            self.server_url, default_host=domain, default_port=cfg.resolve_port()
        )
        bot = RoomBot(
            jid,
            cfg.resolve_password(),
            room_jid=room_jid,
            nick=cfg.resolve_nick(),
            adapter=self,
        )
        self.bot = bot
        log.info("Connecting %s to %s:%s (room=%s)", jid, host, port, room_jid)
        bot.connect_to_server(host, port, plaintext=cfg.resolve_plaintext())

    def _leave(self) -> None:
        bot, self.bot = self.bot, None
        if bot is not None:
            bot.leave()

    def snapshot(self) -> OccupantSnapshot:
        if self.bot is None:
            return {}
        # Nicks are unique per room, so they double as the tie-break rank.
        return {nick: Occupant(nick, nick) for nick in sorted(self.bot.occupants)}

    # Called by RoomBot

    def on_joined(self, nick: str) -> None:
        self._connected(nick, nick)
        self.handle_occupants(self.snapshot())

    def on_room_changed(self) -> None:
        self.handle_occupants(self.snapshot())

    def on_login_failed(self, code: str, message: str) -> None:
        if self.local_id is None:
            self._failed(code, message)
        else:
            log.warning("XMPP failure after login (%s): %s", code, message)

    def on_stream_lost(self) -> None:
        log.warning("XMPP stream lost; closing %d data channel(s)", len(self._links))
        self._drop_links()

    def on_stanza(self, nick: PeerId, kind: str, tag: str | None, payload: object) -> None:
        if kind == KIND_DATA:
            if tag:
                self.handle_data(nick, tag, payload)
        elif kind in SIGNAL_KINDS:
            self.handle_signal(nick, kind)
        else:
            log.debug("Ignoring %r stanza from %s", kind, nick)

    # Transport hooks

    def _send_signal(self, peer_id: PeerId, kind: str) -> None:
        if self.bot is not None:
            self.bot.send_data(peer_id, kind)

    def _transmit(self, peer_id: PeerId, tag: str, payload: object, *, guaranteed: bool) -> None:
        if self.bot is not None:
            self.bot.send_data(peer_id, KIND_DATA, tag=tag, payload=payload, guaranteed=guaranteed)

    def _transmit_all(self, tag: str, payload: object, *, guaranteed: bool) -> None:
        if self.bot is not None:
            self.bot.send_data(None, KIND_DATA, tag=tag, payload=payload, guaranteed=guaranteed)
