"""Adapter registry.

This provides a single place to map an adapter name to its concrete
transport. Callers should depend on the `AdapterPort` protocol.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from peerlink.config import XmppConfig

if TYPE_CHECKING:
    from peerlink.adapters.loopback import LoopbackHub
    from peerlink.session.ports import AdapterPort


def create_adapter(
    name: str,
    *,
    hub: LoopbackHub | None = None,
    xmpp_config: XmppConfig | None = None,
) -> AdapterPort:
    name = (name or "").strip().lower()

    if name == "loopback":
        from peerlink.adapters.loopback import LoopbackAdapter, LoopbackHub

        return LoopbackAdapter(hub or LoopbackHub())

    if name == "xmpp":
        from peerlink.adapters.xmpp import XmppRoomAdapter

        return XmppRoomAdapter(xmpp_config)

    if name in ("websocket", "ws"):
        from peerlink.adapters.websocket import WebSocketAdapter

        return WebSocketAdapter()

    raise ValueError(f"Unknown adapter: {name}")
