"""Message routing between the application and the adapter."""

from __future__ import annotations

import logging

from peerlink.session.channels import ChannelStateTracker
from peerlink.session.errors import UnknownTagError
from peerlink.session.ports import AdapterPort, PeerId
from peerlink.session.subscriptions import SubscriptionRegistry

log = logging.getLogger("session.router")


class MessageRouter:
    def __init__(
        self,
        *,
        adapter: AdapterPort,
        channels: ChannelStateTracker,
        subscriptions: SubscriptionRegistry,
    ):
        self._adapter = adapter
        self._channels = channels
        self._subscriptions = subscriptions

    def send(self, to_peer: PeerId, tag: str, payload: object, guaranteed: bool = False) -> None:
        if not self._channels.is_active(to_peer):
            # No queueing: a peer without an open channel simply misses it.
            log.debug("Dropping %r to %s: no active data channel", tag, to_peer)
            return
        if guaranteed:
            self._adapter.send_guaranteed(to_peer, tag, payload)
        else:
            self._adapter.send(to_peer, tag, payload)

    def send_guaranteed(self, to_peer: PeerId, tag: str, payload: object) -> None:
        self.send(to_peer, tag, payload, guaranteed=True)

    def broadcast(self, tag: str, payload: object, guaranteed: bool = False) -> None:
        if guaranteed:
            self._adapter.broadcast_guaranteed(tag, payload)
        else:
            self._adapter.broadcast(tag, payload)

    def receive(self, from_peer: PeerId, tag: str, payload: object) -> bool:
        """Dispatch inbound data; returns False when nobody handled it."""
        try:
            self._subscriptions.dispatch(from_peer, tag, payload)
        except UnknownTagError as exc:
            log.warning("%s. Call subscribe() first", exc)
            return False
        return True
