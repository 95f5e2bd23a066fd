"""Per-peer data channel state."""

from __future__ import annotations

import logging

from peerlink.session.api import ChannelClosed, ChannelOpened, EventBus
from peerlink.session.ports import EntitySinkPort, PeerId

log = logging.getLogger("session.channels")


class ChannelStateTracker:
    """Tracks which peers have an open data channel.

    Entries are kept after a close so a closed peer reads as inactive, same as
    one that was never opened.
    """

    def __init__(self, *, sink: EntitySinkPort, events: EventBus):
        self._sink = sink
        self._events = events
        self._state: dict[PeerId, bool] = {}

    def on_open(self, peer_id: PeerId) -> None:
        log.info("Opened data channel from %s", peer_id)
        self._state[peer_id] = True
        self._sink.request_full_sync()
        self._events.emit(ChannelOpened(peer_id))

    def on_close(self, peer_id: PeerId) -> None:
        log.info("Closed data channel from %s", peer_id)
        self._state[peer_id] = False
        self._sink.remove_all_entities_from_peer(peer_id)
        self._events.emit(ChannelClosed(peer_id))

    def is_active(self, peer_id: PeerId) -> bool:
        return self._state.get(peer_id, False)

    def active_peers(self) -> list[PeerId]:
        return [peer for peer, is_open in self._state.items() if is_open]
