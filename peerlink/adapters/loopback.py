"""In-process transport.

Every adapter attached to the same LoopbackHub with the same (app, room) sees
the others as occupants. Delivery is synchronous, so a whole join/open
handshake completes inside the call that triggered it.
"""

from __future__ import annotations

import itertools
import logging
import uuid

from peerlink.adapters.base import BaseAdapter
from peerlink.session.ports import Occupant, PeerId

log = logging.getLogger("loopback")

RoomKey = tuple[str, str]


class LoopbackHub:
    def __init__(self) -> None:
        self._rooms: dict[RoomKey, dict[PeerId, LoopbackAdapter]] = {}
        self._ranks = itertools.count(1)

    def members(self, key: RoomKey) -> list[PeerId]:
        return list(self._rooms.get(key, {}))

    def join(self, adapter: LoopbackAdapter, key: RoomKey) -> tuple[PeerId, int]:
        peer_id = uuid.uuid4().hex[:12]
        rank = next(self._ranks)
        self._rooms.setdefault(key, {})[peer_id] = adapter
        log.debug("%s joined %s/%s", peer_id, *key)
        return peer_id, rank

    def leave(self, key: RoomKey, peer_id: PeerId) -> None:
        room = self._rooms.get(key)
        if not room or room.pop(peer_id, None) is None:
            return
        log.debug("%s left %s/%s", peer_id, *key)
        if not room:
            del self._rooms[key]
            return
        self.publish(key)

    def publish(self, key: RoomKey) -> None:
        room = self._rooms.get(key, {})
        everyone = {pid: Occupant(pid, adapter.local_rank) for pid, adapter in room.items()}
        for pid, adapter in list(room.items()):
            adapter.handle_occupants({k: v for k, v in everyone.items() if k != pid})

    def signal(self, key: RoomKey, from_peer: PeerId, to_peer: PeerId, kind: str) -> None:
        target = self._rooms.get(key, {}).get(to_peer)
        if target is not None:
            target.handle_signal(from_peer, kind)

    def deliver(
        self, key: RoomKey, from_peer: PeerId, to_peer: PeerId, tag: str, payload: object
    ) -> None:
        target = self._rooms.get(key, {}).get(to_peer)
        if target is not None:
            target.handle_data(from_peer, tag, payload)


class LoopbackAdapter(BaseAdapter):
    def __init__(self, hub: LoopbackHub):
        super().__init__()
        self.hub = hub
        self._key: RoomKey | None = None

    def connect(self) -> None:
        if not self.app or not self.room:
            self._failed("bad-request", "app and room must be set before connect")
            return
        if self._key is not None:
            self._failed("already-joined", f"already in {self._key[0]}/{self._key[1]}")
            return
        key = (self.app, self.room)
        peer_id, rank = self.hub.join(self, key)
        self._key = key
        self._connected(peer_id, rank)
        self.hub.publish(key)

    def _leave(self) -> None:
        key, self._key = self._key, None
        if key is not None and self.local_id is not None:
            self.hub.leave(key, self.local_id)

    def _send_signal(self, peer_id: PeerId, kind: str) -> None:
        if self._key is not None and self.local_id is not None:
            self.hub.signal(self._key, self.local_id, peer_id, kind)

    def _transmit(self, peer_id: PeerId, tag: str, payload: object, *, guaranteed: bool) -> None:
        if self._key is not None and self.local_id is not None:
            self.hub.deliver(self._key, self.local_id, peer_id, tag, payload)
