"""In-memory cache of entities owned by remote peers.

Keeps the latest update payload per networkId per owning peer. Anything that
renders or simulates those entities sits on top of this.
"""

from __future__ import annotations

import logging
from typing import Callable

from peerlink.session.ports import PeerId

log = logging.getLogger("entities")


def _network_id(payload: object) -> str | None:
    if isinstance(payload, dict):
        nid = payload.get("networkId")
        if isinstance(nid, str) and nid:
            return nid
    return None


class RemoteEntityCache:
    def __init__(self, *, on_full_sync: Callable[[], None] | None = None):
        self._on_full_sync = on_full_sync
        self._entities: dict[PeerId, dict[str, object]] = {}
        self.full_sync_requests = 0

    def apply_remote_update(self, from_peer: PeerId, tag: str, payload: object) -> None:
        # A peer may batch several entity updates into one message.
        items = payload if isinstance(payload, list) else [payload]
        for item in items:
            nid = _network_id(item)
            if nid is None:
                log.warning("Update from %s without networkId; ignoring", from_peer)
                continue
            self._entities.setdefault(from_peer, {})[nid] = item

    def remove_remote_entity(self, from_peer: PeerId, tag: str, payload: object) -> None:
        nid = _network_id(payload)
        owned = self._entities.get(from_peer)
        if nid is None or not owned:
            return
        owned.pop(nid, None)
        if not owned:
            del self._entities[from_peer]

    def request_full_sync(self) -> None:
        self.full_sync_requests += 1
        if self._on_full_sync:
            self._on_full_sync()

    def remove_all_entities_from_peer(self, peer_id: PeerId) -> list[str]:
        removed = self._entities.pop(peer_id, {})
        if removed:
            log.info("Removed %d entit%s owned by %s", len(removed), "y" if len(removed) == 1 else "ies", peer_id)
        return list(removed)

    def get(self, peer_id: PeerId, network_id: str) -> object | None:
        return self._entities.get(peer_id, {}).get(network_id)

    def entities_from(self, peer_id: PeerId) -> dict[str, object]:
        return dict(self._entities.get(peer_id, {}))

    def __len__(self) -> int:
        return sum(len(owned) for owned in self._entities.values())
