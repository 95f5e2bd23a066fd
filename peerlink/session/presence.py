"""Occupant snapshot reconciliation.

Each occupant update replaces the previous snapshot wholesale. The diff is
taken against the immediately preceding snapshot only: peers that vanished
get their channel closed, first-seen peers that this side should dial get a
channel opened.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable

from peerlink.session.api import EventBus, PeerConnected, PeerDisconnected
from peerlink.session.ports import AdapterPort, ConnectStatus, OccupantSnapshot, PeerId

log = logging.getLogger("presence")


@dataclass(frozen=True)
class PresenceDelta:
    departed: frozenset[PeerId]
    arrived: frozenset[PeerId]

    @property
    def empty(self) -> bool:
        return not self.departed and not self.arrived


def reconcile(
    old: OccupantSnapshot,
    new: OccupantSnapshot,
    should_initiate: Callable[[object], bool],
) -> PresenceDelta:
    """Diff two snapshots by key membership.

    `arrived` only holds peers this side has to dial; metadata changes on an
    already-known peer are ignored.
    """
    departed = frozenset(peer for peer in old if peer not in new)
    arrived = frozenset(
        peer for peer, meta in new.items() if peer not in old and should_initiate(meta)
    )
    return PresenceDelta(departed=departed, arrived=arrived)


class PresenceReconciler:
    def __init__(self, *, adapter: AdapterPort, events: EventBus):
        self._adapter = adapter
        self._events = events

    def apply(self, old: OccupantSnapshot, new: OccupantSnapshot) -> PresenceDelta:
        delta = reconcile(old, new, self._adapter.should_initiate)

        for peer_id in delta.departed:
            log.info("Closing stream to %s", peer_id)
            self._adapter.close_channel(peer_id)
            self._events.emit(PeerDisconnected(peer_id))

        for peer_id in delta.arrived:
            # The adapter may already hold a link (e.g. the remote side dialed
            # first); don't open a second one.
            if self._adapter.connection_status(peer_id) is ConnectStatus.CONNECTED:
                continue
            log.info("Opening stream to %s", peer_id)
            self._adapter.open_channel(peer_id)
            self._events.emit(PeerConnected(peer_id))

        return delta
