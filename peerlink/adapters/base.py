"""Base adapter functionality shared by transport implementations.

A data channel to a peer is a logical link negotiated over whatever signaling
path the transport has:

    dialer                      callee
      | --- open ------------->  |   callee marks the link open
      | <-------------- open-ack |   dialer marks the link open
      | --- close ------------>  |   either side, any time

Subclasses provide the signaling and data paths; this class keeps the link
table and turns handshake signals into channel open/close callbacks.
"""

from __future__ import annotations

import logging

from peerlink.config import MediaOptions
from peerlink.session.ports import (
    ChannelListener,
    ConnectFailureListener,
    ConnectStatus,
    ConnectSuccessListener,
    DataListener,
    Occupant,
    OccupantListener,
    OccupantSnapshot,
    PeerId,
)

log = logging.getLogger("adapter")

SIGNAL_OPEN = "open"
SIGNAL_OPEN_ACK = "open-ack"
SIGNAL_CLOSE = "close"
SIGNAL_KINDS = frozenset({SIGNAL_OPEN, SIGNAL_OPEN_ACK, SIGNAL_CLOSE})


class BaseAdapter:
    """Base class for network adapters."""

    def __init__(self) -> None:
        self.server_url: str | None = None
        self.app: str | None = None
        self.room: str | None = None
        self.media = MediaOptions()

        self.local_id: PeerId | None = None
        self.local_rank: object = None

        self._on_connect_success: ConnectSuccessListener | None = None
        self._on_connect_failure: ConnectFailureListener | None = None
        self._on_channel_open: ChannelListener | None = None
        self._on_channel_close: ChannelListener | None = None
        self._on_message: DataListener | None = None
        self._on_occupants: OccupantListener | None = None

        self._links: set[PeerId] = set()
        self._dialing: set[PeerId] = set()

    # ---------------------------------------------------------------------
    # Configuration
    # ---------------------------------------------------------------------

    def set_server_url(self, url: str) -> None:
        self.server_url = url

    def set_app(self, app: str) -> None:
        self.app = app

    def set_room(self, room: str) -> None:
        self.room = room

    def set_media_options(self, options: MediaOptions) -> None:
        self.media = options

    def set_server_connect_listeners(
        self,
        on_success: ConnectSuccessListener,
        on_failure: ConnectFailureListener,
    ) -> None:
        self._on_connect_success = on_success
        self._on_connect_failure = on_failure

    def set_data_channel_listeners(
        self,
        on_open: ChannelListener,
        on_close: ChannelListener,
        on_message: DataListener,
    ) -> None:
        self._on_channel_open = on_open
        self._on_channel_close = on_close
        self._on_message = on_message

    def set_room_occupant_listener(self, on_occupants: OccupantListener) -> None:
        self._on_occupants = on_occupants

    # ---------------------------------------------------------------------
    # Transport hooks (subclasses)
    # ---------------------------------------------------------------------

    def connect(self) -> None:
        raise NotImplementedError

    def _leave(self) -> None:
        raise NotImplementedError

    def _send_signal(self, peer_id: PeerId, kind: str) -> None:
        raise NotImplementedError

    def _transmit(self, peer_id: PeerId, tag: str, payload: object, *, guaranteed: bool) -> None:
        raise NotImplementedError

    def _transmit_all(self, tag: str, payload: object, *, guaranteed: bool) -> None:
        for peer_id in list(self._links):
            self._transmit(peer_id, tag, payload, guaranteed=guaranteed)

    # ---------------------------------------------------------------------
    # Adapter port
    # ---------------------------------------------------------------------

    def disconnect(self) -> None:
        for peer_id in list(self._links):
            self._send_signal(peer_id, SIGNAL_CLOSE)
        self._drop_links()
        self._leave()

    def should_initiate(self, meta: object) -> bool:
        """Lower (rank, id) dials; exactly one side of any pair says yes."""
        if not isinstance(meta, Occupant):
            return False
        try:
            return (self.local_rank, str(self.local_id)) < (meta.rank, str(meta.peer_id))
        except TypeError:
            # Mixed rank types (e.g. None before login); fall back to text order.
            return (str(self.local_rank), str(self.local_id)) < (str(meta.rank), str(meta.peer_id))

    def open_channel(self, peer_id: PeerId) -> None:
        if peer_id in self._links:
            return
        self._dialing.add(peer_id)
        self._send_signal(peer_id, SIGNAL_OPEN)

    def close_channel(self, peer_id: PeerId) -> None:
        self._dialing.discard(peer_id)
        self._send_signal(peer_id, SIGNAL_CLOSE)
        self._unlink(peer_id)

    def connection_status(self, peer_id: PeerId) -> ConnectStatus:
        if peer_id in self._links:
            return ConnectStatus.CONNECTED
        return ConnectStatus.NOT_CONNECTED

    def send(self, peer_id: PeerId, tag: str, payload: object) -> None:
        if peer_id not in self._links:
            log.debug("No link to %s; dropping %r", peer_id, tag)
            return
        self._transmit(peer_id, tag, payload, guaranteed=False)

    def send_guaranteed(self, peer_id: PeerId, tag: str, payload: object) -> None:
        if peer_id not in self._links:
            log.debug("No link to %s; dropping %r", peer_id, tag)
            return
        self._transmit(peer_id, tag, payload, guaranteed=True)

    def broadcast(self, tag: str, payload: object) -> None:
        self._transmit_all(tag, payload, guaranteed=False)

    def broadcast_guaranteed(self, tag: str, payload: object) -> None:
        self._transmit_all(tag, payload, guaranteed=True)

    # ---------------------------------------------------------------------
    # Inbound (called by subclasses)
    # ---------------------------------------------------------------------

    def handle_signal(self, from_peer: PeerId, kind: str) -> None:
        if kind == SIGNAL_OPEN:
            self._dialing.discard(from_peer)
            self._send_signal(from_peer, SIGNAL_OPEN_ACK)
            self._link(from_peer)
        elif kind == SIGNAL_OPEN_ACK:
            if from_peer not in self._dialing:
                log.debug("Unsolicited open-ack from %s", from_peer)
                return
            self._dialing.discard(from_peer)
            self._link(from_peer)
        elif kind == SIGNAL_CLOSE:
            self._dialing.discard(from_peer)
            self._unlink(from_peer)
        else:
            log.warning("Unknown signal %r from %s", kind, from_peer)

    def handle_data(self, from_peer: PeerId, tag: str, payload: object) -> None:
        if from_peer not in self._links:
            log.debug("Data %r from %s without a link; dropping", tag, from_peer)
            return
        if self._on_message:
            self._on_message(from_peer, tag, payload)

    def handle_occupants(self, snapshot: OccupantSnapshot) -> None:
        if self._on_occupants:
            self._on_occupants(snapshot)

    def _connected(self, local_id: PeerId, rank: object = None) -> None:
        self.local_id = local_id
        self.local_rank = rank
        if self._on_connect_success:
            self._on_connect_success(local_id)

    def _failed(self, code: object, message: str) -> None:
        if self._on_connect_failure:
            self._on_connect_failure(code, message)

    # ---------------------------------------------------------------------
    # Link table
    # ---------------------------------------------------------------------

    def _link(self, peer_id: PeerId) -> None:
        if peer_id in self._links:
            return
        self._links.add(peer_id)
        if self._on_channel_open:
            self._on_channel_open(peer_id)

    def _unlink(self, peer_id: PeerId) -> None:
        if peer_id not in self._links:
            return
        self._links.discard(peer_id)
        if self._on_channel_close:
            self._on_channel_close(peer_id)

    def _drop_links(self) -> None:
        self._dialing.clear()
        for peer_id in list(self._links):
            self._unlink(peer_id)
