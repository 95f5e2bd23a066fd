"""Ports for ConnectionSession.

These interfaces keep the session independent of the transport (loopback,
XMPP room, WebSocket relay) and of whatever consumes entity updates.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Mapping, Protocol

from peerlink.config import MediaOptions

PeerId = str

# Snapshot values are adapter-defined; the session only looks at the keys and
# hands each value back to AdapterPort.should_initiate.
OccupantSnapshot = Mapping[PeerId, object]


@dataclass(frozen=True)
class Occupant:
    """Occupant metadata used by the bundled adapters.

    `rank` is the tie-break signal: the side with the lower rank opens the
    channel.
    """

    peer_id: PeerId
    rank: object


class ConnectStatus(Enum):
    NOT_CONNECTED = "not_connected"
    CONNECTED = "connected"


ConnectSuccessListener = Callable[[PeerId], None]
ConnectFailureListener = Callable[[object, str], None]
ChannelListener = Callable[[PeerId], None]
DataListener = Callable[[PeerId, str, object], None]
OccupantListener = Callable[[OccupantSnapshot], None]


class AdapterPort(Protocol):
    def set_server_url(self, url: str) -> None: ...

    def set_app(self, app: str) -> None: ...

    def set_room(self, room: str) -> None: ...

    def set_media_options(self, options: MediaOptions) -> None: ...

    def set_server_connect_listeners(
        self,
        on_success: ConnectSuccessListener,
        on_failure: ConnectFailureListener,
    ) -> None: ...

    def set_data_channel_listeners(
        self,
        on_open: ChannelListener,
        on_close: ChannelListener,
        on_message: DataListener,
    ) -> None: ...

    def set_room_occupant_listener(self, on_occupants: OccupantListener) -> None: ...

    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def should_initiate(self, meta: object) -> bool: ...

    def open_channel(self, peer_id: PeerId) -> None: ...

    def close_channel(self, peer_id: PeerId) -> None: ...

    def connection_status(self, peer_id: PeerId) -> ConnectStatus: ...

    def send(self, peer_id: PeerId, tag: str, payload: object) -> None: ...

    def send_guaranteed(self, peer_id: PeerId, tag: str, payload: object) -> None: ...

    def broadcast(self, tag: str, payload: object) -> None: ...

    def broadcast_guaranteed(self, tag: str, payload: object) -> None: ...


class EntitySinkPort(Protocol):
    def apply_remote_update(self, from_peer: PeerId, tag: str, payload: object) -> None: ...

    def remove_remote_entity(self, from_peer: PeerId, tag: str, payload: object) -> None: ...

    def request_full_sync(self) -> None: ...

    def remove_all_entities_from_peer(self, peer_id: PeerId) -> None: ...
