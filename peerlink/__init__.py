"""peerlink: peer sessions and tag-based data routing over pluggable transports."""

from peerlink.config import MediaOptions, SessionConfig
from peerlink.entities import RemoteEntityCache
from peerlink.session import ConnectionSession, ConnectionState
from peerlink.session.api import (
    ChannelClosed,
    ChannelOpened,
    Connected,
    EventBus,
    PeerConnected,
    PeerDisconnected,
    SessionEvent,
)
from peerlink.session.errors import (
    ConnectFailure,
    PeerLinkError,
    ReservedTagError,
    SessionError,
    UnknownTagError,
)
from peerlink.session.subscriptions import RESERVED_REMOVE, RESERVED_UPDATE

__all__ = [
    "ChannelClosed",
    "ChannelOpened",
    "ConnectFailure",
    "Connected",
    "ConnectionSession",
    "ConnectionState",
    "EventBus",
    "MediaOptions",
    "PeerConnected",
    "PeerDisconnected",
    "PeerLinkError",
    "RESERVED_REMOVE",
    "RESERVED_UPDATE",
    "RemoteEntityCache",
    "ReservedTagError",
    "SessionConfig",
    "SessionError",
    "SessionEvent",
    "UnknownTagError",
]
