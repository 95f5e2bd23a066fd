"""ConnectionSession.

This is the single place that owns:
- the connected-clients snapshot (presence)
- per-peer data channel state
- the data-channel subscription registry
- login state and connect-completion callbacks

It depends only on ports, not on a concrete transport. Everything runs on one
event loop: adapter callbacks and application calls never interleave
mid-operation, so the maps are not locked.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Callable

from peerlink.config import MediaOptions, SessionConfig
from peerlink.session.api import Connected, EventBus, Listener
from peerlink.session.channels import ChannelStateTracker
from peerlink.session.errors import ConnectFailure, SessionError
from peerlink.session.ports import (
    AdapterPort,
    ConnectStatus,
    EntitySinkPort,
    OccupantSnapshot,
    PeerId,
)
from peerlink.session.presence import PresenceReconciler
from peerlink.session.router import MessageRouter
from peerlink.session.subscriptions import Handler, SubscriptionRegistry

log = logging.getLogger("session")


class ConnectionState(Enum):
    UNINITIALIZED = "uninitialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ConnectionSession:
    def __init__(
        self,
        adapter: AdapterPort,
        sink: EntitySinkPort,
        *,
        events: EventBus | None = None,
    ):
        self.adapter = adapter
        self.events = events if events is not None else EventBus()

        self.subscriptions = SubscriptionRegistry(sink)
        self.channels = ChannelStateTracker(sink=sink, events=self.events)
        self.presence = PresenceReconciler(adapter=adapter, events=self.events)
        self.router = MessageRouter(
            adapter=adapter,
            channels=self.channels,
            subscriptions=self.subscriptions,
        )

        self.config: SessionConfig | None = None
        self.local_id: PeerId | None = None
        self.state = ConnectionState.UNINITIALIZED
        self.last_failure: ConnectFailure | None = None

        self._connected_clients: dict[PeerId, object] = {}
        self._pending_on_connect: list[Callable[[], None]] = []
        self._connected_event = asyncio.Event()

    # ---------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------

    def connect(
        self,
        server_url: str,
        app: str,
        room: str,
        media: MediaOptions | None = None,
    ) -> None:
        self.connect_with(
            SessionConfig(
                server_url=server_url,
                app=app,
                room=room,
                media=media or MediaOptions(),
            )
        )

    def connect_with(self, config: SessionConfig) -> None:
        if self.state is ConnectionState.CONNECTED:
            raise SessionError(f"Already connected as {self.local_id}")

        self.config = config
        adapter = self.adapter
        adapter.set_server_url(config.server_url)
        adapter.set_app(config.app)
        adapter.set_room(config.room)
        adapter.set_media_options(config.media)

        adapter.set_server_connect_listeners(self._connect_success, self._connect_failure)
        adapter.set_data_channel_listeners(
            self.channels.on_open,
            self.channels.on_close,
            self.router.receive,
        )
        adapter.set_room_occupant_listener(self._occupants_received)

        self.state = ConnectionState.CONNECTING
        log.info("Connecting to %s (app=%s room=%s)", config.server_url, config.app, config.room)
        adapter.connect()

    def disconnect(self) -> None:
        """Leave the room and return to UNINITIALIZED so connect() can run again."""
        departed, self._connected_clients = self._connected_clients, {}
        try:
            self.presence.apply(departed, {})
        finally:
            self.adapter.disconnect()
            self.state = ConnectionState.UNINITIALIZED
            self.local_id = None
            self._connected_event.clear()

    def on_connect(self, callback: Callable[[], None]) -> None:
        """Run `callback` once the session is connected (now, if it already is)."""
        if self.state is ConnectionState.CONNECTED:
            callback()
        else:
            self._pending_on_connect.append(callback)

    async def wait_connected(self, timeout: float | None = None) -> bool:
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout)
            return True
        except asyncio.TimeoutError:
            return False

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        return self.events.subscribe(listener)

    # ---------------------------------------------------------------------
    # Adapter callbacks
    # ---------------------------------------------------------------------

    def _connect_success(self, local_id: PeerId) -> None:
        log.info("Client ID: %s", local_id)
        self.local_id = local_id
        self.state = ConnectionState.CONNECTED
        self.last_failure = None
        self._connected_event.set()

        self.events.emit(Connected(local_id))

        pending = self._pending_on_connect
        self._pending_on_connect = []
        for callback in pending:
            try:
                callback()
            except Exception:
                log.exception("on_connect callback failed")

    def _connect_failure(self, code: object, message: str) -> None:
        # State is left as-is: no implicit retry, caller decides.
        failure = ConnectFailure(code, message)
        self.last_failure = failure
        log.error("%s", failure)

    def _occupants_received(self, occupants: OccupantSnapshot) -> None:
        snapshot = dict(occupants)
        try:
            self.presence.apply(self._connected_clients, snapshot)
        finally:
            self._connected_clients = snapshot

    # ---------------------------------------------------------------------
    # Queries
    # ---------------------------------------------------------------------

    def get_connected_clients(self) -> dict[PeerId, object]:
        return dict(self._connected_clients)

    def is_connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    def is_self(self, peer_id: PeerId) -> bool:
        return self.local_id is not None and peer_id == self.local_id

    def is_connected_to(self, peer_id: PeerId) -> bool:
        return self.adapter.connection_status(peer_id) is ConnectStatus.CONNECTED

    def has_active_channel(self, peer_id: PeerId) -> bool:
        return self.channels.is_active(peer_id)

    # ---------------------------------------------------------------------
    # Data channel
    # ---------------------------------------------------------------------

    def send(self, to_peer: PeerId, tag: str, payload: object, guaranteed: bool = False) -> None:
        self.router.send(to_peer, tag, payload, guaranteed)

    def send_guaranteed(self, to_peer: PeerId, tag: str, payload: object) -> None:
        self.router.send_guaranteed(to_peer, tag, payload)

    def broadcast(self, tag: str, payload: object) -> None:
        self.router.broadcast(tag, payload)

    def broadcast_guaranteed(self, tag: str, payload: object) -> None:
        self.router.broadcast(tag, payload, guaranteed=True)

    def subscribe(self, tag: str, handler: Handler) -> None:
        self.subscriptions.subscribe(tag, handler)

    def unsubscribe(self, tag: str) -> None:
        self.subscriptions.unsubscribe(tag)
