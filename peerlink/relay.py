"""Relay server for WebSocketAdapter.

Rooms live in RelayRooms, which knows nothing about sockets: each member is
reached through a `send(frame)` callable. The aiohttp handler only moves
frames between a socket and RelayRooms.

Exposes: /ws
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import uuid
from dataclasses import dataclass, field
from typing import Callable

from aiohttp import WSMsgType, web

from peerlink.wire import (
    OP_BROADCAST,
    OP_DATA,
    OP_JOIN,
    OP_OCCUPANTS,
    OP_SEND,
    OP_SIGNAL,
    OP_WELCOME,
    decode_frame,
    encode_frame,
    error_frame,
)

log = logging.getLogger("relay")

RoomKey = tuple[str, str]


@dataclass
class RelayConnection:
    send: Callable[[dict], None]
    peer_id: str | None = None
    rank: int | None = None
    room: RoomKey | None = None


@dataclass
class _Room:
    members: dict[str, RelayConnection] = field(default_factory=dict)


class RelayRooms:
    def __init__(self) -> None:
        self._rooms: dict[RoomKey, _Room] = {}
        self._ranks = itertools.count(1)

    def members(self, key: RoomKey) -> list[str]:
        room = self._rooms.get(key)
        return list(room.members) if room else []

    def handle_frame(self, conn: RelayConnection, frame: dict) -> None:
        op = frame.get("op")
        if op == OP_JOIN:
            self.join(conn, frame.get("app"), frame.get("room"))
            return
        if conn.room is None:
            conn.send(error_frame("not-joined", f"join a room before {op!r}"))
            return
        if op == OP_SIGNAL:
            self._forward(conn, frame.get("to"), {"op": OP_SIGNAL, "kind": frame.get("kind")})
        elif op == OP_SEND:
            self._forward(
                conn,
                frame.get("to"),
                {"op": OP_DATA, "tag": frame.get("tag"), "payload": frame.get("payload")},
            )
        elif op == OP_BROADCAST:
            self._broadcast(conn, {"op": OP_DATA, "tag": frame.get("tag"), "payload": frame.get("payload")})
        else:
            conn.send(error_frame("bad-request", f"unknown op {op!r}"))

    def join(self, conn: RelayConnection, app: object, room: object) -> None:
        if conn.room is not None:
            conn.send(error_frame("already-joined", "connection is already in a room"))
            return
        if not isinstance(app, str) or not isinstance(room, str) or not app or not room:
            conn.send(error_frame("bad-request", "join needs non-empty 'app' and 'room'"))
            return

        key = (app, room)
        conn.peer_id = uuid.uuid4().hex[:12]
        conn.rank = next(self._ranks)
        conn.room = key
        self._rooms.setdefault(key, _Room()).members[conn.peer_id] = conn
        log.info("%s joined %s/%s", conn.peer_id, app, room)

        conn.send({"op": OP_WELCOME, "id": conn.peer_id, "rank": conn.rank})
        self.publish(key)

    def leave(self, conn: RelayConnection) -> None:
        key, conn.room = conn.room, None
        if key is None or conn.peer_id is None:
            return
        room = self._rooms.get(key)
        if room is None or room.members.pop(conn.peer_id, None) is None:
            return
        log.info("%s left %s/%s", conn.peer_id, *key)
        if not room.members:
            del self._rooms[key]
            return
        self.publish(key)

    def publish(self, key: RoomKey) -> None:
        room = self._rooms.get(key)
        if room is None:
            return
        everyone = {pid: {"rank": member.rank} for pid, member in room.members.items()}
        for pid, member in list(room.members.items()):
            others = {k: v for k, v in everyone.items() if k != pid}
            member.send({"op": OP_OCCUPANTS, "occupants": others})

    def _forward(self, conn: RelayConnection, to: object, frame: dict) -> None:
        room = self._rooms.get(conn.room) if conn.room else None
        target = room.members.get(to) if room and isinstance(to, str) else None
        if target is None:
            log.debug("Dropping %s from %s: %r not in room", frame["op"], conn.peer_id, to)
            return
        target.send({**frame, "from": conn.peer_id})

    def _broadcast(self, conn: RelayConnection, frame: dict) -> None:
        room = self._rooms.get(conn.room) if conn.room else None
        if room is None:
            return
        out = {**frame, "from": conn.peer_id}
        for pid, member in list(room.members.items()):
            if pid != conn.peer_id:
                member.send(out)


def create_relay_app(rooms: RelayRooms | None = None, *, heartbeat: float = 30.0) -> web.Application:
    rooms = rooms or RelayRooms()

    async def handle(request: web.Request) -> web.WebSocketResponse:
        ws = web.WebSocketResponse(heartbeat=heartbeat)
        await ws.prepare(request)

        outbox: asyncio.Queue[dict] = asyncio.Queue()
        conn = RelayConnection(send=outbox.put_nowait)

        async def write_loop() -> None:
            while True:
                frame = await outbox.get()
                await ws.send_str(encode_frame(frame))

        writer = asyncio.create_task(write_loop())
        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    try:
                        frame = decode_frame(msg.data)
                    except ValueError as exc:
                        conn.send(error_frame("bad-json", str(exc)))
                        continue
                    rooms.handle_frame(conn, frame)
                elif msg.type == WSMsgType.ERROR:
                    log.warning("Socket error for %s: %s", conn.peer_id, ws.exception())
                    break
        finally:
            rooms.leave(conn)
            writer.cancel()
        return ws

    app = web.Application()
    app.router.add_get("/ws", handle)
    return app


async def start_relay_server(
    *,
    host: str = "127.0.0.1",
    port: int = 8765,
    rooms: RelayRooms | None = None,
) -> tuple[web.AppRunner, str, int]:
    """Start the relay; returns (runner, host, port). Call runner.cleanup() to stop."""
    runner = web.AppRunner(create_relay_app(rooms))
    await runner.setup()
    site = web.TCPSite(runner, host=host, port=port)
    await site.start()
    return runner, host, port
