"""WebSocket relay transport (aiohttp client).

Talks to the peerlink relay server (peerlink.relay). The relay only forwards
frames; channel handshakes run end-to-end between the adapters.
"""

from __future__ import annotations

import asyncio
import logging

import aiohttp

from peerlink.adapters.base import BaseAdapter
from peerlink.session.ports import Occupant, PeerId
from peerlink.wire import (
    OP_BROADCAST,
    OP_DATA,
    OP_ERROR,
    OP_JOIN,
    OP_OCCUPANTS,
    OP_SEND,
    OP_SIGNAL,
    OP_WELCOME,
    decode_frame,
    encode_frame,
)

log = logging.getLogger("websocket")


class WebSocketAdapter(BaseAdapter):
    def __init__(self, *, heartbeat: float = 30.0):
        super().__init__()
        self.heartbeat = heartbeat
        self._task: asyncio.Task | None = None
        self._outbox: asyncio.Queue[str] = asyncio.Queue()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def connect(self) -> None:
        if not self.server_url:
            self._failed("bad-request", "server url must be set before connect")
            return
        if self.running:
            return
        self._outbox = asyncio.Queue()
        self._send_frame({"op": OP_JOIN, "app": self.app, "room": self.room})
        self._task = asyncio.get_running_loop().create_task(self._run(self.server_url))

    def _leave(self) -> None:
        task, self._task = self._task, None
        if task and not task.done():
            task.cancel()

    async def _run(self, url: str) -> None:
        try:
            async with aiohttp.ClientSession() as http:
                async with http.ws_connect(url, heartbeat=self.heartbeat) as ws:
                    await self._pump(ws)
        except asyncio.CancelledError:
            raise
        except (aiohttp.ClientError, ConnectionError) as exc:
            if self.local_id is None:
                self._failed("connection_failed", str(exc) or type(exc).__name__)
            else:
                log.warning("Relay connection lost: %s", exc)
        except Exception:
            log.exception("Relay connection failed")
        finally:
            self._drop_links()

    async def _pump(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        """Run reader and writer until either ends; re-raise whatever stopped it."""
        reader = asyncio.create_task(self._read_loop(ws))
        writer = asyncio.create_task(self._write_loop(ws))
        try:
            done, _ = await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in (reader, writer):
                task.cancel()
            await asyncio.gather(reader, writer, return_exceptions=True)
        for task in done:
            task.result()

    async def _write_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        while True:
            text = await self._outbox.get()
            await ws.send_str(text)

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        async for msg in ws:
            if msg.type == aiohttp.WSMsgType.TEXT:
                try:
                    frame = decode_frame(msg.data)
                except ValueError:
                    log.warning("Malformed frame from relay: %.200r", msg.data)
                    continue
                self.handle_frame(frame)
            elif msg.type == aiohttp.WSMsgType.ERROR:
                log.warning("Relay socket error: %s", ws.exception())
                break
        log.info("Relay closed the connection")

    def _send_frame(self, frame: dict) -> None:
        # Encode here so an unserializable payload fails in the caller.
        self._outbox.put_nowait(encode_frame(frame))

    def handle_frame(self, frame: dict) -> None:
        op = frame.get("op")
        if op == OP_WELCOME:
            self._connected(str(frame["id"]), frame.get("rank"))
        elif op == OP_ERROR:
            code = frame.get("code", "error")
            message = str(frame.get("message") or "")
            if self.local_id is None:
                self._failed(code, message)
            else:
                log.warning("Relay error (%s): %s", code, message)
        elif op == OP_OCCUPANTS:
            occupants = frame.get("occupants") or {}
            snapshot = {
                str(pid): Occupant(str(pid), (meta or {}).get("rank"))
                for pid, meta in occupants.items()
                if str(pid) != self.local_id
            }
            self.handle_occupants(snapshot)
        elif op == OP_SIGNAL:
            self.handle_signal(str(frame.get("from")), str(frame.get("kind")))
        elif op == OP_DATA:
            self.handle_data(str(frame.get("from")), str(frame.get("tag")), frame.get("payload"))
        else:
            log.debug("Ignoring relay frame %r", op)

    def _send_signal(self, peer_id: PeerId, kind: str) -> None:
        self._send_frame({"op": OP_SIGNAL, "to": peer_id, "kind": kind})

    def _transmit(self, peer_id: PeerId, tag: str, payload: object, *, guaranteed: bool) -> None:
        # One ordered TCP stream either way; the flag is kept on the wire.
        self._send_frame(
            {"op": OP_SEND, "to": peer_id, "tag": tag, "payload": payload, "guaranteed": guaranteed}
        )

    def _transmit_all(self, tag: str, payload: object, *, guaranteed: bool) -> None:
        self._send_frame({"op": OP_BROADCAST, "tag": tag, "payload": payload, "guaranteed": guaranteed})
