#!/usr/bin/env python3
"""
peerlink bridge

Joins a room through the configured adapter and logs presence, channel and
data traffic. Every peer that opens a channel is greeted on the "chat" tag;
incoming "chat" messages are printed.

    python -m peerlink.bridge                 # join using PEERLINK_* env
    python -m peerlink.bridge --relay         # run the WebSocket relay
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from typing import Iterable

from peerlink.adapters.registry import create_adapter
from peerlink.config import RelayConfig, SessionConfig, XmppConfig, load_env
from peerlink.entities import RemoteEntityCache
from peerlink.relay import start_relay_server
from peerlink.session import ConnectionSession
from peerlink.session.api import ChannelOpened, SessionEvent

CHAT_TAG = "chat"

log = logging.getLogger("bridge")


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("slixmpp").setLevel(level if verbose else logging.WARNING)


def _parse_args(argv: Iterable[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="peerlink room bridge")
    parser.add_argument("--relay", action="store_true", help="Run the WebSocket relay server")
    parser.add_argument("--adapter", choices=["websocket", "xmpp"])
    parser.add_argument("--server-url")
    parser.add_argument("--app")
    parser.add_argument("--room")
    parser.add_argument("--say", default="hello", help="Greeting sent on each new channel")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(list(argv))


def _session_config(args: argparse.Namespace) -> SessionConfig:
    cfg = SessionConfig.from_env()
    overrides = {
        "adapter": args.adapter,
        "server_url": args.server_url,
        "app": args.app,
        "room": args.room,
    }
    return replace(cfg, **{k: v for k, v in overrides.items() if v})


async def run_relay() -> None:
    cfg = RelayConfig.from_env()
    runner, host, port = await start_relay_server(host=cfg.host, port=cfg.port)
    log.info("Relay listening on ws://%s:%s/ws", host, port)
    try:
        while True:
            await asyncio.sleep(3600)
    finally:
        await runner.cleanup()


async def run_session(cfg: SessionConfig, *, greeting: str) -> None:
    adapter = create_adapter(cfg.adapter, xmpp_config=XmppConfig())
    entities = RemoteEntityCache()
    session = ConnectionSession(adapter, entities)

    def on_event(event: SessionEvent) -> None:
        log.info("%s", event)
        if isinstance(event, ChannelOpened) and greeting:
            session.send_guaranteed(event.peer_id, CHAT_TAG, {"text": greeting})

    def on_chat(from_peer: str, tag: str, payload: object) -> None:
        text = payload.get("text") if isinstance(payload, dict) else payload
        print(f"<{from_peer}> {text}", flush=True)

    session.add_listener(on_event)
    session.subscribe(CHAT_TAG, on_chat)
    session.on_connect(lambda: log.info("Connected as %s", session.local_id))
    session.connect_with(cfg)

    try:
        while True:
            await asyncio.sleep(1)
    finally:
        session.disconnect()


async def main(argv: Iterable[str] | None = None) -> None:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    load_env()
    _configure_logging(args.verbose)

    if args.relay:
        await run_relay()
        return
    await run_session(_session_config(args), greeting=args.say)


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        log.info("Shutting down...")


if __name__ == "__main__":
    run()
