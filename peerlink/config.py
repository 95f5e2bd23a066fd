"""Configuration resolved from the environment (call load_env() first)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def parse_bool(value: object, default: bool = False) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return default
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def load_env(env_path: Path | None = None) -> None:
    """Copy KEY=value lines from a .env file (default: ./.env) into os.environ."""
    path = env_path or Path.cwd() / ".env"
    if not path.is_file():
        return

    for raw in path.read_text().splitlines():
        key, sep, value = raw.strip().partition("=")
        if not sep or not key or key.startswith("#"):
            continue
        os.environ[key.strip()] = value.strip().strip("\"'")


@dataclass(frozen=True)
class MediaOptions:
    audio: bool = False
    video: bool = False
    datachannel: bool = True


@dataclass(frozen=True)
class SessionConfig:
    server_url: str
    app: str
    room: str
    media: MediaOptions = field(default_factory=MediaOptions)
    adapter: str = "websocket"

    @classmethod
    def from_env(cls) -> SessionConfig:
        return cls(
            server_url=os.getenv("PEERLINK_SERVER_URL", "ws://127.0.0.1:8765/ws"),
            app=os.getenv("PEERLINK_APP", "default"),
            room=os.getenv("PEERLINK_ROOM", "lobby"),
            media=MediaOptions(
                audio=parse_bool(os.getenv("PEERLINK_AUDIO")),
                video=parse_bool(os.getenv("PEERLINK_VIDEO")),
            ),
            adapter=(os.getenv("PEERLINK_ADAPTER", "websocket") or "websocket").strip().lower(),
        )


@dataclass(frozen=True)
class XmppConfig:
    jid: str | None = None
    password: str | None = None
    muc_service: str | None = None
    nick: str | None = None
    port: int | None = None
    plaintext: bool | None = None

    def resolve_jid(self) -> str:
        jid = self.jid or os.getenv("XMPP_JID", "")
        if not jid:
            raise ValueError("XMPP_JID is not set")
        return jid

    def resolve_password(self) -> str:
        return self.password or os.getenv("XMPP_PASSWORD", "")

    def resolve_muc_service(self) -> str:
        if self.muc_service:
            return self.muc_service
        env = (os.getenv("PEERLINK_MUC_SERVICE") or "").strip()
        if env:
            return env
        # Most servers host MUC on the conference. subdomain.
        domain = self.resolve_jid().split("@", 1)[-1].split("/", 1)[0]
        return f"conference.{domain}"

    def resolve_nick(self) -> str:
        if self.nick:
            return self.nick
        env = (os.getenv("PEERLINK_NICK") or "").strip()
        if env:
            return env
        return self.resolve_jid().split("@", 1)[0]

    def resolve_port(self) -> int:
        return self.port or int(os.getenv("XMPP_PORT", "5222"))

    def resolve_plaintext(self) -> bool:
        if self.plaintext is not None:
            return self.plaintext
        return parse_bool(os.getenv("XMPP_PLAINTEXT"))


@dataclass(frozen=True)
class RelayConfig:
    host: str = "127.0.0.1"
    port: int = 8765

    @classmethod
    def from_env(cls) -> RelayConfig:
        host = (os.getenv("PEERLINK_RELAY_HOST") or "127.0.0.1").strip() or "127.0.0.1"
        port = int(os.getenv("PEERLINK_RELAY_PORT", "8765"))
        return cls(host=host, port=port)
