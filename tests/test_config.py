import os

import pytest

from peerlink.config import (
    MediaOptions,
    RelayConfig,
    SessionConfig,
    XmppConfig,
    load_env,
    parse_bool,
)

ENV_KEYS = [
    "TOKEN",
    "PEERLINK_SERVER_URL",
    "PEERLINK_APP",
    "PEERLINK_ROOM",
    "PEERLINK_AUDIO",
    "PEERLINK_VIDEO",
    "PEERLINK_ADAPTER",
    "PEERLINK_MUC_SERVICE",
    "PEERLINK_NICK",
    "PEERLINK_RELAY_HOST",
    "PEERLINK_RELAY_PORT",
    "XMPP_JID",
    "XMPP_PASSWORD",
    "XMPP_PORT",
    "XMPP_PLAINTEXT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    # A private copy, so values written by load_env do not leak into other tests.
    env = {k: v for k, v in os.environ.items() if k not in ENV_KEYS}
    monkeypatch.setattr(os, "environ", env)


def test_parse_bool():
    assert parse_bool("yes") and parse_bool(" TRUE ") and parse_bool(True)
    assert not parse_bool("0")
    assert parse_bool(None, default=True)


def test_session_defaults():
    cfg = SessionConfig.from_env()
    assert cfg.server_url == "ws://127.0.0.1:8765/ws"
    assert (cfg.app, cfg.room, cfg.adapter) == ("default", "lobby", "websocket")
    assert cfg.media == MediaOptions(audio=False, video=False, datachannel=True)


def test_session_from_env(monkeypatch):
    monkeypatch.setenv("PEERLINK_APP", "game")
    monkeypatch.setenv("PEERLINK_ROOM", "r1")
    monkeypatch.setenv("PEERLINK_AUDIO", "1")
    monkeypatch.setenv("PEERLINK_ADAPTER", " XMPP ")
    cfg = SessionConfig.from_env()
    assert (cfg.app, cfg.room, cfg.adapter) == ("game", "r1", "xmpp")
    assert cfg.media.audio and not cfg.media.video


def test_load_env(tmp_path, monkeypatch):
    env = tmp_path / ".env"
    env.write_text('# comment\nPEERLINK_ROOM="quoted room"\nTOKEN=a=b\nXMPP_JID = bot@example.org\n\nnot a pair\n')
    load_env(env)
    assert SessionConfig.from_env().room == "quoted room"
    assert XmppConfig().resolve_jid() == "bot@example.org"
    assert os.environ["TOKEN"] == "a=b"


def test_load_env_missing_file(tmp_path):
    load_env(tmp_path / "nope.env")


def test_xmpp_defaults(monkeypatch):
    with pytest.raises(ValueError):
        XmppConfig().resolve_jid()
    monkeypatch.setenv("XMPP_JID", "bot@example.org/res")
    cfg = XmppConfig()
    assert cfg.resolve_muc_service() == "conference.example.org"
    assert cfg.resolve_nick() == "bot"
    assert cfg.resolve_port() == 5222
    assert cfg.resolve_plaintext() is False


def test_xmpp_explicit_values_win(monkeypatch):
    monkeypatch.setenv("XMPP_PLAINTEXT", "1")
    cfg = XmppConfig(jid="a@b", muc_service="muc.b", nick="n", port=5223, plaintext=False)
    assert cfg.resolve_muc_service() == "muc.b"
    assert cfg.resolve_nick() == "n"
    assert cfg.resolve_port() == 5223
    assert cfg.resolve_plaintext() is False


def test_relay_from_env(monkeypatch):
    assert RelayConfig.from_env() == RelayConfig()
    monkeypatch.setenv("PEERLINK_RELAY_PORT", "9000")
    assert RelayConfig.from_env().port == 9000
