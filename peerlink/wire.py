"""JSON frames spoken between WebSocketAdapter and the relay server.

Every frame is a JSON object with an "op" field:

client -> relay: join {app, room} | signal {to, kind}
                 send {to, tag, payload, guaranteed}
                 broadcast {tag, payload, guaranteed}
relay -> client: welcome {id, rank} | error {code, message}
                 occupants {occupants: {id: {rank}}}
                 signal {from, kind} | data {from, tag, payload}
"""

from __future__ import annotations

import json

OP_JOIN = "join"
OP_SIGNAL = "signal"
OP_SEND = "send"
OP_BROADCAST = "broadcast"
OP_WELCOME = "welcome"
OP_ERROR = "error"
OP_OCCUPANTS = "occupants"
OP_DATA = "data"


def encode_frame(frame: dict) -> str:
    return json.dumps(frame, ensure_ascii=True, separators=(",", ":"))


def decode_frame(text: str) -> dict:
    """Parse one frame; ValueError if it is not a JSON object with an op."""
    frame = json.loads(text)
    if not isinstance(frame, dict) or not isinstance(frame.get("op"), str):
        raise ValueError("frame must be a JSON object with an 'op' field")
    return frame


def error_frame(code: str, message: str) -> dict:
    return {"op": OP_ERROR, "code": code, "message": message}
