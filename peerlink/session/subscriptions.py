"""Data-channel subscriptions keyed by message type tag."""

from __future__ import annotations

from typing import Callable

from peerlink.session.errors import ReservedTagError, UnknownTagError
from peerlink.session.ports import EntitySinkPort, PeerId

# Tags used internally for entity sync. Applications pick anything else.
RESERVED_UPDATE = "u"
RESERVED_REMOVE = "r"
RESERVED_TAGS = frozenset({RESERVED_UPDATE, RESERVED_REMOVE})

Handler = Callable[[PeerId, str, object], None]


class SubscriptionRegistry:
    def __init__(self, sink: EntitySinkPort):
        self._handlers: dict[str, Handler] = {
            RESERVED_UPDATE: sink.apply_remote_update,
            RESERVED_REMOVE: sink.remove_remote_entity,
        }

    @staticmethod
    def is_reserved(tag: str) -> bool:
        return tag in RESERVED_TAGS

    def is_subscribed(self, tag: str) -> bool:
        return tag in self._handlers

    def tags(self) -> list[str]:
        return sorted(self._handlers)

    def subscribe(self, tag: str, handler: Handler) -> None:
        if self.is_reserved(tag):
            raise ReservedTagError(tag, operation="subscribe")
        self._handlers[tag] = handler

    def unsubscribe(self, tag: str) -> None:
        if self.is_reserved(tag):
            raise ReservedTagError(tag, operation="unsubscribe")
        self._handlers.pop(tag, None)

    def dispatch(self, from_peer: PeerId, tag: str, payload: object) -> None:
        handler = self._handlers.get(tag)
        if handler is None:
            raise UnknownTagError(tag, from_peer=from_peer)
        handler(from_peer, tag, payload)
