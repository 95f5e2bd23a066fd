"""Public API for the session layer.

This module is the stable boundary between:
- observers (UI, bridge CLI, tests)
- the concrete session implementation (connection.py)

Observers should depend on these event types and on EventBus, not on
ConnectionSession internals.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Union

log = logging.getLogger("session.events")


# -----------------
# Event boundary
# -----------------


@dataclass(frozen=True)
class Connected:
    local_id: str


@dataclass(frozen=True)
class PeerConnected:
    peer_id: str


@dataclass(frozen=True)
class PeerDisconnected:
    peer_id: str


@dataclass(frozen=True)
class ChannelOpened:
    peer_id: str


@dataclass(frozen=True)
class ChannelClosed:
    peer_id: str


SessionEvent = Union[Connected, PeerConnected, PeerDisconnected, ChannelOpened, ChannelClosed]

Listener = Callable[[SessionEvent], None]


class EventBus:
    """Listener list owned by one session.

    A listener that raises is logged and skipped; the rest still receive the
    event.
    """

    def __init__(self) -> None:
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            self.unsubscribe(listener)

        return unsubscribe

    def unsubscribe(self, listener: Listener) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                log.exception("Listener failed for %s", type(event).__name__)

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
