"""Session-layer exceptions.

Callers can tell lifecycle misuse, subscription mistakes and transport login
failures apart without scraping strings.
"""

from __future__ import annotations


class PeerLinkError(RuntimeError):
    """Base class for peerlink errors."""


class SessionError(PeerLinkError):
    """The session was used out of order (e.g. connect while connected)."""


class ReservedTagError(PeerLinkError, ValueError):
    """A subscription change targeted a tag bound internally."""

    def __init__(self, tag: str, *, operation: str):
        self.tag = tag
        self.operation = operation
        super().__init__(self.__str__())

    def __str__(self) -> str:
        return f"{self.operation}: {self.tag!r} is a reserved data type. Choose another"


class UnknownTagError(PeerLinkError, LookupError):
    """Inbound data arrived for a tag nobody subscribed to."""

    def __init__(self, tag: str, *, from_peer: str | None = None):
        self.tag = tag
        self.from_peer = from_peer
        super().__init__(self.__str__())

    def __str__(self) -> str:
        if self.from_peer:
            return f"{self.tag!r} from {self.from_peer} has not been subscribed to yet"
        return f"{self.tag!r} has not been subscribed to yet"


class ConnectFailure(PeerLinkError):
    """Login failure reported by the adapter."""

    def __init__(self, code: object, message: str | None = None):
        self.code = code
        self.message = message
        super().__init__(self.__str__())

    def __str__(self) -> str:
        detail = (self.message or "").strip()
        if detail:
            return f"failure to login ({self.code}): {detail}"
        return f"failure to login ({self.code})"
