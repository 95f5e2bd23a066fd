"""Peer session (core orchestration).

This package implements a single-room session with:
- occupant snapshot reconciliation (join/leave transitions)
- per-peer data channel state gating sends
- tag-based data subscriptions with reserved entity-sync tags

The transport and the entity consumer are injected via ports.
"""

from peerlink.session.connection import ConnectionSession, ConnectionState

__all__ = ["ConnectionSession", "ConnectionState"]
