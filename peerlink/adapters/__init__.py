"""Transport adapters implementing the session's AdapterPort."""

from peerlink.adapters.base import BaseAdapter
from peerlink.adapters.loopback import LoopbackAdapter, LoopbackHub
from peerlink.adapters.registry import create_adapter

__all__ = [
    "BaseAdapter",
    "LoopbackAdapter",
    "LoopbackHub",
    "create_adapter",
]
