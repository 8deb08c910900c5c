"""packstore events - document mutation observers and the proxy broadcast channel."""

from .bus import BroadcastChannel, MessageHandler
from .event import ProxyHandler, ProxyMessage, ProxyMessageType
from .memory_bus import BroadcastHub, InMemoryBroadcastChannel
from .nats_bus import NatsBroadcastChannel
from .observer import DocumentMutationObserver

__all__ = [
    # Core interfaces
    "BroadcastChannel",
    "MessageHandler",
    "DocumentMutationObserver",
    # Message models
    "ProxyHandler",
    "ProxyMessage",
    "ProxyMessageType",
    # Implementations
    "BroadcastHub",
    "InMemoryBroadcastChannel",
    "NatsBroadcastChannel",
]
