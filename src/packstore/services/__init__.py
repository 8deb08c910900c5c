"""packstore services - entry repository facade and the proxy relay."""

from .data_storage import DataStorage
from .proxy import PendingRequest, PendingRequestTracker, RemoteProxyChannel, request_subject, resolve_subject

__all__ = [
    "DataStorage",
    "PendingRequest",
    "PendingRequestTracker",
    "RemoteProxyChannel",
    "request_subject",
    "resolve_subject",
]
