"""packstore workers."""

from .proxy_worker import ProxyWorker

__all__ = ["ProxyWorker"]
