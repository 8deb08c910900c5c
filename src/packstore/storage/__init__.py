"""packstore Storage Layer - persistence engine, document snapshots and SQL adapter."""

from .documents import Document, PackInfo

__all__ = [
    "Document",
    "PackInfo",
]
