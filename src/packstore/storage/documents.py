"""
Plain snapshots handed out by the persistence engine.

Callers never see ORM objects; they get these detached values instead, so a
snapshot can be passed to background hooks after its session has closed.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, Optional


@dataclass(frozen=True)
class PackInfo:
    """A document collection and its lightweight index (document ids)."""
    id: str
    label: str
    document_kind: str
    locked: bool = False
    document_ids: FrozenSet[str] = frozenset()

    def has_document(self, document_id: str) -> bool:
        return document_id in self.document_ids


@dataclass
class Document:
    """A persisted document: identifier, display name and a flag bag."""
    id: str
    pack: str
    kind: str
    name: str
    flags: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def get_flag(self, scope: str, key: str, default: Any = None) -> Any:
        """Read a namespaced flag, e.g. get_flag("data-storage", "index")."""
        return self.flags.get(scope, {}).get(key, default)
