"""
Document mutation observer - typed lifecycle callbacks.

The persistence engine calls these at fixed points of every mutation:

- ``pre_create`` / ``pre_update`` run synchronously before the write commits
  and may modify the incoming data/changes in place.
- ``on_create`` / ``on_update`` / ``on_delete`` run after commit as background
  tasks; the mutating call does not wait for them.

Every callback receives the id of the actor that performed the mutation.
"""

from typing import Any, Dict, Optional

from packstore.storage.documents import Document, PackInfo


class DocumentMutationObserver:
    """Base observer. Subclasses override the callbacks they care about."""

    def pre_create(
        self,
        pack: PackInfo,
        data: Dict[str, Any],
        options: Dict[str, Any],
        user_id: Optional[str],
    ) -> None:
        """Called before a document is persisted. May mutate ``data``."""
        return None

    async def on_create(
        self,
        document: Document,
        options: Dict[str, Any],
        user_id: Optional[str],
    ) -> None:
        """Called after a document was persisted."""
        return None

    def pre_update(
        self,
        document: Document,
        changes: Dict[str, Any],
        options: Dict[str, Any],
        user_id: Optional[str],
    ) -> None:
        """Called before an update is applied. May mutate ``changes``."""
        return None

    async def on_update(
        self,
        document: Document,
        changes: Dict[str, Any],
        options: Dict[str, Any],
        user_id: Optional[str],
    ) -> None:
        """Called after an update was applied. ``document`` is the new state."""
        return None

    async def on_delete(
        self,
        document: Document,
        options: Dict[str, Any],
        user_id: Optional[str],
    ) -> None:
        """Called after a document was deleted. ``document`` is the last state."""
        return None
