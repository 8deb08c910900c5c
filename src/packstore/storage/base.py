from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from packstore.events.observer import DocumentMutationObserver

from .documents import Document, PackInfo


class DocumentEngine(ABC):
    """
    Abstract persistence engine: packs of documents with a flag bag each.

    Mutations notify registered DocumentMutationObservers. ``pre_*`` hooks
    complete before the write commits; ``on_*`` hooks are scheduled after
    commit and are not awaited by the mutating call (see ``drain``).
    """

    @abstractmethod
    def register_observer(self, observer: DocumentMutationObserver) -> None:
        """Receive lifecycle callbacks for every document mutation."""
        pass

    @abstractmethod
    def unregister_observer(self, observer: DocumentMutationObserver) -> None:
        pass

    @abstractmethod
    async def drain(self) -> None:
        """Wait for every scheduled post-mutation hook to finish."""
        pass

    # --- Packs ---

    @abstractmethod
    async def create_pack(
        self, pack_id: str, label: str, document_kind: str, locked: bool = False
    ) -> PackInfo:
        pass

    @abstractmethod
    async def get_pack(self, pack_id: str) -> Optional[PackInfo]:
        pass

    @abstractmethod
    async def list_packs(self) -> List[PackInfo]:
        pass

    @abstractmethod
    async def set_locked(self, pack_id: str, locked: bool) -> Optional[PackInfo]:
        pass

    # --- Documents ---

    @abstractmethod
    async def create_documents(
        self,
        pack_id: str,
        specs: List[Dict[str, Any]],
        options: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> List[Document]:
        """
        Create documents from ``{"id"?, "name", "flags"}`` specs.

        An ``id`` in a spec is only honoured with ``options["keep_id"]``.
        """
        pass

    @abstractmethod
    async def update_document(
        self,
        pack_id: str,
        document_id: str,
        changes: Dict[str, Any],
        options: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Optional[Document]:
        """Apply ``{"name"?, "flags"?}`` changes. Returns None if not found."""
        pass

    @abstractmethod
    async def delete_documents(
        self,
        pack_id: str,
        document_ids: List[str],
        options: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> List[Document]:
        """Delete documents; returns the ones that existed."""
        pass

    @abstractmethod
    async def get_document(self, pack_id: str, document_id: str) -> Optional[Document]:
        pass

    @abstractmethod
    async def get_documents(
        self, pack_id: str, ids: Optional[List[str]] = None
    ) -> List[Document]:
        """Bulk fetch: every document of the pack, or only ``ids``."""
        pass

    @abstractmethod
    async def get_index(self, pack_id: str) -> Dict[str, str]:
        """Lightweight index of a pack: document id -> display name."""
        pass
