"""
Metadata Synchronizer - keeps each pack's Metadata Record and the in-memory
Index Store aligned with document lifecycle events.

Propagation is actor-scoped: only the actor that performed a mutation writes
the shared Metadata Record. Every actor (including that one) then refreshes
its own Index Store from the Metadata Record's update event.
"""

from typing import Any, Dict, Optional

from packstore.errors import ValidationError
from packstore.events.observer import DocumentMutationObserver
from packstore.platform.config import Settings, settings as default_settings
from packstore.platform.logging import get_logger
from packstore.storage.base import DocumentEngine
from packstore.storage.documents import Document, PackInfo
from packstore.storage.merge import deletion_key, is_deletion_key, strip_deletion_prefix

from .fields import INDEX_FIELDS, IndexRecord
from .store import IndexStore

logger = get_logger(__name__)


class MetadataSynchronizer(DocumentMutationObserver):
    """
    Observer that propagates index changes of entry documents.

    This observer:
    1. Injects a default index into documents created in managed packs
    2. Keeps a document's name and its index name identical
    3. Forwards index changes made by the local actor to the Metadata Record
    4. Patches the local Index Store when the Metadata Record changes
    """

    def __init__(
        self,
        engine: DocumentEngine,
        index_store: IndexStore,
        local_actor_id: str,
        settings: Settings = default_settings,
    ):
        """
        Args:
            engine: Persistence engine the Metadata Records live in
            index_store: This process's Index Store
            local_actor_id: Identity of the actor this process acts for
            settings: Flag scope, reserved ids and managed kinds
        """
        self.engine = engine
        self.index_store = index_store
        self.local_actor_id = local_actor_id
        self.settings = settings

    # --- Helpers ---

    @property
    def scope(self) -> str:
        return self.settings.FLAG_SCOPE

    @property
    def meta_id(self) -> str:
        return self.settings.META_INDEX_ID

    def is_managed_kind(self, kind: str) -> bool:
        return kind in self.settings.MANAGED_DOCUMENT_KINDS

    def is_managed(self, pack: PackInfo) -> bool:
        """A pack is managed once its Metadata Record exists."""
        return self.is_managed_kind(pack.document_kind) and pack.has_document(self.meta_id)

    def _is_local(self, user_id: Optional[str]) -> bool:
        return user_id == self.local_actor_id

    def _index_changes(self, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        scoped = (changes.get("flags") or {}).get(self.scope) or {}
        index = scoped.get("index")
        return index if isinstance(index, dict) else None

    async def _load_metadata(self, pack_id: str) -> Optional[Document]:
        meta = await self.engine.get_document(pack_id, self.meta_id)
        if meta is None:
            logger.warning(
                "Metadata record missing; index change skipped",
                pack=pack_id,
                meta_id=self.meta_id,
            )
        return meta

    async def _patch_metadata(self, pack_id: str, patch: Dict[str, Any]) -> Optional[Document]:
        """Merge ``patch`` into the pack's Metadata Record index."""
        meta = await self._load_metadata(pack_id)
        if meta is None:
            return None
        return await self.engine.update_document(
            pack_id,
            self.meta_id,
            {"flags": {self.scope: {"index": patch}}},
            user_id=self.local_actor_id,
        )

    # --- Create ---

    def pre_create(
        self,
        pack: PackInfo,
        data: Dict[str, Any],
        options: Dict[str, Any],
        user_id: Optional[str],
    ) -> None:
        if not self.is_managed_kind(pack.document_kind):
            return

        if options.get("metadata_record"):
            return

        if data.get("id") == self.meta_id:
            raise ValidationError(
                f"Document id '{self.meta_id}' is reserved for the pack's metadata record."
            )

        scoped = data.setdefault("flags", {}).setdefault(self.scope, {})
        if not scoped.get("index"):
            scoped["index"] = IndexRecord(name=data.get("name") or IndexRecord().name).model_dump()
        if "data" not in scoped:
            scoped["data"] = []

    async def on_create(
        self,
        document: Document,
        options: Dict[str, Any],
        user_id: Optional[str],
    ) -> None:
        if not self._is_local(user_id) or options.get("index_synced"):
            return
        if document.id == self.meta_id:
            return

        pack = await self.engine.get_pack(document.pack)
        if pack is None or not self.is_managed(pack):
            return

        await self.record_created(document)

    async def record_created(self, document: Document) -> Optional[Document]:
        """
        Write a new document's index into the Metadata Record and the local
        Index Store. Used directly by the repository's store path.
        """
        index = document.get_flag(self.scope, "index")
        if not index:
            logger.warning("Created document carries no index", pack=document.pack, id=document.id)
            return None

        meta = await self._patch_metadata(document.pack, {document.id: index})
        if meta is not None:
            self.index_store.put(document.pack, document.id, index)
            logger.info("Entry indexed", pack=document.pack, id=document.id)
        return meta

    # --- Update ---

    def pre_update(
        self,
        document: Document,
        changes: Dict[str, Any],
        options: Dict[str, Any],
        user_id: Optional[str],
    ) -> None:
        if document.id == self.meta_id or not self.is_managed_kind(document.kind):
            return

        index_changes = self._index_changes(changes)
        if "name" in changes:
            index = changes.setdefault("flags", {}).setdefault(self.scope, {}).setdefault("index", {})
            index["name"] = changes["name"]
        elif index_changes and "name" in index_changes:
            changes["name"] = index_changes["name"]

    async def on_update(
        self,
        document: Document,
        changes: Dict[str, Any],
        options: Dict[str, Any],
        user_id: Optional[str],
    ) -> None:
        if document.id == self.meta_id:
            self._apply_metadata_update(document, changes)
            return

        if not self._is_local(user_id) or not self.is_managed_kind(document.kind):
            return

        index_changes = self._index_changes(changes)
        if not index_changes:
            return

        patch = {k: v for k, v in index_changes.items() if k in INDEX_FIELDS}
        if not patch:
            return

        await self._patch_metadata(document.pack, {document.id: patch})
        logger.debug(
            "Index change forwarded",
            pack=document.pack,
            id=document.id,
            fields=sorted(patch),
        )

    def _apply_metadata_update(self, meta: Document, changes: Dict[str, Any]) -> None:
        """Mirror a Metadata Record change into the cached Index Store."""
        if not self.index_store.is_cached(meta.pack):
            return

        patch = self._index_changes(changes)
        if not patch:
            return

        full_index = meta.get_flag(self.scope, "index") or {}
        for key in patch:
            entry_id = strip_deletion_prefix(key)
            if is_deletion_key(key) or entry_id not in full_index:
                self.index_store.remove(meta.pack, entry_id)
            else:
                self.index_store.put(meta.pack, entry_id, full_index[entry_id])

    # --- Delete ---

    async def on_delete(
        self,
        document: Document,
        options: Dict[str, Any],
        user_id: Optional[str],
    ) -> None:
        if document.id == self.meta_id:
            logger.warning("Metadata record deleted; dropping cached index", pack=document.pack)
            self.index_store.invalidate(document.pack)
            return

        if not self._is_local(user_id) or not self.is_managed_kind(document.kind):
            return

        pack = await self.engine.get_pack(document.pack)
        if pack is None or not self.is_managed(pack):
            return

        await self._patch_metadata(document.pack, {deletion_key(document.id): None})
        logger.info("Entry removed from index", pack=document.pack, id=document.id)
