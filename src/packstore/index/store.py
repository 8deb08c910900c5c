"""
Index Store - per-pack in-memory projection of the Metadata Record.

Built lazily on first use and then kept current by the MetadataSynchronizer;
storage is never re-read once a pack is cached.
"""

from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from packstore.errors import NotFoundError
from packstore.platform.config import Settings, settings as default_settings
from packstore.platform.logging import get_logger
from packstore.storage.base import DocumentEngine

from .entry import Entry
from .fields import IndexRecord

logger = get_logger(__name__)

# (id, pack_id, kind, index) -> Entry
EntryFactory = Callable[[str, str, str, IndexRecord], Entry]


class IndexStore:
    """Mapping pack id -> (entry id -> Entry projection)."""

    def __init__(
        self,
        engine: DocumentEngine,
        entry_factory: EntryFactory,
        settings: Settings = default_settings,
    ):
        self.engine = engine
        self.entry_factory = entry_factory
        self.settings = settings
        self._indexes: Dict[str, Dict[str, Entry]] = {}
        self._kinds: Dict[str, str] = {}

    def is_cached(self, pack_id: str) -> bool:
        return pack_id in self._indexes

    def get(self, pack_id: str) -> Optional[Dict[str, Entry]]:
        return self._indexes.get(pack_id)

    def entries(self, pack_id: str) -> List[Entry]:
        return list(self._indexes.get(pack_id, {}).values())

    async def load_index(self, pack_id: str) -> Dict[str, Entry]:
        """
        Return the pack's index, building it from the Metadata Record once.

        Raises:
            NotFoundError: the pack or its Metadata Record does not exist
        """
        cached = self.get(pack_id)
        if cached is not None:
            return cached

        pack = await self.engine.get_pack(pack_id)
        if pack is None:
            raise NotFoundError(pack_id, what="pack")

        meta = await self.engine.get_document(pack_id, self.settings.META_INDEX_ID)
        if meta is None:
            raise NotFoundError(f"{pack_id}/{self.settings.META_INDEX_ID}", what="metadata record")

        raw_index = meta.get_flag(self.settings.FLAG_SCOPE, "index") or {}
        index: Dict[str, Entry] = {}
        for entry_id, content in raw_index.items():
            record = self.parse_record(pack_id, entry_id, content)
            if record is not None:
                index[entry_id] = self.entry_factory(entry_id, pack_id, pack.document_kind, record)

        # Another task may have finished loading while we awaited
        if pack_id in self._indexes:
            return self._indexes[pack_id]

        self._kinds[pack_id] = pack.document_kind
        self._indexes[pack_id] = index
        logger.debug("Index loaded", pack=pack_id, entries=len(index))
        return index

    def parse_record(self, pack_id: str, entry_id: str, content: Any) -> Optional[IndexRecord]:
        if entry_id == self.settings.META_INDEX_ID:
            return None
        if not isinstance(content, Mapping):
            logger.warning("Skipping malformed index record", pack=pack_id, entry_id=entry_id)
            return None
        try:
            return IndexRecord.from_stored(content)
        except PydanticValidationError as e:
            logger.warning(
                "Skipping invalid index record",
                pack=pack_id,
                entry_id=entry_id,
                error=str(e),
            )
            return None

    def put(self, pack_id: str, entry_id: str, content: Mapping[str, Any] | IndexRecord) -> Optional[Entry]:
        """
        Add or replace one projection in a cached pack.

        No-op when the pack is not cached; it will be read in full on first use.
        """
        index = self._indexes.get(pack_id)
        if index is None:
            return None

        record = content if isinstance(content, IndexRecord) else self.parse_record(pack_id, entry_id, content)
        if record is None:
            return None

        entry = index.get(entry_id)
        if entry is not None:
            entry.apply_index(record)
        else:
            entry = self.entry_factory(entry_id, pack_id, self._kinds[pack_id], record)
            index[entry_id] = entry
        return entry

    def remove(self, pack_id: str, entry_id: str) -> bool:
        index = self._indexes.get(pack_id)
        if index is None:
            return False
        return index.pop(entry_id, None) is not None

    def invalidate(self, pack_id: str) -> None:
        """Forget a pack's cache so the next use re-reads the Metadata Record."""
        self._indexes.pop(pack_id, None)
        self._kinds.pop(pack_id, None)
