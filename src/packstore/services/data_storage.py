"""
DataStorage - entry repository facade.

Stores arbitrary payloads as documents inside managed packs and finds them
again through each pack's Index Store. One instance acts for one local
actor; its MetadataSynchronizer is registered on the engine for the life of
the service.
"""

from collections import OrderedDict
from typing import Any, Dict, List, Optional, Sequence, Union

from packstore.access_control import Actor
from packstore.errors import (
    AccessDenied,
    ArgumentError,
    MalformedReference,
    NotFoundError,
    PackStoreError,
    ValidationError,
)
from packstore.events import ProxyHandler
from packstore.index import (
    Entry,
    EntryEnvelope,
    IndexRecord,
    IndexStore,
    Locator,
    MetadataSynchronizer,
    parse_locator,
    validate_index_fields,
)
from packstore.index.fields import decode_payload, encode_payload, is_empty_payload
from packstore.platform.config import Settings, settings as default_settings
from packstore.platform.logging import get_logger
from packstore.query import Predicate, build_predicate, filter_entries, match_entry, parse_query
from packstore.storage import Document, PackInfo
from packstore.storage.base import DocumentEngine
from packstore.storage.merge import deletion_key

from .proxy import RemoteProxyChannel

logger = get_logger(__name__)


class DataStorage:
    """
    Store, search, hydrate and delete entries.

    Write operations take the acting ``actor`` explicitly and default to the
    service's own actor. Unprivileged actors are relayed through the proxy
    channel when one is configured and proxied writes are allowed.
    """

    def __init__(
        self,
        engine: DocumentEngine,
        actor: Actor,
        proxy: Optional[RemoteProxyChannel] = None,
        settings: Settings = default_settings,
    ):
        """
        Args:
            engine: Persistence engine holding the packs
            actor: Local actor this service acts for
            proxy: Relay for writes of unprivileged actors
            settings: Immutable configuration
        """
        self.engine = engine
        self.actor = actor
        self.proxy = proxy
        self.settings = settings
        self.working_pack = settings.WORKING_PACK

        self.index_store = IndexStore(engine, self._make_entry, settings)
        self.synchronizer = MetadataSynchronizer(engine, self.index_store, actor.id, settings)
        self.engine.register_observer(self.synchronizer)

    async def close(self) -> None:
        """Detach from the engine and stop the proxy channel."""
        self.engine.unregister_observer(self.synchronizer)
        if self.proxy:
            await self.proxy.stop()

    @property
    def scope(self) -> str:
        return self.settings.FLAG_SCOPE

    def _make_entry(self, entry_id: str, pack_id: str, kind: str, index: IndexRecord) -> Entry:
        return Entry(
            id=entry_id,
            pack=pack_id,
            index=index,
            kind=kind,
            scheme=self.settings.LOCATOR_SCHEME,
            storage=self,
        )

    # =========================================================================
    # PACK INITIALISATION
    # =========================================================================

    async def _init_pack(self, pack_id: str) -> Optional[PackInfo]:
        """Return the pack, creating it only when it is the default pack."""
        pack = await self.engine.get_pack(pack_id)
        if pack is None and pack_id == self.settings.DEFAULT_PACK:
            pack = await self.engine.create_pack(
                pack_id,
                label=self.settings.DEFAULT_PACK_LABEL,
                document_kind=self.settings.MANAGED_DOCUMENT_KINDS[0],
            )
            logger.info("Default pack created", pack=pack_id)

        if pack is not None and pack.document_kind not in self.settings.MANAGED_DOCUMENT_KINDS:
            raise ValidationError(
                f"Pack '{pack_id}' holds {pack.document_kind} documents. "
                f"Entries can only be stored in packs of {self.settings.MANAGED_DOCUMENT_KINDS}."
            )
        return pack

    async def _init_metadata(self, pack_id: str, actor: Actor) -> Document:
        """Return the pack's Metadata Record, creating an empty one if missing."""
        meta = await self.engine.get_document(pack_id, self.settings.META_INDEX_ID)
        if meta is not None:
            return meta

        documents = await self.engine.create_documents(
            pack_id,
            [
                {
                    "id": self.settings.META_INDEX_ID,
                    "name": self.settings.META_DOCUMENT_NAME,
                    "flags": {self.scope: {"index": {}}},
                }
            ],
            options={"metadata_record": True, "keep_id": True},
            user_id=actor.id,
        )
        logger.info("Metadata record created", pack=pack_id)
        return documents[0]

    async def _prepare_pack(self, pack_id: str, actor: Actor) -> PackInfo:
        pack = await self._init_pack(pack_id)
        if pack is None:
            raise NotFoundError(pack_id, what="pack")
        await self._init_metadata(pack_id, actor)
        return pack

    async def _resolve_target_pack(self, pack_id: Optional[str], actor: Actor) -> PackInfo:
        if pack_id:
            return await self._prepare_pack(pack_id, actor)

        try:
            return await self._prepare_pack(self.working_pack, actor)
        except PackStoreError as e:
            if self.working_pack == self.settings.DEFAULT_PACK:
                raise
            logger.warning(
                "Unable to use working pack; returning to default",
                working_pack=self.working_pack,
                default_pack=self.settings.DEFAULT_PACK,
                error=str(e),
            )
            self.working_pack = self.settings.DEFAULT_PACK
            return await self._prepare_pack(self.working_pack, actor)

    # =========================================================================
    # PRIVILEGE / PROXY
    # =========================================================================

    async def _proxy(
        self,
        handler: ProxyHandler,
        args: Dict[str, Any],
        actor: Actor,
    ) -> Optional[Dict[str, Any]]:
        if not self.settings.ALLOW_UNPRIVILEGED_WRITES:
            raise AccessDenied(
                f"Actor '{actor.id}' cannot {handler.value} entries and proxied writes are disabled. "
                f"Ask a privileged actor to perform the change."
            )
        if self.proxy is None:
            raise AccessDenied(
                f"Actor '{actor.id}' cannot {handler.value} entries directly and no proxy channel "
                f"is configured."
            )

        result = await self.proxy.request(handler, args)
        if result is None:
            return None
        if result.get("error"):
            logger.warning(
                "Proxied request failed on the responder",
                handler=handler.value,
                error=result["error"],
            )
            return None
        return result

    @staticmethod
    def _require_privilege(actor: Actor, action: str) -> None:
        if not actor.is_privileged:
            raise AccessDenied(
                f"Actor '{actor.id}' is not allowed to {action}. A privileged role is required."
            )

    # =========================================================================
    # STORE
    # =========================================================================

    async def store(
        self,
        data: Any,
        name: Optional[str] = None,
        thumb: Optional[str] = None,
        tags: Optional[List[str]] = None,
        type: Optional[str] = None,
        desc: Optional[str] = None,
        pack: Optional[str] = None,
        actor: Optional[Actor] = None,
    ) -> Optional[Entry]:
        """
        Save ``data`` as a new entry.

        Omitted index fields take their defaults. For an unprivileged actor
        the write is relayed and the result is None if no privileged actor
        answers in time.

        Raises:
            ValidationError: ``data`` is empty or holds a value that cannot be stored
            IndexFieldTypeError: an index field has the wrong type
            AccessDenied: the pack is locked, or the actor may not write
        """
        actor = actor or self.actor
        if is_empty_payload(data):
            raise ValidationError("No data provided for storage. Pass a non-empty payload as 'data'.")
        encoded = encode_payload(data)

        supplied = {"name": name, "thumb": thumb, "tags": tags, "type": type, "desc": desc}
        index = validate_index_fields({k: v for k, v in supplied.items() if v is not None})

        if not actor.is_privileged:
            return await self._proxy_store(index, encoded, pack, actor)

        target = await self._resolve_target_pack(pack, actor)
        if target.locked:
            raise AccessDenied(f"Pack '{target.id}' is locked and cannot be modified.")

        envelope = EntryEnvelope(index=index, payload=data)
        documents = await self.engine.create_documents(
            target.id,
            [{"name": index.name, "flags": {self.scope: envelope.to_flags()}}],
            options={"index_synced": True},
            user_id=actor.id,
        )
        document = documents[0]
        await self.synchronizer.record_created(document)

        entry = self._make_entry(document.id, target.id, target.document_kind, index)
        entry.document = document
        logger.info("Entry stored", uuid=entry.uuid, type=index.type, actor=actor.id)
        return entry

    async def _proxy_store(
        self,
        index: IndexRecord,
        data: Any,
        pack: Optional[str],
        actor: Actor,
    ) -> Optional[Entry]:
        # ``data`` is already encoded; the responder decodes it
        args = {**index.model_dump(), "data": data}
        if pack:
            args["pack"] = pack

        result = await self._proxy(ProxyHandler.STORE, args, actor)
        if not result or not result.get("uuid"):
            return None

        entries = await self.get_entries_from_uuid([result["uuid"]], full=True)
        return entries[0] if entries else None

    # =========================================================================
    # RETRIEVE
    # =========================================================================

    async def retrieve(
        self,
        uuid: Optional[Union[str, Sequence[str]]] = None,
        name: Optional[str] = None,
        types: Optional[Union[str, Sequence[str]]] = None,
        query: Optional[str] = None,
        tags: Optional[Union[str, Sequence[str]]] = None,
        match_any_tag: bool = True,
        full: bool = False,
        entries: Optional[Sequence[Entry]] = None,
    ) -> Union[Entry, List[Entry], None]:
        """
        Find entries.

        Modes, first applicable wins:
        1. ``uuid``: direct fetch; a single Entry (or None) for a string, a
           list for a sequence. Filters are not applied.
        2. ``query``: free-text query; name/types/tags are ignored.
        3. ``name`` / ``types`` / ``tags``: structured filter.
        Modes 2 and 3 search ``entries`` instead of every managed pack when
        it is given.

        Raises:
            ArgumentError: no identifier, filter or query was given
        """
        if uuid:
            if isinstance(uuid, str):
                found = await self.get_entries_from_uuid([uuid], full=full)
                return found[0] if found else None
            return await self.get_entries_from_uuid(list(uuid), full=full)

        if not (name or types or tags or query):
            raise ArgumentError(
                "A uuid, name, types, tags and/or query is required to retrieve entries."
            )

        if query:
            if name or types or tags:
                logger.warning("When 'query' is provided, 'name', 'types' and 'tags' are ignored.")
            positive, negative = parse_query(query, match_any_tag=match_any_tag)
        else:
            positive, negative = build_predicate(name, types, tags, match_any_tag), None

        if positive is None and negative is None:
            return []

        if entries is not None:
            results = filter_entries(
                (e for e in entries if e.id != self.settings.META_INDEX_ID), positive, negative
            )
        else:
            results = await self._search(positive, negative)

        if full:
            await self.load_full(results)
        return results

    async def search(
        self,
        name: Optional[str] = None,
        types: Optional[Union[str, Sequence[str]]] = None,
        tags: Optional[Union[str, Sequence[str]]] = None,
        match_any_tag: bool = True,
    ) -> List[Entry]:
        """Structured search over every managed pack, bypassing the text parser."""
        predicate = build_predicate(name, types, tags, match_any_tag)
        if predicate is None:
            return []
        return await self._search(predicate, None)

    def _is_managed(self, pack: PackInfo) -> bool:
        return self.synchronizer.is_managed(pack)

    async def _search(
        self,
        positive: Optional[Predicate],
        negative: Optional[Predicate],
    ) -> List[Entry]:
        results: List[Entry] = []
        for pack in await self.engine.list_packs():
            if not self._is_managed(pack):
                continue
            try:
                await self.index_store.load_index(pack.id)
            except NotFoundError as e:
                logger.warning("Skipping pack without a readable index", pack=pack.id, error=str(e))
                continue

            results.extend(
                entry for entry in self.index_store.entries(pack.id)
                if match_entry(entry, positive, negative)
            )
        return results

    async def get_entries_from_uuid(self, uuids: Sequence[str], full: bool = True) -> List[Entry]:
        """
        Entries for the given locators, in input order.

        Malformed locators and ids no longer in their pack are logged and
        skipped. Ids missing from the Metadata Record are recovered from the
        documents' own index copies.
        """
        if isinstance(uuids, str):
            uuids = [uuids]

        locators: List[Locator] = []
        for reference in uuids:
            try:
                locators.append(parse_locator(reference, self.settings.LOCATOR_SCHEME))
            except MalformedReference as e:
                logger.warning("Skipping malformed entry reference", error=str(e))

        by_pack: "OrderedDict[str, List[str]]" = OrderedDict()
        for locator in locators:
            by_pack.setdefault(locator.pack, []).append(locator.id)

        resolved: Dict[tuple, Entry] = {}
        for pack_id, ids in by_pack.items():
            for entry in await self._entries_in_pack(pack_id, ids):
                resolved[(pack_id, entry.id)] = entry

        entries = [resolved[(l.pack, l.id)] for l in locators if (l.pack, l.id) in resolved]
        if full:
            await self.load_full(entries)
        return entries

    async def _entries_in_pack(self, pack_id: str, ids: List[str]) -> List[Entry]:
        pack = await self.engine.get_pack(pack_id)
        if pack is None:
            logger.warning("Skipping references to unknown pack", pack=pack_id, count=len(ids))
            return []

        present = [
            entry_id for entry_id in dict.fromkeys(ids)
            if entry_id != self.settings.META_INDEX_ID and pack.has_document(entry_id)
        ]
        if not present:
            return []

        meta = await self.engine.get_document(pack_id, self.settings.META_INDEX_ID)
        meta_index = (meta.get_flag(self.scope, "index") if meta else None) or {}

        entries: List[Entry] = []
        unindexed: List[str] = []
        for entry_id in present:
            record = None
            if entry_id in meta_index:
                record = self.index_store.parse_record(pack_id, entry_id, meta_index[entry_id])
            if record is None:
                unindexed.append(entry_id)
            else:
                entries.append(self._make_entry(entry_id, pack_id, pack.document_kind, record))

        if unindexed:
            for document in await self.engine.get_documents(pack_id, unindexed):
                entry = self._make_entry(document.id, pack_id, pack.document_kind, self._recover_index(document))
                entry.document = document
                entries.append(entry)
            logger.info("Recovered entries missing from the metadata record", pack=pack_id, count=len(unindexed))

        return entries

    def _recover_index(self, document: Document) -> IndexRecord:
        """Index copy carried by the document itself, or a default one."""
        stored = document.get_flag(self.scope, "index")
        if isinstance(stored, dict):
            record = self.index_store.parse_record(document.pack, document.id, stored)
            if record is not None:
                return record
        return IndexRecord(name=document.name or IndexRecord().name)

    # =========================================================================
    # HYDRATION
    # =========================================================================

    async def load_full(self, entries: Sequence[Entry]) -> Sequence[Entry]:
        """
        Attach documents to every entry lacking one.

        One bulk fetch per pack, never one per entry.
        """
        by_pack: "OrderedDict[str, Dict[str, List[Entry]]]" = OrderedDict()
        for entry in entries:
            if entry.document is None:
                by_pack.setdefault(entry.pack, {}).setdefault(entry.id, []).append(entry)

        for pack_id, id_to_entries in by_pack.items():
            documents = await self.engine.get_documents(pack_id, list(id_to_entries))
            for document in documents:
                for entry in id_to_entries.get(document.id, []):
                    entry.document = document

        return entries

    async def load_document(self, entry: Entry) -> Document:
        document = await self.engine.get_document(entry.pack, entry.id)
        if document is None:
            raise NotFoundError(entry.uuid)
        return document

    def payload_of(self, document: Document) -> Any:
        data = document.get_flag(self.scope, "data") or []
        return decode_payload(data[0]) if data else None

    # =========================================================================
    # ENTRY UPDATES
    # =========================================================================

    async def update_payload(self, entry: Entry, payload: Any, actor: Optional[Actor] = None) -> Entry:
        """Replace an entry's payload. The index is left untouched."""
        actor = actor or self.actor
        self._require_privilege(actor, "update entries")
        if is_empty_payload(payload):
            raise ValidationError("No data provided for update. Pass a non-empty payload.")

        document = await self.engine.update_document(
            entry.pack,
            entry.id,
            {"flags": {self.scope: {"data": [encode_payload(payload)]}}},
            user_id=actor.id,
        )
        if document is None:
            raise NotFoundError(entry.uuid)
        entry.document = document
        return entry

    async def update_index(self, entry: Entry, actor: Optional[Actor] = None, **fields: Any) -> Entry:
        """
        Change index fields of an entry.

        Raises:
            ValidationError: a field other than the five index fields was given
            IndexFieldTypeError: a field has the wrong type
        """
        actor = actor or self.actor
        self._require_privilege(actor, "update entries")
        record = validate_index_fields(fields, base=entry.index)
        if not fields:
            return entry

        changed = {key: getattr(record, key) for key in fields}
        changes: Dict[str, Any] = {"flags": {self.scope: {"index": changed}}}
        if "name" in changed:
            changes["name"] = changed["name"]

        document = await self.engine.update_document(entry.pack, entry.id, changes, user_id=actor.id)
        if document is None:
            raise NotFoundError(entry.uuid)

        entry.apply_index(record)
        entry.document = document
        logger.debug("Entry index updated", uuid=entry.uuid, fields=sorted(changed))
        return entry

    # =========================================================================
    # DELETE
    # =========================================================================

    async def delete(self, entry: Entry, actor: Optional[Actor] = None) -> bool:
        """
        Delete an entry's document. Index cleanup follows via the synchronizer.

        Returns:
            True if a document was deleted
        """
        actor = actor or self.actor
        if not actor.is_privileged:
            result = await self._proxy(ProxyHandler.DELETE, {"uuid": entry.uuid}, actor)
            return bool(result and result.get("deleted"))

        deleted = await self.engine.delete_documents(entry.pack, [entry.id], user_id=actor.id)
        if not deleted:
            logger.warning("Entry already gone", uuid=entry.uuid)
            return False

        entry.document = None
        logger.info("Entry deleted", uuid=entry.uuid, actor=actor.id)
        return True

    # =========================================================================
    # REPAIR
    # =========================================================================

    async def repair_index(self, pack_id: str, actor: Optional[Actor] = None) -> int:
        """
        Rebuild a pack's Metadata Record from the documents' own index copies.

        Creates the Metadata Record if it is missing and drops ids whose
        documents no longer exist. Returns the number of indexed entries.
        """
        actor = actor or self.actor
        self._require_privilege(actor, "repair pack indexes")

        pack = await self._init_pack(pack_id)
        if pack is None:
            raise NotFoundError(pack_id, what="pack")
        if pack.locked:
            raise AccessDenied(f"Pack '{pack_id}' is locked and cannot be modified.")

        meta = await self._init_metadata(pack_id, actor)
        current = meta.get_flag(self.scope, "index") or {}

        rebuilt: Dict[str, Any] = {}
        for document in await self.engine.get_documents(pack_id):
            if document.id == self.settings.META_INDEX_ID:
                continue
            rebuilt[document.id] = self._recover_index(document).model_dump()

        patch: Dict[str, Any] = dict(rebuilt)
        stale = [entry_id for entry_id in current if entry_id not in rebuilt]
        for entry_id in stale:
            patch[deletion_key(entry_id)] = None

        await self.engine.update_document(
            pack_id,
            self.settings.META_INDEX_ID,
            {"flags": {self.scope: {"index": patch}}},
            user_id=actor.id,
        )
        self.index_store.invalidate(pack_id)

        logger.info("Pack index repaired", pack=pack_id, entries=len(rebuilt), removed=len(stale))
        return len(rebuilt)
