"""
SQLAlchemy-backed persistence engine with lifecycle observer dispatch.
"""

import asyncio
import copy
import secrets
import string
from typing import Any, Dict, List, Optional, Set

from packstore.errors import AccessDenied, NotFoundError, ValidationError
from packstore.events.observer import DocumentMutationObserver
from packstore.platform.logging import get_logger

from .base import DocumentEngine
from .documents import Document, PackInfo
from .models import DocumentModel, PackModel
from .repositories import DocumentRepository, PackRepository
from .sql_adapter import SqlAdapter

logger = get_logger(__name__)

_ID_ALPHABET = string.ascii_letters + string.digits
ID_LENGTH = 16

# Top-level keys an update may touch
_UPDATABLE_KEYS = frozenset({"name", "flags"})


def generate_id(length: int = ID_LENGTH) -> str:
    """Random alphanumeric document id."""
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(length))


class SqlDocumentEngine(DocumentEngine):
    """
    Document engine over a SqlAdapter.

    SQL work is done synchronously inside each coroutine; the event loop
    is single-threaded so no two mutations interleave inside a session.
    """

    def __init__(self, adapter: SqlAdapter):
        self.adapter = adapter
        self.packs = PackRepository()
        self.documents = DocumentRepository()
        self._observers: List[DocumentMutationObserver] = []
        self._pending: Set[asyncio.Task] = set()

    # --- Observers ---

    def register_observer(self, observer: DocumentMutationObserver) -> None:
        if observer not in self._observers:
            self._observers.append(observer)

    def unregister_observer(self, observer: DocumentMutationObserver) -> None:
        if observer in self._observers:
            self._observers.remove(observer)

    def _dispatch(self, hook: str, *args: Any) -> None:
        """Schedule a post-mutation hook on every observer (fire-and-forget)."""
        for observer in list(self._observers):
            task = asyncio.create_task(
                self._run_hook(observer, hook, *args),
                name=f"hook-{hook}",
            )
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

    async def _run_hook(self, observer: DocumentMutationObserver, hook: str, *args: Any) -> None:
        try:
            await getattr(observer, hook)(*args)
        except Exception as e:
            logger.error(
                f"Observer hook {hook} failed: {e}",
                observer=type(observer).__name__,
                exc_info=True,
            )

    async def drain(self) -> None:
        # Hooks may trigger further mutations, so loop until quiet
        while self._pending:
            await asyncio.gather(*list(self._pending))

    # --- Snapshots ---

    def _pack_info(self, session, pack: PackModel) -> PackInfo:
        return PackInfo(
            id=pack.id,
            label=pack.label,
            document_kind=pack.document_kind,
            locked=bool(pack.locked),
            document_ids=frozenset(self.documents.list_index(session, pack.id)),
        )

    @staticmethod
    def _snapshot(model: DocumentModel, kind: str) -> Document:
        return Document(
            id=model.id,
            pack=model.pack_id,
            kind=kind,
            name=model.name,
            flags=copy.deepcopy(model.flags or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _require_pack(self, session, pack_id: str, writing: bool = False) -> PackModel:
        pack = self.packs.get(session, pack_id)
        if not pack:
            raise NotFoundError(pack_id, what="pack")
        if writing and pack.locked:
            raise AccessDenied(f"Pack '{pack_id}' is locked and cannot be modified.")
        return pack

    # --- Packs ---

    async def create_pack(
        self, pack_id: str, label: str, document_kind: str, locked: bool = False
    ) -> PackInfo:
        with self.adapter.get_session() as session:
            if self.packs.get(session, pack_id):
                raise ValidationError(f"Pack '{pack_id}' already exists.")
            pack = self.packs.create(
                session,
                PackModel(id=pack_id, label=label, document_kind=document_kind, locked=locked),
            )
            info = self._pack_info(session, pack)

        logger.info("Pack created", pack=pack_id, document_kind=document_kind)
        return info

    async def get_pack(self, pack_id: str) -> Optional[PackInfo]:
        with self.adapter.get_session() as session:
            pack = self.packs.get(session, pack_id)
            return self._pack_info(session, pack) if pack else None

    async def list_packs(self) -> List[PackInfo]:
        with self.adapter.get_session() as session:
            return [self._pack_info(session, pack) for pack in self.packs.list(session)]

    async def set_locked(self, pack_id: str, locked: bool) -> Optional[PackInfo]:
        with self.adapter.get_session() as session:
            pack = self.packs.set_locked(session, pack_id, locked)
            return self._pack_info(session, pack) if pack else None

    # --- Documents ---

    async def create_documents(
        self,
        pack_id: str,
        specs: List[Dict[str, Any]],
        options: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> List[Document]:
        options = dict(options or {})

        with self.adapter.get_session() as session:
            pack_model = self._require_pack(session, pack_id, writing=True)
            pack = self._pack_info(session, pack_model)

            prepared = []
            for spec in specs:
                data = copy.deepcopy(spec)
                if not (options.get("keep_id") and data.get("id")):
                    data["id"] = generate_id()
                for observer in list(self._observers):
                    observer.pre_create(pack, data, options, user_id)
                prepared.append(data)

            documents = []
            for data in prepared:
                if self.documents.get(session, pack_id, data["id"]):
                    raise ValidationError(
                        f"Document '{data['id']}' already exists in pack '{pack_id}'."
                    )
                model = self.documents.create(
                    session,
                    DocumentModel(
                        id=data["id"],
                        pack_id=pack_id,
                        name=data.get("name") or "",
                        flags=data.get("flags") or {},
                    ),
                )
                documents.append(self._snapshot(model, pack.document_kind))

        logger.debug(
            "Documents created",
            pack=pack_id,
            count=len(documents),
            user_id=user_id,
        )
        for document in documents:
            self._dispatch("on_create", document, options, user_id)
        return documents

    async def update_document(
        self,
        pack_id: str,
        document_id: str,
        changes: Dict[str, Any],
        options: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> Optional[Document]:
        options = dict(options or {})
        unsupported = set(changes) - _UPDATABLE_KEYS
        if unsupported:
            raise ValidationError(
                f"Unsupported document update keys: {sorted(unsupported)}. "
                f"Only {sorted(_UPDATABLE_KEYS)} can be changed."
            )

        with self.adapter.get_session() as session:
            pack = self._require_pack(session, pack_id, writing=True)
            model = self.documents.get(session, pack_id, document_id)
            if not model:
                return None

            changes = copy.deepcopy(changes)
            current = self._snapshot(model, pack.document_kind)
            for observer in list(self._observers):
                observer.pre_update(current, changes, options, user_id)

            model = self.documents.update(session, pack_id, document_id, changes)
            document = self._snapshot(model, pack.document_kind)

        self._dispatch("on_update", document, changes, options, user_id)
        return document

    async def delete_documents(
        self,
        pack_id: str,
        document_ids: List[str],
        options: Optional[Dict[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> List[Document]:
        options = dict(options or {})

        with self.adapter.get_session() as session:
            pack = self._require_pack(session, pack_id, writing=True)
            deleted = []
            for document_id in document_ids:
                model = self.documents.get(session, pack_id, document_id)
                if not model:
                    continue
                snapshot = self._snapshot(model, pack.document_kind)
                self.documents.delete(session, pack_id, document_id)
                deleted.append(snapshot)

        for document in deleted:
            self._dispatch("on_delete", document, options, user_id)
        return deleted

    async def get_document(self, pack_id: str, document_id: str) -> Optional[Document]:
        with self.adapter.get_session() as session:
            pack = self.packs.get(session, pack_id)
            if not pack:
                return None
            model = self.documents.get(session, pack_id, document_id)
            return self._snapshot(model, pack.document_kind) if model else None

    async def get_documents(
        self, pack_id: str, ids: Optional[List[str]] = None
    ) -> List[Document]:
        with self.adapter.get_session() as session:
            pack = self._require_pack(session, pack_id)
            if ids is None:
                models = self.documents.list(session, pack_id)
            else:
                models = self.documents.list_by_ids(session, pack_id, list(ids))
            return [self._snapshot(m, pack.document_kind) for m in models]

    async def get_index(self, pack_id: str) -> Dict[str, str]:
        with self.adapter.get_session() as session:
            self._require_pack(session, pack_id)
            return self.documents.list_index(session, pack_id)
