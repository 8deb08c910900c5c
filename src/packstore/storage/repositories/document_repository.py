from typing import List, Optional, Dict, Any
from sqlalchemy.orm import Session
from sqlalchemy import select
import logging

from packstore.storage.merge import merge_changes
from packstore.storage.models import DocumentModel, PackModel
from .base import BaseRepository

logger = logging.getLogger(__name__)


class PackRepository:
    """Repository for pack (collection) records."""

    def create(self, session: Session, pack: PackModel) -> PackModel:
        session.add(pack)
        # Flush to check for immediate constraints, caller commits
        session.flush()
        return pack

    def get(self, session: Session, pack_id: str) -> Optional[PackModel]:
        return session.get(PackModel, pack_id)

    def set_locked(self, session: Session, pack_id: str, locked: bool) -> Optional[PackModel]:
        pack = self.get(session, pack_id)
        if not pack:
            return None
        pack.locked = locked
        return pack

    def list(self, session: Session) -> List[PackModel]:
        stmt = select(PackModel).order_by(PackModel.created_at, PackModel.id)
        return list(session.scalars(stmt).all())


class DocumentRepository(BaseRepository[DocumentModel]):
    """Repository for documents stored inside packs."""

    def create(self, session: Session, entity: DocumentModel) -> DocumentModel:
        session.add(entity)
        session.flush()
        return entity

    def get(self, session: Session, pack_id: str, id: str) -> Optional[DocumentModel]:
        return session.get(DocumentModel, {"id": id, "pack_id": pack_id})

    def update(self, session: Session, pack_id: str, id: str, updates: Dict[str, Any]) -> Optional[DocumentModel]:
        doc = self.get(session, pack_id, id)
        if not doc:
            return None

        if 'name' in updates:
            doc.name = updates['name']

        if updates.get('flags'):
            # Reassign so the JSON column is flagged dirty
            doc.flags = merge_changes(doc.flags or {}, updates['flags'])

        session.flush()
        return doc

    def delete(self, session: Session, pack_id: str, id: str) -> bool:
        doc = self.get(session, pack_id, id)
        if doc:
            session.delete(doc)
            session.flush()
            return True
        return False

    def list(self, session: Session, pack_id: str, limit: Optional[int] = None, offset: int = 0) -> List[DocumentModel]:
        stmt = select(DocumentModel).where(DocumentModel.pack_id == pack_id).order_by(
            DocumentModel.created_at, DocumentModel.id
        ).offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(session.scalars(stmt).all())

    def list_by_ids(self, session: Session, pack_id: str, ids: List[str]) -> List[DocumentModel]:
        """Fetch multiple documents of one pack in a single query."""
        if not ids:
            return []
        stmt = select(DocumentModel).where(
            DocumentModel.pack_id == pack_id,
            DocumentModel.id.in_(ids),
        )
        return list(session.scalars(stmt).all())

    def list_index(self, session: Session, pack_id: str) -> Dict[str, str]:
        """Lightweight index of a pack: document id -> display name."""
        stmt = select(DocumentModel.id, DocumentModel.name).where(
            DocumentModel.pack_id == pack_id
        ).order_by(DocumentModel.created_at, DocumentModel.id)
        return {row.id: row.name for row in session.execute(stmt)}
