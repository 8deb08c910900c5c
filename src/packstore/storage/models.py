from datetime import datetime, timezone
from typing import Any, Dict, List

from sqlalchemy import Boolean, DateTime, ForeignKey, JSON, String, Text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# Helper to support both Postgres JSONB and generic JSON (for SQLite tests)
JSON_TYPE = JSON().with_variant(JSONB, 'postgresql')
TIMESTAMP_TYPE = DateTime(timezone=True).with_variant(TIMESTAMP(timezone=True), 'postgresql')


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Packs ---

class PackModel(Base):
    __tablename__ = "packs"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    label: Mapped[str] = mapped_column(String, nullable=False)
    document_kind: Mapped[str] = mapped_column(String, nullable=False, index=True)
    locked: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, default=_utcnow)

    documents: Mapped[List["DocumentModel"]] = relationship(
        back_populates="pack", cascade="all, delete-orphan"
    )


# --- Documents ---

class DocumentModel(Base):
    __tablename__ = "documents"

    # Identifiers are unique within a pack, not globally
    id: Mapped[str] = mapped_column(String, primary_key=True)
    pack_id: Mapped[str] = mapped_column(ForeignKey("packs.id"), primary_key=True, index=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, default="")
    flags: Mapped[Dict[str, Any]] = mapped_column(JSON_TYPE, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP_TYPE, default=_utcnow, onupdate=_utcnow)

    pack: Mapped["PackModel"] = relationship(back_populates="documents")
