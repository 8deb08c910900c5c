from .base import BaseRepository
from .document_repository import DocumentRepository, PackRepository

__all__ = ["BaseRepository", "DocumentRepository", "PackRepository"]
