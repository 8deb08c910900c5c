from abc import ABC, abstractmethod
from typing import Generic, TypeVar, Optional, List, Dict, Any
from sqlalchemy.orm import Session

T = TypeVar("T")

class BaseRepository(Generic[T], ABC):
    """Abstract base repository defining pack-scoped CRUD contracts using SQLAlchemy Session."""

    @abstractmethod
    def create(self, session: Session, entity: Any) -> T:
        pass

    @abstractmethod
    def get(self, session: Session, pack_id: str, id: str) -> Optional[T]:
        pass

    @abstractmethod
    def update(self, session: Session, pack_id: str, id: str, updates: Dict[str, Any]) -> Optional[T]:
        pass

    @abstractmethod
    def delete(self, session: Session, pack_id: str, id: str) -> bool:
        pass

    @abstractmethod
    def list(self, session: Session, pack_id: str, limit: Optional[int] = None, offset: int = 0) -> List[T]:
        pass
