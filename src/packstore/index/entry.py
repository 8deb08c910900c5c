"""
Entry - one logical record: index projection plus a lazily loaded document.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, List, Optional

from packstore.errors import MalformedReference
from packstore.storage.documents import Document

from .fields import IndexRecord

if TYPE_CHECKING:
    from packstore.access_control import Actor
    from packstore.services.data_storage import DataStorage


@dataclass(frozen=True)
class Locator:
    """Parsed form of an entry uuid."""
    pack: str
    kind: str
    id: str


def format_locator(scheme: str, pack: str, kind: str, document_id: str) -> str:
    return f"{scheme}://{pack}/{kind}/{document_id}"


def parse_locator(reference: Any, scheme: str) -> Locator:
    """
    Split ``{scheme}://{pack}/{kind}/{id}`` into its parts.

    Raises:
        MalformedReference: the reference does not have that shape
    """
    prefix = f"{scheme}://"
    if not isinstance(reference, str) or not reference.startswith(prefix):
        raise MalformedReference(str(reference), f"expected '{prefix}<pack>/<kind>/<id>'")

    parts = reference[len(prefix):].split("/")
    if len(parts) != 3 or not all(parts):
        raise MalformedReference(reference, "expected exactly pack, kind and id segments")
    return Locator(pack=parts[0], kind=parts[1], id=parts[2])


class Entry:
    """
    An entry of a pack.

    Index fields are always present; ``document`` is only set once the entry
    has been loaded (``load()`` or batched hydration).
    """

    def __init__(
        self,
        id: str,
        pack: str,
        index: IndexRecord,
        kind: str,
        scheme: str,
        document: Optional[Document] = None,
        storage: Optional["DataStorage"] = None,
    ):
        self.id = id
        self.pack = pack
        self.index = index
        self.kind = kind
        self.scheme = scheme
        self.document = document
        self._storage = storage

    # --- Index fields ---

    @property
    def name(self) -> str:
        return self.index.name

    @property
    def thumb(self) -> str:
        return self.index.thumb

    @property
    def tags(self) -> List[str]:
        return self.index.tags

    @property
    def type(self) -> str:
        return self.index.type

    @property
    def desc(self) -> str:
        return self.index.desc

    @property
    def uuid(self) -> str:
        """Locator of the underlying document. Derived, never stored."""
        return format_locator(self.scheme, self.pack, self.kind, self.id)

    def apply_index(self, index: IndexRecord) -> None:
        self.index = index

    def __repr__(self) -> str:
        return f"Entry({self.uuid!r}, name={self.name!r}, type={self.type!r}, tags={self.tags!r})"

    # --- Document access ---

    def _require_storage(self) -> "DataStorage":
        if self._storage is None:
            raise RuntimeError(f"Entry {self.uuid} is not bound to a DataStorage service.")
        return self._storage

    async def load(self) -> Document:
        """Load the underlying document. Raises NotFoundError if it is gone."""
        if self.document is None:
            self.document = await self._require_storage().load_document(self)
        return self.document

    async def data(self) -> Any:
        """The payload stored within the document."""
        await self.load()
        return self._require_storage().payload_of(self.document)

    async def update(self, payload: Any, actor: Optional["Actor"] = None) -> "Entry":
        """Replace the stored payload."""
        return await self._require_storage().update_payload(self, payload, actor)

    async def update_index(self, actor: Optional["Actor"] = None, **fields: Any) -> "Entry":
        """Change index fields; only name/thumb/tags/type/desc are accepted."""
        return await self._require_storage().update_index(self, actor, **fields)

    async def delete(self, actor: Optional["Actor"] = None) -> bool:
        """Delete the underlying document. Returns False if it was already gone."""
        return await self._require_storage().delete(self, actor)
