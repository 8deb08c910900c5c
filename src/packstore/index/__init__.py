"""packstore index - entry projections, the Index Store and its synchronizer."""

from .entry import Entry, Locator, format_locator, parse_locator
from .fields import (
    DEFAULT_NAME,
    DEFAULT_TYPE,
    INDEX_FIELDS,
    EntryEnvelope,
    IndexRecord,
    normalize_tags,
    slugify,
    validate_index_fields,
)
from .store import EntryFactory, IndexStore
from .synchronizer import MetadataSynchronizer

__all__ = [
    "DEFAULT_NAME",
    "DEFAULT_TYPE",
    "INDEX_FIELDS",
    "Entry",
    "EntryEnvelope",
    "EntryFactory",
    "IndexRecord",
    "IndexStore",
    "Locator",
    "MetadataSynchronizer",
    "format_locator",
    "normalize_tags",
    "parse_locator",
    "slugify",
    "validate_index_fields",
]
