"""
Index fields and the payload envelope stored inside entry documents.

Every entry document carries, under its flag scope:

    {"index": {"name", "thumb", "tags", "type", "desc"}, "data": [payload]}

The index copy on the document is what ``repair_index`` rebuilds the
Metadata Record from. Payloads are stored as JSON; bytes are kept as
``{"__bytes__": <base64>}`` and restored on read.
"""

import base64
import re
from collections.abc import Mapping, Sized
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from packstore.errors import IndexFieldTypeError, ValidationError
from packstore.platform.config import settings

INDEX_FIELDS = ("name", "thumb", "tags", "type", "desc")

DEFAULT_NAME = "New Entry"
DEFAULT_TYPE = "generic"

BYTES_TAG = "__bytes__"

_EXPECTED_TYPES = {
    "name": "a string",
    "thumb": "a string",
    "tags": "a list of strings",
    "type": "a string",
    "desc": "a string",
}

_SLUG_SEPARATORS = re.compile(r"[\s_\-]+")
_SLUG_INVALID = re.compile(r"[^\w-]")


def slugify(value: str) -> str:
    """Lowercase, dash separated token; '' if nothing usable remains."""
    slug = _SLUG_SEPARATORS.sub("-", value.strip())
    slug = _SLUG_INVALID.sub("", slug)
    return slug.lower().strip("-")


def normalize_tags(tags: List[str]) -> List[str]:
    """Slugify every tag and drop the ones that end up empty."""
    return [slug for slug in (slugify(tag) for tag in tags) if slug]


def is_empty_payload(value: Any) -> bool:
    """None, or an empty string/bytes/mapping/collection."""
    if value is None:
        return True
    if isinstance(value, Sized):
        return len(value) == 0
    return False


def encode_payload(value: Any) -> Any:
    """
    JSON-storable form of a payload.

    Raises:
        ValidationError: the payload holds a value that cannot be stored
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return {BYTES_TAG: base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, Mapping):
        encoded = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValidationError(
                    f"Payload mapping keys must be strings, got {type(key).__name__}."
                )
            encoded[key] = encode_payload(item)
        return encoded
    if isinstance(value, (list, tuple)):
        return [encode_payload(item) for item in value]
    raise ValidationError(
        f"Payload values of type {type(value).__name__} cannot be stored. "
        f"Use strings, numbers, booleans, bytes, lists or string-keyed mappings."
    )


def decode_payload(value: Any) -> Any:
    """Inverse of ``encode_payload``; tuples come back as lists."""
    if isinstance(value, Mapping):
        if set(value) == {BYTES_TAG} and isinstance(value[BYTES_TAG], str):
            return base64.b64decode(value[BYTES_TAG])
        return {key: decode_payload(item) for key, item in value.items()}
    if isinstance(value, list):
        return [decode_payload(item) for item in value]
    return value


class IndexRecord(BaseModel):
    """
    The searchable projection of an entry.

    Types are strict: a value of the wrong type is rejected, never coerced.
    Unknown fields are rejected.
    """

    model_config = ConfigDict(extra="forbid", strict=True)

    name: str = DEFAULT_NAME
    thumb: str = Field(default_factory=lambda: settings.DEFAULT_THUMB)
    tags: List[str] = Field(default_factory=list)
    type: str = DEFAULT_TYPE
    desc: str = ""

    @field_validator("tags")
    @classmethod
    def _slugify_tags(cls, tags: List[str]) -> List[str]:
        return normalize_tags(tags)

    @classmethod
    def from_stored(cls, raw: Mapping[str, Any]) -> "IndexRecord":
        """
        Build a record from persisted index data.

        Keys outside the index schema are ignored; values are still type
        checked, so a damaged record raises pydantic's ValidationError.
        """
        return cls.model_validate({k: v for k, v in raw.items() if k in INDEX_FIELDS})


def validate_index_fields(
    fields: Mapping[str, Any],
    base: Optional[IndexRecord] = None,
) -> IndexRecord:
    """
    Validate caller supplied index fields, optionally on top of ``base``.

    Raises:
        ValidationError: a field outside the five index fields was given
        IndexFieldTypeError: a field has the wrong type
    """
    unknown = [key for key in fields if key not in INDEX_FIELDS]
    if unknown:
        raise ValidationError(
            f"Invalid index field(s) {unknown}. "
            f"Only {list(INDEX_FIELDS)} can be set."
        )

    merged: Dict[str, Any] = base.model_dump() if base else {}
    merged.update(fields)
    try:
        return IndexRecord.model_validate(merged)
    except PydanticValidationError as e:
        field = str(e.errors()[0]["loc"][0])
        raise IndexFieldTypeError(field, _EXPECTED_TYPES.get(field, "valid"), fields.get(field)) from e


class EntryEnvelope(BaseModel):
    """Typed view of the flag data an entry document carries."""

    index: IndexRecord
    payload: Any = None

    def to_flags(self) -> Dict[str, Any]:
        return {"index": self.index.model_dump(), "data": [encode_payload(self.payload)]}

    @classmethod
    def from_flags(cls, flags: Mapping[str, Any]) -> "EntryEnvelope":
        data = flags.get("data") or []
        return cls(
            index=IndexRecord.from_stored(flags.get("index") or {}),
            payload=decode_payload(data[0]) if data else None,
        )
