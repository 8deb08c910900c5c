import pytest
from pydantic import ValidationError as PydanticValidationError

from packstore.errors import IndexFieldTypeError, ValidationError
from packstore.index.fields import (
    DEFAULT_NAME,
    DEFAULT_TYPE,
    BYTES_TAG,
    EntryEnvelope,
    IndexRecord,
    decode_payload,
    encode_payload,
    is_empty_payload,
    normalize_tags,
    slugify,
    validate_index_fields,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Red", "red"),
        ("Red Car", "red-car"),
        ("  hello_world  ", "hello-world"),
        ("a -- b", "a-b"),
        ("what?!", "what"),
        ("-edge-", "edge"),
        ("Café", "café"),
        ("!!!", ""),
    ],
)
def test_slugify(raw, expected):
    assert slugify(raw) == expected


def test_normalize_tags_drops_empty():
    assert normalize_tags(["Red", "", "  ", "?!", "Big Blue"]) == ["red", "big-blue"]


def test_is_empty_payload():
    assert is_empty_payload(None)
    assert is_empty_payload({})
    assert is_empty_payload([])
    assert is_empty_payload("")
    assert not is_empty_payload({"a": 1})
    assert not is_empty_payload(0)
    assert not is_empty_payload(False)


class TestIndexRecord:
    def test_defaults(self):
        record = IndexRecord()
        assert record.name == DEFAULT_NAME
        assert record.type == DEFAULT_TYPE
        assert record.tags == []
        assert record.desc == ""
        assert record.thumb

    def test_tags_are_slugified(self):
        assert IndexRecord(tags=["Red Car", "BLUE"]).tags == ["red-car", "blue"]

    def test_strict_types(self):
        with pytest.raises(PydanticValidationError):
            IndexRecord(name=5)
        with pytest.raises(PydanticValidationError):
            IndexRecord(tags="red")

    def test_extra_fields_forbidden(self):
        with pytest.raises(PydanticValidationError):
            IndexRecord(colour="red")

    def test_from_stored_ignores_unknown_keys(self):
        record = IndexRecord.from_stored({"name": "A", "_id": "xyz", "tags": ["t"]})
        assert record.name == "A"
        assert record.tags == ["t"]


class TestValidateIndexFields:
    def test_valid_fields(self):
        record = validate_index_fields({"name": "A", "tags": ["X"]})
        assert record.name == "A"
        assert record.tags == ["x"]

    def test_merges_onto_base(self):
        base = IndexRecord(name="A", type="note", desc="d")
        record = validate_index_fields({"desc": "new"}, base=base)
        assert (record.name, record.type, record.desc) == ("A", "note", "new")

    def test_unknown_field(self):
        with pytest.raises(ValidationError) as exc:
            validate_index_fields({"colour": "red"})
        assert not isinstance(exc.value, IndexFieldTypeError)
        assert "colour" in str(exc.value)

    def test_wrong_type(self):
        with pytest.raises(IndexFieldTypeError) as exc:
            validate_index_fields({"type": 3})
        assert exc.value.field == "type"
        assert isinstance(exc.value, TypeError)

    def test_wrong_tag_item_type(self):
        with pytest.raises(IndexFieldTypeError) as exc:
            validate_index_fields({"tags": ["ok", 7]})
        assert exc.value.field == "tags"


class TestEntryEnvelope:
    def test_flags_shape(self):
        envelope = EntryEnvelope(index=IndexRecord(name="A"), payload={"hp": 10})
        flags = envelope.to_flags()

        assert flags["data"] == [{"hp": 10}]
        assert flags["index"]["name"] == "A"

    def test_from_flags(self):
        envelope = EntryEnvelope.from_flags({"index": {"name": "A", "tags": ["x"]}, "data": [[1, 2]]})
        assert envelope.index.name == "A"
        assert envelope.payload == [1, 2]

    def test_from_flags_without_data(self):
        assert EntryEnvelope.from_flags({"index": {}}).payload is None

    def test_bytes_payload_is_stored_as_base64(self):
        envelope = EntryEnvelope(index=IndexRecord(), payload={"blob": b"\x00\x01"})
        flags = envelope.to_flags()

        assert flags["data"] == [{"blob": {BYTES_TAG: "AAE="}}]
        assert EntryEnvelope.from_flags(flags).payload == {"blob": b"\x00\x01"}


class TestPayloadEncoding:
    @pytest.mark.parametrize(
        "payload",
        [b"\x00\x01opaque", {"nested": [b"\xff", "text", 3]}, bytearray(b"raw")],
    )
    def test_bytes_survive(self, payload):
        assert decode_payload(encode_payload(payload)) == payload

    def test_tuples_come_back_as_lists(self):
        assert decode_payload(encode_payload(("a", 1))) == ["a", 1]

    def test_plain_json_is_untouched(self):
        payload = {"hp": 7, "tags": ["x"], "ok": True, "none": None}
        assert encode_payload(payload) == payload

    @pytest.mark.parametrize("payload", [{1, 2}, {"when": object()}, {1: "int key"}])
    def test_unstorable_values_rejected(self, payload):
        with pytest.raises(ValidationError):
            encode_payload(payload)
