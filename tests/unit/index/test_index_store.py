"""
Unit tests for the Index Store.
"""

import pytest

from packstore.errors import NotFoundError
from packstore.index.entry import Entry
from packstore.index.fields import IndexRecord
from packstore.index.store import IndexStore

META = "DataStorageMetaD"


def factory(entry_id, pack_id, kind, record):
    return Entry(entry_id, pack_id, record, kind, "compendium")


@pytest.fixture
async def pack(engine):
    await engine.create_pack("world.notes", "Notes", "JournalEntry")
    await engine.create_documents(
        "world.notes",
        [
            {
                "id": META,
                "name": "meta",
                "flags": {
                    "data-storage": {
                        "index": {
                            "a1": {"name": "Alpha", "tags": ["x"], "type": "note"},
                            "b2": {"name": "Beta"},
                            "bad": {"name": 12},
                            "junk": "not a record",
                            META: {"name": "self"},
                        }
                    }
                },
            }
        ],
        options={"keep_id": True},
    )
    return "world.notes"


@pytest.fixture
def index_store(engine, test_settings):
    return IndexStore(engine, factory, test_settings)


class TestLoadIndex:
    async def test_builds_from_metadata_record(self, index_store, pack):
        index = await index_store.load_index(pack)

        assert set(index) == {"a1", "b2"}
        assert index["a1"].name == "Alpha"
        assert index["a1"].kind == "JournalEntry"
        assert index_store.is_cached(pack)

    async def test_second_load_is_cached(self, index_store, pack, engine):
        first = await index_store.load_index(pack)
        await engine.update_document(pack, META, {"flags": {"data-storage": {"index": {"c3": {"name": "C"}}}}})

        assert await index_store.load_index(pack) is first
        assert "c3" not in first

    async def test_missing_pack(self, index_store):
        with pytest.raises(NotFoundError):
            await index_store.load_index("missing")

    async def test_missing_metadata_record(self, index_store, engine):
        await engine.create_pack("world.empty", "Empty", "JournalEntry")
        with pytest.raises(NotFoundError):
            await index_store.load_index("world.empty")


class TestPatching:
    async def test_put_ignored_when_not_cached(self, index_store, pack):
        assert index_store.put(pack, "z", {"name": "Z"}) is None
        assert not index_store.is_cached(pack)

    async def test_put_adds_and_patches(self, index_store, pack):
        index = await index_store.load_index(pack)
        existing = index["a1"]

        added = index_store.put(pack, "c3", {"name": "Gamma"})
        patched = index_store.put(pack, "a1", IndexRecord(name="Alpha 2"))

        assert added.name == "Gamma"
        assert index["c3"] is added
        # The same Entry object is patched in place
        assert patched is existing
        assert existing.name == "Alpha 2"

    async def test_put_skips_invalid_record(self, index_store, pack):
        await index_store.load_index(pack)
        assert index_store.put(pack, "c3", {"name": ["not", "a", "string"]}) is None
        assert "c3" not in index_store.get(pack)

    async def test_remove_and_invalidate(self, index_store, pack):
        await index_store.load_index(pack)

        assert index_store.remove(pack, "a1") is True
        assert index_store.remove(pack, "a1") is False
        assert [e.id for e in index_store.entries(pack)] == ["b2"]

        index_store.invalidate(pack)
        assert not index_store.is_cached(pack)
        assert index_store.entries(pack) == []
