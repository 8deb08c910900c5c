"""
Unit tests for the Metadata Synchronizer.

Two synchronizers share one engine to stand in for two connected actors.
"""

import pytest

from packstore.errors import ValidationError
from packstore.index.entry import Entry
from packstore.index.store import IndexStore
from packstore.index.synchronizer import MetadataSynchronizer

META = "DataStorageMetaD"
PACK = "world.notes"


def factory(entry_id, pack_id, kind, record):
    return Entry(entry_id, pack_id, record, kind, "compendium")


def make_sync(engine, actor_id, settings):
    store = IndexStore(engine, factory, settings)
    sync = MetadataSynchronizer(engine, store, actor_id, settings)
    engine.register_observer(sync)
    return sync


async def meta_index(engine):
    meta = await engine.get_document(PACK, META)
    return meta.get_flag("data-storage", "index")


@pytest.fixture
async def managed_pack(engine):
    await engine.create_pack(PACK, "Notes", "JournalEntry")
    await engine.create_documents(
        PACK,
        [{"id": META, "name": "meta", "flags": {"data-storage": {"index": {}}}}],
        options={"keep_id": True, "metadata_record": True},
    )
    return PACK


@pytest.fixture
def local(engine, test_settings):
    return make_sync(engine, "alice", test_settings)


@pytest.fixture
def remote(engine, test_settings):
    return make_sync(engine, "bob", test_settings)


class TestPreCreate:
    async def test_injects_default_index(self, engine, managed_pack, local):
        doc = (await engine.create_documents(PACK, [{"name": "Loose"}], user_id="alice"))[0]

        scoped = doc.flags["data-storage"]
        assert scoped["index"]["name"] == "Loose"
        assert scoped["data"] == []

    async def test_keeps_supplied_index(self, engine, managed_pack, local):
        flags = {"data-storage": {"index": {"name": "Mine", "tags": ["t"]}, "data": [1]}}
        doc = (await engine.create_documents(PACK, [{"name": "Mine", "flags": flags}], user_id="alice"))[0]
        assert doc.flags["data-storage"]["index"]["tags"] == ["t"]

    async def test_reserved_id_rejected(self, engine, managed_pack, local):
        with pytest.raises(ValidationError):
            await engine.create_documents(
                PACK, [{"id": META, "name": "fake"}], options={"keep_id": True}, user_id="alice"
            )

    async def test_unmanaged_kind_untouched(self, engine, local):
        await engine.create_pack("world.items", "Items", "Item")
        doc = (await engine.create_documents("world.items", [{"name": "Rock"}]))[0]
        assert doc.flags == {}


class TestCreatePropagation:
    async def test_local_create_writes_metadata(self, engine, managed_pack, local, remote):
        doc = (await engine.create_documents(PACK, [{"name": "Note"}], user_id="alice"))[0]
        await engine.drain()

        assert (await meta_index(engine))[doc.id]["name"] == "Note"

    async def test_remote_actor_does_not_write(self, engine, managed_pack, local):
        doc = (await engine.create_documents(PACK, [{"name": "Note"}], user_id="someone-else"))[0]
        await engine.drain()

        assert doc.id not in await meta_index(engine)

    async def test_index_synced_option_skips(self, engine, managed_pack, local):
        doc = (
            await engine.create_documents(
                PACK, [{"name": "Note"}], options={"index_synced": True}, user_id="alice"
            )
        )[0]
        await engine.drain()

        assert doc.id not in await meta_index(engine)

    async def test_every_cached_store_receives_the_entry(self, engine, managed_pack, local, remote):
        await local.index_store.load_index(PACK)
        await remote.index_store.load_index(PACK)

        doc = (await engine.create_documents(PACK, [{"name": "Shared"}], user_id="alice"))[0]
        await engine.drain()

        assert local.index_store.get(PACK)[doc.id].name == "Shared"
        assert remote.index_store.get(PACK)[doc.id].name == "Shared"

    async def test_record_created_updates_local_store_immediately(self, engine, managed_pack, local):
        await local.index_store.load_index(PACK)
        doc = (
            await engine.create_documents(
                PACK, [{"name": "Direct"}], options={"index_synced": True}, user_id="alice"
            )
        )[0]

        await local.record_created(doc)

        assert local.index_store.get(PACK)[doc.id].name == "Direct"
        assert doc.id in await meta_index(engine)


class TestUpdatePropagation:
    async def test_name_change_flows_into_index(self, engine, managed_pack, local, remote):
        await remote.index_store.load_index(PACK)
        doc = (await engine.create_documents(PACK, [{"name": "Old"}], user_id="alice"))[0]
        await engine.drain()

        updated = await engine.update_document(PACK, doc.id, {"name": "New"}, user_id="alice")
        await engine.drain()

        assert updated.flags["data-storage"]["index"]["name"] == "New"
        assert (await meta_index(engine))[doc.id]["name"] == "New"
        assert remote.index_store.get(PACK)[doc.id].name == "New"

    async def test_index_name_change_renames_document(self, engine, managed_pack, local):
        doc = (await engine.create_documents(PACK, [{"name": "Old"}], user_id="alice"))[0]

        updated = await engine.update_document(
            PACK, doc.id, {"flags": {"data-storage": {"index": {"name": "Renamed"}}}}, user_id="alice"
        )
        assert updated.name == "Renamed"

    async def test_index_field_change_is_merged(self, engine, managed_pack, local):
        doc = (await engine.create_documents(PACK, [{"name": "Note"}], user_id="alice"))[0]
        await engine.drain()

        await engine.update_document(
            PACK, doc.id, {"flags": {"data-storage": {"index": {"tags": ["a"]}}}}, user_id="alice"
        )
        await engine.drain()

        stored = (await meta_index(engine))[doc.id]
        assert stored["tags"] == ["a"]
        assert stored["name"] == "Note"

    async def test_payload_change_leaves_index_alone(self, engine, managed_pack, local):
        doc = (await engine.create_documents(PACK, [{"name": "Note"}], user_id="alice"))[0]
        await engine.drain()
        before = await meta_index(engine)

        await engine.update_document(PACK, doc.id, {"flags": {"data-storage": {"data": [5]}}}, user_id="alice")
        await engine.drain()

        assert await meta_index(engine) == before


class TestDeletePropagation:
    async def test_local_delete_removes_from_every_store(self, engine, managed_pack, local, remote):
        doc = (await engine.create_documents(PACK, [{"name": "Doomed"}], user_id="alice"))[0]
        await engine.drain()
        await local.index_store.load_index(PACK)
        await remote.index_store.load_index(PACK)

        await engine.delete_documents(PACK, [doc.id], user_id="alice")
        await engine.drain()

        assert doc.id not in await meta_index(engine)
        assert doc.id not in local.index_store.get(PACK)
        assert doc.id not in remote.index_store.get(PACK)

    async def test_deletion_patch_reaches_cached_stores(self, engine, managed_pack, local, remote):
        doc = (await engine.create_documents(PACK, [{"name": "Gone"}], user_id="alice"))[0]
        await engine.drain()
        await remote.index_store.load_index(PACK)

        await engine.update_document(
            PACK, META, {"flags": {"data-storage": {"index": {f"-={doc.id}": None}}}}, user_id="carol"
        )
        await engine.drain()

        assert doc.id not in remote.index_store.get(PACK)

    async def test_metadata_deletion_invalidates_cache(self, engine, managed_pack, local):
        await local.index_store.load_index(PACK)

        await engine.delete_documents(PACK, [META], user_id="alice")
        await engine.drain()

        assert not local.index_store.is_cached(PACK)

    async def test_missing_metadata_is_skipped(self, engine, local):
        await engine.create_pack("world.bare", "Bare", "JournalEntry")
        doc = (await engine.create_documents("world.bare", [{"name": "Orphan"}], user_id="alice"))[0]

        # Not managed: no metadata record, nothing to write, nothing raised
        assert await local.record_created(doc) is None
        await engine.drain()
