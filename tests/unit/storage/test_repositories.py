import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from packstore.storage.models import Base, DocumentModel, PackModel
from packstore.storage.repositories import DocumentRepository, PackRepository

# Use in-memory SQLite for comprehensive unit testing without external DB
@pytest.fixture
def session():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    Session = sessionmaker(bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def pack(session):
    return PackRepository().create(
        session, PackModel(id="world.notes", label="Notes", document_kind="JournalEntry")
    )


def test_pack_repository(session, pack):
    repo = PackRepository()

    fetched = repo.get(session, "world.notes")
    assert fetched.label == "Notes"
    assert fetched.locked is False

    repo.set_locked(session, "world.notes", True)
    assert repo.get(session, "world.notes").locked is True

    assert repo.set_locked(session, "missing", True) is None
    assert [p.id for p in repo.list(session)] == ["world.notes"]


def test_document_repository_crud(session, pack):
    repo = DocumentRepository()

    repo.create(
        session,
        DocumentModel(
            id="doc1",
            pack_id="world.notes",
            name="First",
            flags={"data-storage": {"index": {"name": "First"}, "data": [1]}},
        ),
    )

    fetched = repo.get(session, "world.notes", "doc1")
    assert fetched.name == "First"
    assert fetched.flags["data-storage"]["data"] == [1]

    # Update merges flags and renames
    repo.update(
        session,
        "world.notes",
        "doc1",
        {"name": "Renamed", "flags": {"data-storage": {"data": [2]}}},
    )
    updated = repo.get(session, "world.notes", "doc1")
    assert updated.name == "Renamed"
    assert updated.flags["data-storage"] == {"index": {"name": "First"}, "data": [2]}

    assert repo.update(session, "world.notes", "missing", {"name": "x"}) is None

    assert repo.delete(session, "world.notes", "doc1") is True
    assert repo.get(session, "world.notes", "doc1") is None
    assert repo.delete(session, "world.notes", "doc1") is False


def test_ids_are_scoped_to_pack(session, pack):
    packs = PackRepository()
    docs = DocumentRepository()
    packs.create(session, PackModel(id="world.other", label="Other", document_kind="JournalEntry"))

    docs.create(session, DocumentModel(id="same", pack_id="world.notes", name="In notes"))
    docs.create(session, DocumentModel(id="same", pack_id="world.other", name="In other"))

    assert docs.get(session, "world.notes", "same").name == "In notes"
    assert docs.get(session, "world.other", "same").name == "In other"


def test_list_by_ids_and_index(session, pack):
    repo = DocumentRepository()
    for i in range(3):
        repo.create(session, DocumentModel(id=f"doc{i}", pack_id="world.notes", name=f"Doc {i}"))

    found = repo.list_by_ids(session, "world.notes", ["doc0", "doc2", "nope"])
    assert sorted(d.id for d in found) == ["doc0", "doc2"]
    assert repo.list_by_ids(session, "world.notes", []) == []

    assert repo.list_index(session, "world.notes") == {
        "doc0": "Doc 0",
        "doc1": "Doc 1",
        "doc2": "Doc 2",
    }
    assert len(repo.list(session, "world.notes", limit=2)) == 2
