from __future__ import annotations

import sqlite3

import pytest

from adchroma.app.adapters import SqliteRecordStore
from adchroma.app.adapters.sqlite_store import decode_embedding, encode_embedding
from adchroma.app.ports import CollectionMetadata, CollectionRow, EmbeddingRow, EmbeddingWhere
from adchroma.errors import AlreadyExistsError, DuplicateIdError, NotFoundError


def _collection(collection_id: str = "c1", name: str = "docs") -> CollectionRow:
    return CollectionRow(id=collection_id, name=name, metadata=CollectionMetadata(dimensions=3))


def _embedding(embedding_id: str, collection_id: str = "c1", **fields) -> EmbeddingRow:
    fields.setdefault("embedding", [1.0, 0.0, 0.0])
    return EmbeddingRow(id=embedding_id, collection_id=collection_id, **fields)


@pytest.fixture
def seeded(records: SqliteRecordStore) -> SqliteRecordStore:
    records.insert_collection(_collection())
    records.insert_collection(_collection("c2", "other"))
    records.insert_embedding(_embedding("e1", document_id="d1", arg1="red", document="first"))
    records.insert_embedding(
        _embedding("e2", embedding=[0.0, 1.0, 0.0], document_id="d1", arg1="blue")
    )
    records.insert_embedding(_embedding("e3", embedding=[0.0, 0.0, 1.0], document_id="d2"))
    records.insert_embedding(_embedding("x1", collection_id="c2", document_id="d1"))
    return records


def test_embedding_text_encoding_is_canonical() -> None:
    assert encode_embedding([1, 0.5, -2]) == "[1.0,0.5,-2.0]"
    assert decode_embedding("[1.0,0.5,-2.0]") == [1.0, 0.5, -2.0]


def test_schema_is_created(records: SqliteRecordStore) -> None:
    with sqlite3.connect(records.db_path) as conn:
        tables = {
            row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")
        }
    assert {"collections", "embeddings"} <= tables


def test_collection_lookup_by_name_and_id(records: SqliteRecordStore) -> None:
    records.insert_collection(_collection())

    assert records.get_collection_by_name("docs").id == "c1"
    assert records.get_collection_by_id("c1").metadata.dimensions == 3
    assert records.get_collection_by_name("missing") is None
    assert records.get_collection_by_id("missing") is None


def test_duplicate_collection_name_rejected(records: SqliteRecordStore) -> None:
    records.insert_collection(_collection())

    with pytest.raises(AlreadyExistsError):
        records.insert_collection(_collection("c2", "docs"))


def test_update_collection_touches_only_target_row(seeded: SqliteRecordStore) -> None:
    renamed = CollectionRow(
        id="c1", name="renamed", metadata=CollectionMetadata(dimensions=3, ef_search=50)
    )

    seeded.update_collection(renamed)

    assert seeded.get_collection_by_id("c1") == renamed
    assert seeded.get_collection_by_id("c2").name == "other"


def test_update_collection_rejects_taken_name(seeded: SqliteRecordStore) -> None:
    with pytest.raises(AlreadyExistsError):
        seeded.update_collection(_collection("c1", "other"))


def test_update_unknown_collection(records: SqliteRecordStore) -> None:
    with pytest.raises(NotFoundError):
        records.update_collection(_collection("nope"))


def test_list_collections_in_creation_order(seeded: SqliteRecordStore) -> None:
    assert [row.name for row in seeded.list_collections()] == ["docs", "other"]


def test_duplicate_embedding_id_rejected(seeded: SqliteRecordStore) -> None:
    with pytest.raises(DuplicateIdError):
        seeded.insert_embedding(_embedding("e1"))


def test_find_without_predicates_scopes_to_collection(seeded: SqliteRecordStore) -> None:
    rows = seeded.find_embeddings("c1", EmbeddingWhere())

    assert [row.id for row in rows] == ["e1", "e2", "e3"]
    assert rows[0].document == "first"


def test_find_combines_predicates_with_and(seeded: SqliteRecordStore) -> None:
    where = EmbeddingWhere(document_id="d1", arg1="blue")

    assert [row.id for row in seeded.find_embeddings("c1", where)] == ["e2"]


def test_find_by_ids_and_exact_embedding(seeded: SqliteRecordStore) -> None:
    by_ids = seeded.find_embeddings("c1", EmbeddingWhere(embedding_ids=["e3", "x1", "e1"]))
    by_vector = seeded.find_embeddings("c1", EmbeddingWhere(embedding=[0, 1, 0]))

    assert [row.id for row in by_ids] == ["e1", "e3"]
    assert [row.id for row in by_vector] == ["e2"]


def test_empty_predicates_are_ignored(seeded: SqliteRecordStore) -> None:
    where = EmbeddingWhere(document_id="", embedding_ids=[], arg1="")

    assert where.is_empty()
    assert len(seeded.find_embeddings("c1", where)) == 3


def test_update_embedding_changes_only_given_columns(seeded: SqliteRecordStore) -> None:
    seeded.update_embedding("e1", {"embedding": [0.5, 0.5, 0.0], "arg2": "new"})

    row = seeded.get_embedding("e1")
    assert row.embedding == [0.5, 0.5, 0.0]
    assert row.arg2 == "new"
    assert row.arg1 == "red"
    assert row.document == "first"


def test_update_embedding_rejects_unknown_columns(seeded: SqliteRecordStore) -> None:
    with pytest.raises(ValueError):
        seeded.update_embedding("e1", {"collection_id": "c2"})


def test_update_and_delete_unknown_embedding(records: SqliteRecordStore) -> None:
    with pytest.raises(NotFoundError):
        records.update_embedding("nope", {"document": "x"})
    with pytest.raises(NotFoundError):
        records.delete_embedding("nope")


def test_delete_and_count(seeded: SqliteRecordStore) -> None:
    assert seeded.count_embeddings("c1") == 3

    seeded.delete_embedding("e2")

    assert seeded.count_embeddings("c1") == 2
    assert seeded.count_embeddings("c2") == 1
    assert seeded.get_embedding("e2") is None
