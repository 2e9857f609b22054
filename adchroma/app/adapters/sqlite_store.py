"""SQLite-backed record store implementing RecordStorePort."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from adchroma.app.ports.record_store import (
    CollectionMetadata,
    CollectionRow,
    EmbeddingRow,
    EmbeddingWhere,
    RecordStorePort,
)
from adchroma.errors import AlreadyExistsError, DuplicateIdError, NotFoundError

logger = logging.getLogger(__name__)

COLLECTIONS_TABLE_NAME = "collections"
EMBEDDINGS_TABLE_NAME = "embeddings"

EMBEDDING_COLUMNS = (
    "id",
    "collection_id",
    "embedding",
    "document",
    "document_id",
    "arg1",
    "arg2",
    "arg3",
)
MUTABLE_EMBEDDING_COLUMNS = frozenset({"embedding", "document", "document_id", "arg1", "arg2", "arg3"})


def encode_embedding(values: Sequence[float]) -> str:
    """Canonical text form of a vector; equality filters compare this string."""
    return json.dumps([float(value) for value in values], separators=(",", ":"))


def decode_embedding(raw: str) -> list[float]:
    return [float(value) for value in json.loads(raw)]


class SqliteRecordStore(RecordStorePort):
    """Collections and embeddings in one SQLite file.

    A connection is opened per unit of work, so the store can be shared
    between threads.
    """

    def __init__(self, db_path: Path, *, timeout: float = 30.0) -> None:
        self._db_path = Path(db_path)
        self._timeout = timeout
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_schema()

    @property
    def db_path(self) -> Path:
        return self._db_path

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection whose statements commit together or not at all."""
        conn = sqlite3.connect(str(self._db_path), timeout=self._timeout)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        with self.transaction() as conn:
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {COLLECTIONS_TABLE_NAME} (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    metadata TEXT NOT NULL
                )
                """
            )
            conn.execute(
                f"""
                CREATE TABLE IF NOT EXISTS {EMBEDDINGS_TABLE_NAME} (
                    id TEXT PRIMARY KEY,
                    collection_id TEXT NOT NULL REFERENCES {COLLECTIONS_TABLE_NAME}(id),
                    embedding TEXT NOT NULL,
                    document TEXT,
                    document_id TEXT,
                    arg1 TEXT,
                    arg2 TEXT,
                    arg3 TEXT
                )
                """
            )
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_embeddings_collection_id "
                f"ON {EMBEDDINGS_TABLE_NAME}(collection_id)"
            )
        logger.debug("Record store ready at %s", self._db_path)

    # ------------------------------------------------------------------ #
    # Collections
    # ------------------------------------------------------------------ #

    @staticmethod
    def _collection_from_row(row: sqlite3.Row) -> CollectionRow:
        return CollectionRow(
            id=row["id"],
            name=row["name"],
            metadata=CollectionMetadata.model_validate_json(row["metadata"]),
        )

    def insert_collection(self, row: CollectionRow) -> None:
        try:
            with self.transaction() as conn:
                conn.execute(
                    f"INSERT INTO {COLLECTIONS_TABLE_NAME} (id, name, metadata) VALUES (?, ?, ?)",
                    (row.id, row.name, row.metadata.model_dump_json()),
                )
        except sqlite3.IntegrityError as exc:
            raise AlreadyExistsError(f"Collection with name {row.name} already exists") from exc

    def update_collection(self, row: CollectionRow) -> None:
        try:
            with self.transaction() as conn:
                cursor = conn.execute(
                    f"UPDATE {COLLECTIONS_TABLE_NAME} SET name = ?, metadata = ? WHERE id = ?",
                    (row.name, row.metadata.model_dump_json(), row.id),
                )
                if cursor.rowcount == 0:
                    raise NotFoundError(f"Unknown collection id {row.id}")
        except sqlite3.IntegrityError as exc:
            raise AlreadyExistsError(f"Collection with name {row.name} already exists") from exc

    def get_collection_by_id(self, collection_id: str) -> CollectionRow | None:
        with self.transaction() as conn:
            found = conn.execute(
                f"SELECT id, name, metadata FROM {COLLECTIONS_TABLE_NAME} WHERE id = ?",
                (collection_id,),
            ).fetchone()
        return self._collection_from_row(found) if found else None

    def get_collection_by_name(self, name: str) -> CollectionRow | None:
        with self.transaction() as conn:
            found = conn.execute(
                f"SELECT id, name, metadata FROM {COLLECTIONS_TABLE_NAME} WHERE name = ?",
                (name,),
            ).fetchone()
        return self._collection_from_row(found) if found else None

    def list_collections(self) -> list[CollectionRow]:
        with self.transaction() as conn:
            rows = conn.execute(
                f"SELECT id, name, metadata FROM {COLLECTIONS_TABLE_NAME} ORDER BY rowid"
            ).fetchall()
        return [self._collection_from_row(row) for row in rows]

    # ------------------------------------------------------------------ #
    # Embeddings
    # ------------------------------------------------------------------ #

    @staticmethod
    def _embedding_from_row(row: sqlite3.Row) -> EmbeddingRow:
        return EmbeddingRow(
            id=row["id"],
            collection_id=row["collection_id"],
            embedding=decode_embedding(row["embedding"]),
            document=row["document"],
            document_id=row["document_id"],
            arg1=row["arg1"],
            arg2=row["arg2"],
            arg3=row["arg3"],
        )

    def insert_embedding(self, row: EmbeddingRow) -> None:
        placeholders = ", ".join("?" for _ in EMBEDDING_COLUMNS)
        try:
            with self.transaction() as conn:
                conn.execute(
                    f"INSERT INTO {EMBEDDINGS_TABLE_NAME} ({', '.join(EMBEDDING_COLUMNS)}) "
                    f"VALUES ({placeholders})",
                    (
                        row.id,
                        row.collection_id,
                        encode_embedding(row.embedding),
                        row.document,
                        row.document_id,
                        row.arg1,
                        row.arg2,
                        row.arg3,
                    ),
                )
        except sqlite3.IntegrityError as exc:
            raise DuplicateIdError(row.id) from exc

    def update_embedding(self, embedding_id: str, changes: dict[str, Any]) -> None:
        """Overwrite the given mutable columns of one row."""
        unknown = set(changes) - MUTABLE_EMBEDDING_COLUMNS
        if unknown:
            raise ValueError(f"Cannot update embedding columns: {', '.join(sorted(unknown))}")
        if not changes:
            return

        values = dict(changes)
        if values.get("embedding") is not None:
            values["embedding"] = encode_embedding(values["embedding"])

        assignments = ", ".join(f"{column} = ?" for column in values)
        with self.transaction() as conn:
            cursor = conn.execute(
                f"UPDATE {EMBEDDINGS_TABLE_NAME} SET {assignments} WHERE id = ?",
                (*values.values(), embedding_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Cannot update an unknown embedding: {embedding_id}")

    def delete_embedding(self, embedding_id: str) -> None:
        with self.transaction() as conn:
            cursor = conn.execute(
                f"DELETE FROM {EMBEDDINGS_TABLE_NAME} WHERE id = ?",
                (embedding_id,),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Cannot delete an unknown embedding: {embedding_id}")

    def get_embedding(self, embedding_id: str) -> EmbeddingRow | None:
        with self.transaction() as conn:
            found = conn.execute(
                f"SELECT {', '.join(EMBEDDING_COLUMNS)} FROM {EMBEDDINGS_TABLE_NAME} WHERE id = ?",
                (embedding_id,),
            ).fetchone()
        return self._embedding_from_row(found) if found else None

    def find_embeddings(self, collection_id: str, where: EmbeddingWhere) -> list[EmbeddingRow]:
        """Full scan of one collection's rows filtered by every present predicate."""
        clauses = ["collection_id = ?"]
        params: list[Any] = [collection_id]

        if where.document_id:
            clauses.append("document_id = ?")
            params.append(where.document_id)
        if where.embedding_ids:
            clauses.append(f"id IN ({', '.join('?' for _ in where.embedding_ids)})")
            params.extend(where.embedding_ids)
        if where.embedding:
            clauses.append("embedding = ?")
            params.append(encode_embedding(where.embedding))
        for column in ("arg1", "arg2", "arg3"):
            value = getattr(where, column)
            if value:
                clauses.append(f"{column} = ?")
                params.append(value)

        with self.transaction() as conn:
            rows = conn.execute(
                f"SELECT {', '.join(EMBEDDING_COLUMNS)} FROM {EMBEDDINGS_TABLE_NAME} "
                f"WHERE {' AND '.join(clauses)} ORDER BY rowid",
                params,
            ).fetchall()
        return [self._embedding_from_row(row) for row in rows]

    def count_embeddings(self, collection_id: str) -> int:
        with self.transaction() as conn:
            (count,) = conn.execute(
                f"SELECT COUNT(*) FROM {EMBEDDINGS_TABLE_NAME} WHERE collection_id = ?",
                (collection_id,),
            ).fetchone()
        return int(count)
