"""Coordinates collection and embedding CRUD across the record store and indexes."""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from typing import Any

from adchroma.app.dual_write import DualWrite
from adchroma.app.index_cache import IndexCache
from adchroma.app.ports import (
    CollectionMetadata,
    CollectionMetadataUpdate,
    CollectionRow,
    EmbeddingRow,
    EmbeddingWhere,
    IndexEntry,
    RecordStorePort,
)
from adchroma.app.schemas import (
    EmbeddingInput,
    EmbeddingUpdate,
    QueryInput,
    SearchQueryInput,
    SearchResult,
)
from adchroma.errors import (
    AlreadyExistsError,
    DimensionMismatchError,
    NotFoundError,
    OwnershipMismatchError,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return uuid.uuid4().hex


class CollectionStore:
    """Orchestrates collection and embedding operations.

    Every write touching a collection's index runs inside that collection's
    exclusive section and writes the index before the record store, with a
    compensating index action if the record write fails.
    """

    def __init__(
        self,
        records: RecordStorePort,
        indexes: IndexCache,
        *,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        """Initialize the collection store.

        Args:
            records: Durable store for collection and embedding rows
            indexes: Registry of per-collection vector indexes
            id_factory: Generator for new collection and embedding ids
        """
        self.records = records
        self.indexes = indexes
        self._id_factory = id_factory

    # ------------------------------------------------------------------ #
    # Collections
    # ------------------------------------------------------------------ #

    def create_collection(
        self,
        name: str,
        metadata: CollectionMetadata | Mapping[str, Any],
        get_or_create: bool = False,
    ) -> CollectionRow:
        """Create a collection and register (but not initialize) its index.

        Raises:
            AlreadyExistsError: If ``name`` is taken and ``get_or_create`` is False
        """
        existing = self.records.get_collection_by_name(name)
        if existing is not None:
            if get_or_create:
                logger.info(
                    "Collection with name %s already exists. Returning existing collection to caller.",
                    name,
                )
                self.indexes.register(existing.id)
                return existing
            raise AlreadyExistsError(f"Collection with name {name} already exists")

        row = CollectionRow(
            id=self._id_factory(),
            name=name,
            metadata=CollectionMetadata.model_validate(metadata),
        )
        try:
            self.records.insert_collection(row)
        except AlreadyExistsError:
            if not get_or_create:
                raise
            # Created concurrently between the lookup and the insert
            existing = self._require_collection(name, action="load")
            self.indexes.register(existing.id)
            return existing
        self.indexes.register(row.id)
        logger.info("Created collection %s (%s)", name, row.id)
        return row

    def get_collection(self, name: str) -> CollectionRow:
        """Resolve a collection by name and load its index into the cache."""
        collection = self._require_collection(name, action="load")
        self.indexes.register(collection.id)
        return collection

    def list_collections(self) -> list[CollectionRow]:
        return self.records.list_collections()

    def update_collection(
        self,
        current_name: str,
        new_name: str | None = None,
        new_metadata: CollectionMetadataUpdate | Mapping[str, Any] | None = None,
    ) -> CollectionRow:
        """Rename and/or merge metadata; omitted values keep their current setting.

        The live index keeps the parameters it was built with; a changed
        dimensionality only takes effect after ``rebuild_collection_index``.
        """
        current = self._require_collection(current_name, action="update")

        patch = CollectionMetadataUpdate.model_validate(new_metadata or {})
        merged = CollectionRow(
            id=current.id,
            name=new_name or current.name,
            metadata=patch.apply(current.metadata),
        )

        if merged.metadata.dimensions != current.metadata.dimensions:
            logger.warning(
                "Collection %s dimensionality changed from %d to %d; the existing index is "
                "not resized. Rebuild the index to apply it.",
                current.name,
                current.metadata.dimensions,
                merged.metadata.dimensions,
            )

        self.records.update_collection(merged)
        return merged

    def drop_collection_index(self, name: str) -> bool:
        """Wipe the collection's persisted index and remove it from the cache."""
        collection = self._require_collection(name, action="drop the index of")
        return self.indexes.drop(collection.id)

    def rebuild_collection_index(self, name: str) -> int:
        """Recreate the index from stored rows, discarding tombstoned labels.

        Stored rows are checked against the collection dimensionality first;
        on a mismatch the current index is left untouched.

        Returns:
            Number of embeddings re-indexed
        """
        collection = self._require_collection(name, action="rebuild")
        dimensions = collection.metadata.dimensions
        with self.indexes.exclusive(collection.id):
            rows = self.records.find_embeddings(collection.id, EmbeddingWhere())
            for row in rows:
                if len(row.embedding) != dimensions:
                    raise DimensionMismatchError(
                        len(row.embedding), dimensions, subject=f"stored embedding {row.id}"
                    )

            with self.indexes.session(collection.id, reset=True) as index:
                if rows:
                    index.add_vectors([IndexEntry(row.id, row.embedding) for row in rows])
        logger.info("Rebuilt index for collection %s with %d embeddings", name, len(rows))
        return len(rows)

    # ------------------------------------------------------------------ #
    # Embeddings
    # ------------------------------------------------------------------ #

    def add_embedding_to_collection(self, data: EmbeddingInput | Mapping[str, Any]) -> str:
        """Insert one embedding and return its id."""
        payload = EmbeddingInput.model_validate(data)
        collection = self._require_collection(payload.collection_name, action="add to")

        row = EmbeddingRow(
            id=payload.id or self._id_factory(),
            collection_id=collection.id,
            embedding=payload.embedding,
            document=payload.document,
            document_id=payload.document_id,
            arg1=payload.arg1,
            arg2=payload.arg2,
            arg3=payload.arg3,
        )

        with self.indexes.session(collection.id) as index:
            DualWrite(
                operation="add_embedding",
                index_step=lambda: index.add_vectors([IndexEntry(row.id, row.embedding)]),
                record_step=lambda: self.records.insert_embedding(row),
                compensate=lambda: index.delete_vectors([row.id]),
            ).run()

        return row.id

    def update_embedding(self, data: EmbeddingUpdate | Mapping[str, Any]) -> None:
        """Update an embedding's vector and/or document fields."""
        payload = EmbeddingUpdate.model_validate(data)
        collection, existing = self._require_owned_embedding(
            payload.collection_name, payload.embedding_id, action="update"
        )
        changes = payload.record_changes()

        with self.indexes.session(collection.id) as index:
            new_vector = payload.embedding
            if new_vector is None:
                self.records.update_embedding(existing.id, changes)
                return

            DualWrite(
                operation="update_embedding",
                index_step=lambda: index.add_vectors(
                    [IndexEntry(existing.id, new_vector)], update=True
                ),
                record_step=lambda: self.records.update_embedding(existing.id, changes),
                compensate=lambda: index.add_vectors(
                    [IndexEntry(existing.id, existing.embedding)], update=True
                ),
            ).run()

    def delete_embedding(self, collection_name: str, embedding_id: str) -> None:
        """Tombstone the embedding's label, then delete its row."""
        collection, existing = self._require_owned_embedding(
            collection_name, embedding_id, action="delete"
        )

        with self.indexes.session(collection.id) as index:
            if not index.contains(existing.id):
                logger.warning(
                    "Embedding %s has no label in the index of %s; deleting the row only",
                    existing.id,
                    collection_name,
                )
                self.records.delete_embedding(existing.id)
                return

            DualWrite(
                operation="delete_embedding",
                index_step=lambda: index.delete_vectors([existing.id]),
                record_step=lambda: self.records.delete_embedding(existing.id),
                compensate=lambda: index.add_vectors([IndexEntry(existing.id, existing.embedding)]),
            ).run()

    def get(self, query: QueryInput | Mapping[str, Any]) -> list[EmbeddingRow]:
        """Return rows of the collection matching every present predicate."""
        payload = QueryInput.model_validate(query)
        collection = self._require_collection(payload.collection_name, action="query")
        return self.records.find_embeddings(collection.id, payload.where)

    def get_nearest_neighbors(
        self, query: SearchQueryInput | Mapping[str, Any]
    ) -> list[SearchResult]:
        """Pre-filter rows with ``where``, search the index, hydrate each hit."""
        payload = SearchQueryInput.model_validate(query)
        collection = self._require_collection(payload.collection_name, action="search")

        with self.indexes.session(collection.id) as index:
            candidate_ids = [row.id for row in self.get(payload)]
            if not candidate_ids and not payload.where.is_empty():
                return []

            hits = index.search(
                payload.search_embedding,
                payload.nearest_neighbors,
                candidate_ids,
            )

            results: list[SearchResult] = []
            for hit in hits:
                row = self.records.get_embedding(hit.id)
                if row is None:
                    logger.warning("Index hit %s has no stored row; skipping", hit.id)
                    continue
                results.append(
                    SearchResult(
                        id=hit.id,
                        distance=hit.distance,
                        embedding=hit.embedding,
                        document=row.document,
                        document_id=row.document_id,
                    )
                )
        return results

    def count_embeddings_by_collection_name(self, collection_name: str) -> int:
        collection = self._require_collection(collection_name, action="count")
        return self.records.count_embeddings(collection.id)

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _require_collection(self, name: str, *, action: str) -> CollectionRow:
        collection = self.records.get_collection_by_name(name)
        if collection is None:
            raise NotFoundError(f"Unable to {action} a non-existent collection by name {name}")
        return collection

    def _require_owned_embedding(
        self, collection_name: str, embedding_id: str, *, action: str
    ) -> tuple[CollectionRow, EmbeddingRow]:
        collection = self._require_collection(collection_name, action=action)
        existing = self.records.get_embedding(embedding_id)
        if existing is None:
            raise NotFoundError(f"Cannot {action} an unknown embedding: {embedding_id}")

        if existing.collection_id != collection.id:
            raise OwnershipMismatchError(
                f"Embedding with id {embedding_id} does not belong to collection {collection_name}"
            )
        return collection, existing
