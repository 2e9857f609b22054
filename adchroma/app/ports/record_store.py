"""Record store port interface for collection and embedding rows."""

from __future__ import annotations

from typing import Any, Protocol

from pydantic import BaseModel, Field


class CollectionMetadata(BaseModel):
    """Index parameters fixed per collection."""

    dimensions: int = Field(..., gt=0, description="Length of every vector in the collection")
    max_elements: int | None = Field(default=None, gt=0, description="Starting index capacity")
    ef_search: int | None = Field(
        default=None, gt=0, description="Size of the dynamic list of nearest neighbours"
    )
    resize_factor: float = Field(default=1.0, gt=0, description="Capacity growth multiplier")


class CollectionMetadataUpdate(BaseModel):
    """Partial metadata; omitted (or None) fields keep their current value."""

    dimensions: int | None = Field(default=None, gt=0)
    max_elements: int | None = Field(default=None, gt=0)
    ef_search: int | None = Field(default=None, gt=0)
    resize_factor: float | None = Field(default=None, gt=0)

    def apply(self, current: CollectionMetadata) -> CollectionMetadata:
        """Merge onto ``current`` and re-validate the result."""
        merged = current.model_dump()
        merged.update(self.model_dump(exclude_none=True))
        return CollectionMetadata.model_validate(merged)


class CollectionRow(BaseModel):
    """Persisted collection."""

    id: str
    name: str
    metadata: CollectionMetadata


class EmbeddingRow(BaseModel):
    """Persisted embedding record.

    ``arg1``-``arg3`` are the only filterable attributes. More filter
    dimensions would need a key/value side table.
    """

    id: str
    collection_id: str
    embedding: list[float]
    document: str | None = None
    document_id: str | None = None
    arg1: str | None = None
    arg2: str | None = None
    arg3: str | None = None


class EmbeddingWhere(BaseModel):
    """Exact-match predicates over embedding rows, combined with AND."""

    document_id: str | None = None
    embedding: list[float] | None = None
    embedding_ids: list[str] | None = None
    arg1: str | None = None
    arg2: str | None = None
    arg3: str | None = None

    def is_empty(self) -> bool:
        return not any(
            (
                self.document_id,
                self.embedding,
                self.embedding_ids,
                self.arg1,
                self.arg2,
                self.arg3,
            )
        )


class RecordStorePort(Protocol):
    """Port interface for the durable relational record store.

    Adapters implementing this port must provide:
    - Unique collection names
    - Transactional writes
    - Equality/membership filters and counts over embeddings

    Side effects: Reads/writes the database file (offline).
    """

    def insert_collection(self, row: CollectionRow) -> None: ...

    def update_collection(self, row: CollectionRow) -> None: ...

    def get_collection_by_id(self, collection_id: str) -> CollectionRow | None: ...

    def get_collection_by_name(self, name: str) -> CollectionRow | None: ...

    def list_collections(self) -> list[CollectionRow]: ...

    def insert_embedding(self, row: EmbeddingRow) -> None: ...

    def update_embedding(self, embedding_id: str, changes: dict[str, Any]) -> None: ...

    def delete_embedding(self, embedding_id: str) -> None: ...

    def get_embedding(self, embedding_id: str) -> EmbeddingRow | None: ...

    def find_embeddings(self, collection_id: str, where: EmbeddingWhere) -> list[EmbeddingRow]: ...

    def count_embeddings(self, collection_id: str) -> int: ...
