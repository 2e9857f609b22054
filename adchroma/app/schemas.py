"""Request and result models for the collection store."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, Field

from adchroma.app.ports.record_store import EmbeddingWhere


class EmbeddingInput(BaseModel):
    """New embedding for a named collection."""

    collection_name: str = Field(..., min_length=1)
    embedding: list[float] = Field(..., min_length=1)
    id: str | None = Field(default=None, min_length=1, description="Generated when omitted")
    document: str | None = None
    document_id: str | None = None
    arg1: str | None = None
    arg2: str | None = None
    arg3: str | None = None


class EmbeddingUpdate(BaseModel):
    """Changes to an existing embedding; unset fields keep their stored value."""

    collection_name: str = Field(..., min_length=1)
    embedding_id: str = Field(..., min_length=1)
    embedding: list[float] | None = Field(default=None, min_length=1)
    document: str | None = None
    document_id: str | None = None
    arg1: str | None = None
    arg2: str | None = None
    arg3: str | None = None

    def record_changes(self) -> dict[str, Any]:
        """Explicitly set mutable fields, as column -> value."""
        changes = self.model_dump(
            include={"embedding", "document", "document_id", "arg1", "arg2", "arg3"},
            exclude_unset=True,
        )
        if changes.get("embedding") is None:
            changes.pop("embedding", None)
        return changes


class QueryInput(BaseModel):
    """Exact-match lookup within one collection."""

    collection_name: str = Field(..., min_length=1)
    where: EmbeddingWhere = Field(default_factory=EmbeddingWhere)


class SearchQueryInput(QueryInput):
    """Nearest-neighbour query pre-filtered by ``where``."""

    search_embedding: list[float] = Field(..., min_length=1)
    nearest_neighbors: int = Field(..., ge=1)


@dataclass(slots=True)
class SearchResult:
    """Index hit hydrated with its document fields."""

    id: str
    distance: float
    embedding: list[float]
    document: str | None
    document_id: str | None
