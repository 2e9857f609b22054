"""Vector index port interface for per-collection ANN search."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Protocol

from pydantic import BaseModel, Field

DEFAULT_MAX_ELEMENTS_IN_INDEX = 1000
DEFAULT_SIZE_OF_DYNAMIC_LIST_OF_NEAREST_NEIGHBORS = 10

SpaceName = Literal["cosine"]


class IndexConfig(BaseModel):
    """Construction parameters for one collection's index."""

    collection_id: str = Field(..., min_length=1)
    storage_dir: Path = Field(..., description="Root directory holding per-collection indexes")
    dimensions: int = Field(..., gt=0)
    max_elements: int | None = Field(default=None, gt=0)
    ef_search: int | None = Field(default=None, gt=0)
    resize_factor: float = Field(default=1.0, gt=0)
    default_max_elements: int = Field(default=DEFAULT_MAX_ELEMENTS_IN_INDEX, gt=0)
    default_ef_search: int = Field(default=DEFAULT_SIZE_OF_DYNAMIC_LIST_OF_NEAREST_NEIGHBORS, gt=0)

    @property
    def initial_capacity(self) -> int:
        return self.max_elements or self.default_max_elements

    @property
    def effective_ef_search(self) -> int:
        return self.ef_search or self.default_ef_search


class IndexMetadata(BaseModel):
    """Per-index summary persisted alongside the snapshot."""

    space: SpaceName = "cosine"
    elements: int = Field(default=0, ge=0, description="Cumulative label assignments")
    time_created: str = Field(..., description="ISO 8601 timestamp in UTC")


@dataclass(slots=True)
class IndexEntry:
    """Vector keyed by its external record id."""

    id: str
    embedding: Sequence[float]


@dataclass(slots=True)
class IndexHit:
    """Single nearest-neighbour result."""

    id: str
    distance: float
    embedding: list[float]


class VectorIndexPort(Protocol):
    """Port interface for a single collection's approximate nearest neighbour index.

    Implementations must provide:
    - Dense integer labels that are never reused
    - Soft deletion (tombstoned labels are excluded from results)
    - A full on-disk snapshot after every mutation

    Side effects: Writes to the collection's index directory (offline).
    """

    @property
    def is_initialized(self) -> bool: ...

    @property
    def metadata(self) -> IndexMetadata | None: ...

    @property
    def live_count(self) -> int: ...

    def contains(self, identifier: str) -> bool: ...

    def label_of(self, identifier: str) -> int | None: ...

    def get_vector(self, identifier: str) -> list[float] | None: ...

    def add_vectors(self, entries: Sequence[IndexEntry], update: bool = False) -> None:
        """Insert ``entries``; with ``update`` overwrite vectors of known ids in place."""
        ...

    def delete_vectors(self, identifiers: Sequence[str]) -> None:
        """Tombstone the labels of ``identifiers``."""
        ...

    def search(
        self,
        query: Sequence[float],
        k: int,
        id_filter: Sequence[str] | None = None,
    ) -> list[IndexHit]:
        """Return up to ``k`` hits ordered nearest first."""
        ...

    def drop_index(self) -> None:
        """Delete the persisted snapshot and reset to uninitialized."""
        ...
