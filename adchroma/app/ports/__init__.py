"""Port interfaces for the adchroma application layer.

These protocol interfaces define contracts for adapters.
Coordinating logic depends on these ports, never on concrete implementations.
"""

__all__ = [
    "CollectionMetadata",
    "CollectionMetadataUpdate",
    "CollectionRow",
    "EmbeddingRow",
    "EmbeddingWhere",
    "RecordStorePort",
    "IndexConfig",
    "IndexEntry",
    "IndexHit",
    "IndexMetadata",
    "VectorIndexPort",
]

from adchroma.app.ports.record_store import (
    CollectionMetadata,
    CollectionMetadataUpdate,
    CollectionRow,
    EmbeddingRow,
    EmbeddingWhere,
    RecordStorePort,
)
from adchroma.app.ports.vector_index import (
    IndexConfig,
    IndexEntry,
    IndexHit,
    IndexMetadata,
    VectorIndexPort,
)
