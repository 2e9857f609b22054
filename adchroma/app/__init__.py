"""Application layer for adchroma.

This layer coordinates collections, embeddings and their vector indexes.
Storage side effects are delegated to adapters via port interfaces.
"""

__all__ = [
    "CollectionStore",
    "DualWrite",
    "IndexCache",
]

from adchroma.app.collection_store import CollectionStore
from adchroma.app.dual_write import DualWrite
from adchroma.app.index_cache import IndexCache
