"""adchroma - embedded vector database.

Named collections of embedding vectors backed by per-collection HNSW indexes
and a SQLite record store.
"""

__version__ = "0.1.0"
__author__ = "adchroma Contributors"

from adchroma.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__"]
