"""Concrete adapters wiring application ports to built-in implementations."""

from __future__ import annotations

from .hnsw import HNSWVectorIndex
from .sqlite_store import SqliteRecordStore

__all__ = [
    "HNSWVectorIndex",
    "SqliteRecordStore",
]
