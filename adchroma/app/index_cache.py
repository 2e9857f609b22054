"""Process-scoped registry of per-collection vector indexes."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager

from adchroma.app.ports import CollectionRow, RecordStorePort, VectorIndexPort
from adchroma.errors import InvalidIndexStateError, NotFoundError

logger = logging.getLogger(__name__)

IndexFactory = Callable[[CollectionRow, bool], VectorIndexPort]


class IndexCache:
    """Map collection id -> vector index, populated lazily and never evicted.

    An index instance, once constructed, serves every later operation on its
    collection. All access goes through :meth:`session`, which holds that
    collection's lock; different collections never contend.
    """

    def __init__(self, records: RecordStorePort, factory: IndexFactory) -> None:
        self._records = records
        self._factory = factory
        self._indexes: dict[str, VectorIndexPort] = {}
        self._locks: dict[str, threading.RLock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, collection_id: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(collection_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[collection_id] = lock
            return lock

    def exclusive(self, collection_id: str) -> threading.RLock:
        """The collection's reentrant lock, for sections spanning several calls."""
        return self._lock_for(collection_id)

    def is_registered(self, collection_id: str) -> bool:
        return collection_id in self._indexes

    def collection_ids(self) -> list[str]:
        return list(self._indexes)

    def _build(self, collection_id: str, *, fresh: bool) -> VectorIndexPort:
        row = self._records.get_collection_by_id(collection_id)
        if row is None:
            raise NotFoundError(
                f"cannot create an index for a collection which does not exist: {collection_id}"
            )

        index = self._factory(row, fresh)
        self._indexes[collection_id] = index
        logger.debug("Registered index for collection %s (%s)", row.name, collection_id)
        return index

    def register(self, collection_id: str) -> VectorIndexPort:
        """Return the cached index, constructing it from the collection row if absent."""
        with self._lock_for(collection_id):
            index = self._indexes.get(collection_id)
            if index is not None:
                return index
            return self._build(collection_id, fresh=False)

    def reset(self, collection_id: str) -> VectorIndexPort:
        """Replace the index with an empty one built from the current collection row."""
        with self._lock_for(collection_id):
            self.drop(collection_id)
            return self._build(collection_id, fresh=True)

    def require(self, collection_id: str) -> VectorIndexPort:
        """Return the cached index or fail when the collection was never loaded."""
        index = self._indexes.get(collection_id)
        if index is None:
            raise InvalidIndexStateError(
                f"No index registered for collection {collection_id}. "
                "Create or load the collection first."
            )
        return index

    @contextmanager
    def session(
        self, collection_id: str, *, register: bool = False, reset: bool = False
    ) -> Iterator[VectorIndexPort]:
        """Hold the collection's exclusive section and yield its index.

        ``register`` loads the index if needed; ``reset`` starts from an empty one.
        """
        with self._lock_for(collection_id):
            if reset:
                index = self.reset(collection_id)
            elif register:
                index = self.register(collection_id)
            else:
                index = self.require(collection_id)
            yield index

    def drop(self, collection_id: str) -> bool:
        """Wipe the index's persisted state and forget it; False if none was cached."""
        with self._lock_for(collection_id):
            index = self._indexes.pop(collection_id, None)
            if index is None:
                return False
            index.drop_index()
            return True
