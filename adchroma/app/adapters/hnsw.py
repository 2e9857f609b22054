"""hnswlib-based vector index adapter implementing VectorIndexPort."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Callable, Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import numpy as np

from adchroma.app.ports.vector_index import (
    IndexConfig,
    IndexEntry,
    IndexHit,
    IndexMetadata,
    VectorIndexPort,
)
from adchroma.errors import (
    DimensionMismatchError,
    DuplicateIdError,
    InvalidIndexStateError,
    NotFoundError,
    RequestedCountExceedsAvailableError,
)
from adchroma.utils.atomic import atomic_write, atomic_write_json
from adchroma.utils.paths import remove_tree

logger = logging.getLogger(__name__)

SPACE = "cosine"
EF_CONSTRUCTION = 200
M = 16


class HNSWVectorIndex(VectorIndexPort):
    """Disk-backed HNSW index for one collection, cosine distance.

    Labels are handed out from a cumulative counter and never reused: a
    deleted id leaves its label tombstoned in the graph, and re-inserting the
    same id allocates a fresh label. Every mutation writes a full snapshot
    (``index_<collection>.bin`` plus a ``.meta.json`` sidecar holding the id
    map and counter) before returning.

    With ``fresh`` any stored snapshot is discarded instead of loaded.
    """

    def __init__(self, config: IndexConfig, *, fresh: bool = False) -> None:
        self._config = config
        self._dim = int(config.dimensions)
        self._save_folder = Path(config.storage_dir) / config.collection_id
        self._index_path = self._save_folder / f"index_{config.collection_id}.bin"
        self._meta_path = self._index_path.with_suffix(self._index_path.suffix + ".meta.json")
        self._index: Any | None = None
        self._metadata: IndexMetadata | None = None
        self._id_to_label: dict[str, int] = {}
        self._label_to_id: dict[int, str] = {}

        if fresh:
            remove_tree(self._save_folder)
        self.reload()

    # ------------------------------------------------------------------ #
    # Introspection
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> IndexConfig:
        return self._config

    @property
    def index_path(self) -> Path:
        return self._index_path

    @property
    def metadata_path(self) -> Path:
        return self._meta_path

    @property
    def is_initialized(self) -> bool:
        return self._index is not None

    @property
    def metadata(self) -> IndexMetadata | None:
        return self._metadata

    @property
    def capacity(self) -> int | None:
        """Current maximum number of labels the graph can hold."""
        if self._index is None:
            return None
        return int(self._index.get_max_elements())

    @property
    def live_count(self) -> int:
        return len(self._id_to_label)

    def contains(self, identifier: str) -> bool:
        return identifier in self._id_to_label

    def label_of(self, identifier: str) -> int | None:
        return self._id_to_label.get(identifier)

    def get_vector(self, identifier: str) -> list[float] | None:
        """Return the stored (normalized) vector for a live id."""
        label = self._id_to_label.get(identifier)
        if label is None:
            return None
        return self._stored_vector(label)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def _new_index(self) -> Any:
        try:
            import hnswlib
        except ImportError as exc:  # pragma: no cover - dependency missing runtime path
            raise RuntimeError(
                "hnswlib is required for vector search. Install 'hnswlib'."
            ) from exc

        return hnswlib.Index(space=SPACE, dim=self._dim)

    def _require_state(self) -> tuple[Any, IndexMetadata]:
        if self._index is None or self._metadata is None:
            raise InvalidIndexStateError(
                f"Index for collection {self._config.collection_id} is not initialized"
            )
        return self._index, self._metadata

    def _reset(self) -> None:
        self._index = None
        self._metadata = None
        self._id_to_label = {}
        self._label_to_id = {}

    def initialize(self) -> None:
        """Create an empty graph at the configured capacity and persist it."""
        index = self._new_index()
        index.init_index(
            max_elements=self._config.initial_capacity,
            ef_construction=EF_CONSTRUCTION,
            M=M,
        )
        index.set_ef(self._config.effective_ef_search)

        self._index = index
        self._metadata = IndexMetadata(
            space=SPACE,
            elements=0,
            time_created=datetime.now(UTC).isoformat(),
        )
        self._id_to_label = {}
        self._label_to_id = {}
        logger.info(
            "Initialized index for collection %s (dim=%d, capacity=%d)",
            self._config.collection_id,
            self._dim,
            self._config.initial_capacity,
        )
        self.persist()

    def persist(self) -> None:
        """Write the whole graph and its id map to disk."""
        index = self._index
        if index is None or self._metadata is None:
            return

        atomic_write(self._index_path, lambda tmp_path: index.save_index(str(tmp_path)))
        atomic_write_json(
            self._meta_path,
            {
                "collection_id": self._config.collection_id,
                "dim": self._dim,
                "space": SPACE,
                "metadata": self._metadata.model_dump(mode="json"),
                "id_to_label": self._id_to_label,
            },
        )
        logger.debug("Index saved to %s", self._index_path)

    def reload(self) -> None:
        """Load the persisted snapshot if one exists, else stay uninitialized."""
        self._reset()
        if not self._index_path.exists():
            return

        if not self._meta_path.exists():
            raise InvalidIndexStateError(f"Index metadata missing: {self._meta_path}")

        meta = json.loads(self._meta_path.read_text(encoding="utf-8"))
        stored_dim = int(meta.get("dim", -1))
        if stored_dim != self._dim:
            raise DimensionMismatchError(stored_dim, self._dim, subject="stored index")

        index = self._new_index()
        index.load_index(str(self._index_path))
        index.set_ef(self._config.effective_ef_search)

        self._index = index
        self._metadata = IndexMetadata.model_validate(meta["metadata"])
        self._id_to_label = {
            str(identifier): int(label)
            for identifier, label in meta.get("id_to_label", {}).items()
        }
        self._label_to_id = {label: identifier for identifier, label in self._id_to_label.items()}
        logger.debug(
            "Loaded index %s (%d live of %d labels)",
            self._index_path,
            len(self._id_to_label),
            self._metadata.elements,
        )

    def drop_index(self) -> None:
        """Delete the persisted snapshot and reset all in-memory state."""
        removed = remove_tree(self._save_folder)
        self._reset()
        logger.info(
            "Dropped index for collection %s (snapshot removed: %s)",
            self._config.collection_id,
            removed,
        )

    # ------------------------------------------------------------------ #
    # Mutation
    # ------------------------------------------------------------------ #

    def add_vectors(self, entries: Sequence[IndexEntry], update: bool = False) -> None:
        """Insert ``entries`` under fresh labels.

        With ``update`` a known id has its vector overwritten at its existing
        label; without it a known id raises ``DuplicateIdError``. Entries ahead
        of the conflicting one stay committed.
        """
        if not entries:
            return

        for entry in entries:
            if len(entry.embedding) != self._dim:
                raise DimensionMismatchError(len(entry.embedding), self._dim)

        if self._index is None:
            self.initialize()

        index, metadata = self._require_state()

        try:
            self._reserve(self._count_new_labels(entries))
            for entry in entries:
                vector = np.asarray([entry.embedding], dtype=np.float32)
                label = self._id_to_label.get(entry.id)
                if label is None:
                    label = metadata.elements
                    index.add_items(vector, np.asarray([label]))
                    metadata.elements += 1
                    self._id_to_label[entry.id] = label
                    self._label_to_id[label] = entry.id
                    logger.debug("Assigned label %d to %s", label, entry.id)
                elif update:
                    index.add_items(vector, np.asarray([label]))
                else:
                    raise DuplicateIdError(entry.id)
        finally:
            self.persist()

    def _count_new_labels(self, entries: Sequence[IndexEntry]) -> int:
        pending: set[str] = set()
        for entry in entries:
            if entry.id not in self._id_to_label:
                pending.add(entry.id)
        return len(pending)

    def _reserve(self, new_labels: int) -> None:
        """Grow capacity so the cumulative counter fits after ``new_labels`` more."""
        index, metadata = self._require_state()
        required = metadata.elements + new_labels
        capacity = int(index.get_max_elements())
        if required <= capacity:
            return

        target = max(
            math.ceil(required * self._config.resize_factor),
            self._config.default_max_elements,
            required,
        )
        logger.debug(
            "Resizing index %s from %d to %d elements",
            self._config.collection_id,
            capacity,
            target,
        )
        index.resize_index(target)

    def delete_vectors(self, identifiers: Sequence[str]) -> None:
        """Tombstone the labels of ``identifiers`` and forget their mapping."""
        missing = [identifier for identifier in identifiers if identifier not in self._id_to_label]
        if missing:
            raise NotFoundError(f"Cannot delete ids unknown to the index: {', '.join(missing)}")

        if not identifiers:
            return

        index, _ = self._require_state()
        for identifier in dict.fromkeys(identifiers):
            label = self._id_to_label[identifier]
            index.mark_deleted(label)
            del self._id_to_label[identifier]
            del self._label_to_id[label]

        self.persist()

    # ------------------------------------------------------------------ #
    # Query
    # ------------------------------------------------------------------ #

    def search(
        self,
        query: Sequence[float],
        k: int,
        id_filter: Sequence[str] | None = None,
    ) -> list[IndexHit]:
        """Return up to ``k`` live hits nearest to ``query``.

        A non-empty ``id_filter`` restricts candidates to the live ids it names
        and silently clamps ``k`` to that subset's size.
        """
        if len(query) != self._dim:
            raise DimensionMismatchError(len(query), self._dim, subject="query")

        if self._index is None:
            raise InvalidIndexStateError("Index not created. Create one before searching")

        if k < 1:
            raise ValueError(f"Number of requested results must be at least 1; got {k}")

        allowed: set[int] | None = None
        if id_filter:
            allowed = {
                self._id_to_label[identifier]
                for identifier in id_filter
                if identifier in self._id_to_label
            }
            k = min(k, len(allowed))
            if k == 0:
                return []

        available = len(self._id_to_label)
        if k > available:
            raise RequestedCountExceedsAvailableError(k, available)

        q = np.asarray([query], dtype=np.float32)
        labels, distances = self._knn_query(
            q, k, allowed.__contains__ if allowed is not None else None
        )

        hits: list[IndexHit] = []
        for label, distance in zip(labels[0], distances[0], strict=True):
            label = int(label)
            hits.append(
                IndexHit(
                    id=self._label_to_id[label],
                    distance=float(distance),
                    embedding=self._stored_vector(label),
                )
            )
        hits.sort(key=lambda hit: hit.distance)
        return hits

    def _knn_query(
        self,
        query: np.ndarray,
        k: int,
        filter_fn: Callable[[int], bool] | None,
    ) -> tuple[np.ndarray, np.ndarray]:
        index, metadata = self._require_state()
        try:
            return index.knn_query(query, k=k, num_threads=1, filter=filter_fn)
        except RuntimeError:
            # Tombstones and narrow filters can starve the candidate list at
            # the configured ef; retry once with ef covering every label.
            widened = max(metadata.elements, k)
            logger.debug("knn_query returned fewer than %d hits; retrying with ef=%d", k, widened)
            index.set_ef(widened)
            try:
                return index.knn_query(query, k=k, num_threads=1, filter=filter_fn)
            finally:
                index.set_ef(self._config.effective_ef_search)

    def _stored_vector(self, label: int) -> list[float]:
        index, _ = self._require_state()
        items = np.asarray(index.get_items([label]), dtype=np.float32)
        return [float(value) for value in items[0]]
