"""Application bootstrap wiring ports, adapters, and services."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from adchroma.app import CollectionStore, IndexCache
from adchroma.app.adapters import HNSWVectorIndex, SqliteRecordStore
from adchroma.app.index_cache import IndexFactory
from adchroma.app.ports import CollectionRow, IndexConfig, RecordStorePort, VectorIndexPort
from adchroma.config import Settings, get_settings

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ApplicationContainer:
    """Aggregates wired services and adapters for the CLI layer."""

    settings: Settings
    records: RecordStorePort
    indexes: IndexCache
    collection_store: CollectionStore


def build_index_factory(settings: Settings) -> IndexFactory:
    """Return a factory building an HNSW index from a collection row."""
    storage_dir = settings.get_index_dir()

    def _factory(collection: CollectionRow, fresh: bool = False) -> VectorIndexPort:
        metadata = collection.metadata
        config = IndexConfig(
            collection_id=collection.id,
            storage_dir=storage_dir,
            dimensions=metadata.dimensions,
            max_elements=metadata.max_elements,
            ef_search=metadata.ef_search,
            resize_factor=metadata.resize_factor,
            default_max_elements=settings.default_max_elements,
            default_ef_search=settings.default_ef_search,
        )
        return HNSWVectorIndex(config, fresh=fresh)

    return _factory


def bootstrap_application(settings: Settings | None = None) -> ApplicationContainer:
    """Instantiate adapters and services for CLI consumption."""

    active_settings = settings or get_settings()

    records = SqliteRecordStore(active_settings.get_db_path())
    indexes = IndexCache(records, build_index_factory(active_settings))
    collection_store = CollectionStore(records, indexes)

    logger.debug("Bootstrapped adchroma at %s", active_settings.get_data_dir())

    return ApplicationContainer(
        settings=active_settings,
        records=records,
        indexes=indexes,
        collection_store=collection_store,
    )
