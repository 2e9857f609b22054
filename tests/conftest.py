"""Pytest configuration and fixtures."""

import gc
import shutil
import tempfile
import time
from collections.abc import Generator
from pathlib import Path

import pytest

from adchroma.app import CollectionStore
from adchroma.app.adapters import HNSWVectorIndex, SqliteRecordStore
from adchroma.app.ports import IndexConfig
from adchroma.bootstrap import ApplicationContainer, bootstrap_application
from adchroma.config import Settings


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmpdir = tempfile.mkdtemp()
    try:
        yield Path(tmpdir)
    finally:
        # Force garbage collection to release any file handles
        gc.collect()
        time.sleep(0.05)
        shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def override_settings(temp_dir: Path) -> Generator[Settings, None, None]:
    """Provide isolated adchroma settings scoped to tests."""

    import adchroma.config as config_module

    original_settings = getattr(config_module, "_settings", None)

    data_dir = temp_dir / "appdata"
    data_dir.mkdir(parents=True, exist_ok=True)

    settings = config_module.Settings(data_dir=data_dir, db_name="test")

    config_module._settings = settings

    try:
        yield settings
    finally:
        config_module._settings = original_settings


@pytest.fixture
def container(override_settings: Settings) -> ApplicationContainer:
    """Fully wired application on a temporary data directory."""
    return bootstrap_application(override_settings)


@pytest.fixture
def store(container: ApplicationContainer) -> CollectionStore:
    return container.collection_store


@pytest.fixture
def records(temp_dir: Path) -> SqliteRecordStore:
    return SqliteRecordStore(temp_dir / "records.db")


@pytest.fixture
def make_index(temp_dir: Path):
    """Build an HNSW index rooted in the temporary directory."""

    def _make(dimensions: int = 3, collection_id: str = "col", **overrides) -> HNSWVectorIndex:
        config = IndexConfig(
            collection_id=collection_id,
            storage_dir=temp_dir / "index",
            dimensions=dimensions,
            **overrides,
        )
        return HNSWVectorIndex(config)

    return _make
