"""
Pytest configuration and fixtures for map cache tests.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
from fakes import FakeCatalog, FakeDownloader, FakeParser

from map_cache.core.map_content import MapContent
from map_cache.models.config import CacheConfig
from map_cache.storage.map_store import MapStore


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def cache_config(temp_dir: Path) -> CacheConfig:
    """Provide a configuration rooted in the temporary directory."""
    return CacheConfig(content_path=str(temp_dir / "content"), poll_interval=0.05)


@pytest.fixture
async def map_store(temp_dir: Path) -> MapStore:
    """Create an initialized map store."""
    store = MapStore(temp_dir / "cache.sqlite")
    await store.initialize()
    return store


@pytest.fixture
def fake_parser() -> FakeParser:
    return FakeParser()


@pytest.fixture
def fake_downloader() -> FakeDownloader:
    return FakeDownloader()


@pytest.fixture
def fake_catalog() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture
async def map_content(
    cache_config: CacheConfig,
    fake_parser: FakeParser,
    fake_downloader: FakeDownloader,
    fake_catalog: FakeCatalog,
) -> AsyncGenerator[MapContent, None]:
    """Provide a map content facade wired to the fakes, not yet initialized."""
    content = MapContent(
        cache_config,
        parser=fake_parser,
        downloader=fake_downloader,
        catalog=fake_catalog,
    )
    cache_config.maps_dir.mkdir(parents=True, exist_ok=True)
    yield content
    await content.close()
