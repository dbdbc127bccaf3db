"""
Tests for the SQLite map store.
"""

from __future__ import annotations

import pytest

from map_cache.storage.map_store import MapStore

from fakes import make_map_data


class TestMapStoreUpsert:
    """Test inserting and updating cached maps."""

    @pytest.mark.asyncio
    async def test_insert_assigns_id(self, map_store: MapStore) -> None:
        """A new map gets a primary key and can be found by its key."""
        stored = await map_store.upsert(make_map_data("map_a.sdz"))

        assert stored is not None
        assert stored.map_id is not None
        found = await map_store.find_by_file_name("map_a")
        assert found == stored

    @pytest.mark.asyncio
    async def test_json_columns_survive(self, map_store: MapStore) -> None:
        """Start positions and the raw mapinfo are stored as JSON."""
        stored = await map_store.upsert(make_map_data("map_a.sdz"))

        assert [(p.x, p.z) for p in stored.start_positions] == [
            (100.0, 200.0),
            (900.0, 800.0),
        ]
        assert stored.map_info == {"name": "map_a"}

    @pytest.mark.asyncio
    async def test_same_file_name_updates_in_place(self, map_store: MapStore) -> None:
        """Upserting a known file name keeps the id and replaces the values."""
        first = await map_store.upsert(make_map_data("map_a.sdz"))
        second = await map_store.upsert(make_map_data("map_a.sdz", gravity=90.0))

        assert second.map_id == first.map_id
        assert second.gravity == 90.0
        assert len(await map_store.list_cached()) == 1

    @pytest.mark.asyncio
    async def test_matching_script_name_updates_existing_row(
        self, map_store: MapStore
    ) -> None:
        """A different archive for the same script name updates the old row."""
        first = await map_store.upsert(make_map_data("old.sd7", "Shared Map v1"))
        second = await map_store.upsert(
            make_map_data("new.sd7", "Shared Map v1", max_metal=3.5)
        )

        assert second.map_id == first.map_id
        assert second.max_metal == 3.5
        assert second.file_name == "old"
        assert len(await map_store.list_cached()) == 1

    @pytest.mark.asyncio
    async def test_find_by_script_name(self, map_store: MapStore) -> None:
        await map_store.upsert(make_map_data("map_a.sdz", "Map A v2"))

        found = await map_store.find_by_script_name("Map A v2")

        assert found is not None
        assert found.file_name == "map_a"
        assert await map_store.find_by_script_name("Missing") is None

    @pytest.mark.asyncio
    async def test_cached_file_names(self, map_store: MapStore) -> None:
        await map_store.upsert(make_map_data("map_a.sdz"))
        await map_store.upsert(make_map_data("map_b.sd7"))

        assert await map_store.cached_file_names() == {"map_a", "map_b"}


class TestMapStoreDelete:
    """Test removing cached maps."""

    @pytest.mark.asyncio
    async def test_delete_reports_whether_a_row_matched(
        self, map_store: MapStore
    ) -> None:
        stored = await map_store.upsert(make_map_data("map_a.sdz"))

        assert await map_store.delete(stored.map_id) is True
        assert await map_store.delete(stored.map_id) is False
        assert await map_store.find_by_file_name("map_a") is None


class TestMapStoreErrors:
    """Test the quarantine table."""

    @pytest.mark.asyncio
    async def test_record_error_is_idempotent(self, map_store: MapStore) -> None:
        """Recording the same archive twice keeps a single entry."""
        await map_store.record_error("broken.sdz")
        await map_store.record_error("broken.sdz")

        assert await map_store.list_errors() == ["broken.sdz"]

    @pytest.mark.asyncio
    async def test_errors_listed_sorted(self, map_store: MapStore) -> None:
        await map_store.record_error("zeta.sd7")
        await map_store.record_error("alpha.sdz")

        assert await map_store.list_errors() == ["alpha.sdz", "zeta.sd7"]

    @pytest.mark.asyncio
    async def test_remove_error(self, map_store: MapStore) -> None:
        await map_store.record_error("broken.sdz")

        assert await map_store.remove_error("broken.sdz") is True
        assert await map_store.remove_error("broken.sdz") is False
        assert await map_store.list_errors() == []


class TestMapStoreMaintenance:
    """Test stats and vacuum."""

    @pytest.mark.asyncio
    async def test_initialize_twice(self, map_store: MapStore) -> None:
        """Initializing an existing database keeps its contents."""
        await map_store.upsert(make_map_data("map_a.sdz"))
        await map_store.initialize()

        assert len(await map_store.list_cached()) == 1

    @pytest.mark.asyncio
    async def test_stats(self, map_store: MapStore) -> None:
        await map_store.upsert(make_map_data("small.sdz", width=8.0, height=8.0))
        await map_store.upsert(make_map_data("large.sdz", width=24.0, height=24.0))
        await map_store.record_error("broken.sdz")

        stats = await map_store.get_stats()

        assert stats["total_maps"] == 2
        assert stats["total_errors"] == 1
        assert stats["largest_maps"][0] == ("large v1", 24.0, 24.0)

    @pytest.mark.asyncio
    async def test_vacuum(self, map_store: MapStore) -> None:
        await map_store.upsert(make_map_data("map_a.sdz"))

        assert await map_store.vacuum() is True
        assert len(await map_store.list_cached()) == 1
