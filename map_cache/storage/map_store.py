"""
Manages the SQLite database that caches parsed map metadata and quarantines
archives that failed to parse.
"""

import asyncio
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from map_cache.exceptions import StorageError
from map_cache.models.map_data import MapData

log = logging.getLogger(__name__)


class MapStore:
    """
    A thread-safe SQLite store for cached maps and permanent parse errors.

    Every public method is a coroutine; the blocking SQLite work runs in a
    worker thread, gated by a small connection semaphore.
    """

    def __init__(self, db_path: Path, pool_size: int = 5):
        self.db_path = db_path
        self._pool_size = pool_size
        self._connection_semaphore = asyncio.Semaphore(pool_size)

    @contextmanager
    def _get_connection(self) -> Iterator[sqlite3.Connection]:
        """Yields a new database connection with optimized PRAGMA settings."""
        try:
            conn = sqlite3.connect(self.db_path, timeout=30, check_same_thread=False)
        except sqlite3.Error as e:
            log.error(f"Failed to connect to map cache database: {e}")
            raise StorageError(f"Cannot open '{self.db_path}': {e}") from e
        try:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA temp_store=MEMORY;")
            with conn:
                yield conn
        finally:
            conn.close()

    async def _run_in_executor(self, func, *args):
        """Runs a synchronous database function within the connection pool semaphore."""
        async with self._connection_semaphore:
            return await asyncio.to_thread(func, *args)

    def _initialize_sync(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with self._get_connection() as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS map (
                        map_id INTEGER PRIMARY KEY AUTOINCREMENT,
                        script_name TEXT NOT NULL UNIQUE,
                        file_name TEXT NOT NULL UNIQUE,
                        friendly_name TEXT NOT NULL,
                        description TEXT,
                        map_hardness REAL NOT NULL,
                        gravity REAL NOT NULL,
                        tidal_strength REAL NOT NULL,
                        max_metal REAL NOT NULL,
                        extractor_radius REAL NOT NULL,
                        min_wind REAL NOT NULL,
                        max_wind REAL NOT NULL,
                        start_positions TEXT,
                        width REAL NOT NULL,
                        height REAL NOT NULL,
                        min_depth REAL NOT NULL,
                        max_depth REAL NOT NULL,
                        map_info TEXT
                    );
                    """
                )
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS map_error (
                        file_name TEXT PRIMARY KEY NOT NULL
                    );
                    """
                )
        except sqlite3.Error as e:
            log.error(f"Failed to initialize map cache at '{self.db_path}': {e}")
            raise StorageError(f"Cannot initialize '{self.db_path}': {e}") from e

    async def initialize(self) -> None:
        """Creates the map and error tables if they don't exist."""
        await self._run_in_executor(self._initialize_sync)

    def _fetch_maps_sync(self, where: str = "", params: tuple = ()) -> list[MapData]:
        query = "SELECT * FROM map"  # noqa: S608
        if where:
            query += f" WHERE {where}"
        query += " ORDER BY map_id"
        try:
            with self._get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            log.error(f"Map lookup failed: {e}")
            raise StorageError(f"Map lookup failed: {e}") from e
        return [MapData.from_row(row) for row in rows]

    async def list_cached(self) -> list[MapData]:
        """Returns every cached map."""
        return await self._run_in_executor(self._fetch_maps_sync)

    async def find_by_file_name(self, file_name: str) -> MapData | None:
        """Looks up a cached map by its archive name without extension."""
        maps = await self._run_in_executor(
            self._fetch_maps_sync, "file_name = ?", (file_name,)
        )
        return maps[0] if maps else None

    async def find_by_script_name(self, script_name: str) -> MapData | None:
        """Looks up a cached map by its in-game name."""
        maps = await self._run_in_executor(
            self._fetch_maps_sync, "script_name = ?", (script_name,)
        )
        return maps[0] if maps else None

    def _select_column_sync(self, table: str, column: str) -> set[str]:
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(f"SELECT {column} FROM {table}")  # noqa: S608
                return {row[0] for row in cursor.fetchall()}
        except sqlite3.Error as e:
            log.error(f"Failed to read {table}.{column}: {e}")
            raise StorageError(f"Failed to read {table}.{column}: {e}") from e

    async def cached_file_names(self) -> set[str]:
        """Returns the `file_name` key of every cached map."""
        return await self._run_in_executor(self._select_column_sync, "map", "file_name")

    def _upsert_sync(self, map_data: MapData) -> MapData | None:
        """
        Inserts a map, or updates the non-key columns of the row that already
        owns its file name or script name. The lookup and the write share one
        immediate transaction.
        """
        row = map_data.to_row()
        columns = MapData.column_names()
        updatable = MapData.non_key_columns()
        try:
            with self._get_connection() as conn:
                conn.execute("BEGIN IMMEDIATE")
                existing = conn.execute(
                    "SELECT map_id FROM map WHERE file_name = ? OR script_name = ?"
                    " ORDER BY file_name = ? DESC LIMIT 1",
                    (row["file_name"], row["script_name"], row["file_name"]),
                ).fetchone()
                if existing:
                    map_id = existing["map_id"]
                    assignments = ", ".join(f"{name} = ?" for name in updatable)
                    conn.execute(
                        f"UPDATE map SET {assignments} WHERE map_id = ?",  # noqa: S608
                        [row[name] for name in updatable] + [map_id],
                    )
                else:
                    placeholders = ", ".join("?" * len(columns))
                    cursor = conn.execute(
                        f"INSERT INTO map ({', '.join(columns)}) VALUES ({placeholders})",  # noqa: S608
                        [row[name] for name in columns],
                    )
                    map_id = cursor.lastrowid
                result = conn.execute(
                    "SELECT * FROM map WHERE map_id = ?", (map_id,)
                ).fetchone()
        except sqlite3.Error as e:
            log.error(f"Upsert failed for map '{map_data.file_name}': {e}")
            raise StorageError(f"Upsert failed for '{map_data.file_name}': {e}") from e
        return MapData.from_row(result) if result else None

    async def upsert(self, map_data: MapData) -> MapData | None:
        """Inserts or updates a map and returns the stored row."""
        return await self._run_in_executor(self._upsert_sync, map_data)

    def _execute_sync(self, query: str, params: tuple) -> int:
        try:
            with self._get_connection() as conn:
                return conn.execute(query, params).rowcount
        except sqlite3.Error as e:
            log.error(f"Query failed ({query.split()[0]}): {e}")
            raise StorageError(f"Query failed: {e}") from e

    async def delete(self, map_id: int) -> bool:
        """Removes a cached map row. Returns False when no row matched."""
        deleted = await self._run_in_executor(
            self._execute_sync, "DELETE FROM map WHERE map_id = ?", (map_id,)
        )
        return deleted > 0

    async def record_error(self, file_name: str) -> None:
        """Quarantines an archive; recording the same file twice is a no-op."""
        await self._run_in_executor(
            self._execute_sync,
            "INSERT OR IGNORE INTO map_error (file_name) VALUES (?)",
            (file_name,),
        )

    async def list_errors(self) -> list[str]:
        """Returns the archive names that permanently failed to parse."""
        names = await self._run_in_executor(
            self._select_column_sync, "map_error", "file_name"
        )
        return sorted(names)

    async def remove_error(self, file_name: str) -> bool:
        """Lifts the quarantine for an archive so the next scan retries it."""
        removed = await self._run_in_executor(
            self._execute_sync,
            "DELETE FROM map_error WHERE file_name = ?",
            (file_name,),
        )
        return removed > 0

    def _get_stats_sync(self) -> dict[str, Any] | None:
        """Synchronous implementation for getting cache statistics."""
        try:
            with self._get_connection() as conn:
                total_maps = conn.execute("SELECT COUNT(*) FROM map").fetchone()[0]
                total_errors = conn.execute(
                    "SELECT COUNT(*) FROM map_error"
                ).fetchone()[0]
                largest_maps = conn.execute(
                    """
                    SELECT script_name, width, height
                    FROM map
                    ORDER BY width * height DESC
                    LIMIT 10
                    """
                ).fetchall()
                return {
                    "total_maps": total_maps,
                    "total_errors": total_errors,
                    "largest_maps": [tuple(row) for row in largest_maps],
                }
        except (sqlite3.Error, StorageError) as e:
            log.error(f"Failed to get cache stats: {e}")
            return None

    async def get_stats(self) -> dict[str, Any] | None:
        """Retrieves statistics from the map cache."""
        return await self._run_in_executor(self._get_stats_sync)

    def _vacuum_sync(self) -> bool:
        """Synchronous implementation for optimizing the database."""
        try:
            with self._get_connection() as conn:
                conn.execute("ANALYZE;")
            # VACUUM cannot run inside the transaction opened by the context manager
            conn = sqlite3.connect(self.db_path, timeout=30)
            try:
                conn.execute("VACUUM;")
            finally:
                conn.close()
            log.info("Map cache database optimized successfully.")
            return True
        except (sqlite3.Error, StorageError) as e:
            log.error(f"Database vacuum failed: {e}")
            return False

    async def vacuum(self) -> bool:
        """Optimizes the database file by rebuilding it."""
        return await self._run_in_executor(self._vacuum_sync)
