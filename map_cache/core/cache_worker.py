"""
The single sequential loop that turns queued archives into cached maps.
"""

import asyncio
import logging
import time
from contextlib import suppress
from pathlib import Path

from map_cache.media.map_parser import ArchiveParser
from map_cache.models.map_data import MapData
from map_cache.models.stats import CacheStats
from map_cache.storage.map_store import MapStore
from map_cache.utils.path import map_key

from .cache_queue import CacheQueue
from .signal import Signal

log = logging.getLogger(__name__)


class CacheWorker:
    """
    Drains a `CacheQueue` one archive at a time.

    Each archive ends in exactly one terminal outcome: cached, skipped because
    it was already cached, or quarantined in the error table. Whatever the
    outcome, the name is removed from the queue afterwards.
    """

    def __init__(
        self,
        queue: CacheQueue,
        store: MapStore,
        parser: ArchiveParser,
        maps_dir: Path,
        images_dir: Path,
        tool_path: Path,
        installed_maps: list[MapData],
        on_map_cached: Signal[MapData],
        poll_interval: float = 0.5,
        stats: CacheStats | None = None,
    ):
        self.queue = queue
        self.store = store
        self.parser = parser
        self.maps_dir = maps_dir
        self.images_dir = images_dir
        self.tool_path = tool_path
        self.installed_maps = installed_maps
        self.on_map_cached = on_map_cached
        self.poll_interval = poll_interval
        self.stats = stats or CacheStats()
        self._task: asyncio.Task | None = None
        self._busy = False

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def is_idle(self) -> bool:
        """True when nothing is pending and no archive is being processed."""
        return not self._busy and not self.queue

    def start(self) -> asyncio.Task:
        """Starts the loop. A second call while running only logs a warning."""
        if self.is_running:
            log.warning("Cache worker is already running; ignoring second start.")
            return self._task
        self._task = asyncio.create_task(self._run(), name="map-cache-worker")
        log.debug("Started map cache worker.")
        return self._task

    async def stop(self) -> None:
        """Cancels the loop. Only meant for process shutdown."""
        if self._task and not self._task.done():
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            log.debug("Stopped map cache worker.")

    async def wait_until_idle(self, check_interval: float = 0.05) -> None:
        """Suspends until the queue has been fully drained."""
        while not self.is_idle:
            await asyncio.sleep(check_interval)

    async def _run(self) -> None:
        while True:
            file_name = self.queue.peek_one()
            if file_name is None:
                await self.queue.wait(self.poll_interval)
                continue
            await self.cache_map(file_name)

    def _is_installed(self, key: str) -> bool:
        return any(m.file_name == key for m in self.installed_maps)

    def _remember(self, map_data: MapData) -> None:
        """Replaces the installed entry with the same map id, or appends."""
        for index, installed in enumerate(self.installed_maps):
            if installed.map_id == map_data.map_id:
                self.installed_maps[index] = map_data
                return
        self.installed_maps.append(map_data)

    async def cache_map(self, file_name: str) -> MapData | None:
        """
        Processes one queued archive and returns the cached row, if any.
        Never raises for per-archive failures.
        """
        self._busy = True
        start = time.monotonic()
        try:
            key = map_key(file_name)
            existing = await self.store.find_by_file_name(key)
            if existing or self._is_installed(key):
                log.debug(f"{key} already cached")
                self.stats.maps_skipped += 1
                return None

            log.debug(f"Caching: {file_name}")
            parsed = await self.parser.parse(
                self.maps_dir / file_name, self.images_dir, self.tool_path
            )
            map_data = await self.store.upsert(parsed)
            self.stats.parse_seconds += time.monotonic() - start
            if map_data:
                self._remember(map_data)
                if map_data.file_name != key:
                    # Merged into another archive's row by script name; the
                    # key never gets a row, so keep rescans from re-parsing it.
                    log.warning(
                        f"{file_name} has the same script name as "
                        f"{map_data.file_name} ({map_data.script_name}); "
                        f"updated the existing entry."
                    )
                    await self.store.record_error(file_name)
                self.stats.maps_cached += 1
                log.info(f"[green]✓ Cached[/green] {map_data.script_name}")
                self.on_map_cached.dispatch(map_data)
            return map_data
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.stats.parse_seconds += time.monotonic() - start
            self.stats.maps_failed += 1
            log.error(f"[red]✗ Error parsing map: {file_name}: {e}[/red]")
            log.debug("Full traceback:", exc_info=True)
            try:
                await self.store.record_error(file_name)
            except Exception as record_error:
                log.error(f"Could not quarantine '{file_name}': {record_error}")
            return None
        finally:
            log.debug(f"Cached: {file_name} ({time.monotonic() - start:.2f}s)")
            self.queue.remove(file_name)
            self._busy = False
