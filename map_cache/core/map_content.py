"""
The top-level facade: installs, queries and evicts maps, and owns the cache
queue and worker.
"""

import asyncio
import logging
import time
from contextlib import suppress
from pathlib import Path

from map_cache.api.catalog import CatalogClient
from map_cache.media.downloader import Downloader
from map_cache.media.map_parser import ArchiveParser, SevenZipMapParser
from map_cache.models.config import CacheConfig
from map_cache.models.map_data import DownloadInfo, MapData, MapImages
from map_cache.models.stats import CacheStats
from map_cache.storage.map_store import MapStore
from map_cache.utils.path import (
    create_dir,
    get_map_images,
    is_archive_candidate,
    map_key,
    partial_path,
    preview_images,
    safe_archive_name,
)

from .cache_queue import CacheQueue
from .cache_worker import CacheWorker
from .signal import Signal

log = logging.getLogger(__name__)


class MapContent:
    """
    Coordinates map downloads and the metadata cache.

    `installed_maps` and `current_downloads` are plain lists mutated only from
    the event loop: the cache worker appends to `installed_maps`, the install
    flow adds and removes `current_downloads`.
    """

    def __init__(
        self,
        config: CacheConfig,
        store: MapStore | None = None,
        parser: ArchiveParser | None = None,
        downloader: Downloader | None = None,
        catalog: CatalogClient | None = None,
    ):
        self.config = config
        self.maps_dir = config.maps_dir
        self.images_dir = config.images_dir
        self.tool_path = Path(config.tool_path)

        self.store = store or MapStore(config.database_path)
        self.parser = parser or SevenZipMapParser()
        self.downloader = downloader or Downloader(
            max_attempts=config.download_attempts,
            max_downloads=config.max_downloads,
        )
        self.catalog = catalog or CatalogClient(config.catalog_url)

        self.installed_maps: list[MapData] = []
        self.current_downloads: list[DownloadInfo] = []
        self.stats = CacheStats()

        self.on_download_start: Signal[DownloadInfo] = Signal("download_started")
        self.on_download_complete: Signal[DownloadInfo] = Signal("download_completed")
        self.on_map_cached: Signal[MapData] = Signal("map_cached")

        self.queue = CacheQueue()
        self.worker = CacheWorker(
            self.queue,
            self.store,
            self.parser,
            self.maps_dir,
            self.images_dir,
            self.tool_path,
            self.installed_maps,
            self.on_map_cached,
            poll_interval=config.poll_interval,
            stats=self.stats,
        )

    async def init(self, start_worker: bool = True) -> None:
        """
        Prepares directories and tables, loads the cached maps, queues any
        uncached archives found on disk and starts the cache worker.
        """
        await asyncio.to_thread(create_dir, self.maps_dir)
        await asyncio.to_thread(create_dir, self.images_dir)
        await self.store.initialize()

        self.installed_maps.extend(await self.store.list_cached())
        log.debug(f"Loaded {len(self.installed_maps)} cached maps.")

        queued = await self.queue_maps_to_cache()
        if queued:
            log.info(f"Queued {queued} map archive(s) for caching.")

        if start_worker:
            self.worker.start()

    async def close(self) -> None:
        """Stops the worker and releases the catalog session."""
        await self.worker.stop()
        await self.catalog.close()

    def _list_map_files(self) -> list[str]:
        return sorted(
            p.name for p in self.maps_dir.iterdir() if is_archive_candidate(p)
        )

    async def queue_maps_to_cache(self) -> int:
        """
        Queues every archive on disk that is neither cached nor quarantined.
        Returns the number of newly queued names.
        """
        map_files = await asyncio.to_thread(self._list_map_files)
        cached_keys = await self.store.cached_file_names()
        errored_files = set(await self.store.list_errors())

        queued = 0
        for file_name in map_files:
            if map_key(file_name) in cached_keys or file_name in errored_files:
                continue
            if self.queue.enqueue(file_name):
                queued += 1
        return queued

    def _is_installed(
        self, *, script_name: str | None = None, key: str | None = None
    ) -> bool:
        return any(
            (script_name is not None and m.script_name == script_name)
            or (key is not None and m.file_name == key)
            for m in self.installed_maps
        )

    def _is_downloading(self, name: str, file_name: str | None = None) -> bool:
        return any(
            d.name == name or (file_name is not None and d.file_name == file_name)
            for d in self.current_downloads
        )

    async def install_maps(
        self, script_names: list[str], host: str | None = None
    ) -> None:
        """Installs several maps one after another."""
        for script_name in script_names:
            await self.install_map(script_name, host)

    async def install_map(self, script_name: str, host: str | None = None) -> None:
        """
        Resolves a script name through the catalog and installs the archive.

        Raises:
            CatalogLookupError: If the map cannot be resolved.
        """
        if self._is_installed(script_name=script_name) or self._is_downloading(
            script_name
        ):
            return

        entry = await self.catalog.lookup(script_name)
        await self.install_map_by_filename(entry.filename, entry.name, host)

    async def install_map_by_filename(
        self, filename: str, script_name: str, host: str | None = None
    ) -> None:
        """
        Downloads an archive into the maps directory and queues it for caching.

        Failures are logged and leave no partial state behind; they are not
        quarantined, so a later call may try again.
        """
        try:
            archive_name = safe_archive_name(filename)
        except ValueError as e:
            self.stats.downloads_failed += 1
            log.error(f"[red]Failed to install map {script_name}: {e}[/red]")
            return

        if self._is_installed(key=map_key(archive_name)) or self._is_downloading(
            script_name, archive_name
        ):
            return

        host = host or self.config.default_host
        url = f"{host}{filename}"
        destination = self.maps_dir / archive_name
        download_info = DownloadInfo(name=script_name, file_name=archive_name)
        self.current_downloads.append(download_info)
        self.on_download_start.dispatch(download_info)

        def on_progress(current_bytes: int, total_bytes: int | None) -> None:
            download_info.current_bytes = current_bytes
            download_info.total_bytes = total_bytes

        start = time.monotonic()
        try:
            log.debug(f"Downloading map: {archive_name}")
            written = await self.downloader.download_file(url, destination, on_progress)
            log.debug(
                f"Map downloaded: {archive_name} ({time.monotonic() - start:.2f}s)"
            )

            self._forget_download(download_info)
            self.stats.downloads_completed += 1
            self.stats.bytes_downloaded += written
            self.on_download_complete.dispatch(download_info)

            self.queue.enqueue(archive_name)
        except Exception as e:
            self.stats.downloads_failed += 1
            log.error(f"[red]Failed to install map {filename} from {url}: {e}[/red]")
            self._forget_download(download_info)
            with suppress(OSError):
                partial_path(destination).unlink(missing_ok=True)

    def _forget_download(self, download_info: DownloadInfo) -> None:
        with suppress(ValueError):
            self.current_downloads.remove(download_info)

    def get_map_images(self, map_or_file_name: MapData | str) -> MapImages:
        """Returns the preview image paths for a cached map or an archive name."""
        if isinstance(map_or_file_name, MapData):
            return preview_images(self.images_dir, map_or_file_name.file_name)
        return get_map_images(self.images_dir, map_or_file_name)

    async def get_map(
        self, *, file_name: str | None = None, script_name: str | None = None
    ) -> MapData | None:
        if file_name is not None:
            return await self.store.find_by_file_name(map_key(file_name))
        if script_name is not None:
            return await self.store.find_by_script_name(script_name)
        raise ValueError("Provide either file_name or script_name.")

    async def wait_for_map(
        self, script_name: str, timeout: float | None = None
    ) -> MapData:
        """Resolves once a map with the given script name has been cached."""
        loop = asyncio.get_running_loop()
        future: asyncio.Future[MapData] = loop.create_future()

        def on_cached(map_data: MapData) -> bool:
            if map_data.script_name != script_name:
                return False
            if not future.done():
                future.set_result(map_data)
            return True

        unsubscribe = self.on_map_cached.once(on_cached)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            unsubscribe()

    async def uncache_map(
        self, *, file_name: str | None = None, script_name: str | None = None
    ) -> bool:
        """
        Deletes a cached map's previews and database row. The archive and any
        error record are left alone. Returns False if the map was not cached.
        """
        map_data = await self.get_map(file_name=file_name, script_name=script_name)
        if not map_data:
            return False

        for image_path in self.get_map_images(map_data).all():
            with suppress(FileNotFoundError):
                await asyncio.to_thread(image_path.unlink)

        await self.store.delete(map_data.map_id)
        self.installed_maps[:] = [
            m for m in self.installed_maps if m.map_id != map_data.map_id
        ]
        log.info(f"Uncached {map_data.script_name}")
        return True

    async def forgive_error(self, file_name: str) -> bool:
        """Removes an archive from quarantine and queues it again if present."""
        removed = await self.store.remove_error(file_name)
        if removed and (self.maps_dir / file_name).is_file():
            self.queue.enqueue(file_name)
        return removed
