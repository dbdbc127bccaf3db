"""
Handles the low-level downloading of map archives over HTTP with progress
callbacks and a shared connection pool.
"""

import asyncio
import logging
import os
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path

import aiofiles
import aiohttp

from map_cache.exceptions import DownloadError
from map_cache.utils.path import partial_path

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int | None], None]

_connection_pool: aiohttp.ClientSession | None = None
_pool_lock = asyncio.Lock()


async def get_connection_pool(max_downloads: int = 4) -> aiohttp.ClientSession:
    """
    Gets or creates a shared aiohttp ClientSession for downloads.

    This function ensures that only one connection pool is created for the
    lifetime of the application run.

    Args:
        max_downloads: Maximum concurrent downloads per mirror.
    """
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            return _connection_pool

        connector = aiohttp.TCPConnector(
            limit=max_downloads * 2,
            limit_per_host=max_downloads,
            ttl_dns_cache=600,  # 10 minutes
            keepalive_timeout=30,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=None, sock_connect=15, sock_read=90)
        _connection_pool = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={"Content-Type": "application/x-7z-compressed"},
        )
        log.debug(f"Created download pool with limit_per_host={max_downloads}")

    return _connection_pool


async def close_connection_pool() -> None:
    """Closes the shared global connection pool."""
    global _connection_pool
    async with _pool_lock:
        if _connection_pool and not _connection_pool.closed:
            await _connection_pool.close()
            _connection_pool = None
            log.debug("Shared downloader connection pool closed.")


class Downloader:
    """A low-level file downloader with retry logic for transport errors."""

    CHUNK_SIZE = 262144  # 256 KB

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.5,
        max_downloads: int = 4,
        session: aiohttp.ClientSession | None = None,
    ):
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.max_downloads = max_downloads
        self._session = session

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None:
            return self._session
        return await get_connection_pool(self.max_downloads)

    async def _fetch_once(
        self, url: str, destination: Path, on_progress: ProgressCallback | None
    ) -> int:
        session = await self._get_session()
        temp_path = partial_path(destination)
        async with session.get(url, allow_redirects=True) as response:
            # Non-2xx responses raise aiohttp.ClientResponseError
            response.raise_for_status()

            total_size = response.content_length
            if on_progress:
                on_progress(0, total_size)

            bytes_downloaded = 0
            async with aiofiles.open(temp_path, "wb") as f:
                async for chunk in response.content.iter_chunked(self.CHUNK_SIZE):
                    await f.write(chunk)
                    bytes_downloaded += len(chunk)
                    if on_progress:
                        on_progress(bytes_downloaded, total_size)

        await asyncio.to_thread(os.replace, temp_path, destination)
        return bytes_downloaded

    async def download_file(
        self,
        url: str,
        destination: Path,
        on_progress: ProgressCallback | None = None,
    ) -> int:
        """
        Streams `url` into `destination` and returns the number of bytes written.

        The payload is written next to the destination under a `.part` name and
        only renamed into place once complete, so a failed transfer never
        leaves a truncated archive behind.

        Raises:
            DownloadError: If every attempt failed.
        """
        last_exception: Exception | None = None
        for attempt in range(1, self.max_attempts + 1):
            try:
                return await self._fetch_once(url, destination, on_progress)
            except aiohttp.ClientResponseError as e:
                # HTTP status errors are not worth retrying
                last_exception = e
                break
            except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
                last_exception = e
                log.debug(
                    f"Download attempt {attempt}/{self.max_attempts} for "
                    f"'{destination.name}' failed: {e}. Retrying..."
                )
                if attempt < self.max_attempts:
                    await asyncio.sleep(self.base_delay * (2 ** (attempt - 1)))
            finally:
                with suppress(OSError):
                    partial_path(destination).unlink(missing_ok=True)

        raise DownloadError(
            f"Failed to download '{destination.name}' from {url}: {last_exception}"
        ) from last_exception
