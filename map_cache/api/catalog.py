"""
Async client for the SpringFiles JSON catalog, used to resolve a map's script
name to the archive file name published on the mirrors.
"""

import logging
from dataclasses import dataclass
from typing import Any

import aiohttp

from map_cache.exceptions import CatalogLookupError
from map_cache.models.config import DEFAULT_CATALOG_URL

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CatalogEntry:
    """A single catalog hit."""

    filename: str
    name: str


class CatalogClient:
    """Looks up maps by script name. A single request, no retries."""

    def __init__(
        self,
        catalog_url: str = DEFAULT_CATALOG_URL,
        session: aiohttp.ClientSession | None = None,
    ):
        self.catalog_url = catalog_url
        self._session = session
        self._owns_session = session is None

    async def _initialize_session(self) -> aiohttp.ClientSession:
        """Ensures an active aiohttp session is available."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Accept-Encoding": "gzip, deflate"},
                timeout=aiohttp.ClientTimeout(total=30, connect=10),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Gracefully closes the aiohttp session if this client created it."""
        if self._owns_session and self._session and not self._session.closed:
            await self._session.close()

    async def lookup(self, script_name: str) -> CatalogEntry:
        """
        Resolves a map script name to its catalog entry.

        Raises:
            CatalogLookupError: On transport errors, non-200 responses, or when
            the catalog has no match.
        """
        session = await self._initialize_session()
        params = {"springname": script_name, "category": "map"}
        try:
            async with session.get(self.catalog_url, params=params) as response:
                if response.status != 200:
                    raise CatalogLookupError(
                        f"Catalog lookup for '{script_name}' failed: "
                        f"HTTP {response.status} {response.reason}"
                    )
                results: Any = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            raise CatalogLookupError(
                f"Catalog lookup for '{script_name}' failed: {e}"
            ) from e

        if not isinstance(results, list) or not results:
            raise CatalogLookupError(f"{script_name} not found on the map catalog")

        first = results[0]
        try:
            entry = CatalogEntry(filename=first["filename"], name=first["name"])
        except (KeyError, TypeError) as e:
            raise CatalogLookupError(
                f"Malformed catalog entry for '{script_name}': {first!r}"
            ) from e
        log.debug(f"Resolved '{script_name}' to '{entry.filename}'")
        return entry
