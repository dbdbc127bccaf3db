"""
Tests for the archive downloader and the catalog client, using in-memory
stand-ins for the aiohttp session.
"""

from __future__ import annotations

from pathlib import Path
from unittest.mock import Mock

import aiohttp
import pytest

from map_cache.api.catalog import CatalogClient
from map_cache.exceptions import CatalogLookupError, DownloadError
from map_cache.media.downloader import Downloader


class FakeContent:
    def __init__(self, chunks: list[bytes], error: Exception | None = None):
        self._chunks = chunks
        self._error = error

    async def iter_chunked(self, size: int):
        for chunk in self._chunks:
            yield chunk
        if self._error is not None:
            raise self._error


class FakeResponse:
    def __init__(
        self,
        chunks: list[bytes] | None = None,
        status: int = 200,
        payload=None,
        fail_after: int | None = None,
    ):
        self.chunks = chunks or []
        self.status = status
        self.reason = "OK" if status == 200 else "Not Found"
        self.payload = payload
        self.content_length = sum(len(c) for c in self.chunks)
        self.content = FakeContent(self.chunks)
        if fail_after is not None:
            self.content = FakeContent(
                self.chunks[:fail_after],
                aiohttp.ClientPayloadError("connection reset"),
            )

    def raise_for_status(self) -> None:
        if self.status >= 400:
            raise aiohttp.ClientResponseError(
                Mock(), (), status=self.status, message=self.reason
            )

    async def json(self, content_type=None):
        return self.payload

    async def __aenter__(self) -> FakeResponse:
        return self

    async def __aexit__(self, *exc) -> bool:
        return False


class FakeSession:
    """Serves queued responses (or raises queued exceptions) in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[tuple[str, dict | None]] = []
        self.closed = False

    def get(self, url: str, params: dict | None = None, **kwargs):
        self.requests.append((url, params))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def close(self) -> None:
        self.closed = True


class TestDownloader:
    """Test streaming, retries and cleanup."""

    @pytest.mark.asyncio
    async def test_streams_to_destination(self, temp_dir: Path) -> None:
        session = FakeSession(FakeResponse([b"abc", b"defg"]))
        progress = []
        destination = temp_dir / "map.sd7"

        written = await Downloader(session=session).download_file(
            "https://mirror/map.sd7", destination, lambda c, t: progress.append((c, t))
        )

        assert written == 7
        assert destination.read_bytes() == b"abcdefg"
        assert progress == [(0, 7), (3, 7), (7, 7)]
        assert list(temp_dir.iterdir()) == [destination]

    @pytest.mark.asyncio
    async def test_http_error_is_not_retried(self, temp_dir: Path) -> None:
        session = FakeSession(FakeResponse(status=404), FakeResponse([b"x"]))

        with pytest.raises(DownloadError):
            await Downloader(session=session, base_delay=0).download_file(
                "https://mirror/missing.sd7", temp_dir / "missing.sd7"
            )

        assert len(session.requests) == 1
        assert list(temp_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_transport_error_is_retried(self, temp_dir: Path) -> None:
        session = FakeSession(
            aiohttp.ClientConnectionError("refused"), FakeResponse([b"ok"])
        )

        written = await Downloader(session=session, base_delay=0).download_file(
            "https://mirror/map.sd7", temp_dir / "map.sd7"
        )

        assert written == 2
        assert len(session.requests) == 2

    @pytest.mark.asyncio
    async def test_interrupted_stream_leaves_no_partial_file(
        self, temp_dir: Path
    ) -> None:
        session = FakeSession(
            FakeResponse([b"abc", b"def"], fail_after=1),
            FakeResponse([b"abc", b"def"], fail_after=1),
        )

        with pytest.raises(DownloadError):
            await Downloader(
                session=session, max_attempts=2, base_delay=0
            ).download_file("https://mirror/map.sd7", temp_dir / "map.sd7")

        assert list(temp_dir.iterdir()) == []


class TestCatalogClient:
    """Test resolving script names."""

    @pytest.mark.asyncio
    async def test_lookup(self) -> None:
        session = FakeSession(
            FakeResponse(payload=[{"filename": "ccr_v3.sd7", "name": "CCR v3"}])
        )
        client = CatalogClient("https://catalog/json.php", session=session)

        entry = await client.lookup("CCR v3")

        assert entry.filename == "ccr_v3.sd7"
        assert entry.name == "CCR v3"
        assert session.requests == [
            ("https://catalog/json.php", {"springname": "CCR v3", "category": "map"})
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            FakeResponse(payload=[]),
            FakeResponse(payload={"error": "bad"}),
            FakeResponse(payload=[{"name": "no file"}]),
            FakeResponse(status=500),
            aiohttp.ClientConnectionError("offline"),
        ],
    )
    async def test_lookup_failures(self, response) -> None:
        client = CatalogClient(
            "https://catalog/json.php", session=FakeSession(response)
        )

        with pytest.raises(CatalogLookupError):
            await client.lookup("Missing Map")

    @pytest.mark.asyncio
    async def test_close_leaves_borrowed_session_open(self) -> None:
        session = FakeSession()
        client = CatalogClient(session=session)

        await client.close()

        assert session.closed is False
