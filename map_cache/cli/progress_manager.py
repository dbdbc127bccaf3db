"""
Manages a Rich progress display for concurrent map downloads and caching.
"""

import asyncio
import logging
from contextlib import suppress

from rich.console import Console
from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)

from map_cache.core.map_content import MapContent
from map_cache.models.map_data import DownloadInfo, MapData

log = logging.getLogger("map_cache")


class ProgressManager:
    """
    Shows one progress bar per in-flight download and reports cached maps.

    The bars are driven by the lifecycle notifications of a `MapContent`; byte
    counters are sampled from the `DownloadInfo` records on a short interval.
    """

    REFRESH_INTERVAL = 0.2

    def __init__(self, console: Console):
        self.console = console
        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            BarColumn(bar_width=30),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            DownloadColumn(),
            "•",
            TransferSpeedColumn(),
            "•",
            TimeRemainingColumn(),
            console=console,
            transient=True,
        )
        self._tasks: dict[int, tuple[DownloadInfo, TaskID]] = {}
        self._unsubscribers: list = []
        self._refresh_task: asyncio.Task | None = None

    def attach(self, content: MapContent) -> None:
        """Subscribes to the notifications of a map content facade."""
        self._unsubscribers = [
            content.on_download_start.subscribe(self._on_download_start),
            content.on_download_complete.subscribe(self._on_download_complete),
            content.on_map_cached.subscribe(self._on_map_cached),
        ]

    def _on_download_start(self, download: DownloadInfo) -> None:
        task_id = self.progress.add_task(
            f"[cyan]{download.name}[/cyan]", total=download.total_bytes
        )
        self._tasks[id(download)] = (download, task_id)

    def _on_download_complete(self, download: DownloadInfo) -> None:
        entry = self._tasks.pop(id(download), None)
        if entry:
            self.progress.remove_task(entry[1])
        self.console.print(f"[green]✓ Downloaded[/green] {download.file_name}")

    def _on_map_cached(self, map_data: MapData) -> None:
        self.console.print(
            f"[green]✓ Cached[/green] {map_data.script_name} "
            f"[dim]({map_data.width:g}x{map_data.height:g})[/dim]"
        )

    def _refresh(self) -> None:
        for download, task_id in list(self._tasks.values()):
            self.progress.update(
                task_id, completed=download.current_bytes, total=download.total_bytes
            )

    async def _refresh_loop(self) -> None:
        while True:
            self._refresh()
            await asyncio.sleep(self.REFRESH_INTERVAL)

    async def __aenter__(self) -> "ProgressManager":
        self.progress.start()
        self._refresh_task = asyncio.create_task(self._refresh_loop())
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        if self._refresh_task:
            self._refresh_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._refresh_task
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        # downloads that never finished keep their bar until here
        for _, task_id in self._tasks.values():
            self.progress.remove_task(task_id)
        self._tasks.clear()
        self.progress.stop()
        return False
