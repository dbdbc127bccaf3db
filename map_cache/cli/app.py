"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from map_cache import __version__
from map_cache.core.map_content import MapContent
from map_cache.exceptions import CatalogLookupError, MapCacheError
from map_cache.media.downloader import close_connection_pool
from map_cache.models.config import CacheConfig
from map_cache.storage.config_manager import ConfigManager
from map_cache.storage.map_store import MapStore

from .formatters import (
    print_config,
    print_errors_table,
    print_maps_table,
    print_stats_table,
    print_summary_panel,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("map_cache")

app = typer.Typer(
    name="map-cache",
    help=(
        "Downloads Spring map archives and caches their metadata and previews."
        " Use 'map-cache <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "map-cache"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _load_config(cli_options: dict | None = None) -> CacheConfig:
    try:
        return ConfigManager(CONFIG_FILE).load_config(cli_options)
    except MapCacheError as e:
        console.print(f"[bold red]Error: {e}[/bold red]")
        raise typer.Exit(code=1) from e


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-v for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """Spring map cache CLI"""
    if version:
        console.print(f"[bold]map-cache[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    logging.getLogger("map_cache").setLevel("DEBUG" if verbose >= 1 else "INFO")

    if show_config:
        if not CONFIG_FILE.is_file():
            console.print(
                "[red]✗ Config file not found.[/] Run [cyan]map-cache init[/cyan]"
                " first."
            )
            raise typer.Exit(code=1)
        config = _load_config()
        print_config(CONFIG_FILE, config.model_dump(exclude={"config_path"}))
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    content_path: Path = typer.Option(  # noqa: B008
        ...,
        "--content-path",
        "-c",
        help="Directory holding the maps/ and map-images/ folders.",
    ),
    resources_path: Path | None = typer.Option(  # noqa: B008
        None,
        "--resources-path",
        "-r",
        help="Directory containing the 7za binary (defaults to the content path).",
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite an existing configuration."
    ),
):
    """Create the configuration file."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm("Configuration file already exists. Overwrite it?")
    ):
        raise typer.Abort()

    settings = {"content_path": str(content_path.expanduser().resolve())}
    if resources_path:
        settings["resources_path"] = str(resources_path.expanduser().resolve())

    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except MapCacheError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1) from e

    console.print(
        f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]"
    )
    console.print("Ready! Try: [cyan]map-cache sync[/cyan]")


async def _run_session(content: MapContent, watch: bool, install: list[str]) -> None:
    """Starts the cache, runs the installs and waits for the queue to drain."""
    async with ProgressManager(console) as progress_manager:
        progress_manager.attach(content)
        await content.init()

        if install:
            results = await asyncio.gather(
                *(content.install_map(name) for name in install),
                return_exceptions=True,
            )
            for name, result in zip(install, results):
                if isinstance(result, CatalogLookupError):
                    log.error(f"[red]✗ {result}[/red]")
                elif isinstance(result, Exception):
                    log.error(f"[red]✗ Could not install {name}: {result}[/red]")

        if watch:
            console.print("[dim]Watching for new archives (Ctrl+C to stop).[/dim]")
            while True:
                await asyncio.sleep(30)
                await content.queue_maps_to_cache()
        await content.worker.wait_until_idle()


def _run_cache_session(
    watch: bool = False, install: list[str] | None = None, host: str | None = None
) -> None:
    cli_options = {"default_host": host} if host else None
    config = _load_config(cli_options)

    async def _async():
        content = MapContent(config)
        try:
            await _run_session(content, watch, install or [])
        finally:
            await content.close()
            await close_connection_pool()
        return content

    content = asyncio.run(_async())
    print_summary_panel(content.stats)


@app.command()
def sync(
    watch: bool = typer.Option(
        False,
        "--watch",
        "-w",
        help="Keep running and rescan the maps directory periodically.",
    ),
):
    """Cache every archive in the maps directory that is not cached yet."""
    _run_cache_session(watch=watch)


@app.command()
def install(
    names: list[str] = typer.Argument(  # noqa: B008
        ..., help="Script names of the maps to install, e.g. 'Comet Catcher Redux'."
    ),
    host: str | None = typer.Option(
        None, "--host", help="Mirror URL to download archives from."
    ),
):
    """Download maps by name and cache them."""
    _run_cache_session(install=names, host=host)


@app.command(name="list")
def list_maps():
    """List the cached maps."""
    config = _load_config()

    async def _list():
        store = MapStore(config.database_path)
        await store.initialize()
        return await store.list_cached()

    try:
        print_maps_table(asyncio.run(_list()))
    except MapCacheError as e:
        console.print(f"[red]Error accessing map cache: {e}[/red]")
        raise typer.Exit(code=1) from e


@app.command()
def evict(
    name: str = typer.Argument(..., help="Script name (or file name with --file)."),
    by_file: bool = typer.Option(
        False, "--file", help="Treat NAME as an archive file name."
    ),
):
    """Remove a map's metadata and previews from the cache (keeps the archive)."""
    config = _load_config()

    async def _evict() -> bool:
        content = MapContent(config)
        await content.store.initialize()
        if by_file:
            return await content.uncache_map(file_name=name)
        return await content.uncache_map(script_name=name)

    if asyncio.run(_evict()):
        console.print(f"[green]✓ Evicted '{name}'.[/green]")
    else:
        console.print(f"[yellow]'{name}' is not cached.[/yellow]")


@app.command()
def errors():
    """List archives that failed to parse and are excluded from syncing."""
    config = _load_config()

    async def _errors():
        store = MapStore(config.database_path)
        await store.initialize()
        return await store.list_errors()

    print_errors_table(asyncio.run(_errors()))


@app.command()
def forgive(
    file_name: str = typer.Argument(..., help="Archive file name, e.g. 'foo.sd7'."),
):
    """Remove an archive from quarantine so the next sync retries it."""
    config = _load_config()

    async def _forgive() -> bool:
        store = MapStore(config.database_path)
        await store.initialize()
        return await store.remove_error(file_name)

    if asyncio.run(_forgive()):
        console.print(f"[green]✓ '{file_name}' will be retried next sync.[/green]")
    else:
        console.print(f"[yellow]'{file_name}' is not quarantined.[/yellow]")


@app.command()
def stats():
    """Show statistics from the map cache."""
    config = _load_config()

    async def _get_stats():
        store = MapStore(config.database_path)
        await store.initialize()
        return await store.get_stats()

    stats_data = asyncio.run(_get_stats())
    if stats_data:
        print_stats_table(stats_data)
    else:
        console.print("[yellow]Could not retrieve stats.[/yellow]")


@app.command()
def vacuum():
    """Optimize the map cache database."""
    config = _load_config()

    async def _vacuum():
        console.print("[cyan]Optimizing map cache database...[/cyan]")
        store = MapStore(config.database_path)
        await store.initialize()
        return await store.vacuum()

    if asyncio.run(_vacuum()):
        console.print("[green]✓ Database optimized.[/green]")
    else:
        console.print("[red]✗ Optimization failed.[/red]")
