"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from map_cache.models.map_data import MapData
from map_cache.models.stats import CacheStats
from map_cache.utils.formatting import format_duration, format_map_size, format_size


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `map-cache init --content-path <dir>` to create a configuration.",
            "• Use `map-cache --show-config` to inspect the current values.",
        ],
        "CatalogLookupError": [
            "• Check the spelling of the map name, including its version.",
            "• The catalog might be temporarily unavailable; try again later.",
        ],
        "StorageError": [
            "• The cache database may be locked by another process.",
            "• Run `map-cache vacuum` or delete the database to rebuild it.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• The map mirror might be temporarily unavailable.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Check your internet connection.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -v for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(Text("\n".join(suggestions)))

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration."""
    console = Console()
    content = "\n".join(f"{key} = {value}" for key, value in config_data.items())
    console.print(
        Panel(
            content,
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_maps_table(maps: list[MapData]):
    """Displays the installed maps."""
    console = Console()
    if not maps:
        console.print("[dim]No maps cached yet.[/dim]")
        return

    table = Table(title=f"Installed Maps ({len(maps)})", box=box.SIMPLE_HEAVY)
    table.add_column("Script Name", style="cyan")
    table.add_column("File", style="dim")
    table.add_column("Size", justify="right")
    table.add_column("Starts", justify="right")
    table.add_column("Wind", justify="right")
    table.add_column("Metal", justify="right", style="green")
    for map_data in sorted(maps, key=lambda m: m.script_name.lower()):
        table.add_row(
            map_data.script_name,
            map_data.file_name,
            format_map_size(map_data),
            str(len(map_data.start_positions or [])),
            f"{map_data.min_wind:g}-{map_data.max_wind:g}",
            f"{map_data.max_metal:g}",
        )
    console.print(table)


def print_errors_table(file_names: list[str]):
    """Displays the archives quarantined after a failed parse."""
    console = Console()
    if not file_names:
        console.print("[green]✓ No quarantined archives.[/green]")
        return
    table = Table(title="Quarantined Archives", box=box.SIMPLE)
    table.add_column("#", style="dim", justify="right")
    table.add_column("File", style="red")
    for i, file_name in enumerate(file_names, 1):
        table.add_row(str(i), file_name)
    console.print(table)
    console.print(
        "[dim]Use `map-cache forgive <file>` to retry an archive on the next sync."
        "[/dim]"
    )


def print_stats_table(stats_data: dict[str, Any]):
    """Displays map cache statistics."""
    console = Console()
    console.print(
        f"\n[bold]Cached Maps:[/] [green]{stats_data['total_maps']}[/green]"
        f"    [bold]Quarantined:[/] [red]{stats_data['total_errors']}[/red]\n"
    )

    if largest := stats_data.get("largest_maps"):
        table = Table(title="Largest Maps")
        table.add_column("Rank", style="dim")
        table.add_column("Map", style="cyan")
        table.add_column("Size", justify="right", style="green")
        for i, (script_name, width, height) in enumerate(largest, 1):
            table.add_row(str(i), script_name, f"{width:g}x{height:g}")
        console.print(table)


def print_summary_panel(stats: CacheStats):
    """Displays a summary of a sync or install session."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan", justify="right", width=20)
    table.add_column(style="white", justify="left")

    table.add_row("✓ Cached:", f"[bold green]{stats.maps_cached}[/bold green]")
    if stats.maps_skipped:
        table.add_row("○ Already Cached:", f"[yellow]{stats.maps_skipped}[/yellow]")
    if stats.maps_failed:
        table.add_row("✗ Failed:", f"[bold red]{stats.maps_failed}[/bold red]")
    if stats.downloads_completed or stats.downloads_failed:
        table.add_row(
            "⬇ Downloads:",
            f"{stats.downloads_completed} ok, {stats.downloads_failed} failed "
            f"({format_size(stats.bytes_downloaded)})",
        )
    if stats.maps_cached or stats.maps_failed:
        table.add_row("⏱ Avg. Parse:", f"{stats.average_parse_seconds:.2f}s")
    table.add_row("⏱ Duration:", format_duration(stats.elapsed_seconds))

    console.print(
        Panel(table, title="[bold]Session Summary[/bold]", border_style="cyan")
    )
