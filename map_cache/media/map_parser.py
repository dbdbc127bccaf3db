"""
Extracts metadata and preview images from a map archive using the external
7-Zip binary.
"""

import asyncio
import logging
import tempfile
import time
from pathlib import Path
from typing import Any, Protocol

from map_cache.exceptions import MapParseError
from map_cache.models.map_data import MapData, StartPosition
from map_cache.utils.path import create_dir, get_map_images, map_key

from .mapinfo import json_safe, load_mapinfo, lookup
from .smf import SmfFile, render_previews

log = logging.getLogger(__name__)

# Engine defaults for values a mapinfo may leave out
DEFAULT_MAP_HARDNESS = 100.0
DEFAULT_GRAVITY = 130.0
DEFAULT_TIDAL_STRENGTH = 0.0
DEFAULT_MAX_METAL = 0.02
DEFAULT_EXTRACTOR_RADIUS = 500.0
DEFAULT_MIN_WIND = 5.0
DEFAULT_MAX_WIND = 25.0


class ArchiveParser(Protocol):
    """Anything that can turn a map archive into a `MapData` record."""

    async def parse(
        self, archive_path: Path, images_dir: Path, tool_path: Path
    ) -> MapData:
        """
        Parses `archive_path`, writing the four preview images to `images_dir`.

        Raises:
            MapParseError: If the archive is malformed or the tool fails.
        """
        ...


class SevenZipMapParser:
    """Unpacks `.sd7`/`.sdz` archives with 7za and reads the SMF inside."""

    def __init__(self, extract_timeout: float = 300.0):
        self.extract_timeout = extract_timeout

    async def parse(
        self, archive_path: Path, images_dir: Path, tool_path: Path
    ) -> MapData:
        start = time.monotonic()
        with tempfile.TemporaryDirectory(prefix="map-cache-") as temp_dir:
            extract_dir = Path(temp_dir)
            await self._extract(archive_path, extract_dir, tool_path)
            map_data = await asyncio.to_thread(
                self._read_extracted, archive_path, extract_dir, images_dir
            )
        log.debug(
            f"Parsed '{archive_path.name}' in {time.monotonic() - start:.2f}s "
            f"as '{map_data.script_name}'"
        )
        return map_data

    async def _extract(
        self, archive_path: Path, extract_dir: Path, tool_path: Path
    ) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                str(tool_path),
                "x",
                "-y",
                f"-o{extract_dir}",
                str(archive_path),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise MapParseError(f"Cannot run extraction tool '{tool_path}': {e}") from e

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), self.extract_timeout
            )
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise MapParseError(
                f"Extracting '{archive_path.name}' timed out after "
                f"{self.extract_timeout:.0f}s"
            ) from None

        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip().splitlines()
            raise MapParseError(
                f"7za exited with {process.returncode} for '{archive_path.name}': "
                f"{message[-1] if message else 'no output'}"
            )

    def _read_extracted(
        self, archive_path: Path, extract_dir: Path, images_dir: Path
    ) -> MapData:
        files = [p for p in extract_dir.rglob("*") if p.is_file()]
        smf_files = [p for p in files if p.suffix.lower() == ".smf"]
        if not smf_files:
            raise MapParseError(f"No .smf file inside '{archive_path.name}'")

        mapinfo_path = next(
            (
                p
                for p in files
                if p.parent == extract_dir and p.name.lower() == "mapinfo.lua"
            ),
            None,
        )
        mapinfo = load_mapinfo(mapinfo_path) if mapinfo_path else None

        smf = SmfFile.open(smf_files[0])
        create_dir(images_dir)
        render_previews(smf, get_map_images(images_dir, archive_path.name))

        return build_map_data(map_key(archive_path.name), smf, mapinfo)


def _float(table: Any, *path: str, default: float) -> float:
    value = lookup(table, *path, default=default)
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _start_positions(mapinfo: dict[str, Any] | None) -> list[StartPosition] | None:
    teams = lookup(mapinfo, "teams")
    if isinstance(teams, list):
        teams = dict(enumerate(teams))
    if not isinstance(teams, dict):
        return None

    positions = []
    for _, team in sorted(teams.items(), key=lambda item: str(item[0]).zfill(4)):
        pos = lookup(team, "startpos")
        x, z = lookup(pos, "x"), lookup(pos, "z")
        if x is not None and z is not None:
            positions.append(StartPosition(x=float(x), z=float(z)))
    return positions or None


def build_map_data(
    file_name: str, smf: SmfFile, mapinfo: dict[str, Any] | None
) -> MapData:
    """Combines the SMF header with the optional mapinfo table."""
    header = smf.header
    name = str(lookup(mapinfo, "name", default=Path(smf.name).stem))
    version = lookup(mapinfo, "version")
    description = lookup(mapinfo, "description")
    script_name = name
    if version and str(version) not in name:
        script_name = f"{name} {version}"

    return MapData(
        script_name=script_name,
        file_name=file_name,
        friendly_name=name.replace("_", " "),
        description=str(description) if description is not None else None,
        map_hardness=_float(mapinfo, "maphardness", default=DEFAULT_MAP_HARDNESS),
        gravity=_float(mapinfo, "gravity", default=DEFAULT_GRAVITY),
        tidal_strength=_float(mapinfo, "tidalstrength", default=DEFAULT_TIDAL_STRENGTH),
        max_metal=_float(mapinfo, "maxmetal", default=DEFAULT_MAX_METAL),
        extractor_radius=_float(
            mapinfo, "extractorradius", default=DEFAULT_EXTRACTOR_RADIUS
        ),
        min_wind=_float(mapinfo, "atmosphere", "minwind", default=DEFAULT_MIN_WIND),
        max_wind=_float(mapinfo, "atmosphere", "maxwind", default=DEFAULT_MAX_WIND),
        start_positions=_start_positions(mapinfo),
        width=header.width,
        height=header.height,
        min_depth=_float(mapinfo, "smf", "minheight", default=header.min_height),
        max_depth=_float(mapinfo, "smf", "maxheight", default=header.max_height),
        map_info=json_safe(mapinfo) if mapinfo else None,
    )
