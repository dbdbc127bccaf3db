"""
Reader for the Spring Map Format (.smf) binary and the preview images derived
from it.
"""

import logging
import struct
import sys
from array import array
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from map_cache.exceptions import MapParseError
from map_cache.models.map_data import MapImages

log = logging.getLogger(__name__)

SMF_MAGIC = b"spring map file\x00"
HEADER = struct.Struct("<16s7i2f7i")

# The minimap is a 1024x1024 DXT1 texture followed by its mipmaps.
MINIMAP_SIZE = 1024
MINIMAP_LEVEL0_BYTES = MINIMAP_SIZE * MINIMAP_SIZE // 2

# Map size units as shown in lobbies: 512 elmos, i.e. 64 squares of 8 elmos.
SQUARES_PER_MAP_UNIT = 64

JPEG_QUALITY = 85


@dataclass(frozen=True)
class SmfHeader:
    version: int
    map_id: int
    map_x: int
    map_y: int
    square_size: int
    texels_per_square: int
    tile_size: int
    min_height: float
    max_height: float
    heightmap_ptr: int
    typemap_ptr: int
    tiles_ptr: int
    minimap_ptr: int
    metalmap_ptr: int
    feature_ptr: int
    num_extra_headers: int

    @property
    def width(self) -> float:
        return self.map_x / SQUARES_PER_MAP_UNIT

    @property
    def height(self) -> float:
        return self.map_y / SQUARES_PER_MAP_UNIT


class SmfFile:
    """Random access to the sections of an in-memory SMF file."""

    def __init__(self, data: bytes, name: str = "map.smf"):
        self.name = name
        self._data = data
        self.header = self._read_header()

    @classmethod
    def open(cls, path: Path) -> "SmfFile":
        return cls(path.read_bytes(), path.name)

    def _read_header(self) -> SmfHeader:
        if len(self._data) < HEADER.size:
            raise MapParseError(f"{self.name}: file too short for an SMF header")
        magic, *fields = HEADER.unpack_from(self._data, 0)
        if magic != SMF_MAGIC:
            raise MapParseError(f"{self.name}: not a Spring map file")
        header = SmfHeader(*fields)
        if header.map_x <= 0 or header.map_y <= 0:
            raise MapParseError(
                f"{self.name}: invalid dimensions {header.map_x}x{header.map_y}"
            )
        return header

    def _section(self, offset: int, length: int, label: str) -> bytes:
        end = offset + length
        if offset <= 0 or end > len(self._data):
            raise MapParseError(f"{self.name}: {label} section is out of bounds")
        return self._data[offset:end]

    @property
    def heightmap_size(self) -> tuple[int, int]:
        return self.header.map_x + 1, self.header.map_y + 1

    @property
    def half_size(self) -> tuple[int, int]:
        """Resolution of the metal and type maps."""
        return self.header.map_x // 2, self.header.map_y // 2

    def heightmap(self) -> bytes:
        w, h = self.heightmap_size
        return self._section(self.header.heightmap_ptr, w * h * 2, "heightmap")

    def typemap(self) -> bytes:
        w, h = self.half_size
        return self._section(self.header.typemap_ptr, w * h, "typemap")

    def metalmap(self) -> bytes:
        w, h = self.half_size
        return self._section(self.header.metalmap_ptr, w * h, "metalmap")

    def minimap(self) -> bytes:
        return self._section(
            self.header.minimap_ptr, MINIMAP_LEVEL0_BYTES, "minimap"
        )


def heightmap_to_grayscale(raw: bytes) -> bytes:
    """Scales little-endian 16-bit heights into 8-bit, stretched to full contrast."""
    heights = array("H")
    heights.frombytes(raw)
    if sys.byteorder == "big":
        heights.byteswap()
    low, high = min(heights), max(heights)
    span = high - low
    if span == 0:
        return bytes(len(heights))
    return bytes((value - low) * 255 // span for value in heights)


def render_previews(smf: SmfFile, images: MapImages) -> None:
    """Writes the texture, height, metal and type previews as JPEG files."""
    texture = Image.frombytes(
        "RGBA", (MINIMAP_SIZE, MINIMAP_SIZE), smf.minimap(), "bcn", 1
    )
    texture.convert("RGB").save(images.texture, "JPEG", quality=JPEG_QUALITY)

    height = Image.frombytes(
        "L", smf.heightmap_size, heightmap_to_grayscale(smf.heightmap())
    )
    height.save(images.height, "JPEG", quality=JPEG_QUALITY)

    metal = Image.frombytes("L", smf.half_size, smf.metalmap())
    metal.save(images.metal, "JPEG", quality=JPEG_QUALITY)

    type_map = Image.frombytes("L", smf.half_size, smf.typemap())
    type_map.save(images.type, "JPEG", quality=JPEG_QUALITY)

    log.debug(f"Wrote previews for {smf.name}")
