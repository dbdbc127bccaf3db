"""
Pydantic models for cached map metadata and the in-memory download records.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

# Columns that identify a map row; every other column may be updated in place.
KEY_FIELDS = ("map_id", "script_name", "file_name")
JSON_FIELDS = ("start_positions", "map_info")


class StartPosition(BaseModel):
    """A team start position in world coordinates."""

    x: float
    z: float


class MapData(BaseModel):
    """Metadata extracted from a single map archive."""

    map_id: int | None = None
    script_name: str
    file_name: str
    friendly_name: str
    description: str | None = None
    map_hardness: float
    gravity: float
    tidal_strength: float
    max_metal: float
    extractor_radius: float
    min_wind: float
    max_wind: float
    start_positions: list[StartPosition] | None = None
    width: float
    height: float
    min_depth: float
    max_depth: float
    map_info: dict[str, Any] | None = Field(default=None, repr=False)

    class Config:
        """Pydantic model configuration."""

        str_strip_whitespace = True

    @classmethod
    def column_names(cls) -> list[str]:
        """Database columns in declaration order, excluding the primary key."""
        return [name for name in cls.model_fields if name != "map_id"]

    @classmethod
    def non_key_columns(cls) -> list[str]:
        return [name for name in cls.model_fields if name not in KEY_FIELDS]

    def to_row(self) -> dict[str, Any]:
        """Serializes the model into SQLite-compatible column values."""
        row = self.model_dump(exclude={"map_id"})
        for name in JSON_FIELDS:
            if row[name] is not None:
                row[name] = json.dumps(row[name])
        return row

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "MapData":
        """Builds a model from a `sqlite3.Row` mapping."""
        values = dict(row)
        for name in JSON_FIELDS:
            if values.get(name) is not None:
                values[name] = json.loads(values[name])
        return cls(**values)


@dataclass(frozen=True)
class MapImages:
    """Locations of the four preview images generated for a map."""

    texture: Path
    height: Path
    metal: Path
    type: Path

    def all(self) -> tuple[Path, Path, Path, Path]:
        return (self.texture, self.height, self.metal, self.type)


@dataclass(eq=False)
class DownloadInfo:
    """Tracks a single in-flight map download."""

    name: str
    file_name: str
    type: str = "map"
    current_bytes: int = 0
    total_bytes: int | None = None

    @property
    def fraction(self) -> float | None:
        """Completed fraction, or None while the total size is unknown."""
        if not self.total_bytes:
            return None
        return min(self.current_bytes / self.total_bytes, 1.0)
