"""
Pydantic model for application configuration.
Provides robust validation for all settings.
"""

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_MAP_HOST = "https://springfiles.springrts.com/files/maps/"
DEFAULT_CATALOG_URL = "https://springfiles.springrts.com/json.php"


def default_tool_name() -> str:
    """Name of the bundled 7-Zip binary for the current platform."""
    return "7za.exe" if os.name == "nt" else "7za"


class CacheConfig(BaseModel):
    """A validated configuration model for the application."""

    # Paths
    content_path: str
    resources_path: str = ""
    tool_path: str = ""

    # Remote sources
    default_host: str = DEFAULT_MAP_HOST
    catalog_url: str = DEFAULT_CATALOG_URL

    # Worker & download settings
    poll_interval: float = 0.5
    max_downloads: int = 4
    download_attempts: int = 3

    # Internal fields not loaded from INI file
    config_path: str = Field("", repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("content_path")
    @classmethod
    def validate_content_path(cls, v: str) -> str:
        """Ensures the content directory is set."""
        if not v:
            raise ValueError("Content path cannot be empty.")
        return str(Path(v).expanduser())

    @field_validator("default_host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        """Ensures the mirror URL can be joined with a bare file name."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Default host must be an http(s) URL.")
        return v if v.endswith("/") else f"{v}/"

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: float) -> float:
        """Ensures the worker backoff is reasonable."""
        if v < 0.05 or v > 10:
            raise ValueError("Poll interval must be between 0.05 and 10 seconds.")
        return v

    @field_validator("max_downloads")
    @classmethod
    def validate_max_downloads(cls, v: int) -> int:
        """Ensures a reasonable number of concurrent downloads."""
        if v < 1 or v > 32:
            raise ValueError("Max downloads must be between 1 and 32.")
        return v

    @field_validator("download_attempts")
    @classmethod
    def validate_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Download attempts must be between 1 and 10.")
        return v

    @model_validator(mode="after")
    def resolve_tool_path(self) -> "CacheConfig":
        """Derives the 7za location from the resources directory when not set."""
        if not self.tool_path:
            base = Path(self.resources_path or self.content_path).expanduser()
            # bypass validate_assignment
            object.__setattr__(self, "tool_path", str(base / default_tool_name()))
        return self

    @property
    def maps_dir(self) -> Path:
        """Directory holding the downloaded map archives."""
        return Path(self.content_path) / "maps"

    @property
    def images_dir(self) -> Path:
        """Directory holding the generated map previews."""
        return Path(self.content_path) / "map-images"

    @property
    def database_path(self) -> Path:
        """SQLite cache file location."""
        return Path(self.content_path) / "map_cache.sqlite"

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
