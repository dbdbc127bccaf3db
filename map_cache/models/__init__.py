"""
Data Models Layer.

This package contains the Pydantic models and dataclasses that define the core
data structures used throughout the application, such as configuration, cached
map metadata, downloads and statistics.
"""

from .config import CacheConfig
from .map_data import DownloadInfo, MapData, MapImages, StartPosition
from .stats import CacheStats

__all__ = [
    "CacheConfig",
    "CacheStats",
    "DownloadInfo",
    "MapData",
    "MapImages",
    "StartPosition",
]
