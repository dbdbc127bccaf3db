"""
Storage Layer.

This package handles all data persistence: the configuration file and the
SQLite map cache with its error quarantine.
"""

from .config_manager import ConfigManager
from .map_store import MapStore

__all__ = ["ConfigManager", "MapStore"]
