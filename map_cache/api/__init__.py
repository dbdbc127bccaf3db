"""
Map Catalog Layer.

This package handles all communication with the remote map catalog.
"""

from .catalog import CatalogClient, CatalogEntry

__all__ = ["CatalogClient", "CatalogEntry"]
