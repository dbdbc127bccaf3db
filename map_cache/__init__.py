"""
map-cache: downloads Spring map archives and caches their metadata and previews.
"""

__version__ = "0.3.0"
