"""
Media Processing Layer.

This package is responsible for all map file operations, including
downloading archives, extracting them and rendering preview images.
"""

from .downloader import Downloader
from .map_parser import ArchiveParser, SevenZipMapParser

__all__ = ["ArchiveParser", "Downloader", "SevenZipMapParser"]
