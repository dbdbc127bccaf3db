"""
Defines custom exceptions for the application to allow for more specific error handling.
"""


class MapCacheError(Exception):
    """Base exception for all application-specific errors."""


class ConfigurationError(MapCacheError):
    """Raised for issues related to configuration loading or validation."""


class CatalogLookupError(MapCacheError):
    """Raised when a map cannot be resolved to a downloadable file name."""


class DownloadError(MapCacheError):
    """Raised when a map archive could not be transferred to disk."""


class MapParseError(MapCacheError):
    """
    Raised when an archive cannot be extracted or does not contain a readable map.
    Files failing with this error are quarantined and never retried automatically.
    """


class StorageError(MapCacheError):
    """Raised when the cache database rejects an operation."""
