"""
Dataclass for tracking cache worker session statistics.
"""

import time
from dataclasses import dataclass, field


@dataclass
class CacheStats:
    """Counts the outcomes of the cache worker and the install flow."""

    maps_cached: int = 0
    maps_skipped: int = 0
    maps_failed: int = 0
    downloads_completed: int = 0
    downloads_failed: int = 0
    bytes_downloaded: int = 0
    parse_seconds: float = 0.0
    started_at: float = field(default_factory=time.monotonic, repr=False)

    @property
    def maps_processed(self) -> int:
        return self.maps_cached + self.maps_skipped + self.maps_failed

    @property
    def average_parse_seconds(self) -> float:
        """Mean duration of a parse attempt, successful or not."""
        attempts = self.maps_cached + self.maps_failed
        return self.parse_seconds / attempts if attempts else 0.0

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.started_at
