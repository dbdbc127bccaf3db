"""
Core application engine for caching map metadata.

`MapContent` is the facade the rest of the application talks to. It feeds
archive names into the `CacheQueue`, which the single `CacheWorker` drains.
"""

from .cache_queue import CacheQueue
from .cache_worker import CacheWorker
from .map_content import MapContent
from .signal import Signal

__all__ = ["CacheQueue", "CacheWorker", "MapContent", "Signal"]
