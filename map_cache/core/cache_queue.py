"""
The deduplicating work list of archive file names waiting to be cached.
"""

import asyncio
import logging

log = logging.getLogger(__name__)


class CacheQueue:
    """
    An insertion-ordered set of pending archive names.

    Names stay in the queue while they are being processed and are only
    removed once the worker reaches a terminal outcome for them, so a name can
    never be queued twice for the same work.
    """

    def __init__(self):
        self._pending: dict[str, None] = {}
        self._wakeup = asyncio.Event()

    def enqueue(self, file_name: str) -> bool:
        """Adds a name. Returns False if it was already pending."""
        if file_name in self._pending:
            return False
        self._pending[file_name] = None
        self._wakeup.set()
        log.debug(f"Queued for caching: {file_name}")
        return True

    def peek_one(self) -> str | None:
        """Returns the oldest pending name without removing it."""
        return next(iter(self._pending), None)

    def remove(self, file_name: str) -> None:
        self._pending.pop(file_name, None)

    def pending(self) -> list[str]:
        """Snapshot of the pending names in processing order."""
        return list(self._pending)

    async def wait(self, timeout: float) -> bool:
        """
        Suspends until a name is enqueued or `timeout` seconds pass.
        Returns True if the queue is non-empty afterwards.
        """
        if not self._pending:
            self._wakeup.clear()
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout)
            except asyncio.TimeoutError:
                pass
        return bool(self._pending)

    def __contains__(self, file_name: object) -> bool:
        return file_name in self._pending

    def __len__(self) -> int:
        return len(self._pending)
