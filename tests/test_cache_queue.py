"""
Tests for the pending-archive queue and the notification signal.
"""

from __future__ import annotations

import asyncio
import logging

import pytest

from map_cache.core.cache_queue import CacheQueue
from map_cache.core.signal import Signal


class TestCacheQueue:
    """Test deduplication and ordering."""

    def test_enqueue_deduplicates(self) -> None:
        queue = CacheQueue()

        assert queue.enqueue("foo.sdz") is True
        assert queue.enqueue("foo.sdz") is False
        assert len(queue) == 1

    def test_peek_keeps_name_pending(self) -> None:
        """A peeked name stays queued until it is explicitly removed."""
        queue = CacheQueue()
        queue.enqueue("a.sdz")
        queue.enqueue("b.sd7")

        assert queue.peek_one() == "a.sdz"
        assert queue.peek_one() == "a.sdz"
        assert "a.sdz" in queue

        queue.remove("a.sdz")
        assert queue.peek_one() == "b.sd7"
        assert queue.pending() == ["b.sd7"]

    def test_remove_unknown_name(self) -> None:
        queue = CacheQueue()
        queue.remove("missing.sdz")
        assert queue.peek_one() is None

    def test_requeue_after_removal(self) -> None:
        queue = CacheQueue()
        queue.enqueue("a.sdz")
        queue.remove("a.sdz")

        assert queue.enqueue("a.sdz") is True

    @pytest.mark.asyncio
    async def test_wait_times_out_when_empty(self) -> None:
        queue = CacheQueue()
        assert await queue.wait(0.01) is False

    @pytest.mark.asyncio
    async def test_wait_wakes_on_enqueue(self) -> None:
        """Waiting returns as soon as a name arrives, well before the timeout."""
        queue = CacheQueue()
        waiter = asyncio.create_task(queue.wait(5.0))
        await asyncio.sleep(0)

        queue.enqueue("late.sdz")

        assert await asyncio.wait_for(waiter, 1.0) is True


class TestSignal:
    """Test subscription handling."""

    def test_dispatch_in_registration_order(self) -> None:
        signal: Signal[int] = Signal("test")
        received = []
        signal.subscribe(lambda v: received.append(("first", v)))
        signal.subscribe(lambda v: received.append(("second", v)))

        signal.dispatch(7)

        assert received == [("first", 7), ("second", 7)]

    def test_unsubscribe(self) -> None:
        signal: Signal[int] = Signal("test")
        received = []
        unsubscribe = signal.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        signal.dispatch(1)

        assert received == []
        assert len(signal) == 0

    def test_once_waits_for_accepted_value(self) -> None:
        """A one-shot callback stays registered while it returns False."""
        signal: Signal[int] = Signal("test")
        received = []

        def on_even(value: int) -> bool:
            if value % 2:
                return False
            received.append(value)
            return True

        signal.once(on_even)
        signal.dispatch(1)
        signal.dispatch(2)
        signal.dispatch(4)

        assert received == [2]
        assert len(signal) == 0

    def test_failing_subscriber_does_not_block_others(self, caplog) -> None:
        signal: Signal[str] = Signal("test")
        received = []

        def broken(_: str) -> None:
            raise RuntimeError("boom")

        signal.subscribe(broken)
        signal.subscribe(received.append)

        with caplog.at_level(logging.WARNING):
            signal.dispatch("value")

        assert received == ["value"]
        assert "boom" in caplog.text
