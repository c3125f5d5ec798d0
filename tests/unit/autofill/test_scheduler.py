"""
Tests for sequential work scheduling.

Organization
------------
- TestFixedDelay: Delay validation and sleeping
- TestWorkQueue: Ordering, delays between items, failure handling
"""

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from answerforge.autofill.scheduler import FixedDelay, NoDelay, WorkQueue


class CountingDelay:
    def __init__(self) -> None:
        self.waits = 0

    async def wait(self) -> None:
        self.waits += 1


class TestFixedDelay:
    """Tests for FixedDelay."""

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            FixedDelay(-1)

    def test_sleeps_configured_seconds(self):
        with patch(
            "answerforge.autofill.scheduler.asyncio.sleep", new=AsyncMock()
        ) as sleep:
            asyncio.run(FixedDelay(0.25).wait())

        sleep.assert_awaited_once_with(0.25)

    def test_zero_does_not_sleep(self):
        with patch(
            "answerforge.autofill.scheduler.asyncio.sleep", new=AsyncMock()
        ) as sleep:
            asyncio.run(FixedDelay(0).wait())

        sleep.assert_not_awaited()


class TestWorkQueue:
    """Tests for WorkQueue.drain()."""

    def test_handles_items_in_order(self):
        seen = []

        async def handler(item):
            seen.append(item)

        queue = WorkQueue([3, 1, 2], NoDelay())
        handled = asyncio.run(queue.drain(handler))

        assert seen == [3, 1, 2]
        assert handled == 3
        assert len(queue) == 0

    def test_delay_only_between_items(self):
        delay = CountingDelay()

        async def handler(item):
            return None

        asyncio.run(WorkQueue(["a", "b", "c"], delay).drain(handler))

        assert delay.waits == 2

    def test_single_item_never_waits(self):
        delay = CountingDelay()

        async def handler(item):
            return None

        asyncio.run(WorkQueue(["a"], delay).drain(handler))

        assert delay.waits == 0

    def test_failure_leaves_item_pending(self):
        async def handler(item):
            if item == "b":
                raise RuntimeError("model down")

        queue = WorkQueue(["a", "b", "c"], NoDelay())

        with pytest.raises(RuntimeError):
            asyncio.run(queue.drain(handler))

        assert queue.completed == 1
        assert queue.pending == ["b", "c"]
