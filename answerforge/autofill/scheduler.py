"""
Sequential work scheduling with an injectable delay.

Questions are answered strictly one after another. A DelayStrategy waits
between consecutive items as a courtesy to the generation service. Tests
inject NoDelay.
"""

import asyncio
from typing import Awaitable, Callable, Generic, Iterable, List, Protocol, TypeVar

T = TypeVar("T")


class DelayStrategy(Protocol):
    """Pause between two work items."""

    async def wait(self) -> None:
        ...


class FixedDelay:
    """Sleep a fixed number of seconds."""

    def __init__(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("Delay must be >= 0")
        self.seconds = seconds

    async def wait(self) -> None:
        if self.seconds > 0:
            await asyncio.sleep(self.seconds)


class NoDelay:
    """Do not pause."""

    async def wait(self) -> None:
        return None


class WorkQueue(Generic[T]):
    """
    Ordered pending items consumed one at a time.

    Example:
        queue = WorkQueue(questions, FixedDelay(0.25))
        await queue.drain(answer_one)
    """

    def __init__(self, items: Iterable[T], delay: DelayStrategy) -> None:
        self._pending: List[T] = list(items)
        self.delay = delay
        self.completed = 0

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def pending(self) -> List[T]:
        return list(self._pending)

    async def drain(self, handler: Callable[[T], Awaitable[None]]) -> int:
        """Run handler on each item in order.

        The delay runs between consecutive items only. The first handler
        exception stops the drain and is re-raised; the failed item and
        everything after it stay pending.

        Returns:
            Number of items handled.
        """
        handled = 0
        while self._pending:
            if handled:
                await self.delay.wait()
            await handler(self._pending[0])
            self._pending.pop(0)
            handled += 1
            self.completed += 1
        return handled
