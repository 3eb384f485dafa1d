"""In-process asyncio queue implementation of FixQueue."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator, TYPE_CHECKING

if TYPE_CHECKING:
    from mapmotion.queue.base import FixEvent


class AsyncioFixQueue:
    """FixQueue backed by a bounded asyncio.Queue. Zero dependencies.

    Must only be touched from the event loop thread.
    """

    def __init__(self, max_size: int = 1_000) -> None:
        self._queue: asyncio.Queue[FixEvent] = asyncio.Queue(maxsize=max_size)

    def offer(self, event: FixEvent) -> bool:
        """Enqueue without waiting. Returns False when the queue is full."""
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull:
            return False
        return True

    async def iterate(self) -> AsyncIterator[FixEvent]:
        while True:
            yield await self._queue.get()

    def drain(self) -> int:
        """Discard everything queued. Returns the number of dropped events."""
        dropped = 0
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return dropped
            dropped += 1

    def qsize(self) -> int:
        return self._queue.qsize()
