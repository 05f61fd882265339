"""
Bounded, drop-on-full channel between provider callbacks and the caller.

Producers (provider callbacks on the transport thread, or the adapter's own
worker task) call `send()`; the caller consumes with ``async for``. A send
never blocks: when the channel already holds ``capacity`` undelivered items
the new item is dropped and counted. Liveness of the transport thread wins
over completeness of the stream.

Error items and the final marker go through `send_terminal()`, which ignores
capacity and seals the channel so nothing is delivered after them.

`close()` runs at most once; sends after close are ignored.
"""

import asyncio
import logging
import threading
from collections import deque
from typing import AsyncIterator, Deque, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CAPACITY = 100


def set_event_threadsafe(loop: asyncio.AbstractEventLoop, event: asyncio.Event) -> None:
    """Set an asyncio event owned by ``loop`` from any thread."""
    try:
        running = asyncio.get_running_loop()
    except RuntimeError:
        running = None
    if running is loop:
        event.set()
    elif not loop.is_closed():
        loop.call_soon_threadsafe(event.set)


class StreamChannel(Generic[T]):
    """Ordered single-producer channel consumed as an async iterator."""

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        *,
        name: str = "stream",
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ):
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self.name = name
        self._loop = loop or asyncio.get_running_loop()
        self._items: Deque[T] = deque()
        self._lock = threading.Lock()
        self._closed = False
        self._sealed = False
        self._dropped = 0
        self._wakeup = asyncio.Event()

    # -- producer side ---------------------------------------------------

    def send(self, item: T) -> bool:
        """Enqueue without blocking. Returns False if the item was not accepted."""
        with self._lock:
            if self._closed or self._sealed:
                return False
            if len(self._items) >= self.capacity:
                self._dropped += 1
                dropped = self._dropped
                accepted = False
            else:
                self._items.append(item)
                accepted = True
        if not accepted:
            logger.debug(f"Channel {self.name} full, dropped item (total dropped={dropped})")
            return False
        self._notify()
        return True

    def send_terminal(self, item: T) -> bool:
        """Enqueue a last item regardless of capacity and refuse any later send."""
        with self._lock:
            if self._closed or self._sealed:
                return False
            self._items.append(item)
            self._sealed = True
        self._notify()
        return True

    def close(self) -> bool:
        """Close the channel. Only the first call has any effect."""
        with self._lock:
            if self._closed:
                return False
            self._closed = True
        logger.debug(f"Channel {self.name} closed")
        self._notify()
        return True

    def _notify(self) -> None:
        set_event_threadsafe(self._loop, self._wakeup)

    # -- consumer side ---------------------------------------------------

    async def receive(self) -> T:
        """Return the next item, or raise StopAsyncIteration once closed and drained."""
        while True:
            with self._lock:
                if self._items:
                    return self._items.popleft()
                if self._closed:
                    raise StopAsyncIteration
                self._wakeup.clear()
            await self._wakeup.wait()

    def __aiter__(self) -> AsyncIterator[T]:
        return self

    async def __anext__(self) -> T:
        return await self.receive()

    async def collect(self) -> List[T]:
        """Drain the channel until it closes."""
        return [item async for item in self]

    # -- state -----------------------------------------------------------

    @property
    def closed(self) -> bool:
        with self._lock:
            return self._closed

    @property
    def sealed(self) -> bool:
        with self._lock:
            return self._sealed

    @property
    def dropped(self) -> int:
        with self._lock:
            return self._dropped

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


__all__ = ["DEFAULT_CAPACITY", "StreamChannel", "set_event_threadsafe"]
