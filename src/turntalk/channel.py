from __future__ import annotations

import asyncio
from collections import deque
from typing import AsyncIterator, Deque, Generic, Optional, TypeVar

from .errors import ChannelClosed

T = TypeVar("T")


class Channel(Generic[T]):
    """Bounded FIFO between two actors.

    Senders block while the channel is full rather than dropping items. Closing
    is idempotent: blocked senders raise :class:`ChannelClosed`, and receivers
    drain whatever was already queued before ``recv`` starts returning ``None``.
    """

    def __init__(self, capacity: int, name: str = "channel") -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.name = name
        self._capacity = capacity
        self._items: Deque[T] = deque()
        self._closed = False
        self._cond = asyncio.Condition()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def pending(self) -> int:
        return len(self._items)

    async def send(self, item: T) -> None:
        async with self._cond:
            await self._cond.wait_for(lambda: self._closed or len(self._items) < self._capacity)
            if self._closed:
                raise ChannelClosed(self.name)
            self._items.append(item)
            self._cond.notify_all()

    async def recv(self) -> Optional[T]:
        async with self._cond:
            await self._cond.wait_for(lambda: self._closed or bool(self._items))
            if not self._items:
                return None
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    async def close(self) -> None:
        async with self._cond:
            self._closed = True
            self._cond.notify_all()

    def __aiter__(self) -> AsyncIterator[T]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[T]:
        while True:
            item = await self.recv()
            if item is None:
                return
            yield item
