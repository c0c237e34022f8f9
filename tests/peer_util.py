"""Helpers for driving a connection actor over loopback in tests."""

from __future__ import annotations

import asyncio
import socket
from typing import List, Optional, Type

from turntalk.config import PeerConfig
from turntalk.connection import create_connection_actor
from turntalk.messages import Log, format_address


class Peer:
    """A connection actor plus a recorder for the notifications it emits."""

    def __init__(self, **overrides) -> None:
        overrides.setdefault("listen_port", 0)
        self.config = PeerConfig(**overrides)
        self.actor, self.handle, self.notifications = create_connection_actor(self.config)
        self.seen: List[object] = []
        self.task: Optional[asyncio.Task] = None

    async def start(self) -> "Peer":
        await self.actor.start()
        self.task = asyncio.create_task(self.actor.run())
        return self

    @property
    def port(self) -> int:
        return self.actor.listen_address[1]

    @property
    def address(self) -> str:
        return format_address(*self.actor.listen_address)

    async def next(self):
        notification = await self.notifications.recv()
        if notification is not None:
            self.seen.append(notification)
        return notification

    async def expect(self, kind: Type, text: Optional[str] = None, *, prefix: Optional[str] = None):
        while True:
            notification = await self.next()
            if notification is None:
                raise AssertionError(f"notification stream ended while waiting for {kind.__name__}")
            if not isinstance(notification, kind):
                continue
            value = getattr(notification, "text", None)
            if text is not None and value != text:
                continue
            if prefix is not None and not (value or "").startswith(prefix):
                continue
            return notification

    def logs(self) -> List[str]:
        return [item.text for item in self.seen if isinstance(item, Log)]

    def count(self, kind: Type) -> int:
        return sum(1 for item in self.seen if isinstance(item, kind))

    async def stop(self) -> None:
        await self.handle.close()
        while await self.next() is not None:
            pass
        if self.task is not None:
            await self.task


def unused_port() -> int:
    """Return a loopback port that nothing is listening on."""

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
