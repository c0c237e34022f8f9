"""Presentation actor: feeds keys and notifications into the model.

The loop is renderer-agnostic. A front end supplies a key queue (``None``
marks the end of input) and a ``redraw`` callback that receives a fresh
:class:`RenderState` after every handled event.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable, Dict, Optional, Tuple

from .channel import Channel
from .connection import ConnectionHandle
from .errors import ChannelClosed
from .messages import Notification
from .tui_model import ACTION_QUIT, PeerTuiModel, RenderState

logger = logging.getLogger(__name__)

KeyEvent = Tuple[str, Optional[str]]
Redraw = Callable[[RenderState], None]

KEY = "key"
NOTIFICATION = "notification"


class PresentationActor:
    def __init__(
        self,
        model: PeerTuiModel,
        handle: ConnectionHandle,
        notifications: Channel[Notification],
        keys: "asyncio.Queue[Optional[KeyEvent]]",
        redraw: Redraw | None = None,
    ) -> None:
        self.model = model
        self._handle = handle
        self._notifications = notifications
        self._keys = keys
        self._redraw = redraw
        self._pending: Dict[str, asyncio.Task] = {}

    def _draw(self) -> None:
        if self._redraw is not None:
            self._redraw(self.model.render())

    def _arm(self) -> None:
        if NOTIFICATION not in self._pending:
            self._pending[NOTIFICATION] = asyncio.create_task(self._notifications.recv())
        if KEY not in self._pending:
            self._pending[KEY] = asyncio.create_task(self._keys.get())

    async def _next_event(self) -> Tuple[str, asyncio.Task]:
        self._arm()
        await asyncio.wait(list(self._pending.values()), return_when=asyncio.FIRST_COMPLETED)
        for source in (NOTIFICATION, KEY):
            if self._pending[source].done():
                return source, self._pending.pop(source)
        raise AssertionError("asyncio.wait returned with nothing done")

    async def run(self) -> None:
        """Run until quit, end of keys or end of notifications, then shut the pair down."""

        self._draw()
        try:
            while True:
                source, task = await self._next_event()
                if source == NOTIFICATION:
                    notification = task.result()
                    if notification is None:
                        logger.info("notification stream ended")
                        break
                    self.model.handle_notification(notification)
                else:
                    event = task.result()
                    if event is None:
                        logger.info("key stream ended")
                        break
                    if not await self._handle_key(*event):
                        break
                self._draw()
        finally:
            await self._shutdown()

    async def _handle_key(self, key: str, char: Optional[str]) -> bool:
        action = self.model.handle_key(key, char)
        if action == ACTION_QUIT:
            logger.info("quit requested")
            return False
        command = self.model.take_command()
        if command is None:
            return True
        try:
            await self._handle.send(command)
        except ChannelClosed:
            logger.info("connection actor is gone; dropping %s", command)
            return False
        logger.debug("forwarded %s", command)
        return True

    async def _shutdown(self) -> None:
        pending = list(self._pending.values())
        self._pending.clear()
        for task in pending:
            task.cancel()
        for task in pending:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        await self._handle.close()
        await self._notifications.close()
        self._draw()
