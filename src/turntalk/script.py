"""Headless peer driven by a line-oriented command script.

Script lines::

    # comments and blank lines are ignored
    dial 127.0.0.1:9001
    sleep 0.5
    say hello there.
    quit

Each `say` sentence must end with the configured delimiter. Every notification
is written to the output stream as one JSON object per line.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import asdict, dataclass
from typing import Iterable, List, Optional, TextIO

from .channel import Channel
from .config import PeerConfig
from .connection import ConnectionHandle, create_connection_actor
from .errors import AddressError, ChannelClosed
from .messages import Command, Dial, Notification, Submit, parse_address

logger = logging.getLogger(__name__)

STEP_DIAL = "dial"
STEP_SAY = "say"
STEP_SLEEP = "sleep"
STEP_QUIT = "quit"


@dataclass(frozen=True)
class ScriptStep:
    line: int
    kind: str
    command: Optional[Command] = None
    delay_s: float = 0.0


def _parse_line(number: int, line: str, delimiter: str) -> Optional[ScriptStep]:
    text = line.rstrip("\r\n")
    stripped = text.strip()
    if not stripped or stripped.startswith("#"):
        return None
    keyword, _, rest = text.lstrip().partition(" ")
    if keyword == STEP_DIAL:
        try:
            return ScriptStep(number, STEP_DIAL, command=parse_address(rest))
        except AddressError as exc:
            raise ValueError(f"line {number}: {exc}") from exc
    if keyword == STEP_SAY:
        if not rest:
            raise ValueError(f"line {number}: say requires text")
        if not rest.endswith(delimiter):
            raise ValueError(f"line {number}: sentence must end with {delimiter!r}")
        return ScriptStep(number, STEP_SAY, command=Submit(rest))
    if keyword == STEP_SLEEP:
        try:
            delay = float(rest)
        except ValueError as exc:
            raise ValueError(f"line {number}: sleep requires a number of seconds") from exc
        if delay < 0:
            raise ValueError(f"line {number}: sleep must not be negative")
        return ScriptStep(number, STEP_SLEEP, delay_s=delay)
    if keyword == STEP_QUIT:
        return ScriptStep(number, STEP_QUIT)
    raise ValueError(f"line {number}: unknown command {keyword!r}")


def parse_script(lines: Iterable[str], delimiter: str = ".") -> List[ScriptStep]:
    """Parse every line up front so a bad script fails before anything runs."""

    steps: List[ScriptStep] = []
    for number, line in enumerate(lines, start=1):
        step = _parse_line(number, line, delimiter)
        if step is not None:
            steps.append(step)
    return steps


def notification_to_dict(notification: Notification) -> dict:
    return {"t": type(notification).__name__, **asdict(notification)}


async def _print_notifications(notifications: Channel[Notification], output: TextIO) -> None:
    async for notification in notifications:
        output.write(json.dumps(notification_to_dict(notification)) + "\n")
        output.flush()


async def _drive(steps: Iterable[ScriptStep], handle: ConnectionHandle) -> None:
    try:
        for step in steps:
            if step.kind == STEP_QUIT:
                logger.info("line %d: quit", step.line)
                break
            if step.kind == STEP_SLEEP:
                await asyncio.sleep(step.delay_s)
                continue
            if isinstance(step.command, Dial):
                logger.info("line %d: dial %s", step.line, step.command.address)
            await handle.send(step.command)
    except ChannelClosed:
        logger.warning("connection actor stopped before the script finished")
    finally:
        await handle.close()


async def run_script(lines: Iterable[str], config: PeerConfig, output: TextIO) -> None:
    steps = parse_script(lines, config.delimiter)
    actor, handle, notifications = create_connection_actor(config)
    await actor.start()
    printer = asyncio.create_task(_print_notifications(notifications, output))
    actor_task = asyncio.create_task(actor.run())
    try:
        await _drive(steps, handle)
    finally:
        await actor_task
        await printer
