"""Curses front end for a turntalk peer."""

from __future__ import annotations

import asyncio
import contextlib
import curses
import logging
from typing import Iterator, Optional, Union

from .config import PeerConfig
from .connection import create_connection_actor
from .messages import format_address
from .presentation import KeyEvent, PresentationActor
from .tui_model import ELEMENT_CONNECT, ELEMENT_INPUT, STATE_IN_SESSION, PeerTuiModel, RenderState

logger = logging.getLogger(__name__)

_POLL_INTERVAL_S = 0.02


def _normalize_key(key: Union[int, str]) -> tuple[str, str | None]:
    if isinstance(key, str):
        if key in ("\n", "\r"):
            return "ENTER", None
        if key == "\t":
            return "TAB", None
        if key in ("\x7f", "\b"):
            return "BACKSPACE", None
        if key == "\x1b":
            return "ESC", None
        if key.isprintable():
            return "CHAR", key
        return "UNKNOWN", None
    key_tab = getattr(curses, "KEY_TAB", 9)
    if key in (key_tab, 9):
        return "TAB", None
    if key == curses.KEY_LEFT:
        return "LEFT", None
    if key == curses.KEY_RIGHT:
        return "RIGHT", None
    if key in (curses.KEY_ENTER, 10, 13):
        return "ENTER", None
    if key in (curses.KEY_BACKSPACE, 127, 8):
        return "BACKSPACE", None
    if key == 27:
        return "ESC", None
    if 32 <= key <= 126:
        return "CHAR", chr(key)
    return "UNKNOWN", None


def _render_text(window: curses.window, y: int, x: int, text: str, attr: int = 0) -> None:
    max_y, max_x = window.getmaxyx()
    if 0 <= y < max_y and x < max_x - 1:
        window.addnstr(y, x, text, max_x - x - 1, attr)


def _wrap_chunks(value: str, width: int) -> list[str]:
    if width <= 0:
        return [value]
    return [value[i : i + width] for i in range(0, len(value), width)] or [""]


def _init_default_colors(stdscr: curses.window) -> None:
    if not curses.has_colors():
        return
    try:
        curses.start_color()
        curses.use_default_colors()
        stdscr.bkgd(" ", curses.color_pair(0))
    except curses.error:
        return


def _status_line(render: RenderState) -> str:
    if render.app_state != STATE_IN_SESSION:
        return "Waiting: type host:port in Connect and press Enter"
    turn = "your turn" if render.is_our_turn else "peer's turn"
    return f"Connected to {render.peer} ({turn})"


def draw_screen(stdscr: curses.window, render: RenderState, listen_label: str = "") -> None:
    stdscr.erase()
    max_y, max_x = stdscr.getmaxyx()
    log_height = max(3, max_y // 3)
    content_height = max(1, max_y - log_height - 6)
    split = max(10, (max_x * 2) // 3)

    _render_text(stdscr, 0, 1, f"turntalk {listen_label}".rstrip())
    _render_text(stdscr, 1, 1, "Left/Right/Tab: switch field | Enter: connect | Esc: quit")

    _render_text(stdscr, 2, 1, f"Content - {_status_line(render)}", curses.A_BOLD)
    lines = _wrap_chunks(render.content, max_x - 3) if render.transcript else []
    for idx, line in enumerate(lines[-content_height:]):
        _render_text(stdscr, 3 + idx, 2, line)

    row = 3 + content_height
    stdscr.hline(row, 0, curses.ACS_HLINE, max_x)
    input_attr = curses.A_REVERSE if render.selected_element == ELEMENT_INPUT else 0
    connect_attr = curses.A_REVERSE if render.selected_element == ELEMENT_CONNECT else 0
    _render_text(stdscr, row + 1, 1, "Input")
    _render_text(stdscr, row + 1, split + 1, "Connect")
    _render_text(stdscr, row + 2, 1, render.input_text.ljust(max(0, split - 2)), input_attr)
    _render_text(stdscr, row + 2, split + 1, render.address_text.ljust(max(0, max_x - split - 3)), connect_attr)

    log_top = row + 3
    stdscr.hline(log_top, 0, curses.ACS_HLINE, max_x)
    _render_text(stdscr, log_top, 2, " Log ")
    visible = max(0, max_y - log_top - 1)
    for idx, line in enumerate(render.log_lines[-visible:] if visible else ()):
        _render_text(stdscr, log_top + 1 + idx, 1, line)
    stdscr.refresh()


@contextlib.contextmanager
def _curses_screen() -> Iterator[curses.window]:
    stdscr = curses.initscr()
    try:
        curses.noecho()
        curses.cbreak()
        stdscr.keypad(True)
        with contextlib.suppress(curses.error):
            curses.curs_set(0)
        _init_default_colors(stdscr)
        stdscr.nodelay(True)
        yield stdscr
    finally:
        stdscr.keypad(False)
        curses.nocbreak()
        curses.echo()
        curses.endwin()


async def _poll_keys(stdscr: curses.window, keys: "asyncio.Queue[Optional[KeyEvent]]") -> None:
    """Read keys in non-blocking mode and push normalized events until cancelled."""

    while True:
        try:
            raw = stdscr.get_wch()
        except curses.error:
            await asyncio.sleep(_POLL_INTERVAL_S)
            continue
        if raw == curses.KEY_RESIZE:
            await keys.put(("RESIZE", None))
            continue
        key, char = _normalize_key(raw)
        if key != "UNKNOWN":
            await keys.put((key, char))


async def serve_tui(config: PeerConfig) -> None:
    """Bind the listener, then run the curses screen until the user quits.

    The listener is bound before the terminal is taken over so that a
    :class:`~turntalk.errors.BindError` is reported on a normal screen.
    """

    actor, handle, notifications = create_connection_actor(config)
    await actor.start()
    address = actor.listen_address
    listen_label = f"listening on {format_address(*address)}" if address else ""

    model = PeerTuiModel(delimiter=config.delimiter, max_log_lines=config.max_log_lines)
    keys: asyncio.Queue[Optional[KeyEvent]] = asyncio.Queue()

    with _curses_screen() as stdscr:
        presentation = PresentationActor(
            model,
            handle,
            notifications,
            keys,
            redraw=lambda render: draw_screen(stdscr, render, listen_label),
        )
        actor_task = asyncio.create_task(actor.run())
        poll_task = asyncio.create_task(_poll_keys(stdscr, keys))
        try:
            await presentation.run()
        finally:
            poll_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await poll_task
            await actor_task
    logger.info("terminal session ended")


def run_tui(config: PeerConfig) -> int:
    asyncio.run(serve_tui(config))
    return 0
