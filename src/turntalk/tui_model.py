"""Pure-Python state machine for the terminal front end.

Nothing here touches curses or the network: notifications from the connection
actor and normalized key names go in, render snapshots and commands come out.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Tuple

from .errors import AddressError
from .messages import (
    Command,
    Connected,
    Disconnected,
    Log,
    Notification,
    SentenceReceived,
    SentenceSent,
    Submit,
    parse_address,
)

ELEMENT_INPUT = "input"
ELEMENT_CONNECT = "connect"
STATE_WAITING = "waiting"
STATE_IN_SESSION = "in_session"

ACTION_QUIT = "quit"
ACTION_DIAL = "dial"
ACTION_SUBMIT = "submit"


@dataclass(frozen=True)
class RenderState:
    app_state: str
    is_our_turn: bool
    peer: str
    transcript: Tuple[str, ...]
    log_lines: Tuple[str, ...]
    input_text: str
    address_text: str
    selected_element: str

    @property
    def content(self) -> str:
        return " ".join(self.transcript)


class PeerTuiModel:
    """Presentation state backing the curses screen."""

    def __init__(self, delimiter: str = ".", max_log_lines: int = 500) -> None:
        if len(delimiter) != 1:
            raise ValueError("delimiter must be exactly one character")
        self.delimiter = delimiter
        self.max_log_lines = max_log_lines
        self.app_state = STATE_WAITING
        self.is_our_turn = False
        self.peer = ""
        self.transcript: List[str] = []
        self.log_lines: List[str] = []
        self.input_buffer = ""
        self.address_buffer = ""
        self.selected_element = ELEMENT_CONNECT
        self._pending_command: Optional[Command] = None

    @property
    def in_session(self) -> bool:
        return self.app_state == STATE_IN_SESSION

    def append_log(self, text: str) -> None:
        self.log_lines.append(text)
        if len(self.log_lines) > self.max_log_lines:
            del self.log_lines[: len(self.log_lines) - self.max_log_lines]

    def take_command(self) -> Optional[Command]:
        """Return the command produced by the last key, if any, and forget it."""

        command, self._pending_command = self._pending_command, None
        return command

    def handle_notification(self, notification: Notification) -> None:
        if isinstance(notification, Log):
            self.append_log(notification.text)
        elif isinstance(notification, Connected):
            self.app_state = STATE_IN_SESSION
            self.is_our_turn = notification.initial_turn
            self.peer = notification.peer
            self.transcript = []
            self.input_buffer = ""
            self.selected_element = ELEMENT_INPUT
            if notification.initial_turn:
                self.append_log("Your turn to write")
            else:
                self.append_log("Waiting for the peer to write")
        elif isinstance(notification, Disconnected):
            self.app_state = STATE_WAITING
            self.is_our_turn = False
            self.peer = ""
            self.transcript = []
            self.input_buffer = ""
            self.selected_element = ELEMENT_CONNECT
            self.append_log("Disconnected")
        elif isinstance(notification, SentenceReceived):
            if self.in_session:
                self.transcript.append(notification.text)
                self.is_our_turn = True
        elif isinstance(notification, SentenceSent):
            if self.in_session:
                self.transcript.append(notification.text)
                self.is_our_turn = False

    def handle_key(self, key: str, char: Optional[str] = None) -> Optional[str]:
        """Handle a normalized key and return an action string when needed."""

        if key == "ESC":
            return ACTION_QUIT
        if key == "TAB":
            self.selected_element = ELEMENT_CONNECT if self.selected_element == ELEMENT_INPUT else ELEMENT_INPUT
            return None
        if key == "LEFT":
            self.selected_element = ELEMENT_INPUT
            return None
        if key == "RIGHT":
            self.selected_element = ELEMENT_CONNECT
            return None
        if key == "BACKSPACE":
            if self.selected_element == ELEMENT_INPUT:
                self.input_buffer = self.input_buffer[:-1]
            else:
                self.address_buffer = self.address_buffer[:-1]
            return None

        if self.in_session:
            if key == "CHAR" and char and self.selected_element == ELEMENT_INPUT and self.is_our_turn:
                self.input_buffer += char
                if char == self.delimiter:
                    self._pending_command = Submit(self.input_buffer)
                    self.input_buffer = ""
                    self.is_our_turn = False
                    return ACTION_SUBMIT
            return None

        if self.selected_element != ELEMENT_CONNECT:
            return None
        if key == "ENTER":
            try:
                self._pending_command = parse_address(self.address_buffer)
            except AddressError as exc:
                self.append_log(f"Invalid address: {exc}")
                return None
            return ACTION_DIAL
        if key == "CHAR" and char:
            self.address_buffer += char
        return None

    def render(self) -> RenderState:
        return RenderState(
            app_state=self.app_state,
            is_our_turn=self.is_our_turn,
            peer=self.peer,
            transcript=tuple(self.transcript),
            log_lines=tuple(self.log_lines),
            input_text=self.input_buffer,
            address_text=self.address_buffer,
            selected_element=self.selected_element,
        )
