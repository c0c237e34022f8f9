"""Session state and the turn protocol.

The turn flag is never negotiated over the wire. Each side derives it from how
the session was established and from local events:

* the side that accepted the connection (passive) speaks first;
* the side that dialed (active) waits to hear from the listener;
* a completed local send gives the turn away, any received data takes it back.
"""

from __future__ import annotations

import asyncio
import codecs
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Tuple, Union


class Role(Enum):
    PASSIVE = "passive"
    ACTIVE = "active"


def initial_turn(role: Role) -> bool:
    return role is Role.PASSIVE


class TurnSession:
    """Turn flag and append-only transcript for one connected session."""

    def __init__(self, role: Role) -> None:
        self.role = role
        self.ours_to_send = initial_turn(role)
        self._transcript: List[str] = []
        self._decoder = codecs.getincrementaldecoder("utf-8")()

    @property
    def transcript(self) -> Tuple[str, ...]:
        return tuple(self._transcript)

    def can_submit(self) -> bool:
        return self.ours_to_send

    def record_sent(self, text: str) -> None:
        if not self.ours_to_send:
            raise RuntimeError("sentence recorded as sent while it is not our turn")
        self._transcript.append(text)
        self.ours_to_send = False

    def record_received(self, text: str) -> None:
        self._transcript.append(text)
        self.ours_to_send = True

    def decode(self, data: bytes) -> str:
        """Decode one chunk of inbound bytes.

        A multi-byte character split across chunks is held back until the rest
        arrives, so the result may be empty. Malformed input raises
        ``UnicodeDecodeError``.
        """

        return self._decoder.decode(data)

    def finish(self) -> str:
        """Flush the decoder at end of stream.

        Raises ``UnicodeDecodeError`` when the stream stopped in the middle of
        a multi-byte character.
        """

        return self._decoder.decode(b"", final=True)

    def reset_decoder(self) -> None:
        self._decoder.reset()


@dataclass(frozen=True)
class Waiting:
    pass


@dataclass
class Connected:
    reader: asyncio.StreamReader
    writer: asyncio.StreamWriter
    peer: str
    session: TurnSession = field(repr=False)


SessionState = Union[Waiting, Connected]
