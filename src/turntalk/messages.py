"""Messages exchanged between the connection actor and the presentation actor.

Commands flow from the presentation side to the connection actor; notifications
flow back. Both are immutable and carry no transport handles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from .errors import AddressError


class _Variant:
    def __str__(self) -> str:
        return type(self).__name__


# Commands


@dataclass(frozen=True)
class Dial(_Variant):
    """Open an outbound connection to ``host:port``."""

    host: str
    port: int

    @property
    def address(self) -> str:
        return format_address(self.host, self.port)


@dataclass(frozen=True)
class Submit(_Variant):
    """Send one complete sentence, delimiter included."""

    text: str


Command = Union[Dial, Submit]


# Notifications


@dataclass(frozen=True)
class Log(_Variant):
    text: str


@dataclass(frozen=True)
class Connected(_Variant):
    """A session started; ``initial_turn`` tells whether the local side speaks first."""

    initial_turn: bool
    peer: str = ""


@dataclass(frozen=True)
class Disconnected(_Variant):
    pass


@dataclass(frozen=True)
class SentenceReceived(_Variant):
    """A fragment arrived from the peer; the turn now belongs to the local side."""

    text: str


@dataclass(frozen=True)
class SentenceSent(_Variant):
    """Local echo of a sentence that was written to the peer."""

    text: str


Notification = Union[Log, Connected, Disconnected, SentenceReceived, SentenceSent]


def format_address(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


def parse_address(raw: str) -> Dial:
    """Parse ``host:port`` (or ``[v6-host]:port``) into a :class:`Dial` command."""

    text = raw.strip()
    host, sep, port_text = text.rpartition(":")
    if not sep or not host or not port_text:
        raise AddressError(f"expected host:port, got {raw!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif ":" in host:
        raise AddressError(f"IPv6 hosts must be bracketed: {raw!r}")
    if not host:
        raise AddressError(f"missing host in {raw!r}")
    try:
        port = int(port_text)
    except ValueError as exc:
        raise AddressError(f"invalid port in {raw!r}") from exc
    if not 1 <= port <= 65535:
        raise AddressError(f"port out of range in {raw!r}")
    return Dial(host=host, port=port)
