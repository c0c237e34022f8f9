"""Connection actor: sole owner of the listener and of the single live connection.

One cooperative loop waits on whichever of {inbound accept, active-socket read,
command receive} applies and services exactly one ready event per iteration.
Only that loop touches the connection slot or writes to the socket.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Dict, List, Optional, Tuple

from . import messages
from .channel import Channel
from .config import DECODE_DROP, PeerConfig
from .errors import BindError, ChannelClosed
from .messages import Command, Dial, Notification, Submit, format_address, parse_address
from .session import Connected, Role, SessionState, TurnSession, Waiting, initial_turn

logger = logging.getLogger(__name__)

StreamPair = Tuple[asyncio.StreamReader, asyncio.StreamWriter]

READ = "read"
COMMAND = "command"
ACCEPT = "accept"
# Service order when several sources are ready in the same wakeup.
_SERVICE_ORDER = (READ, COMMAND, ACCEPT)

_SERVER_CLOSE_TIMEOUT_S = 1.0


def _peer_label(writer: asyncio.StreamWriter) -> str:
    peername = writer.get_extra_info("peername")
    if isinstance(peername, tuple) and len(peername) >= 2:
        return format_address(str(peername[0]), int(peername[1]))
    return str(peername or "unknown")


async def _close_writer(writer: asyncio.StreamWriter) -> None:
    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()


class PresentationHandle:
    """Notification side of the actor pair, held by the connection actor.

    Every method blocks while the notification channel is full and raises
    :class:`ChannelClosed` once the presentation side has gone away.
    """

    def __init__(self, channel: Channel[Notification]) -> None:
        self._channel = channel

    async def log(self, text: str) -> None:
        await self._channel.send(messages.Log(text))

    async def connected(self, initial_turn: bool, peer: str = "") -> None:
        await self._channel.send(messages.Connected(initial_turn=initial_turn, peer=peer))

    async def disconnected(self) -> None:
        await self._channel.send(messages.Disconnected())

    async def sentence_received(self, text: str) -> None:
        await self._channel.send(messages.SentenceReceived(text))

    async def sentence_sent(self, text: str) -> None:
        await self._channel.send(messages.SentenceSent(text))

    async def close(self) -> None:
        await self._channel.close()


class ConnectionHandle:
    """Command side of the actor pair, held by the presentation actor."""

    def __init__(self, channel: Channel[Command]) -> None:
        self._channel = channel

    @property
    def closed(self) -> bool:
        return self._channel.closed

    async def send(self, command: Command) -> None:
        await self._channel.send(command)

    async def dial(self, host: str, port: int) -> None:
        await self.send(Dial(host=host, port=port))

    async def connect(self, address: str) -> None:
        """Parse ``host:port`` and dial it; raises ``AddressError`` on bad input."""

        await self.send(parse_address(address))

    async def submit(self, text: str) -> None:
        await self.send(Submit(text))

    async def close(self) -> None:
        """Close the command channel, which asks the connection actor to shut down."""

        await self._channel.close()


class ConnectionActor:
    def __init__(
        self,
        commands: Channel[Command],
        notifications: Channel[Notification],
        config: PeerConfig | None = None,
    ) -> None:
        self.config = config or PeerConfig()
        self._commands = commands
        self._notify = PresentationHandle(notifications)
        self._state: SessionState = Waiting()
        self._server: Optional[asyncio.Server] = None
        self._inbound: asyncio.Queue[StreamPair] = asyncio.Queue()
        self._pending: Dict[str, asyncio.Task] = {}

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return isinstance(self._state, Connected)

    @property
    def ours_to_send(self) -> Optional[bool]:
        """Local turn flag, or ``None`` while waiting (the flag is meaningless then)."""

        if isinstance(self._state, Connected):
            return self._state.session.ours_to_send
        return None

    @property
    def transcript(self) -> Tuple[str, ...]:
        if isinstance(self._state, Connected):
            return self._state.session.transcript
        return ()

    @property
    def listen_address(self) -> Optional[Tuple[str, int]]:
        if self._server is None or not self._server.sockets:
            return None
        sockname = self._server.sockets[0].getsockname()
        return str(sockname[0]), int(sockname[1])

    async def start(self) -> None:
        """Bind the listener. Failure here is fatal and raises :class:`BindError`."""

        if self._server is not None:
            return
        host = self.config.listen_host
        port = self.config.listen_port
        try:
            self._server = await asyncio.start_server(self._on_inbound, host, port)
        except OSError as exc:
            raise BindError(host, port, exc) from exc
        logger.info("listening on %s", format_address(*self.listen_address))

    async def run(self) -> None:
        """Serve events until the command or notification channel closes."""

        await self.start()
        try:
            while True:
                source, task = await self._next_event()
                if not await self._service(source, task):
                    break
        except ChannelClosed as exc:
            logger.info("presentation side went away (%s); shutting down", exc)
        finally:
            await self._shutdown()

    def _on_inbound(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._inbound.put_nowait((reader, writer))

    def _arm(self) -> None:
        if COMMAND not in self._pending:
            self._pending[COMMAND] = asyncio.create_task(self._commands.recv())
        if ACCEPT not in self._pending:
            self._pending[ACCEPT] = asyncio.create_task(self._inbound.get())
        state = self._state
        if isinstance(state, Connected) and READ not in self._pending:
            self._pending[READ] = asyncio.create_task(state.reader.read(self.config.read_buffer_size))

    def _ready(self) -> List[str]:
        return [source for source in _SERVICE_ORDER if source in self._pending and self._pending[source].done()]

    async def _next_event(self) -> Tuple[str, asyncio.Task]:
        self._arm()
        ready = self._ready()
        if not ready:
            await asyncio.wait(list(self._pending.values()), return_when=asyncio.FIRST_COMPLETED)
            ready = self._ready()
        source = ready[0]
        return source, self._pending.pop(source)

    async def _service(self, source: str, task: asyncio.Task) -> bool:
        if source == COMMAND:
            command = task.result()
            if command is None:
                logger.info("command channel closed; shutting down")
                return False
            await self._handle_command(command)
        elif source == ACCEPT:
            reader, writer = task.result()
            await self._handle_inbound(reader, writer)
        else:
            await self._handle_read(task)
        return True

    # State transitions

    def _enter_connected(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        peer: str,
        role: Role,
    ) -> TurnSession:
        session = TurnSession(role)
        self._state = Connected(reader=reader, writer=writer, peer=peer, session=session)
        logger.info("connected to %s as %s (our turn: %s)", peer, role.value, session.ours_to_send)
        return session

    def _enter_waiting(self) -> None:
        read_task = self._pending.pop(READ, None)
        if read_task is not None:
            read_task.cancel()
        self._state = Waiting()

    async def _drop_connection(self, reason: str, *, error: bool) -> None:
        state = self._state
        if not isinstance(state, Connected):
            return
        self._enter_waiting()
        await _close_writer(state.writer)
        if error:
            logger.warning("session with %s ended: %s", state.peer, reason)
        else:
            logger.info("session with %s ended: %s", state.peer, reason)
        await self._notify.log(reason)
        await self._notify.disconnected()

    # Event handlers

    async def _handle_inbound(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = _peer_label(writer)
        if isinstance(self._state, Connected):
            await _close_writer(writer)
            logger.warning("rejected inbound connection from %s while connected to %s", peer, self._state.peer)
            await self._notify.log(f"ERROR: already connected; rejected inbound connection from {peer}")
            return
        self._enter_connected(reader, writer, peer, Role.PASSIVE)
        await self._notify.log(f"Connected to {peer}")
        await self._notify.connected(initial_turn(Role.PASSIVE), peer)

    async def _handle_read(self, task: asyncio.Task) -> None:
        state = self._state
        if not isinstance(state, Connected):
            return
        try:
            data = task.result()
        except OSError as exc:
            await self._drop_connection(f"ERROR: connection to {state.peer} failed: {exc}", error=True)
            return
        if not data:
            await self._finish_stream(state)
            await self._drop_connection(f"Peer {state.peer} closed the connection", error=False)
            return
        try:
            text = state.session.decode(data)
        except UnicodeDecodeError:
            if self.config.decode_error_policy == DECODE_DROP:
                state.session.reset_decoder()
                logger.warning("dropped %d malformed bytes from %s", len(data), state.peer)
                await self._notify.log(f"ERROR: malformed UTF-8 from {state.peer}; chunk dropped")
                return
            await self._drop_connection(f"ERROR: malformed UTF-8 from {state.peer}; closing connection", error=True)
            return
        if not text:
            return
        state.session.record_received(text)
        logger.debug("received %d bytes from %s", len(data), state.peer)
        await self._notify.sentence_received(text)

    async def _finish_stream(self, state: Connected) -> None:
        try:
            tail = state.session.finish()
        except UnicodeDecodeError:
            logger.warning("stream from %s ended inside a multi-byte character", state.peer)
            await self._notify.log(f"ERROR: malformed UTF-8 from {state.peer}; incomplete character at end of stream")
            return
        if tail:
            state.session.record_received(tail)
            await self._notify.sentence_received(tail)

    async def _handle_command(self, command: Command) -> None:
        if isinstance(command, Dial):
            await self._dial(command)
        elif isinstance(command, Submit):
            await self._submit(command.text)
        else:
            logger.warning("ignoring unexpected command %r", command)
            await self._notify.log(f"ERROR: unexpected command {command}")

    async def _dial(self, command: Dial) -> None:
        address = command.address
        if isinstance(self._state, Connected):
            logger.warning("rejected dial to %s while connected to %s", address, self._state.peer)
            await self._notify.log(f"ERROR: already connected; dial to {address} rejected")
            return
        await self._notify.log(f"Attempting to connect to {address}")
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(command.host, command.port),
                timeout=self.config.dial_timeout_s,
            )
        except (OSError, asyncio.TimeoutError) as exc:
            reason = str(exc) or type(exc).__name__
            logger.warning("dial to %s failed: %s", address, reason)
            await self._notify.log(f"ERROR: could not connect to {address}: {reason}")
            return
        peer = _peer_label(writer)
        self._enter_connected(reader, writer, peer, Role.ACTIVE)
        await self._notify.log(f"Connected to remote {address}")
        await self._notify.connected(initial_turn(Role.ACTIVE), peer)

    async def _submit(self, text: str) -> None:
        state = self._state
        if not isinstance(state, Connected):
            await self._notify.log("ERROR: not connected; sentence rejected")
            return
        if not text:
            await self._notify.log("ERROR: empty sentence rejected")
            return
        if not state.session.can_submit():
            await self._notify.log("ERROR: not your turn")
            return
        try:
            state.writer.write(text.encode("utf-8"))
            await state.writer.drain()
        except OSError as exc:
            await self._drop_connection(f"ERROR: connection to {state.peer} failed: {exc}", error=True)
            return
        state.session.record_sent(text)
        logger.debug("sent %d characters to %s", len(text), state.peer)
        await self._notify.sentence_sent(text)

    async def _shutdown(self) -> None:
        pending = list(self._pending.items())
        self._pending.clear()
        for _, task in pending:
            task.cancel()
        results = await asyncio.gather(*(task for _, task in pending), return_exceptions=True)
        for (source, _), result in zip(pending, results):
            if source == ACCEPT and isinstance(result, tuple):
                await _close_writer(result[1])

        state = self._state
        self._state = Waiting()
        if isinstance(state, Connected):
            await _close_writer(state.writer)
        while not self._inbound.empty():
            _, writer = self._inbound.get_nowait()
            await _close_writer(writer)

        if self._server is not None:
            self._server.close()
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._server.wait_closed(), timeout=_SERVER_CLOSE_TIMEOUT_S)
            self._server = None
        await self._notify.close()
        logger.info("connection actor stopped")


def create_connection_actor(
    config: PeerConfig | None = None,
) -> Tuple[ConnectionActor, ConnectionHandle, Channel[Notification]]:
    """Build a connection actor with its command handle and notification channel."""

    config = config or PeerConfig()
    commands: Channel[Command] = Channel(config.command_capacity, name="commands")
    notifications: Channel[Notification] = Channel(config.notification_capacity, name="notifications")
    actor = ConnectionActor(commands, notifications, config)
    return actor, ConnectionHandle(commands), notifications
