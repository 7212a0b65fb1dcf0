"""
Daemon side of DSUL: bridges IPC commands and the serial device.

:class:`Dispatcher` runs three tasks on one event loop:

* **receive** – reads IPC messages, authenticates sessions, and hands
  accepted commands to the command task through a rendezvous queue,
* **command** – the only task that talks to the device; it also owns the
  watchdog that pings the device when nothing else happened for a while,
* **send** – relays response commands back to the session that asked.

Serial exchanges block, so they run in the default executor; the command
task awaits each one before taking the next job, so two exchanges never
overlap and commands from one session are handled in the order received.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
from collections import OrderedDict
from dataclasses import dataclass

from .codec import Action, Command, Key, decode, encode
from .config import Settings
from .constants import MAX_SESSIONS, SEND_PACING, WATCHDOG_INTERVAL
from .exceptions import MalformedFrame
from .ipc import Message, MessageKind, ServerChannel, server_endpoint
from .protocol import DsulProtocol
from .transport import SerialTransport
from .watchdog import Watchdog

logger = logging.getLogger(__name__)

RESPONSE_OK = "ok"
RESPONSE_NOK = "nok"


@dataclass
class Session:
    """Authentication state of one connected client."""

    peer: bytes
    unlocked: bool

    @property
    def label(self) -> str:
        return self.peer.hex() or "-"


@dataclass(frozen=True)
class _Job:
    peer: bytes
    command: Command


def _is_information_request(command: Command) -> bool:
    return command.action is Action.GET and command.key is Key.INFORMATION and command.value == "all"


class Dispatcher:
    """Serve commands from *channel* against the device behind *protocol*.

    Args:
        channel: An open :class:`~dsul.ipc.ServerChannel` (or anything with
            the same ``read``/``write`` coroutines).
        protocol: Protocol client bound to the open serial transport.
        settings: Live settings; ``password`` enables authentication.
        watchdog_interval: Seconds without device traffic before a ping.
        pacing: Pause after each outgoing message.
        max_sessions: Number of peers whose session state is remembered.
    """

    def __init__(
        self,
        channel: ServerChannel,
        protocol: DsulProtocol,
        settings: Settings,
        *,
        watchdog_interval: float = WATCHDOG_INTERVAL,
        pacing: float = SEND_PACING,
        max_sessions: int = MAX_SESSIONS,
    ) -> None:
        self._channel = channel
        self._protocol = protocol
        self._secret = settings.secret
        self._pacing = pacing
        self._max_sessions = max_sessions
        self._sessions: OrderedDict[bytes, Session] = OrderedDict()
        self._commands: asyncio.Queue[_Job] = asyncio.Queue(maxsize=1)
        self._outbox: asyncio.Queue[tuple[bytes, Command]] = asyncio.Queue()
        self._ping_due = asyncio.Event()
        self.watchdog = Watchdog(watchdog_interval, self._ping_due.set)

    # -- Sessions -----------------------------------------------------------

    def session(self, peer: bytes) -> Session:
        """Return the session for *peer*, creating it on first contact.

        Clients reconnect with a fresh identity, so only the most recently
        seen peers are kept; a forgotten peer starts over as a new session.
        """
        session = self._sessions.get(peer)
        if session is None:
            session = Session(peer, unlocked=self._secret is None)
            self._sessions[peer] = session
            while len(self._sessions) > self._max_sessions:
                stale, _ = self._sessions.popitem(last=False)
                logger.debug("Forgetting session %s", stale.hex() or "-")
        else:
            self._sessions.move_to_end(peer)
        return session

    @property
    def session_count(self) -> int:
        return len(self._sessions)

    def _authenticate(self, session: Session, secret: str) -> None:
        if self._secret is None:
            return
        session.unlocked = hmac.compare_digest(secret.encode("utf-8"), self._secret.encode("utf-8"))
        if session.unlocked:
            logger.info("Session %s authenticated", session.label)
        else:
            logger.warning("Session %s authentication failed", session.label)

    # -- Lifecycle ----------------------------------------------------------

    async def run(self) -> None:
        """Serve until the channel closes; fatal errors propagate."""
        self.watchdog.start()
        tasks = [
            asyncio.create_task(self._receive_loop(), name="dsuld-receive"),
            asyncio.create_task(self._send_loop(), name="dsuld-send"),
            asyncio.create_task(self._command_loop(), name="dsuld-command"),
        ]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                task.result()
        finally:
            self.watchdog.stop()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

    # -- Receive ------------------------------------------------------------

    async def _receive_loop(self) -> None:
        while True:
            message = await self._channel.read()
            if message is None:
                logger.info("IPC channel closed")
                return
            await self.handle_message(message)

    async def handle_message(self, message: Message) -> None:
        """Authenticate and route one inbound message."""
        if message.kind is MessageKind.ERROR:
            logger.warning("IPC error: %s", message.status)
            return
        if message.kind is MessageKind.STATUS:
            logger.info("IPC status: %s", message.status)
            return

        session = self.session(message.peer)
        if message.kind is MessageKind.AUTH:
            logger.debug("Received auth from %s", session.label)
            self._authenticate(session, message.data.decode("utf-8", errors="replace"))
            return

        logger.debug("Received data from %s: %r", session.label, message.data)
        try:
            command = decode(message.data)
        except MalformedFrame as exc:
            logger.warning("Discarding malformed frame from %s: %s", session.label, exc)
            return

        if command.secret is not None:
            self._authenticate(session, command.secret)
        if not session.unlocked:
            logger.warning("Session %s is locked, dropping %s", session.label, command.key.value)
            return

        if command.action is Action.SET or _is_information_request(command):
            await self._commands.put(_Job(session.peer, command))
            await self._commands.join()
        else:
            logger.info(
                "Ignoring %s %s:%s", command.action.value, command.key.value, command.value
            )

    # -- Command handling ---------------------------------------------------

    async def _command_loop(self) -> None:
        pending: asyncio.Task | None = None
        try:
            while True:
                if pending is None:
                    pending = asyncio.ensure_future(self._commands.get())
                ping = asyncio.ensure_future(self._ping_due.wait())
                await asyncio.wait({pending, ping}, return_when=asyncio.FIRST_COMPLETED)

                if ping.done():
                    self._ping_due.clear()
                    await self._ping()
                else:
                    ping.cancel()

                if pending.done():
                    job = pending.result()
                    pending = None
                    try:
                        await self._process(job)
                    finally:
                        self._commands.task_done()
        finally:
            if pending is not None:
                pending.cancel()

    async def _ping(self) -> None:
        alive = await asyncio.to_thread(self._protocol.ping)
        if not alive:
            logger.warning("Device did not answer ping")
        self._kick()

    async def _process(self, job: _Job) -> None:
        command = job.command

        if _is_information_request(command):
            raw = await asyncio.to_thread(self._protocol.update_hardware_information)
            self._kick()
            await self._outbox.put((job.peer, Command.response(raw)))
            return

        status = await asyncio.to_thread(self._protocol.execute, command.key, command.value)
        await self._outbox.put((job.peer, Command.response(RESPONSE_OK if status else RESPONSE_NOK)))
        self._kick()

    def _kick(self) -> None:
        # An expiry during the exchange is stale once the device has answered.
        self.watchdog.kick()
        self._ping_due.clear()

    # -- Send ---------------------------------------------------------------

    async def _send_loop(self) -> None:
        while True:
            peer, command = await self._outbox.get()
            data = encode(command)
            await self._channel.write(MessageKind.DATA, data, peer)
            logger.debug("Sent to %s: %r", peer.hex() or "-", data)
            await asyncio.sleep(self._pacing)


async def run_daemon(settings: Settings) -> None:
    """Open the device and the IPC endpoint, then serve until closed.

    Raises:
        ConnectionError: If the serial port cannot be used.
        TransportError: If the IPC endpoint fails.
    """
    transport = SerialTransport(settings.serial.port, settings.serial.baudrate)
    await asyncio.to_thread(transport.open)
    protocol = DsulProtocol(transport, settings)

    if not await asyncio.to_thread(protocol.ping):
        logger.warning("Device did not answer initial ping")
    await asyncio.to_thread(protocol.update_hardware_information)

    channel = ServerChannel(server_endpoint(settings))
    channel.open()
    try:
        await Dispatcher(channel, protocol, settings).run()
    finally:
        channel.close()
        transport.close()
