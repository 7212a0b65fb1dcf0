"""
Client side of DSUL: gate outgoing commands on the connection, route replies.

Typical usage::

    channel = ClientChannel(client_endpoint(settings))
    channel.open()
    client = DsulClient(channel, settings)
    for command in build_commands(settings, color="red"):
        client.send(command)
    client.close()
    await client.run()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Callable

from .codec import Action, Command, Key, decode, encode
from .config import Settings
from .constants import CLIENT_LINGER, SEND_PACING, TELEMETRY_MIN_LENGTH
from .exceptions import MalformedFrame
from .ipc import STATUS_CONNECTED, ClientChannel, MessageKind
from .telemetry import HardwareTelemetry

logger = logging.getLogger(__name__)

_CLOSED = None  # end-of-queue marker put by close()


def build_commands(
    settings: Settings,
    *,
    information: bool = False,
    mode: str | None = None,
    brightness: int | None = None,
    dim: bool = False,
    undim: bool = False,
    color: str | None = None,
) -> list[Command]:
    """Translate requested actions into commands, in the order they are sent."""
    secret = settings.secret
    commands: list[Command] = []
    if information:
        commands.append(Command(Action.GET, Key.INFORMATION, "all", secret))
    if mode:
        commands.append(Command(Action.SET, Key.MODE, mode, secret))
    if brightness is not None:
        commands.append(Command(Action.SET, Key.BRIGHTNESS, str(brightness), secret))
    if dim:
        commands.append(Command(Action.SET, Key.DIM, "true", secret))
    if undim:
        commands.append(Command(Action.SET, Key.DIM, "false", secret))
    if color:
        commands.append(Command(Action.SET, Key.COLOR, color, secret))
    return commands


class DsulClient:
    """Send queued commands once connected and collect the daemon's replies.

    Args:
        channel: An open :class:`~dsul.ipc.ClientChannel` (or anything with
            the same ``read``/``write`` coroutines).
        settings: Live settings; brightness bounds are updated from telemetry
            and ``password`` triggers an authentication message.
        on_telemetry: Called with every parsed :class:`HardwareTelemetry`.
        pacing: Pause after each outgoing message.
        linger: How long :meth:`run` waits for outstanding replies after the
            last command went out.
    """

    def __init__(
        self,
        channel: ClientChannel,
        settings: Settings,
        *,
        on_telemetry: Callable[[HardwareTelemetry], None] | None = None,
        pacing: float = SEND_PACING,
        linger: float = CLIENT_LINGER,
    ) -> None:
        self._channel = channel
        self.settings = settings
        self._on_telemetry = on_telemetry
        self._pacing = pacing
        self._linger = linger
        self._outbox: asyncio.Queue[Command | None] = asyncio.Queue()
        self._outstanding = 0
        self._answered = asyncio.Event()
        self.ready = asyncio.Event()
        self.done = asyncio.Event()
        self.responses: list[Command] = []
        self.telemetry: HardwareTelemetry | None = None

    # -- Outbound queue -----------------------------------------------------

    def send(self, command: Command) -> None:
        """Queue *command*; it goes out once the channel is connected."""
        self._outbox.put_nowait(command)

    def close(self) -> None:
        """Mark the end of the outbound queue."""
        self._outbox.put_nowait(_CLOSED)

    # -- Lifecycle ----------------------------------------------------------

    async def run(self) -> None:
        """Run until every queued command is sent and answered (or *linger* passes).

        Raises:
            TransportError: If the channel fails before the work is done.
        """
        receiver = asyncio.create_task(self._receive_loop(), name="dsulc-receive")
        sender = asyncio.create_task(self._send_loop(), name="dsulc-send")
        try:
            await asyncio.wait({receiver, sender}, return_when=asyncio.FIRST_COMPLETED)
            if receiver.done():
                receiver.result()
                return
            await sender
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._answered.wait(), self._linger)
        finally:
            for task in (receiver, sender):
                task.cancel()
            await asyncio.gather(receiver, sender, return_exceptions=True)

    async def _send_loop(self) -> None:
        await self.ready.wait()
        if self.settings.secret is not None:
            await self._channel.write(MessageKind.AUTH, self.settings.secret.encode("utf-8"))
            await asyncio.sleep(self._pacing)

        while True:
            command = await self._outbox.get()
            if command is _CLOSED:
                if self._outstanding == 0:
                    self._answered.set()
                self.done.set()
                return
            data = encode(command)
            await self._channel.write(MessageKind.DATA, data)
            self._outstanding += 1
            logger.debug("Client sent: %r", data)
            await asyncio.sleep(self._pacing)

    async def _receive_loop(self) -> None:
        while True:
            message = await self._channel.read()
            if message is None:
                logger.info("IPC channel closed")
                return

            if message.kind is MessageKind.STATUS:
                logger.info("IPC status: %s", message.status)
                if message.status == STATUS_CONNECTED:
                    self.ready.set()
            elif message.kind is MessageKind.ERROR:
                logger.error("IPC error: %s", message.status)
            elif message.kind is MessageKind.AUTH:
                logger.debug("Client received auth: %r", message.data)
            else:
                logger.debug("Client received data: %r", message.data)
                try:
                    command = decode(message.data)
                except MalformedFrame as exc:
                    logger.warning("Discarding malformed frame: %s", exc)
                    continue
                self.handle_response(command)

    # -- Responses ----------------------------------------------------------

    def handle_response(self, command: Command) -> None:
        """Record a reply; telemetry-sized replies refresh the brightness bounds."""
        self.responses.append(command)
        if self._outstanding > 0:
            self._outstanding -= 1
        if self._outstanding == 0 and self.done.is_set():
            self._answered.set()

        logger.info("IPC response: %s", command.value)
        if len(command.value) <= TELEMETRY_MIN_LENGTH:
            return

        self.telemetry = HardwareTelemetry.from_response(command.value)
        self.telemetry.apply_bounds(self.settings)
        if self._on_telemetry is not None:
            self._on_telemetry(self.telemetry)
