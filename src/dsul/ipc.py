"""
Kind-tagged message channel between ``dsulc`` and ``dsuld`` over ZeroMQ.

Each message is a multipart frame ``[kind, payload]`` (the server side
also sees the peer identity that ZeroMQ's ROUTER socket prepends).  The
kinds mirror what the daemon and client care about:

* ``AUTH``   – payload is the shared secret,
* ``DATA``   – payload is an encoded :class:`~dsul.codec.Command`,
* ``STATUS`` – connection status change (client side only, e.g. ``Connected``),
* ``ERROR``  – a non-fatal transport problem worth logging.

The daemon binds a local ``ipc://`` socket, or ``tcp://*:<port>`` in
network mode; clients connect to whichever the settings point at.
"""

from __future__ import annotations

import logging
import os
import sys
import tempfile
import time
from dataclasses import dataclass
from enum import IntEnum
from pathlib import Path

import zmq
import zmq.asyncio
from zmq.utils.monitor import parse_monitor_message

from .config import Settings
from .constants import CLIENT_CONNECT_TIMEOUT, IPC_NAME
from .exceptions import TransportError

logger = logging.getLogger(__name__)

STATUS_CONNECTED = "Connected"
STATUS_RECONNECTING = "Reconnecting"

# Socket errors that mean the channel was closed on purpose
_CLOSED_ERRNOS = {zmq.ETERM, zmq.ENOTSOCK}


class MessageKind(IntEnum):
    ERROR = -2
    STATUS = -1
    AUTH = 1
    DATA = 2


@dataclass(frozen=True)
class Message:
    """One message read from a channel."""

    kind: MessageKind
    data: bytes = b""
    status: str = ""
    peer: bytes = b""


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


def _socket_path() -> Path:
    runtime = os.environ.get("XDG_RUNTIME_DIR") or tempfile.gettempdir()
    return Path(runtime) / f"{IPC_NAME}.sock"


def server_endpoint(settings: Settings) -> str:
    """Endpoint the daemon binds to."""
    if settings.network.listen:
        return f"tcp://*:{settings.network.port}"
    if sys.platform.startswith("win"):
        return f"tcp://127.0.0.1:{settings.network.port}"
    return f"ipc://{_socket_path()}"


def client_endpoint(settings: Settings) -> str:
    """Endpoint the client connects to."""
    if settings.network.server:
        return f"tcp://{settings.network.server}:{settings.network.port}"
    if sys.platform.startswith("win"):
        return f"tcp://127.0.0.1:{settings.network.port}"
    return f"ipc://{_socket_path()}"


def _encode_kind(kind: MessageKind) -> bytes:
    return str(int(kind)).encode("ascii")


def _decode_kind(raw: bytes) -> MessageKind | None:
    try:
        return MessageKind(int(raw))
    except ValueError:
        return None


def _closed(exc: zmq.ZMQError) -> bool:
    return exc.errno in _CLOSED_ERRNOS


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------


class ServerChannel:
    """ROUTER socket serving any number of clients.

    :meth:`read` returns ``None`` once the channel has been closed and
    raises :class:`~dsul.exceptions.TransportError` on any other failure.
    """

    def __init__(self, endpoint: str, context: zmq.asyncio.Context | None = None) -> None:
        self.endpoint = endpoint
        self._ctx = context or zmq.asyncio.Context.instance()
        self._sock: zmq.asyncio.Socket | None = None

    def open(self) -> None:
        logger.info("Starting IPC server on %s", self.endpoint)
        self._sock = self._ctx.socket(zmq.ROUTER)
        try:
            self._sock.bind(self.endpoint)
        except zmq.ZMQError as exc:
            self._sock.close(linger=0)
            self._sock = None
            raise TransportError(f"Cannot bind {self.endpoint}: {exc}") from exc

    def close(self) -> None:
        if self._sock is not None:
            self._sock.close(linger=0)
            self._sock = None
            logger.info("IPC server on %s closed", self.endpoint)

    async def read(self) -> Message | None:
        if self._sock is None:
            return None
        try:
            frames = await self._sock.recv_multipart()
        except zmq.ZMQError as exc:
            if _closed(exc):
                return None
            raise TransportError(f"IPC read failed: {exc}") from exc

        if len(frames) != 3:
            return Message(MessageKind.ERROR, status=f"unexpected {len(frames)}-part message")
        peer, raw_kind, data = frames
        kind = _decode_kind(raw_kind)
        if kind not in (MessageKind.AUTH, MessageKind.DATA):
            return Message(MessageKind.ERROR, status=f"unexpected message kind {raw_kind!r}", peer=peer)
        return Message(kind, data, peer=peer)

    async def write(self, kind: MessageKind, data: bytes, peer: bytes) -> None:
        if self._sock is None:
            raise TransportError("IPC server is not open")
        try:
            await self._sock.send_multipart([peer, _encode_kind(kind), data])
        except zmq.ZMQError as exc:
            raise TransportError(f"IPC write failed: {exc}") from exc


class ClientChannel:
    """DEALER socket with connection-status events from a socket monitor.

    :meth:`read` raises :class:`~dsul.exceptions.TransportError` when no
    connection has been established within *connect_timeout* seconds.
    """

    def __init__(
        self,
        endpoint: str,
        connect_timeout: float = CLIENT_CONNECT_TIMEOUT,
        context: zmq.asyncio.Context | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.connect_timeout = connect_timeout
        self._ctx = context or zmq.asyncio.Context.instance()
        self._sock: zmq.asyncio.Socket | None = None
        self._monitor: zmq.asyncio.Socket | None = None
        self._poller = zmq.asyncio.Poller()
        self._connected = False
        self._opened_at = 0.0

    def open(self) -> None:
        logger.info("Connecting to IPC server at %s", self.endpoint)
        self._sock = self._ctx.socket(zmq.DEALER)
        self._monitor = self._sock.get_monitor_socket(zmq.EVENT_CONNECTED | zmq.EVENT_DISCONNECTED)
        self._poller.register(self._sock, zmq.POLLIN)
        self._poller.register(self._monitor, zmq.POLLIN)
        self._sock.connect(self.endpoint)
        self._opened_at = time.monotonic()

    def close(self) -> None:
        if self._sock is None:
            return
        self._poller.unregister(self._sock)
        self._poller.unregister(self._monitor)
        self._sock.disable_monitor()
        self._monitor.close(linger=0)
        self._sock.close(linger=0)
        self._sock = self._monitor = None
        logger.info("IPC client for %s closed", self.endpoint)

    async def read(self) -> Message | None:
        while self._sock is not None:
            timeout_ms = -1
            if not self._connected:
                remaining = self.connect_timeout - (time.monotonic() - self._opened_at)
                if remaining <= 0:
                    raise TransportError(f"Timed out connecting to {self.endpoint}")
                timeout_ms = int(remaining * 1000) + 1

            try:
                events = dict(await self._poller.poll(timeout_ms))
                if self._monitor in events:
                    return self._status(parse_monitor_message(await self._monitor.recv_multipart()))
                if self._sock in events:
                    return self._data(await self._sock.recv_multipart())
            except zmq.ZMQError as exc:
                if _closed(exc):
                    return None
                raise TransportError(f"IPC read failed: {exc}") from exc
        return None

    async def write(self, kind: MessageKind, data: bytes) -> None:
        if self._sock is None:
            raise TransportError("IPC client is not open")
        try:
            await self._sock.send_multipart([_encode_kind(kind), data])
        except zmq.ZMQError as exc:
            raise TransportError(f"IPC write failed: {exc}") from exc

    def _status(self, event: dict) -> Message:
        if event["event"] == zmq.EVENT_CONNECTED:
            self._connected = True
            return Message(MessageKind.STATUS, status=STATUS_CONNECTED)
        return Message(MessageKind.STATUS, status=STATUS_RECONNECTING)

    @staticmethod
    def _data(frames: list[bytes]) -> Message:
        if len(frames) != 2:
            return Message(MessageKind.ERROR, status=f"unexpected {len(frames)}-part message")
        kind = _decode_kind(frames[0])
        if kind is None:
            return Message(MessageKind.ERROR, status=f"unexpected message kind {frames[0]!r}")
        return Message(kind, frames[1])
