"""Shared pytest fixtures for DSUL tests."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from dsul.config import Settings
from dsul.ipc import STATUS_CONNECTED, Message, MessageKind
from dsul.protocol import DsulProtocol
from dsul.transport import SerialTransport


class FakeSerial:
    """Lightweight stand-in for ``serial.Serial``.

    Implements the subset of the pyserial API used by
    :class:`~dsul.transport.SerialTransport`: ``write``, ``read``,
    ``in_waiting``, ``flush``, ``reset_input_buffer``, ``close``, and ``is_open``.

    By default every frame gets a ``+!#`` (success ack) response.  Call
    :meth:`set_response` to stage a custom response for the **next** write;
    after that write the default is restored.  Frames are recorded, decoded,
    in :attr:`written`, in the order the device saw them.
    """

    _DEFAULT = b"+!#"

    def __init__(self) -> None:
        self.is_open: bool = True
        self.written: list[str] = []
        self._response: bytes = b""
        self._next: list[bytes] = []

    # -- Helpers for tests --------------------------------------------------

    def set_response(self, data: str | bytes) -> None:
        """Stage a response for the next write (queued if called repeatedly)."""
        self._next.append(data.encode("ascii") if isinstance(data, str) else data)

    # -- pyserial interface -------------------------------------------------

    def write(self, data: bytes) -> int:
        self.written.append(data.decode("ascii"))
        self._response = self._next.pop(0) if self._next else self._DEFAULT
        return len(data)

    @property
    def in_waiting(self) -> int:
        return len(self._response)

    def read(self, size: int = 1) -> bytes:
        data = self._response[:size]
        self._response = self._response[size:]
        return data

    def flush(self) -> None:
        pass

    def reset_input_buffer(self) -> None:
        pass

    def close(self) -> None:
        self.is_open = False


class FakeServerChannel:
    """In-memory stand-in for :class:`~dsul.ipc.ServerChannel`."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[Message | None] = asyncio.Queue()
        self.sent: list[tuple[MessageKind, bytes, bytes]] = []

    def feed(self, kind: MessageKind, data: bytes = b"", peer: bytes = b"peer-1") -> None:
        self.inbound.put_nowait(Message(kind, data, peer=peer))

    def shutdown(self) -> None:
        self.inbound.put_nowait(None)

    async def read(self) -> Message | None:
        return await self.inbound.get()

    async def write(self, kind: MessageKind, data: bytes, peer: bytes) -> None:
        self.sent.append((kind, data, peer))


class FakeClientChannel:
    """In-memory stand-in for :class:`~dsul.ipc.ClientChannel`."""

    def __init__(self) -> None:
        self.inbound: asyncio.Queue[Message | None] = asyncio.Queue()
        self.sent: list[tuple[MessageKind, bytes]] = []

    def connect(self) -> None:
        self.inbound.put_nowait(Message(MessageKind.STATUS, status=STATUS_CONNECTED))

    def feed(self, kind: MessageKind, data: bytes = b"") -> None:
        self.inbound.put_nowait(Message(kind, data))

    async def read(self) -> Message | None:
        return await self.inbound.get()

    async def write(self, kind: MessageKind, data: bytes) -> None:
        self.sent.append((kind, data))


class LoopbackChannels:
    """A client channel wired straight into a server channel.

    Messages the client writes arrive at the server tagged with
    :attr:`PEER`; messages the server writes to that peer arrive at the
    client.
    """

    PEER = b"client-1"

    def __init__(self) -> None:
        self.server = FakeServerChannel()
        self.client = FakeClientChannel()
        self.server.write = self._server_write  # type: ignore[method-assign]
        self.client.write = self._client_write  # type: ignore[method-assign]

    async def _client_write(self, kind: MessageKind, data: bytes) -> None:
        self.client.sent.append((kind, data))
        self.server.feed(kind, data, peer=self.PEER)

    async def _server_write(self, kind: MessageKind, data: bytes, peer: bytes) -> None:
        self.server.sent.append((kind, data, peer))
        if peer == self.PEER:
            self.client.feed(kind, data)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """Poll *predicate* on the event loop until it is true or *timeout* passes."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def settings() -> Settings:
    """Default settings (4 modes, brightness 0-150, no password)."""
    return Settings()


@pytest.fixture()
def fake_serial() -> FakeSerial:
    """Return a fresh ``FakeSerial`` instance."""
    return FakeSerial()


@pytest.fixture()
def transport(fake_serial: FakeSerial) -> SerialTransport:
    """Return a ``SerialTransport`` wired to a fake serial port."""
    with patch("dsul.transport.serial.Serial", return_value=fake_serial):
        tx = SerialTransport("/dev/fake", settle=0)
        tx.open()
        return tx


@pytest.fixture()
def protocol(transport: SerialTransport, settings: Settings) -> DsulProtocol:
    """Return a ``DsulProtocol`` wired to a fake transport."""
    return DsulProtocol(transport, settings)
