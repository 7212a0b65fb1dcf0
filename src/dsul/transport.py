"""
Serial transport layer for the DSUL light.

Handles the physical serial connection, the read-loop with terminator
detection, and buffer hygiene.  Knows nothing about what frames mean —
that's :mod:`protocol`'s job.

Typical usage (via :class:`~dsul.protocol.DsulProtocol`)::

    transport = SerialTransport("/dev/ttyUSB0", 38400)
    transport.open()
    response = transport.exchange("-?#")
    transport.close()
"""

from __future__ import annotations

import logging
import time

import serial

from .constants import DEFAULT_BAUD, DEFAULT_PORT, DEFAULT_TIMEOUT, READ_CHUNK, SETTLE_DELAY, TERMINATOR
from .exceptions import ConnectionError

logger = logging.getLogger(__name__)


class SerialTransport:
    """Manages a serial connection to a DSUL device.

    Args:
        port: Serial port path (e.g. ``/dev/ttyUSB0``).
        baudrate: Baud rate (default 38400).
        timeout: Per-read timeout in seconds.  A read that returns nothing
            within this window ends the current exchange.
        settle: Seconds to wait after opening before first use, so the
            microcontroller has finished booting.
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baudrate: int = DEFAULT_BAUD,
        timeout: float = DEFAULT_TIMEOUT,
        settle: float = SETTLE_DELAY,
    ) -> None:
        self.port = port
        self.baudrate = baudrate
        self.timeout = timeout
        self.settle = settle
        self._ser: serial.Serial | None = None

    # -- Lifecycle ----------------------------------------------------------

    def open(self) -> None:
        """Open the serial port (8N1) and wait for the device to settle.

        Raises:
            ConnectionError: If the port cannot be opened.
        """
        logger.info("Opening serial port %s at %d baud", self.port, self.baudrate)
        try:
            self._ser = serial.Serial(
                port=self.port,
                baudrate=self.baudrate,
                bytesize=serial.EIGHTBITS,
                parity=serial.PARITY_NONE,
                stopbits=serial.STOPBITS_ONE,
                timeout=self.timeout,
            )
        except serial.SerialException as exc:
            raise ConnectionError(f"Cannot open {self.port}: {exc}") from exc

        logger.info("Port set: %d_N81", self.baudrate)
        if self.settle:
            time.sleep(self.settle)

    def close(self) -> None:
        """Close the serial port (safe to call multiple times)."""
        if self._ser and self._ser.is_open:
            self._ser.close()
            logger.info("Serial port %s closed", self.port)

    @property
    def is_open(self) -> bool:
        """Return ``True`` if the serial port is currently open."""
        return self._ser is not None and self._ser.is_open

    # -- I/O ----------------------------------------------------------------

    def write(self, frame: str) -> None:
        """Write *frame* to the device.

        Raises:
            ConnectionError: If the port is closed or the write fails.
        """
        ser = self._require_open()
        logger.debug("TX: %s", frame)
        try:
            ser.reset_input_buffer()
            ser.write(frame.encode("ascii"))
            ser.flush()
        except serial.SerialException as exc:
            raise ConnectionError(f"Write to {self.port} failed: {exc}") from exc

    def read(self) -> str:
        """Read until the ``#`` terminator or until a read returns nothing.

        Zero bytes are buffer filler and never part of the response.  An
        empty string means the device did not answer in time.

        Raises:
            ConnectionError: If the port is closed or the read fails.
        """
        ser = self._require_open()
        output = bytearray()

        while True:
            try:
                chunk = ser.read(max(1, min(ser.in_waiting, READ_CHUNK)))
            except serial.SerialException as exc:
                raise ConnectionError(f"Read from {self.port} failed: {exc}") from exc
            if not chunk:
                break

            logger.debug("Receiving: %r", chunk)
            for byte in chunk:
                if byte != 0:
                    output.append(byte)
                if byte == TERMINATOR:
                    return self._decode(output)
            if b"\n" in chunk:
                break

        return self._decode(output)

    def exchange(self, frame: str) -> str:
        """Write *frame* and return the device's raw response."""
        self.write(frame)
        return self.read()

    # -- Internal -----------------------------------------------------------

    def _require_open(self) -> serial.Serial:
        """Return the open serial port or raise."""
        if not self.is_open:
            raise ConnectionError("Serial port not open — call open() first.")
        assert self._ser is not None  # for type-checker
        return self._ser

    @staticmethod
    def _decode(raw: bytearray) -> str:
        response = raw.decode("ascii", errors="replace")
        logger.debug("RX: %s", response)
        return response
