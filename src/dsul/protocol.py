"""
DSUL serial protocol: frame building, ack checking, and high-level actions.

This module sits between the transport (raw serial I/O) and the daemon
dispatcher.  It knows how to:

* validate values before they become frames,
* build fixed-width ASCII frames (``+l255000000#``, ``+b100#``, ...),
* check the device acknowledgement (``+!#``),
* refresh the brightness bounds from hardware telemetry.

It does **not** own the serial port — that belongs to
:class:`~dsul.transport.SerialTransport`.

Every ``get_*_string`` builder returns ``(frame, ok)``.  When ``ok`` is
``False`` the frame is empty and nothing must be sent to the device.
"""

from __future__ import annotations

import logging

from .codec import Key
from .config import Settings
from .constants import MAX_COLOR, MIN_COLOR, MIN_MODE, OK_RESPONSE
from .telemetry import HardwareTelemetry
from .transport import SerialTransport

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Fixed frames
# ---------------------------------------------------------------------------

PING = "-?#"
REQUEST_INFORMATION = "-!#"
ACKNOWLEDGE = OK_RESPONSE

_TRUTHY = {"true", "1"}

# ---------------------------------------------------------------------------
# Frame builders
# ---------------------------------------------------------------------------


def _to_int(value: str) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def get_color_string(value: str, settings: Settings | None = None) -> tuple[str, bool]:
    """Build a set-color frame from ``r:g:b`` or a configured color name."""
    if ":" not in value:
        resolved = settings.resolve_color(value) if settings is not None else None
        if resolved is None:
            return "", False
        value = resolved

    parts = [_to_int(part) for part in value.split(":")]
    if len(parts) != 3 or any(p is None or not (MIN_COLOR <= p <= MAX_COLOR) for p in parts):
        return "", False

    red, green, blue = parts
    return f"+l{red:03d}{green:03d}{blue:03d}#", True


def get_brightness_string(value: str, minimum: int, maximum: int) -> tuple[str, bool]:
    """Build a set-brightness frame, bounded by *minimum*..*maximum*."""
    level = _to_int(value)
    if level is None or not (minimum <= level <= maximum):
        return "", False
    return f"+b{level:03d}#", True


def get_mode_string(value: str, mode_count: int) -> tuple[str, bool]:
    """Build a set-mode frame for ordinal *value* in ``1..mode_count``."""
    mode = _to_int(value)
    if mode is None or not (MIN_MODE <= mode <= mode_count):
        return "", False
    return f"+m{mode:03d}#", True


def get_dim_string(value: str) -> tuple[str, bool]:
    """Build a set-dim frame; *value* must be ``0`` or ``1``."""
    dim = _to_int(value)
    if dim not in (0, 1):
        return "", False
    return f"+d{dim:1d}#", True


def is_ok(response: str) -> bool:
    """Return ``True`` only for an exact ``+!#`` acknowledgement."""
    return response == OK_RESPONSE


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class DsulProtocol:
    """Sends frames via a transport and interprets the device's answers.

    Args:
        transport: An open :class:`~dsul.transport.SerialTransport`.
        settings: Live settings; the brightness bounds are updated in place
            whenever hardware telemetry reports new limits.
    """

    def __init__(self, transport: SerialTransport, settings: Settings) -> None:
        self._tx = transport
        self.settings = settings
        self.telemetry: HardwareTelemetry | None = None

    # -- Transport helpers --------------------------------------------------

    def _send(self, label: str, value: str, frame: str, ok: bool) -> bool:
        """Exchange *frame* if it validated, and report whether it was acked."""
        if not ok:
            logger.info("Invalid %s argument: %r", label, value)
            return False
        logger.info("Setting %s: %r", label, value)
        return is_ok(self._tx.exchange(frame))

    # -- Liveness & information ---------------------------------------------

    def ping(self) -> bool:
        """Ping the device; ``True`` if it acknowledged."""
        return is_ok(self._tx.exchange(PING))

    def send_ok(self) -> None:
        """Send an unsolicited acknowledgement (no answer is expected)."""
        self._tx.write(ACKNOWLEDGE)

    def request_information(self) -> str:
        """Return the raw status string (empty on timeout)."""
        return self._tx.exchange(REQUEST_INFORMATION)

    def update_hardware_information(self) -> str:
        """Request telemetry, apply reported brightness bounds, return the raw string."""
        raw = self.request_information()
        self.telemetry = HardwareTelemetry.from_response(raw)
        self.telemetry.apply_bounds(self.settings)
        logger.debug(
            "Brightness bounds now %d-%d",
            self.settings.brightness_min,
            self.settings.brightness_max,
        )
        return raw

    # -- Setters ------------------------------------------------------------

    def set_color(self, value: str) -> bool:
        frame, ok = get_color_string(value, self.settings)
        return self._send("color", value, frame, ok)

    def set_brightness(self, value: str) -> bool:
        frame, ok = get_brightness_string(
            value, self.settings.brightness_min, self.settings.brightness_max
        )
        return self._send("brightness", value, frame, ok)

    def set_mode(self, value: str) -> bool:
        """Set the display mode by configured name (or by ordinal)."""
        ordinal = self.settings.resolve_mode(value)
        mode = str(ordinal) if ordinal is not None else value
        frame, ok = get_mode_string(mode, self.settings.mode_count)
        return self._send("mode", value, frame, ok)

    def set_dim(self, value: str) -> bool:
        """Turn dimming on for ``"true"``/``"1"``, off for anything else."""
        dim = "1" if value.lower() in _TRUTHY else "0"
        frame, ok = get_dim_string(dim)
        return self._send("dim", value, frame, ok)

    def execute(self, key: Key, value: str) -> bool:
        """Apply a ``set`` for *key*; ``False`` for keys that cannot be set."""
        match key:
            case Key.COLOR:
                return self.set_color(value)
            case Key.BRIGHTNESS:
                return self.set_brightness(value)
            case Key.MODE:
                return self.set_mode(value)
            case Key.DIM:
                return self.set_dim(value)
            case Key.INFORMATION | Key.RESPONSE:
                logger.info("Key %r cannot be set", key.value)
                return False
