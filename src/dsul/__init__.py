"""DSUL (Disturb State USB Light) daemon and client"""

__version__ = "0.1.0"

from .codec import Action, Command, Key, decode, encode  # noqa: E402
from .config import Settings, load_settings, save_settings  # noqa: E402
from .exceptions import (  # noqa: E402
    ConnectionError,
    DsulError,
    MalformedFrame,
    TransportError,
    ValidationError,
)
from .protocol import DsulProtocol  # noqa: E402
from .telemetry import HardwareTelemetry, parse_telemetry  # noqa: E402
from .watchdog import Watchdog  # noqa: E402

__all__ = [
    "Action",
    "Command",
    "ConnectionError",
    "DsulError",
    "DsulProtocol",
    "HardwareTelemetry",
    "Key",
    "MalformedFrame",
    "Settings",
    "TransportError",
    "ValidationError",
    "Watchdog",
    "decode",
    "encode",
    "load_settings",
    "parse_telemetry",
    "save_settings",
]
