"""
Settings shared by the daemon and the client, loaded from a YAML file.

The file lives in the per-user config directory (``$XDG_CONFIG_HOME/dsul``
or ``%APPDATA%\\dsul`` on Windows) and is created with defaults the first
time either program runs::

    from dsul.config import load_settings

    settings = load_settings()
    settings.resolve_color("red")   # -> "255:0:0"
"""

from __future__ import annotations

import logging
import os
import sys
from dataclasses import asdict, dataclass, field
from pathlib import Path

import yaml

from .constants import DEFAULT_BAUD, DEFAULT_NETWORK_PORT, DEFAULT_PORT, IPC_NAME, MAX_BAUD, MIN_BAUD
from .exceptions import ValidationError

logger = logging.getLogger(__name__)

CONFIG_NAME = "dsul.yml"

# ---------------------------------------------------------------------------
# Configuration data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ColorEntry:
    """A named color, ``value`` given as ``r:g:b``."""

    name: str
    value: str


@dataclass(frozen=True)
class ModeEntry:
    """A named display mode and its ordinal on the device."""

    name: str
    value: int


@dataclass
class SerialSettings:
    port: str = DEFAULT_PORT
    baudrate: int = DEFAULT_BAUD


@dataclass
class NetworkSettings:
    listen: bool = False
    server: str = ""
    port: int = DEFAULT_NETWORK_PORT


def _default_colors() -> list[ColorEntry]:
    return [
        ColorEntry("black", "0:0:0"),
        ColorEntry("white", "255:255:200"),
        ColorEntry("warmwhite", "255:230:200"),
        ColorEntry("red", "255:0:0"),
        ColorEntry("green", "0:255:0"),
        ColorEntry("blue", "0:0:255"),
        ColorEntry("cyan", "0:255:255"),
        ColorEntry("purple", "255:0:200"),
        ColorEntry("magenta", "255:0:50"),
        ColorEntry("yellow", "255:90:0"),
        ColorEntry("orange", "255:20:0"),
    ]


def _default_modes() -> list[ModeEntry]:
    return [
        ModeEntry("solid", 1),
        ModeEntry("blink", 2),
        ModeEntry("flash", 3),
        ModeEntry("pulse", 4),
    ]


@dataclass
class Settings:
    """Everything the daemon and client read from configuration.

    The brightness bounds are mutable: both sides replace them with the
    limits the hardware reports in its telemetry.
    """

    colors: list[ColorEntry] = field(default_factory=_default_colors)
    modes: list[ModeEntry] = field(default_factory=_default_modes)
    brightness_min: int = 0
    brightness_max: int = 150
    serial: SerialSettings = field(default_factory=SerialSettings)
    password: str = ""
    network: NetworkSettings = field(default_factory=NetworkSettings)

    @property
    def secret(self) -> str | None:
        """The shared secret, or ``None`` when authentication is off."""
        return self.password or None

    @property
    def mode_count(self) -> int:
        return len(self.modes)

    def resolve_color(self, name: str) -> str | None:
        """Return the ``r:g:b`` value for a configured color *name*."""
        for color in self.colors:
            if color.name == name:
                return color.value
        return None

    def resolve_mode(self, name: str) -> int | None:
        """Return the ordinal for a configured mode *name*."""
        for mode in self.modes:
            if mode.name == name:
                return mode.value
        return None

    def update_bounds(self, minimum: int | None, maximum: int | None) -> None:
        """Apply brightness limits reported by the hardware.

        A missing or negative minimum and a missing or non-positive maximum
        leave the current bound untouched.
        """
        if minimum is not None and minimum >= 0:
            self.brightness_min = minimum
        if maximum is not None and maximum > 0:
            self.brightness_max = maximum

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------


def config_dir() -> Path:
    """Return the per-user directory holding ``dsul.yml``."""
    if sys.platform.startswith("win"):
        return Path(os.environ.get("APPDATA", Path.home())) / IPC_NAME

    xdg = os.environ.get("XDG_CONFIG_HOME")
    base = Path(xdg) if xdg else Path.home() / ".config"
    return base / IPC_NAME


def default_config_path() -> Path:
    return config_dir() / CONFIG_NAME


# ---------------------------------------------------------------------------
# Loading & saving
# ---------------------------------------------------------------------------


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from *path* (default: the per-user config file).

    A missing file is created with the defaults.  Keys absent from the
    file keep their default values.

    Raises:
        ValidationError: If the file is malformed or contains invalid values.
    """
    path = Path(path) if path is not None else default_config_path()
    if not path.exists():
        logger.info("Creating default configuration at %s", path)
        settings = Settings()
        save_settings(settings, path)
        return settings

    with open(path) as f:
        raw = yaml.safe_load(f)

    if raw is None:
        return Settings()
    if not isinstance(raw, dict):
        raise ValidationError(f"Config file must be a YAML mapping, got {type(raw).__name__}")

    return _parse_settings(raw)


def save_settings(settings: Settings, path: str | Path | None = None) -> None:
    """Write *settings* to *path* (default: the per-user config file)."""
    path = Path(path) if path is not None else default_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(settings.to_dict(), f, sort_keys=False)


def _parse_settings(raw: dict) -> Settings:
    settings = Settings()

    if "colors" in raw:
        settings.colors = [_parse_color(entry) for entry in _require_list(raw, "colors")]
    if "modes" in raw:
        settings.modes = [_parse_mode(entry) for entry in _require_list(raw, "modes")]

    settings.brightness_min = _require_int(raw, "brightness_min", settings.brightness_min)
    settings.brightness_max = _require_int(raw, "brightness_max", settings.brightness_max)
    if settings.brightness_min > settings.brightness_max:
        raise ValidationError(
            f"brightness_min ({settings.brightness_min}) cannot exceed "
            f"brightness_max ({settings.brightness_max})"
        )

    password = raw.get("password") or ""
    if not isinstance(password, str):
        raise ValidationError("'password' must be a string")
    settings.password = password

    ser = raw.get("serial") or {}
    if not isinstance(ser, dict):
        raise ValidationError("'serial' must be a mapping")
    port = ser.get("port", DEFAULT_PORT)
    if not isinstance(port, str) or not port:
        raise ValidationError("'serial.port' must be a non-empty string")
    baudrate = _require_int(ser, "baudrate", DEFAULT_BAUD)
    if not (MIN_BAUD <= baudrate <= MAX_BAUD):
        raise ValidationError(f"'serial.baudrate' must be {MIN_BAUD}-{MAX_BAUD}, got {baudrate}")
    settings.serial = SerialSettings(port, baudrate)

    net = raw.get("network") or {}
    if not isinstance(net, dict):
        raise ValidationError("'network' must be a mapping")
    listen = net.get("listen", False)
    if not isinstance(listen, bool):
        raise ValidationError("'network.listen' must be a boolean")
    settings.network = NetworkSettings(
        listen=listen,
        server=str(net.get("server") or ""),
        port=_require_int(net, "port", DEFAULT_NETWORK_PORT),
    )

    return settings


def _require_list(raw: dict, key: str) -> list:
    value = raw[key]
    if not isinstance(value, list) or not value:
        raise ValidationError(f"'{key}' must be a non-empty list")
    return value


def _require_int(raw: dict, key: str, default: int) -> int:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"'{key}' must be an integer, got {value!r}")
    return value


def _parse_color(entry: object) -> ColorEntry:
    if not isinstance(entry, dict) or "name" not in entry or "value" not in entry:
        raise ValidationError(f"Color entry must have 'name' and 'value': {entry!r}")
    value = str(entry["value"])
    if value.count(":") != 2:
        raise ValidationError(f"Color {entry['name']!r} must be given as r:g:b, got {value!r}")
    return ColorEntry(str(entry["name"]), value)


def _parse_mode(entry: object) -> ModeEntry:
    if not isinstance(entry, dict) or "name" not in entry or "value" not in entry:
        raise ValidationError(f"Mode entry must have 'name' and 'value': {entry!r}")
    value = entry["value"]
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"Mode {entry['name']!r} must have a positive integer value")
    return ModeEntry(str(entry["name"]), value)
