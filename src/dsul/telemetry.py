"""Parsing of the status string the device returns for ``-!#``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .config import Settings

_VERSION = re.compile(r"v(\d{3})\.(\d{3})\.(\d{3})")
_LED_COUNT = re.compile(r"ll(\d{3})")
_BRIGHTNESS_BOUNDS = re.compile(r"lb(\d{3}):(\d{3})")
_CURRENT_COLOR = re.compile(r"cc(\d{3})(\d{3})(\d{3})")
_CURRENT_BRIGHTNESS = re.compile(r"cb(\d{3})")
_CURRENT_MODE = re.compile(r"cm(\d{3})")
_CURRENT_DIM = re.compile(r"cd(\d)")


def _int(pattern: re.Pattern, raw: str) -> int | None:
    match = pattern.search(raw)
    return int(match.group(1)) if match else None


@dataclass(frozen=True)
class HardwareTelemetry:
    """Snapshot of the device state.

    Every field is ``None`` when its pattern is missing from the raw string.
    """

    raw: str = ""
    version: str | None = None
    led_count: int | None = None
    brightness_min: int | None = None
    brightness_max: int | None = None
    current_color: str | None = None
    current_brightness: int | None = None
    current_mode: int | None = None
    current_dim: int | None = None

    @classmethod
    def from_response(cls, raw: str) -> HardwareTelemetry:
        """Parse a raw status string such as
        ``v001.002.003ll016lb000:150cc255000000cb100cm002cd1#``.
        """
        version = None
        match = _VERSION.search(raw)
        if match:
            version = ".".join(str(int(part)) for part in match.groups())

        brightness_min = brightness_max = None
        match = _BRIGHTNESS_BOUNDS.search(raw)
        if match:
            brightness_min, brightness_max = int(match.group(1)), int(match.group(2))

        current_color = None
        match = _CURRENT_COLOR.search(raw)
        if match:
            current_color = ":".join(str(int(part)) for part in match.groups())

        return cls(
            raw=raw,
            version=version,
            led_count=_int(_LED_COUNT, raw),
            brightness_min=brightness_min,
            brightness_max=brightness_max,
            current_color=current_color,
            current_brightness=_int(_CURRENT_BRIGHTNESS, raw),
            current_mode=_int(_CURRENT_MODE, raw),
            current_dim=_int(_CURRENT_DIM, raw),
        )

    def apply_bounds(self, settings: Settings) -> tuple[int, int]:
        """Apply the reported brightness bounds to *settings* and return them."""
        settings.update_bounds(self.brightness_min, self.brightness_max)
        return settings.brightness_min, settings.brightness_max


def parse_telemetry(raw: str) -> HardwareTelemetry:
    return HardwareTelemetry.from_response(raw)
