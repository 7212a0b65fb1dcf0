"""
Wire frame codec for commands exchanged between ``dsulc`` and ``dsuld``.

A :class:`Command` is serialized to compact UTF-8 JSON for transport.
Decoding is strict: anything that is not a well-formed command raises
:class:`~dsul.exceptions.MalformedFrame`, which callers log and discard.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum

from .exceptions import MalformedFrame


class Action(str, Enum):
    """What the sender wants done with a key."""

    GET = "get"
    SET = "set"


class Key(str, Enum):
    """Domain keys a command may address."""

    COLOR = "color"
    BRIGHTNESS = "brightness"
    MODE = "mode"
    DIM = "dim"
    INFORMATION = "information"
    RESPONSE = "response"


@dataclass(frozen=True)
class Command:
    """A single command or response travelling over IPC."""

    action: Action
    key: Key
    value: str
    secret: str | None = None

    def __post_init__(self) -> None:
        # Accept plain strings, always store the enum members
        object.__setattr__(self, "action", Action(self.action))
        object.__setattr__(self, "key", Key(self.key))

    @classmethod
    def response(cls, value: str) -> Command:
        """Build the daemon's reply carrying *value*."""
        return cls(Action.SET, Key.RESPONSE, value)


_FIELDS = ("action", "key", "value")


def encode(command: Command) -> bytes:
    """Serialize *command* to bytes."""
    payload = {
        "action": command.action.value,
        "key": command.key.value,
        "value": command.value,
    }
    if command.secret is not None:
        payload["secret"] = command.secret
    return json.dumps(payload, separators=(",", ":")).encode("utf-8")


def decode(data: bytes) -> Command:
    """Deserialize *data* into a :class:`Command`.

    Raises:
        MalformedFrame: If *data* is not a valid encoded command.
    """
    try:
        raw = json.loads(data.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise MalformedFrame(f"Cannot decode frame {data!r}: {exc}") from exc

    if not isinstance(raw, dict):
        raise MalformedFrame(f"Frame must be an object, got {type(raw).__name__}")

    for name in _FIELDS:
        if not isinstance(raw.get(name), str):
            raise MalformedFrame(f"Frame field {name!r} missing or not a string: {raw!r}")

    secret = raw.get("secret")
    if secret is not None and not isinstance(secret, str):
        raise MalformedFrame(f"Frame field 'secret' must be a string: {raw!r}")

    try:
        return Command(raw["action"], raw["key"], raw["value"], secret)
    except ValueError as exc:
        raise MalformedFrame(f"Unknown action or key in frame {raw!r}") from exc
