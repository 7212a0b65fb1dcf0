"""Tests for the IPC command codec."""

from __future__ import annotations

import dataclasses

import pytest

from dsul.codec import Action, Command, Key, decode, encode
from dsul.exceptions import MalformedFrame


class TestCommand:
    def test_strings_become_enum_members(self):
        command = Command("set", "color", "red")
        assert command.action is Action.SET
        assert command.key is Key.COLOR

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError):
            Command("set", "volume", "11")

    def test_is_immutable(self):
        command = Command(Action.SET, Key.DIM, "true")
        with pytest.raises(dataclasses.FrozenInstanceError):
            command.value = "false"  # type: ignore[misc]

    def test_response_helper(self):
        assert Command.response("ok") == Command(Action.SET, Key.RESPONSE, "ok")


class TestRoundTrip:
    @pytest.mark.parametrize(
        "command",
        [
            Command(Action.SET, Key.COLOR, "255:0:0"),
            Command(Action.GET, Key.INFORMATION, "all", "s3cret"),
            Command(Action.SET, Key.RESPONSE, "v001.002.003ll016lb000:150cc255000000cb100cm002cd1#"),
            Command(Action.SET, Key.DIM, "", ""),
        ],
    )
    def test_decode_inverts_encode(self, command):
        assert decode(encode(command)) == command

    def test_secret_omitted_when_unset(self):
        assert b"secret" not in encode(Command(Action.SET, Key.MODE, "blink"))


class TestMalformed:
    @pytest.mark.parametrize(
        "data",
        [
            b"",
            b"\xff\xfe",
            b"not json",
            b"[1, 2, 3]",
            b'{"action": "set", "key": "color"}',
            b'{"action": "set", "key": "color", "value": 5}',
            b'{"action": "delete", "key": "color", "value": "red"}',
            b'{"action": "set", "key": "volume", "value": "11"}',
            b'{"action": "set", "key": "color", "value": "red", "secret": 1}',
        ],
    )
    def test_rejected(self, data):
        with pytest.raises(MalformedFrame):
            decode(data)
