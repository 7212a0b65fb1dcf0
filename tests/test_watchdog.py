"""Tests for the resettable watchdog."""

from __future__ import annotations

import asyncio

import pytest

from dsul.watchdog import Watchdog

INTERVAL = 0.05


class Counter:
    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> None:
        self.calls += 1


@pytest.mark.asyncio
async def test_fires_once_when_not_kicked():
    fired = Counter()
    dog = Watchdog(INTERVAL, fired)
    dog.start()
    await asyncio.sleep(INTERVAL * 4)
    assert fired.calls == 1
    assert not dog.armed


@pytest.mark.asyncio
async def test_never_fires_while_kicked_in_time():
    fired = Counter()
    dog = Watchdog(INTERVAL, fired)
    dog.start()
    for _ in range(20):
        await asyncio.sleep(INTERVAL / 3)
        dog.kick()
    assert fired.calls == 0
    dog.stop()


@pytest.mark.asyncio
async def test_kick_after_firing_rearms():
    fired = Counter()
    dog = Watchdog(INTERVAL, fired)
    dog.start()
    await asyncio.sleep(INTERVAL * 2)
    dog.kick()
    await asyncio.sleep(INTERVAL * 2)
    assert fired.calls == 2


@pytest.mark.asyncio
async def test_kick_moves_deadline():
    dog = Watchdog(10.0, Counter())
    dog.start()
    first = dog.deadline
    await asyncio.sleep(0.01)
    dog.kick()
    assert dog.deadline > first
    dog.stop()


@pytest.mark.asyncio
async def test_stop_is_permanent():
    fired = Counter()
    dog = Watchdog(INTERVAL, fired)
    dog.start()
    dog.stop()
    dog.kick()
    await asyncio.sleep(INTERVAL * 3)
    assert fired.calls == 0
    assert dog.deadline is None
