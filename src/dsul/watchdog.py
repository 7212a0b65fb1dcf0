"""
Resettable countdown that fires when no device traffic happened for a while.

The watchdog runs on the asyncio event loop::

    dog = Watchdog(30.0, on_expiry)
    dog.start()
    ...
    dog.kick()   # after every completed exchange
    dog.stop()   # on shutdown
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


class Watchdog:
    """Call *callback* once if :meth:`kick` is not called within *interval* seconds.

    After firing the watchdog is idle until the next :meth:`kick`.
    :meth:`stop` disables it for good.
    """

    def __init__(self, interval: float, callback: Callable[[], None]) -> None:
        self.interval = interval
        self._callback = callback
        self._handle: asyncio.TimerHandle | None = None
        self._stopped = False

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def deadline(self) -> float | None:
        """Loop time at which the watchdog fires, or ``None`` when idle."""
        return self._handle.when() if self._handle is not None else None

    def start(self) -> None:
        self.kick()

    def kick(self) -> None:
        """Cancel any pending expiry and restart the countdown."""
        if self._stopped:
            return
        self._cancel()
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.interval, self._fire)

    def stop(self) -> None:
        self._stopped = True
        self._cancel()

    def _cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        logger.debug("Watchdog expired after %.1fs", self.interval)
        self._callback()
