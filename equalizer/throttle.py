from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from config import THROTTLE_INTERVAL_MS

logger = logging.getLogger(__name__)


class ThrottledWriter:
    """
    Applies every value locally but forwards at most one network write at a time.

    A call inside the interval, or while the previous write is still in flight,
    only updates local state; its network write is dropped rather than queued.
    The next call after the interval reopens carries whatever value it has.
    """

    def __init__(
        self,
        apply: Callable[[float], None],
        send: Callable[[float], Awaitable],
        interval_ms: float = THROTTLE_INTERVAL_MS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._apply = apply
        self._send = send
        self._interval_sec = max(0.0, float(interval_ms)) / 1000.0
        self._clock = clock
        self._last_sent: Optional[float] = None
        self._in_flight: Optional[asyncio.Future] = None
        self.dropped = 0

    @property
    def in_flight(self) -> bool:
        return self._in_flight is not None and not self._in_flight.done()

    def __call__(self, value) -> Optional[asyncio.Future]:
        self._apply(value)

        now = self._clock()
        if self.in_flight or (
            self._last_sent is not None and now - self._last_sent < self._interval_sec
        ):
            self.dropped += 1
            logger.debug("Throttled write of %r", value)
            return None

        self._last_sent = now
        self._in_flight = asyncio.ensure_future(self._send(value))
        return self._in_flight


def throttle(apply, send, interval_ms: float = THROTTLE_INTERVAL_MS, clock=time.monotonic) -> ThrottledWriter:
    return ThrottledWriter(apply, send, interval_ms=interval_ms, clock=clock)
