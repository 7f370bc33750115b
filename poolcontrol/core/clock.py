"""Clock and ticker abstractions so timing can be driven by tests"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Callable, Optional

from .events import Event, EventBus

logger = logging.getLogger(__name__)


class Clock:
    """Wall clock, monotonic clock and sleep."""

    def now(self) -> datetime:
        return datetime.now()

    def monotonic(self) -> float:
        return time.monotonic()

    async def sleep(self, seconds: float):
        await asyncio.sleep(seconds)


class Ticker:
    """
    Posts Event.tick(name, self) on the bus every `interval` seconds.

    cancel() takes effect immediately; a tick already queued is still
    delivered, so handlers compare the event payload with the ticker they
    currently hold.
    """

    def __init__(self, name: str, interval: float, bus: EventBus, clock: Clock = None):
        self.name = name
        self.interval = interval
        self.bus = bus
        self.clock = clock or Clock()
        self._task: Optional[asyncio.Task] = None

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "Ticker":
        if self.active:
            return self
        self._task = asyncio.get_running_loop().create_task(self._run(), name=f"ticker-{self.name}")
        logger.debug(f"Ticker '{self.name}' armed every {self.interval}s")
        return self

    def cancel(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.debug(f"Ticker '{self.name}' cancelled")

    async def _run(self):
        while True:
            await self.clock.sleep(self.interval)
            self.bus.post(Event.tick(self.name, self))


# (name, interval) -> started ticker handle with cancel()
TickerFactory = Callable[[str, float], Ticker]


def bus_ticker_factory(bus: EventBus, clock: Clock = None) -> TickerFactory:
    def _factory(name: str, interval: float) -> Ticker:
        return Ticker(name, interval, bus, clock).start()
    return _factory
