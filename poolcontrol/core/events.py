"""
Event bus for one component.

Everything a component reacts to (broker connect/disconnect, incoming
messages, ticker firings, operator input) becomes an Event on a single
asyncio queue. One consumer handles them in order, so handlers never run
concurrently with each other.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    MESSAGE = "message"
    TICK = "tick"
    INPUT = "input"
    STOP = "stop"


@dataclass(frozen=True)
class Event:
    kind: EventKind
    topic: Optional[str] = None
    payload: Any = None
    source: Optional[str] = None   # ticker name for TICK; payload holds the ticker itself

    @classmethod
    def connected(cls) -> "Event":
        return cls(EventKind.CONNECTED)

    @classmethod
    def disconnected(cls, reason: Any = None) -> "Event":
        return cls(EventKind.DISCONNECTED, payload=reason)

    @classmethod
    def message(cls, topic: str, payload) -> "Event":
        return cls(EventKind.MESSAGE, topic=topic, payload=payload)

    @classmethod
    def tick(cls, source: str, ticker=None) -> "Event":
        return cls(EventKind.TICK, source=source, payload=ticker)

    @classmethod
    def user_input(cls, line: str) -> "Event":
        return cls(EventKind.INPUT, payload=line)


class EventBus:
    """Single-consumer queue; post() is safe to call from any thread."""

    def __init__(self, loop: asyncio.AbstractEventLoop = None):
        self._loop = loop
        self._queue: Optional[asyncio.Queue] = None
        self._running = False

    def bind(self, loop: asyncio.AbstractEventLoop = None):
        """Attach to the running loop (call from inside it)."""
        self._loop = loop or asyncio.get_running_loop()
        if self._queue is None:
            self._queue = asyncio.Queue()

    def post(self, event: Event):
        if self._loop is None or self._queue is None:
            logger.warning(f"Event bus not bound - dropping {event.kind.value} event")
            return
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is self._loop:
            self._queue.put_nowait(event)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    def stop(self):
        self.post(Event(EventKind.STOP))

    async def run(self, handler: Callable[[Event], Awaitable[None]]):
        """Dispatch events to handler one at a time until stop()."""
        if self._queue is None:
            self.bind()
        self._running = True
        logger.debug("Event bus started")

        while self._running:
            event = await self._queue.get()
            if event.kind is EventKind.STOP:
                self._running = False
                break
            try:
                await handler(event)
            except Exception as e:
                logger.error(f"Error handling {event.kind.value} event: {e}", exc_info=True)

        logger.debug("Event bus stopped")
