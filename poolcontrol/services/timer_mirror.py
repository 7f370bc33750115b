"""Presentation-only countdown shown by a control surface"""

import logging
from typing import Callable, Optional

from .. import config
from ..core.clock import TickerFactory
from ..models.state import TimerState

logger = logging.getLogger(__name__)

COUNTDOWN_TICKER = "countdown"


def format_hms(seconds: int) -> str:
    hours, rest = divmod(max(seconds, 0), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


class LocalTimerMirror:
    """
    1 s local countdown between authoritative timer/state messages.

    The countdown never sends commands: at zero it holds and waits for the
    controller's own expiry to arrive on timer/state.
    """

    def __init__(self, ticker_factory: TickerFactory, on_change: Callable[[], None] = None,
                 interval: float = None):
        self.ticker_factory = ticker_factory
        self.on_change = on_change
        self.interval = interval or config.COUNTDOWN_INTERVAL
        self.remaining: Optional[int] = None
        self.mode: Optional[int] = None
        self._ticker = None

    @property
    def running(self) -> bool:
        return self._ticker is not None

    def _arm(self, remaining: int):
        self._disarm()
        self.remaining = remaining
        self._ticker = self.ticker_factory(COUNTDOWN_TICKER, self.interval)

    def _disarm(self):
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def _notify(self):
        if self.on_change:
            self.on_change()

    def start_local(self, mode: int, duration: int):
        """Optimistic start right after this surface sent timer/set."""
        self.mode = mode
        self._arm(duration)
        logger.debug(f"Local countdown started at {duration}s")
        self._notify()

    def apply(self, state: TimerState):
        """Resync from an authoritative timer/state message."""
        if not state.active:
            self.stop()
            return
        self.mode = state.mode
        if self.running:
            self.remaining = state.remaining
        elif state.remaining > 0:
            self._arm(state.remaining)
            logger.debug(f"Countdown armed from timer state at {state.remaining}s")
        else:
            self.remaining = state.remaining
        self._notify()

    def tick(self, ticker=None):
        """One countdown second. A tick from a ticker this mirror no longer holds is stale."""
        if not self.running:
            return
        if ticker is not None and ticker is not self._ticker:
            logger.debug("Ignoring tick from a cancelled countdown")
            return
        if self.remaining and self.remaining > 0:
            self.remaining -= 1
            self._notify()
        if not self.remaining:
            # hold at zero until the controller reports the timer inactive
            self._disarm()

    def stop(self):
        was_shown = self.running or self.remaining is not None
        self._disarm()
        self.remaining = None
        self.mode = None
        if was_shown:
            self._notify()

    def display(self) -> str:
        if self.remaining is None:
            return ""
        return format_hms(self.remaining)
