"""Core components: event bus, clock, controller and control surface"""

from .events import Event, EventKind, EventBus
from .clock import Clock, Ticker

__all__ = ['Event', 'EventKind', 'EventBus', 'Clock', 'Ticker']
