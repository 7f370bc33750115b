"""
Control surface: mirrors the controller from retained state messages and
issues operator commands.

The mirror is only ever written from *_state messages; a command never
changes it directly, the controller's answer does.
"""

import logging
from typing import Callable, List, Optional

from .. import config
from ..models.state import MirrorState, PumpState, TimerCommand, ValveMode
from ..mqtt.payloads import (
    PayloadError,
    parse_pump_state,
    parse_temperature,
    parse_timer_state,
    parse_valve_state,
    parse_wifi_state,
)
from ..mqtt.topics import Topics
from ..services.scheduler import EMIT_VALVE, ProgramScheduler
from ..services.timer_mirror import COUNTDOWN_TICKER, LocalTimerMirror
from .clock import Clock, TickerFactory
from .events import Event, EventKind

logger = logging.getLogger(__name__)

PROGRAM_TICKER = "programs"

Listener = Callable[[str], None]


class ControlSurface:

    def __init__(self, topics: Topics, publisher, ticker_factory: TickerFactory,
                 clock: Clock = None, store=None,
                 on_conflict: Callable[[str, List[str]], None] = None):
        self.topics = topics
        self.publisher = publisher
        self.ticker_factory = ticker_factory
        self.clock = clock or Clock()

        self.mirror = MirrorState()
        self.connected = False
        self._timer_stop_pending = False
        self._awaiting_timer_state = False
        self._listeners: List[Listener] = []
        self._program_ticker = None

        self.timer = LocalTimerMirror(ticker_factory, on_change=lambda: self._notify("countdown"))

        self.scheduler: Optional[ProgramScheduler] = None
        if store is not None:
            self.scheduler = ProgramScheduler(
                store,
                emit=self._emit_program_command,
                clock=self.clock,
                on_conflict=on_conflict,
                is_blocked=self.timer_active,
            )

        self._parsers = {
            topics.pump_state: self._apply_pump,
            topics.valve_state: self._apply_valve,
            topics.wifi_state: self._apply_wifi,
            topics.timer_state: self._apply_timer,
            topics.temperature_state: self._apply_temperature,
        }

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def add_listener(self, listener: Listener):
        """listener(field) is called after every mirror change."""
        self._listeners.append(listener)

    def _notify(self, field: str):
        for listener in self._listeners:
            listener(field)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start(self):
        """Arm the program evaluation ticker."""
        if self.scheduler is not None and self._program_ticker is None:
            self._program_ticker = self.ticker_factory(PROGRAM_TICKER, config.PROGRAM_CHECK_INTERVAL)

    def shutdown(self):
        if self._program_ticker is not None:
            self._program_ticker.cancel()
            self._program_ticker = None
        self.timer.stop()

    # =========================================================================
    # EVENT DISPATCH
    # =========================================================================

    async def handle_event(self, event: Event):
        if event.kind is EventKind.CONNECTED:
            self._on_connected()
        elif event.kind is EventKind.DISCONNECTED:
            self._on_disconnected(event.payload)
        elif event.kind is EventKind.MESSAGE:
            self._on_message(event.topic, event.payload)
        elif event.kind is EventKind.TICK:
            if event.source == COUNTDOWN_TICKER:
                self.timer.tick(event.payload)
            elif event.source == PROGRAM_TICKER:
                self._evaluate_programs()

    def _on_connected(self):
        logger.info("Connected - waiting for retained state")
        self.connected = True
        self.mirror.reset()
        self.timer.stop()
        self._timer_stop_pending = False
        for topic in self.topics.state_topics():
            self.publisher.subscribe(topic)
        self._notify("connection")
        # programs are evaluated once the retained timer/state shows whether a timer runs
        self._awaiting_timer_state = True

    def _on_disconnected(self, reason):
        logger.warning(f"Connection lost ({reason}) - commands disabled until reconnect")
        self.connected = False
        self._awaiting_timer_state = False
        self._notify("connection")

    def _on_message(self, topic: str, payload):
        apply = self._parsers.get(topic)
        if apply is None:
            logger.debug(f"Ignoring message on unhandled topic {topic}")
            return
        try:
            field = apply(payload)
        except PayloadError as e:
            logger.error(f"Dropping message on {topic}: {e}")
            return
        self._notify(field)
        if field == "timer" and self._awaiting_timer_state:
            self._awaiting_timer_state = False
            self._evaluate_programs()

    def _evaluate_programs(self):
        if self.scheduler is None:
            return
        if not self.connected or self._awaiting_timer_state:
            logger.debug("Program evaluation deferred until the broker state is known")
            return
        self.scheduler.evaluate()

    # =========================================================================
    # MIRROR UPDATES
    # =========================================================================

    def _apply_pump(self, payload) -> str:
        self.mirror.pump = parse_pump_state(payload)
        return "pump"

    def _apply_valve(self, payload) -> str:
        self.mirror.valve = parse_valve_state(payload)
        return "valve"

    def _apply_wifi(self, payload) -> str:
        self.mirror.wifi = parse_wifi_state(payload)
        return "wifi"

    def _apply_timer(self, payload) -> str:
        state = parse_timer_state(payload)
        self.mirror.timer = state
        self._timer_stop_pending = False
        self.timer.apply(state)
        return "timer"

    def _apply_temperature(self, payload) -> str:
        self.mirror.temperature = parse_temperature(payload)
        return "temperature"

    # =========================================================================
    # OPERATOR COMMANDS
    # =========================================================================

    def timer_active(self) -> bool:
        if self._timer_stop_pending:
            return False
        return self.timer.running or bool(self.mirror.timer and self.mirror.timer.active)

    def _require_connection(self) -> bool:
        if not self.connected:
            logger.warning("Not connected to broker - command refused")
            return False
        return True

    def _take_manual_control(self):
        """Pause programs first, then cancel any running timer."""
        if self.scheduler is not None and self.scheduler.manual_override():
            logger.warning("Program conflict - switching to manual control")
        if self.timer_active():
            logger.warning("Timer conflict - timer cancelled")
            self._send_timer_stop()

    def _send_timer_stop(self):
        mode = (self.mirror.timer.mode if self.mirror.timer else None) or self.timer.mode or 1
        self.publisher.publish(self.topics.timer_set, TimerCommand(mode=mode, duration=0).to_payload())
        self.timer.stop()
        self._timer_stop_pending = True

    def set_pump(self, on: bool) -> bool:
        if not self._require_connection():
            return False
        self._take_manual_control()
        logger.info(f"{'Turning pump on' if on else 'Turning pump off'}...")
        return self.publisher.publish(self.topics.pump_set, PumpState.from_bool(on).value)

    def toggle_pump(self) -> bool:
        """Toggle from the last known state; UNKNOWN counts as off."""
        return self.set_pump(not self.mirror.pump.is_on)

    def select_valve(self, mode: int) -> bool:
        """Select a valve mode; picking the active mode switches to the other one."""
        requested = ValveMode.from_number(mode)
        if not self._require_connection():
            return False
        target = requested.other() if requested is self.mirror.valve else requested
        self._take_manual_control()
        logger.info(f"Switching valves to mode {target.value} ({target.label})...")
        return self.publisher.publish(self.topics.valve_set, target.value)

    def start_timer(self, mode: int, duration: int) -> bool:
        ValveMode.from_number(mode)
        if duration <= 0:
            raise ValueError("timer duration must be positive")
        if not self._require_connection():
            return False
        if self.scheduler is not None and self.scheduler.manual_override():
            logger.warning("Program conflict - timer takes manual control")
        command = TimerCommand(mode=mode, duration=duration)
        ok = self.publisher.publish(self.topics.timer_set, command.to_payload())
        if ok:
            self._timer_stop_pending = False
            self.timer.start_local(mode, duration)
        return ok

    def stop_timer(self) -> bool:
        if not self._require_connection():
            return False
        logger.info("Timer stopped manually")
        self._send_timer_stop()
        return True

    def clear_wifi(self) -> bool:
        if not self._require_connection():
            return False
        logger.warning("Requesting WiFi credential reset on the controller")
        return self.publisher.publish(self.topics.wifi_clear, "CLEAR")

    def _emit_program_command(self, kind: str, payload: str) -> bool:
        topic = self.topics.valve_set if kind == EMIT_VALVE else self.topics.pump_set
        return self.publisher.publish(topic, payload)

    # =========================================================================
    # DISPLAY
    # =========================================================================

    def status_lines(self) -> List[str]:
        m = self.mirror
        lines = [f"Broker: {'connected' if self.connected else 'DISCONNECTED'}",
                 f"Pump: {m.pump.value}"]
        if m.valve is ValveMode.UNKNOWN:
            lines.append("Valve: UNKNOWN")
        else:
            lines.append(f"Valve: {m.valve.value} ({m.valve.label})")
        if m.wifi is None:
            lines.append("WiFi: -")
        elif m.wifi.is_connected:
            lines.append(f"WiFi: {m.wifi.ssid} {m.wifi.ip} {m.wifi.rssi} dBm ({m.wifi.quality.value if m.wifi.quality else '?'})")
        else:
            lines.append("WiFi: disconnected")
        lines.append(f"Temperature: {m.temperature:.1f} °C" if m.temperature is not None else "Temperature: -")
        countdown = self.timer.display()
        lines.append(f"Timer: {countdown} (mode {self.timer.mode})" if countdown else "Timer: inactive")
        if self.scheduler is not None:
            lines.append(f"Programs: {self.scheduler.state.value}"
                         + (f" ({self.scheduler.executing.program_name})" if self.scheduler.executing else ""))
        return lines
