"""
Pool controller: owns the hardware and the authoritative device state.

Every command arrives as an Event from the bus; every state change is
published retained on its *_state topic so that any surface can rebuild
its view from the broker alone.
"""

import logging
from typing import Callable

from .. import config
from ..models.state import DeviceState, PumpState, TimerState, ValveMode, WifiState
from ..mqtt.payloads import (
    PayloadError,
    PumpCommand,
    ValveCommand,
    format_temperature,
    parse_pump_command,
    parse_timer_command,
    parse_valve_command,
)
from ..mqtt.topics import Topics
from .clock import Clock, TickerFactory
from .events import Event, EventKind

logger = logging.getLogger(__name__)

TIMER_TICKER = "timer"
WIFI_TICKER = "wifi"
TEMPERATURE_TICKER = "temperature"


class PoolController:
    """
    Args:
        topics: channel names for this device
        publisher: MQTT client (publish/subscribe/disconnect)
        hardware: PoolHardware or a fake with set_pump/set_valve/read_temperature
        clock: time source, injectable for tests
        network: NetworkMonitor for wifi/state, None reports disconnected
        credentials: store exposing clear_credentials(), erased by wifi/clear
        on_reset: called once the controller asks to be restarted
        ticker_factory: (name, interval) -> ticker with cancel()
    """

    def __init__(self, topics: Topics, publisher, hardware, clock: Clock = None,
                 network=None, credentials=None, on_reset: Callable[[], None] = None,
                 ticker_factory: TickerFactory = None):
        self.topics = topics
        self.publisher = publisher
        self.hardware = hardware
        self.clock = clock or Clock()
        self.network = network
        self.credentials = credentials
        self.on_reset = on_reset
        self.ticker_factory = ticker_factory

        self.state = DeviceState()
        self._timer_ticker = None
        self._periodic = []
        self._timer_last_update = 0.0
        self._timer_last_publish = 0.0

        self._handlers = {
            topics.pump_set: self._handle_pump,
            topics.valve_set: self._handle_valve,
            topics.timer_set: self._handle_timer,
            topics.wifi_clear: self._handle_wifi_clear,
        }

        # Boot into a known-safe relay state
        self.hardware.set_pump(False)
        self.hardware.set_valve(self.state.valve)
        logger.info("Pool controller initialized")

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def start_periodic(self):
        """Arm the wifi and temperature publishers."""
        if self.ticker_factory is None:
            return
        self._periodic = [
            self.ticker_factory(WIFI_TICKER, config.WIFI_STATE_INTERVAL),
            self.ticker_factory(TEMPERATURE_TICKER, config.TEMP_PUBLISH_INTERVAL),
        ]

    def shutdown(self):
        """Cancel every ticker and leave the pump off."""
        for ticker in self._periodic:
            ticker.cancel()
        self._periodic = []
        self._cancel_timer_ticker()
        self.hardware.set_pump(False)
        logger.info("Pool controller stopped")

    # =========================================================================
    # EVENT DISPATCH
    # =========================================================================

    async def handle_event(self, event: Event):
        if event.kind is EventKind.CONNECTED:
            self._on_connected()
        elif event.kind is EventKind.DISCONNECTED:
            logger.warning(f"Broker connection lost ({event.payload}) - waiting for reconnect")
        elif event.kind is EventKind.MESSAGE:
            await self._on_message(event.topic, event.payload)
        elif event.kind is EventKind.TICK:
            self._on_tick(event.source)

    def _on_connected(self):
        for topic in self.topics.command_topics():
            self.publisher.subscribe(topic)
        self.publish_pump()
        self.publish_valve()
        self.publish_wifi()
        self.publish_timer()
        self.sample_temperature()

    async def _on_message(self, topic: str, payload):
        handler = self._handlers.get(topic)
        if handler is None:
            logger.debug(f"Ignoring message on unhandled topic {topic}")
            return
        try:
            await handler(payload)
        except PayloadError as e:
            logger.error(f"Dropping message on {topic}: {e}")

    def _on_tick(self, source: str):
        if source == TIMER_TICKER:
            self._timer_tick()
        elif source == WIFI_TICKER:
            self.publish_wifi()
        elif source == TEMPERATURE_TICKER:
            self.sample_temperature()

    # =========================================================================
    # STATE PUBLISHING (all retained)
    # =========================================================================

    def publish_pump(self):
        self.publisher.publish(self.topics.pump_state, self.state.pump.value, retain=True)

    def publish_valve(self):
        self.publisher.publish(self.topics.valve_state, self.state.valve.value, retain=True)

    def publish_wifi(self):
        if self.network is not None:
            self.state.wifi = self.network.read_wifi_state()
        self.publisher.publish(self.topics.wifi_state, self.state.wifi.to_payload(), retain=True)

    def publish_timer(self):
        self.publisher.publish(self.topics.timer_state, self.state.timer.to_payload(), retain=True)
        self._timer_last_publish = self.clock.monotonic()

    def sample_temperature(self):
        """Read the probe and publish; an invalid reading is skipped."""
        value = self.hardware.read_temperature()
        if value is None:
            logger.warning("Skip temperature publish - invalid reading")
            return
        self.state.temperature = value
        self.publisher.publish(self.topics.temperature_state, format_temperature(value), retain=True)

    # =========================================================================
    # ACTUATION
    # =========================================================================

    def set_pump(self, on: bool):
        self.hardware.set_pump(on)
        self.state.pump = PumpState.from_bool(on)
        self.publish_pump()

    def set_valve(self, mode: ValveMode):
        if mode is self.state.valve:
            logger.debug(f"Valve already in mode {mode.value}, republishing only")
        else:
            self.hardware.set_valve(mode)
            self.state.valve = mode
        self.publish_valve()

    # =========================================================================
    # COMMAND HANDLERS
    # =========================================================================

    async def _handle_pump(self, payload):
        command = parse_pump_command(payload)
        if command is PumpCommand.TOGGLE:
            self.set_pump(not self.state.pump.is_on)
        else:
            self.set_pump(command is PumpCommand.ON)

    async def _handle_valve(self, payload):
        command = parse_valve_command(payload)
        if command is ValveCommand.TOGGLE:
            self.set_valve(self.state.valve.other())
        else:
            self.set_valve(ValveMode(command.value))

    async def _handle_timer(self, payload):
        command = parse_timer_command(payload)
        if command.is_stop:
            logger.info("Timer stop command received")
            self.stop_timer()
            return
        try:
            mode = ValveMode.from_number(command.mode)
        except ValueError as e:
            raise PayloadError(str(e)) from e
        await self.start_timer(mode, command.duration)

    async def _handle_wifi_clear(self, payload):
        logger.warning("WiFi clear command received - erasing credentials and restarting")
        self.state.wifi = WifiState.disconnected()
        self.publisher.publish(self.topics.wifi_state, self.state.wifi.to_payload(), retain=True)
        await self.clock.sleep(config.RESET_PUBLISH_PAUSE)
        self.publisher.disconnect()

        if self.credentials is not None:
            self.credentials.clear_credentials()
        logger.info(f"Credentials erased. Restarting in {config.RESET_RESTART_DELAY} seconds...")
        await self.clock.sleep(config.RESET_RESTART_DELAY)

        if self.on_reset:
            self.on_reset()

    # =========================================================================
    # TIMER
    # =========================================================================

    def _cancel_timer_ticker(self):
        if self._timer_ticker is not None:
            self._timer_ticker.cancel()
            self._timer_ticker = None

    async def start_timer(self, mode: ValveMode, duration: int):
        logger.info(f"Starting timer: mode={mode.value}, duration={duration}s")
        self._cancel_timer_ticker()
        self.state.timer = TimerState(active=True, remaining=duration, mode=mode.number,
                                      duration=duration)

        self.set_valve(mode)
        await self.clock.sleep(config.VALVE_SWITCH_DELAY)
        self.set_pump(True)

        self._timer_last_update = self.clock.monotonic()
        if self.ticker_factory is not None:
            self._timer_ticker = self.ticker_factory(TIMER_TICKER, config.TIMER_TICK_INTERVAL)
        self.publish_timer()

    def stop_timer(self):
        """Clear the timer, pump OFF, republish timer and pump."""
        self._cancel_timer_ticker()
        timer = self.state.timer
        self.state.timer = TimerState(active=False, remaining=0, mode=timer.mode, duration=timer.duration)
        self.set_pump(False)
        self.publish_timer()

    def _timer_tick(self):
        timer = self.state.timer
        if not timer.active:
            return

        now = self.clock.monotonic()
        elapsed = int(now - self._timer_last_update)
        if elapsed < 1:
            return

        steps = min(elapsed, timer.remaining)
        self._timer_last_update += elapsed
        remaining = timer.remaining - steps
        self.state.timer = timer.model_copy(update={"remaining": remaining})

        if remaining == 0:
            logger.info("Timer expired")
            self.stop_timer()
            return

        if remaining % 60 == 0 or remaining <= 60:
            logger.debug(f"Timer remaining: {remaining // 60}m {remaining % 60}s")

        stale = (now - self._timer_last_publish) > config.TIMER_PUBLISH_INTERVAL
        if remaining % 10 == 0 or remaining <= 10 or stale:
            self.publish_timer()
