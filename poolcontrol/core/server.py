"""Servers wiring a component to its bus, broker client and tickers"""

import asyncio
import logging
import signal
import sys
import threading
import uuid

from .. import config
from ..controllers import NetworkMonitor, PoolHardware
from ..models.state import WifiState
from ..mqtt.client import MQTTClient
from ..mqtt.topics import Topics
from ..storage.local_db import LocalDatabase
from .clock import Clock, bus_ticker_factory
from .console import SurfaceConsole
from .controller import PoolController
from .events import Event, EventBus, EventKind
from .surface import ControlSurface

logger = logging.getLogger(__name__)


class ControllerServer:
    """Runs the pool controller on the device"""

    def __init__(self):
        logger.info(f"Initializing pool controller {config.DEVICE_ID}...")

        self.topics = Topics.for_device()
        self.bus = EventBus()
        self.clock = Clock()
        self.database = LocalDatabase(config.DB_PATH)
        self.hardware = PoolHardware()

        # Broker marks us disconnected if we drop without saying goodbye
        will = (self.topics.wifi_state, WifiState.disconnected().to_payload())
        self.mqtt_client = MQTTClient(self.bus, client_id=config.DEVICE_ID, will=will)

        self.controller = PoolController(
            self.topics,
            self.mqtt_client,
            self.hardware,
            clock=self.clock,
            network=NetworkMonitor(),
            credentials=self.database,
            on_reset=self.request_reset,
            ticker_factory=bus_ticker_factory(self.bus, self.clock),
        )

        self.running = False
        self.reset_requested = False
        logger.info("Pool controller initialized successfully")

    def request_reset(self):
        logger.warning("Restart requested")
        self.reset_requested = True
        self.bus.stop()

    async def start(self):
        """Start the server and handle events until stopped"""
        logger.info("Starting pool controller...")
        self.bus.bind()
        credentials = self.database.load_credentials()
        if credentials is None:
            logger.warning("No WiFi network recorded for this controller")
        else:
            logger.info(f"Provisioned for WiFi network '{credentials[0]}'")
        self.running = True
        self.controller.start_periodic()
        self.mqtt_client.connect()
        logger.info("Pool controller started successfully")
        await self.bus.run(self.controller.handle_event)

    async def stop(self):
        """Stop the server gracefully"""
        if not self.running:
            return
        logger.info("Stopping pool controller...")
        self.running = False
        self.controller.shutdown()
        if self.mqtt_client.connected:
            self.mqtt_client.disconnect()
        self.hardware.cleanup()
        logger.info("Pool controller stopped")


class SurfaceServer:
    """Runs a control surface with an operator console on stdin"""

    def __init__(self, interactive: bool = True):
        logger.info("Initializing control surface...")

        self.topics = Topics.for_device()
        self.bus = EventBus()
        self.clock = Clock()
        self.database = LocalDatabase(config.DB_PATH)
        self.mqtt_client = MQTTClient(self.bus, client_id=f"pool-surface-{uuid.uuid4().hex[:8]}")

        self.surface = ControlSurface(
            self.topics,
            self.mqtt_client,
            bus_ticker_factory(self.bus, self.clock),
            clock=self.clock,
            store=self.database,
            on_conflict=self._on_conflict,
        )
        self.console = SurfaceConsole(self.surface)
        self.interactive = interactive
        self.running = False

        self.surface.add_listener(self._on_change)
        logger.info("Control surface initialized successfully")

    def _on_conflict(self, winner: str, losers):
        print(f"⚠️  Program conflict: '{winner}' has priority over: {', '.join(losers)}")

    def _on_change(self, field: str):
        if field in ("connection", "pump", "valve", "timer"):
            for line in self.surface.status_lines():
                print(f"  {line}")

    def _read_stdin(self):
        for line in sys.stdin:
            self.bus.post(Event.user_input(line))
        self.bus.stop()

    async def _handle_event(self, event: Event):
        if event.kind is EventKind.INPUT:
            if event.payload.strip().lower() in ("quit", "exit"):
                self.bus.stop()
                return
            for line in self.console.execute(event.payload):
                print(line)
            return
        await self.surface.handle_event(event)

    async def start(self):
        logger.info("Starting control surface...")
        self.bus.bind()
        self.running = True
        self.surface.start()
        self.mqtt_client.connect()
        if self.interactive:
            threading.Thread(target=self._read_stdin, name="console", daemon=True).start()
            print("Type 'help' for commands")
        await self.bus.run(self._handle_event)

    async def stop(self):
        if not self.running:
            return
        logger.info("Stopping control surface...")
        self.running = False
        self.surface.shutdown()
        if self.mqtt_client.connected:
            self.mqtt_client.disconnect()
        logger.info("Control surface stopped")


async def run_server(server) -> None:
    """Run a server until it stops or SIGINT/SIGTERM arrives."""
    loop = asyncio.get_running_loop()

    def signal_handler(sig):
        logger.info(f"Received signal {sig.name}")
        server.bus.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler, sig)

    try:
        await server.start()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        raise
    finally:
        await server.stop()
