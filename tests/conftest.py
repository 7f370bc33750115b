"""Shared fakes: clock, broker, hardware and manually driven tickers"""

import os
from datetime import datetime, timedelta

import pytest

# Set SIMULATE_HARDWARE before importing config
os.environ['SIMULATE_HARDWARE'] = 'true'

from poolcontrol.core.events import Event
from poolcontrol.models.state import ValveMode, WifiState
from poolcontrol.mqtt.topics import Topics
from poolcontrol.storage.local_db import LocalDatabase

MONDAY_0830 = datetime(2024, 1, 1, 8, 30)  # 2024-01-01 was a Monday


class FakeClock:
    """Time only moves when a test says so; sleep() returns immediately."""

    def __init__(self, now: datetime = MONDAY_0830, mono: float = 1000.0):
        self._now = now
        self._mono = mono
        self.sleeps = []

    def now(self) -> datetime:
        return self._now

    def monotonic(self) -> float:
        return self._mono

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.advance(seconds)

    def advance(self, seconds: float):
        self._mono += seconds
        self._now += timedelta(seconds=seconds)

    def set_now(self, now: datetime):
        self._now = now


class FakeTicker:
    def __init__(self, name: str, interval: float):
        self.name = name
        self.interval = interval
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualTickerFactory:
    """Records armed tickers; tests deliver Event.tick(name) themselves."""

    def __init__(self):
        self.created = []

    def __call__(self, name: str, interval: float) -> FakeTicker:
        ticker = FakeTicker(name, interval)
        self.created.append(ticker)
        return ticker

    def armed(self, name: str):
        return [t for t in self.created if t.name == name and not t.cancelled]


class FakeBroker:
    """Keeps the last retained payload per topic."""

    def __init__(self):
        self.retained = {}

    def publish(self, topic, payload, retain):
        if retain:
            self.retained[topic] = payload


class FakePublisher:
    """Stands in for MQTTClient: records publishes, subscriptions and disconnects."""

    def __init__(self, broker: FakeBroker = None):
        self.broker = broker or FakeBroker()
        self.connected = True
        self.published = []
        self.subscriptions = []
        self.disconnects = 0

    def publish(self, topic, payload, retain=False) -> bool:
        if not self.connected:
            return False
        self.published.append((topic, payload, retain))
        self.broker.publish(topic, payload, retain)
        return True

    def subscribe(self, topic):
        self.subscriptions.append(topic)

    def disconnect(self):
        self.disconnects += 1
        self.connected = False

    def on(self, topic):
        """Payloads published on one topic, oldest first."""
        return [payload for t, payload, _ in self.published if t == topic]

    def clear(self):
        self.published.clear()


class FakeHardware:
    def __init__(self, temperature=25.34):
        self.pump_calls = []
        self.valve_calls = []
        self.temperature = temperature

    def set_pump(self, on: bool):
        self.pump_calls.append(on)

    def set_valve(self, mode: ValveMode):
        self.valve_calls.append(mode)

    def read_temperature(self):
        return self.temperature

    def cleanup(self):
        pass


class FakeNetwork:
    def __init__(self, state: WifiState = None):
        self.state = state or WifiState.connected("Casa", "192.168.1.20", -55)

    def read_wifi_state(self) -> WifiState:
        return self.state


class FakeCredentials:
    def __init__(self):
        self.cleared = 0

    def clear_credentials(self):
        self.cleared += 1


async def deliver_retained(component, broker: FakeBroker):
    """Replay what the broker would send a fresh subscriber."""
    for topic, payload in list(broker.retained.items()):
        await component.handle_event(Event.message(topic, payload))


@pytest.fixture
def topics():
    return Topics.for_device("pool-test", "devices")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def tickers():
    return ManualTickerFactory()


@pytest.fixture
def broker():
    return FakeBroker()


@pytest.fixture
def publisher(broker):
    return FakePublisher(broker)


@pytest.fixture
def hardware():
    return FakeHardware()


@pytest.fixture
def database(tmp_path):
    return LocalDatabase(str(tmp_path / "pool.db"))
