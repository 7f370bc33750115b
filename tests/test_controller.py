"""Controller message handling, timer countdown and periodic state"""

import json

import pytest

from conftest import FakeCredentials, FakeNetwork
from poolcontrol.core.controller import PoolController, TEMPERATURE_TICKER, TIMER_TICKER, WIFI_TICKER
from poolcontrol.core.events import Event
from poolcontrol.models.state import PumpState, ValveMode


@pytest.fixture
def credentials():
    return FakeCredentials()


@pytest.fixture
def resets():
    return []


@pytest.fixture
def controller(topics, publisher, hardware, clock, tickers, credentials, resets):
    return PoolController(topics, publisher, hardware, clock=clock, credentials=credentials,
                          on_reset=lambda: resets.append(True), ticker_factory=tickers)


async def send(controller, topic, payload):
    await controller.handle_event(Event.message(topic, payload))


def timer_payloads(publisher, topics):
    return [json.loads(p) for p in publisher.on(topics.timer_state)]


class TestConnect:

    async def test_subscribes_to_commands_and_publishes_state(self, controller, publisher, topics):
        await controller.handle_event(Event.connected())

        assert publisher.subscriptions == topics.command_topics()
        assert publisher.on(topics.pump_state) == ["OFF"]
        assert publisher.on(topics.valve_state) == ["1"]
        assert json.loads(publisher.on(topics.wifi_state)[0]) == {"status": "disconnected"}
        assert timer_payloads(publisher, topics) == [
            {"active": False, "remaining": 0, "mode": 1, "duration": 0}
        ]
        assert publisher.on(topics.temperature_state) == ["25.3"]
        assert all(retain for _, _, retain in publisher.published)

    async def test_timer_keys_keep_wire_order(self, controller, publisher, topics):
        await controller.handle_event(Event.connected())
        raw = publisher.on(topics.timer_state)[0]
        assert list(json.loads(raw)) == ["active", "remaining", "mode", "duration"]


class TestPump:

    async def test_on_off(self, controller, publisher, topics, hardware):
        await send(controller, topics.pump_set, b"ON")
        assert controller.state.pump is PumpState.ON
        await send(controller, topics.pump_set, b"OFF")
        assert controller.state.pump is PumpState.OFF
        assert publisher.on(topics.pump_state) == ["ON", "OFF"]
        assert hardware.pump_calls[-2:] == [True, False]

    @pytest.mark.parametrize("start", ["ON", "OFF"])
    async def test_toggle_negates_own_state(self, controller, publisher, topics, start):
        await send(controller, topics.pump_set, start)
        before = controller.state.pump

        await send(controller, topics.pump_set, "TOGGLE")

        assert controller.state.pump.is_on is not before.is_on
        assert publisher.on(topics.pump_state)[-1] == controller.state.pump.value

    @pytest.mark.parametrize("payload,expected", [
        (b" on ", PumpState.ON),
        (b"1", PumpState.ON),
        (b"0", PumpState.OFF),
        (b"toggle", PumpState.ON),
    ])
    async def test_accepted_spellings(self, controller, topics, payload, expected):
        await send(controller, topics.pump_set, payload)
        assert controller.state.pump is expected

    async def test_unknown_verb_is_dropped(self, controller, publisher, topics, hardware):
        calls = len(hardware.pump_calls)
        await send(controller, topics.pump_set, b"BLINK")
        assert controller.state.pump is PumpState.OFF
        assert publisher.published == []
        assert len(hardware.pump_calls) == calls


class TestValve:

    async def test_same_mode_republishes_without_driving_relay(self, controller, publisher, topics, hardware):
        calls = len(hardware.valve_calls)

        await send(controller, topics.valve_set, b"1")

        assert publisher.on(topics.valve_state) == ["1"]
        assert len(hardware.valve_calls) == calls

    async def test_change_and_toggle(self, controller, publisher, topics, hardware):
        await send(controller, topics.valve_set, b"2")
        assert controller.state.valve is ValveMode.EJECTORS
        await send(controller, topics.valve_set, b"TOGGLE")
        assert controller.state.valve is ValveMode.CASCADE
        assert publisher.on(topics.valve_state) == ["2", "1"]
        assert hardware.valve_calls[-2:] == [ValveMode.EJECTORS, ValveMode.CASCADE]

    async def test_invalid_mode_is_dropped(self, controller, publisher, topics):
        await send(controller, topics.valve_set, b"3")
        assert publisher.published == []


class TestTimer:

    async def start(self, controller, topics, mode=2, duration=5):
        await send(controller, topics.timer_set, json.dumps({"mode": mode, "duration": duration}))

    async def tick(self, controller, clock, seconds=1):
        clock.advance(seconds)
        await controller.handle_event(Event.tick(TIMER_TICKER))

    async def test_start_sets_valve_waits_then_pump_on(self, controller, publisher, topics, clock, tickers):
        await self.start(controller, topics)

        assert [t for t, _, _ in publisher.published] == [
            topics.valve_state, topics.pump_state, topics.timer_state,
        ]
        assert clock.sleeps == [0.5]
        assert controller.state.valve is ValveMode.EJECTORS
        assert controller.state.pump is PumpState.ON
        assert timer_payloads(publisher, topics) == [
            {"active": True, "remaining": 5, "mode": 2, "duration": 5}
        ]
        [ticker] = tickers.armed(TIMER_TICKER)
        assert ticker.interval == 1

    async def test_counts_down_one_per_second_then_pump_off(self, controller, topics, clock, tickers, hardware):
        await self.start(controller, topics, duration=5)

        seen = []
        for _ in range(4):
            await self.tick(controller, clock)
            seen.append(controller.state.timer.remaining)
        assert seen == [4, 3, 2, 1]
        assert controller.state.timer.active

        await self.tick(controller, clock)

        assert controller.state.timer.active is False
        assert controller.state.timer.remaining == 0
        assert controller.state.pump is PumpState.OFF
        assert hardware.pump_calls[-1] is False
        assert tickers.armed(TIMER_TICKER) == []

    async def test_late_tick_catches_up(self, controller, topics, clock):
        await self.start(controller, topics, duration=60)
        await self.tick(controller, clock, seconds=3)
        assert controller.state.timer.remaining == 57

    async def test_early_tick_changes_nothing(self, controller, topics, clock):
        await self.start(controller, topics, duration=60)
        await self.tick(controller, clock, seconds=0.4)
        assert controller.state.timer.remaining == 60

    async def test_publish_cadence(self, controller, publisher, topics, clock):
        await self.start(controller, topics, duration=25)
        for _ in range(25):
            await self.tick(controller, clock)

        remaining = [p["remaining"] for p in timer_payloads(publisher, topics)]
        assert remaining == [25, 20, 10, 9, 8, 7, 6, 5, 4, 3, 2, 1, 0]
        assert timer_payloads(publisher, topics)[-1]["active"] is False

    async def test_stale_timer_state_is_refreshed(self, controller, publisher, topics, clock):
        await self.start(controller, topics, duration=100)
        publisher.clear()
        # 89 is neither a multiple of 10 nor <= 10, but 11 s passed since the last publish
        await self.tick(controller, clock, seconds=11)
        assert [p["remaining"] for p in timer_payloads(publisher, topics)] == [89]

    async def test_stop_command_turns_pump_off(self, controller, publisher, topics, tickers):
        await self.start(controller, topics, duration=60)
        publisher.clear()

        await send(controller, topics.timer_set, '{"mode":2,"duration":0}')

        assert controller.state.pump is PumpState.OFF
        assert controller.state.timer.active is False
        assert publisher.on(topics.pump_state) == ["OFF"]
        assert timer_payloads(publisher, topics)[-1]["active"] is False
        assert tickers.armed(TIMER_TICKER) == []

    async def test_stop_without_timer_still_reports(self, controller, publisher, topics):
        await send(controller, topics.timer_set, '{"mode":1,"duration":0}')
        assert publisher.on(topics.pump_state) == ["OFF"]
        assert len(publisher.on(topics.timer_state)) == 1

    async def test_restart_cancels_previous_ticker(self, controller, topics, tickers):
        await self.start(controller, topics, duration=60)
        await self.start(controller, topics, duration=30)
        assert len(tickers.armed(TIMER_TICKER)) == 1
        assert controller.state.timer.remaining == 30

    @pytest.mark.parametrize("payload", [
        "not json",
        '{"mode":1}',
        '{"mode":1,"duration":-5}',
        '{"mode":3,"duration":60}',
    ])
    async def test_invalid_commands_are_dropped(self, controller, publisher, topics, payload):
        await send(controller, topics.timer_set, payload)
        assert publisher.published == []
        assert controller.state.timer.active is False


class TestWifiClear:

    async def test_announces_disconnect_erases_and_restarts(self, controller, publisher, topics,
                                                            clock, credentials, resets):
        await send(controller, topics.wifi_clear, b"")

        assert publisher.published == [(topics.wifi_state, '{"status":"disconnected"}', True)]
        assert publisher.disconnects == 1
        assert credentials.cleared == 1
        assert clock.sleeps == [0.1, 2]
        assert resets == [True]


class TestPeriodic:

    def test_start_periodic_arms_tickers(self, controller, tickers):
        controller.start_periodic()
        assert tickers.armed(WIFI_TICKER)[0].interval == 30
        assert tickers.armed(TEMPERATURE_TICKER)[0].interval == 60

    async def test_wifi_tick_publishes_network_state(self, topics, publisher, hardware, clock, tickers):
        controller = PoolController(topics, publisher, hardware, clock=clock,
                                    network=FakeNetwork(), ticker_factory=tickers)
        await controller.handle_event(Event.tick(WIFI_TICKER))

        assert json.loads(publisher.on(topics.wifi_state)[0]) == {
            "status": "connected", "ssid": "Casa", "ip": "192.168.1.20", "rssi": -55, "quality": "good",
        }

    async def test_temperature_tick_formats_one_decimal(self, controller, publisher, topics, hardware):
        hardware.temperature = 27.06
        await controller.handle_event(Event.tick(TEMPERATURE_TICKER))
        assert publisher.on(topics.temperature_state) == ["27.1"]
        assert controller.state.temperature == 27.06

    async def test_invalid_temperature_is_skipped(self, controller, publisher, topics, hardware):
        hardware.temperature = None
        await controller.handle_event(Event.tick(TEMPERATURE_TICKER))
        assert publisher.on(topics.temperature_state) == []

    def test_shutdown_cancels_everything(self, controller, tickers, hardware):
        controller.start_periodic()
        controller.shutdown()
        assert all(t.cancelled for t in tickers.created)
        assert hardware.pump_calls[-1] is False
