"""MQTT topic names for one pool device"""

from dataclasses import dataclass
from typing import List

from .. import config


@dataclass(frozen=True)
class Topics:
    """
    Every channel of the protocol, namespaced as <prefix>/<device_id>/<channel>.

    *_set topics carry commands (not retained); *_state topics carry
    controller state (retained).
    """
    pump_set: str
    pump_state: str
    valve_set: str
    valve_state: str
    timer_set: str
    timer_state: str
    wifi_state: str
    wifi_clear: str
    temperature_state: str

    @classmethod
    def for_device(cls, device_id: str = None, prefix: str = None) -> "Topics":
        device_id = device_id or config.DEVICE_ID
        prefix = prefix if prefix is not None else config.TOPIC_PREFIX
        base = f"{prefix}/{device_id}" if prefix else device_id
        return cls(
            pump_set=f"{base}/pump/set",
            pump_state=f"{base}/pump/state",
            valve_set=f"{base}/valve/set",
            valve_state=f"{base}/valve/state",
            timer_set=f"{base}/timer/set",
            timer_state=f"{base}/timer/state",
            wifi_state=f"{base}/wifi/state",
            wifi_clear=f"{base}/wifi/clear",
            temperature_state=f"{base}/temperature/state",
        )

    def command_topics(self) -> List[str]:
        return [self.pump_set, self.valve_set, self.timer_set, self.wifi_clear]

    def state_topics(self) -> List[str]:
        return [self.pump_state, self.valve_state, self.wifi_state,
                self.timer_state, self.temperature_state]
