"""
Device state models shared by the controller and the control surface.

The controller owns a DeviceState; every surface keeps a MirrorState built
only from retained state messages.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field

# WiFi signal quality thresholds (dBm)
RSSI_EXCELLENT = -50
RSSI_GOOD = -60
RSSI_FAIR = -70


# =============================================================================
# ENUMS
# =============================================================================

class PumpState(str, Enum):
    ON = "ON"
    OFF = "OFF"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_bool(cls, on: bool) -> "PumpState":
        return cls.ON if on else cls.OFF

    @property
    def is_on(self) -> bool:
        return self is PumpState.ON


class ValveMode(str, Enum):
    CASCADE = "1"   # Cascada
    EJECTORS = "2"  # Eyectores
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_number(cls, number: int) -> "ValveMode":
        if number == 1:
            return cls.CASCADE
        if number == 2:
            return cls.EJECTORS
        raise ValueError(f"Invalid valve mode: {number}")

    @property
    def number(self) -> Optional[int]:
        if self is ValveMode.UNKNOWN:
            return None
        return int(self.value)

    @property
    def label(self) -> str:
        return MODE_NAMES.get(self.number, "?")

    def other(self) -> "ValveMode":
        return ValveMode.EJECTORS if self is ValveMode.CASCADE else ValveMode.CASCADE


MODE_NAMES = {1: "Cascada", 2: "Eyectores"}


class WifiQuality(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    WEAK = "weak"


def quality_for_rssi(rssi: int) -> WifiQuality:
    """Map an RSSI reading to a quality bucket."""
    if rssi >= RSSI_EXCELLENT:
        return WifiQuality.EXCELLENT
    if rssi >= RSSI_GOOD:
        return WifiQuality.GOOD
    if rssi >= RSSI_FAIR:
        return WifiQuality.FAIR
    return WifiQuality.WEAK


# =============================================================================
# DATA MODELS
# =============================================================================

class WifiState(BaseModel):
    status: Literal["connected", "disconnected"]
    ssid: Optional[str] = None
    ip: Optional[str] = None
    rssi: Optional[int] = None
    quality: Optional[WifiQuality] = None

    @classmethod
    def connected(cls, ssid: str, ip: str, rssi: int) -> "WifiState":
        return cls(status="connected", ssid=ssid, ip=ip, rssi=rssi,
                   quality=quality_for_rssi(rssi))

    @classmethod
    def disconnected(cls) -> "WifiState":
        return cls(status="disconnected")

    @property
    def is_connected(self) -> bool:
        return self.status == "connected"

    def to_payload(self) -> str:
        return self.model_dump_json(exclude_none=True)


class TimerState(BaseModel):
    """Timer snapshot as carried on timer/state."""
    active: bool = False
    remaining: int = Field(default=0, ge=0)
    mode: int = 1
    duration: int = Field(default=0, ge=0)

    def to_payload(self) -> str:
        return self.model_dump_json()


class TimerCommand(BaseModel):
    """Payload of timer/set. duration == 0 means stop."""
    mode: int = 1
    duration: int = Field(ge=0)

    @property
    def is_stop(self) -> bool:
        return self.duration == 0

    def to_payload(self) -> str:
        return self.model_dump_json()


class DeviceState(BaseModel):
    """Ground truth held by the controller."""
    pump: PumpState = PumpState.OFF
    valve: ValveMode = ValveMode.CASCADE
    wifi: WifiState = Field(default_factory=WifiState.disconnected)
    temperature: Optional[float] = None
    timer: TimerState = Field(default_factory=TimerState)


class MirrorState(BaseModel):
    """What a control surface believes, built from retained state messages."""
    pump: PumpState = PumpState.UNKNOWN
    valve: ValveMode = ValveMode.UNKNOWN
    wifi: Optional[WifiState] = None
    temperature: Optional[float] = None
    timer: Optional[TimerState] = None

    def reset(self):
        """Forget everything; values come back with the next retained messages."""
        self.pump = PumpState.UNKNOWN
        self.valve = ValveMode.UNKNOWN
        self.wifi = None
        self.temperature = None
        self.timer = None
