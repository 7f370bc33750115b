"""Models package"""

from .state import (
    PumpState,
    ValveMode,
    WifiQuality,
    WifiState,
    TimerState,
    TimerCommand,
    DeviceState,
    MirrorState,
    quality_for_rssi,
)
from .program import DaySchedule, Program, ExecutionState, ManualOverride

__all__ = [
    'PumpState', 'ValveMode', 'WifiQuality', 'WifiState', 'TimerState', 'TimerCommand',
    'DeviceState', 'MirrorState', 'quality_for_rssi',
    'DaySchedule', 'Program', 'ExecutionState', 'ManualOverride',
]
