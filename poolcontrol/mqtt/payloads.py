"""
Payload codec for every channel.

Decoders raise PayloadError on anything malformed; callers log and drop.
"""

import math
from enum import Enum
from typing import Union

from pydantic import ValidationError

from ..models.state import PumpState, ValveMode, WifiState, TimerState, TimerCommand


class PayloadError(ValueError):
    """A channel payload could not be decoded."""


class PumpCommand(str, Enum):
    ON = "ON"
    OFF = "OFF"
    TOGGLE = "TOGGLE"


class ValveCommand(str, Enum):
    MODE_1 = "1"
    MODE_2 = "2"
    TOGGLE = "TOGGLE"


# Aliases the firmware has always accepted on pump/set
_PUMP_ALIASES = {"1": PumpCommand.ON, "0": PumpCommand.OFF}


def to_text(payload: Union[bytes, str]) -> str:
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise PayloadError(f"payload is not UTF-8: {e}") from e
    return payload.strip()


# =============================================================================
# COMMANDS (surface -> controller)
# =============================================================================

def parse_pump_command(payload) -> PumpCommand:
    text = to_text(payload).upper()
    if text in _PUMP_ALIASES:
        return _PUMP_ALIASES[text]
    try:
        return PumpCommand(text)
    except ValueError:
        raise PayloadError(f"unknown pump command {text!r} (use ON/OFF/TOGGLE)") from None


def parse_valve_command(payload) -> ValveCommand:
    text = to_text(payload).upper()
    try:
        return ValveCommand(text)
    except ValueError:
        raise PayloadError(f"unknown valve command {text!r} (use 1/2/TOGGLE)") from None


def parse_timer_command(payload) -> TimerCommand:
    text = to_text(payload)
    try:
        return TimerCommand.model_validate_json(text)
    except ValidationError as e:
        raise PayloadError(f"timer command must be JSON with mode and duration: {e}") from e


# =============================================================================
# STATE (controller -> surface)
# =============================================================================

def parse_pump_state(payload) -> PumpState:
    text = to_text(payload).upper()
    if text not in (PumpState.ON.value, PumpState.OFF.value):
        raise PayloadError(f"invalid pump state {text!r}")
    return PumpState(text)


def parse_valve_state(payload) -> ValveMode:
    text = to_text(payload)
    if text not in (ValveMode.CASCADE.value, ValveMode.EJECTORS.value):
        raise PayloadError(f"invalid valve state {text!r}")
    return ValveMode(text)


def parse_wifi_state(payload) -> WifiState:
    try:
        return WifiState.model_validate_json(to_text(payload))
    except ValidationError as e:
        raise PayloadError(f"invalid wifi state: {e}") from e


def parse_timer_state(payload) -> TimerState:
    try:
        return TimerState.model_validate_json(to_text(payload))
    except ValidationError as e:
        raise PayloadError(f"invalid timer state: {e}") from e


def parse_temperature(payload) -> float:
    text = to_text(payload)
    try:
        value = float(text)
    except ValueError:
        raise PayloadError(f"invalid temperature {text!r}") from None
    if not math.isfinite(value):
        raise PayloadError(f"invalid temperature {text!r}")
    return value


def format_temperature(value: float) -> str:
    return f"{value:.1f}"
