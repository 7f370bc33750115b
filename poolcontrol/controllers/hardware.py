"""Relay and temperature probe access for the pool controller"""

import glob
import logging
import math
import os
from typing import Optional

from .. import config
from ..models.state import ValveMode

logger = logging.getLogger(__name__)

# Reading reported by a DS18B20 that is wired but not converting
_POWER_ON_RESET_C = 85.0


class PoolHardware:
    """
    Pump relay, valve relay and DS18B20 probe.

    Relay writes are blind: no feedback line exists, so every call is
    assumed to succeed.
    """

    def __init__(self, pump_pin: int = None, valve_pin: int = None, w1_dir: str = None,
                 sensor_id: str = None):
        self.pump_pin = pump_pin or config.PUMP_RELAY_PIN
        self.valve_pin = valve_pin or config.VALVE_RELAY_PIN
        self.w1_dir = w1_dir or config.W1_DEVICES_DIR
        self.sensor_id = sensor_id if sensor_id is not None else config.TEMP_SENSOR_ID
        self.gpio = None

        if not config.SIMULATE_HARDWARE:
            import RPi.GPIO as GPIO
            self.gpio = GPIO
            GPIO.setmode(GPIO.BCM)
            GPIO.setwarnings(False)
            GPIO.setup(self.pump_pin, GPIO.OUT, initial=GPIO.LOW)
            GPIO.setup(self.valve_pin, GPIO.OUT, initial=GPIO.LOW)

        logger.info(f"Pool hardware initialized (pump GPIO {self.pump_pin}, "
                    f"valve GPIO {self.valve_pin})")

    def set_pump(self, on: bool):
        if self.gpio is None:
            logger.info(f"[SIMULATION] Pump relay {'ON' if on else 'OFF'}")
            return
        self.gpio.output(self.pump_pin, self.gpio.HIGH if on else self.gpio.LOW)
        logger.info(f"Pump relay {'ON' if on else 'OFF'}")

    def set_valve(self, mode: ValveMode):
        """LOW selects mode 1 (Cascada), HIGH selects mode 2 (Eyectores)."""
        if self.gpio is None:
            logger.info(f"[SIMULATION] Valve relay: mode {mode.value} ({mode.label})")
            return
        level = self.gpio.HIGH if mode is ValveMode.EJECTORS else self.gpio.LOW
        self.gpio.output(self.valve_pin, level)
        logger.info(f"Valve relay: mode {mode.value} ({mode.label})")

    def _sensor_path(self) -> Optional[str]:
        if self.sensor_id:
            path = os.path.join(self.w1_dir, self.sensor_id, "w1_slave")
            return path if os.path.exists(path) else None
        matches = sorted(glob.glob(os.path.join(self.w1_dir, "28-*", "w1_slave")))
        return matches[0] if matches else None

    def read_temperature(self) -> Optional[float]:
        """Temperature in °C, or None when the probe is missing or the reading is bad."""
        if self.gpio is None and not os.path.isdir(self.w1_dir):
            logger.debug("[SIMULATION] No 1-wire bus, temperature unavailable")
            return None

        path = self._sensor_path()
        if path is None:
            logger.warning("Temperature sensor not found on the 1-wire bus")
            return None

        try:
            with open(path) as f:
                lines = f.read().splitlines()
        except OSError as e:
            logger.error(f"Error reading temperature sensor: {e}")
            return None

        return parse_w1_slave(lines)

    def cleanup(self):
        if self.gpio is not None:
            self.gpio.output(self.pump_pin, self.gpio.LOW)
            self.gpio.cleanup((self.pump_pin, self.valve_pin))
            logger.info("GPIO cleaned up")


def parse_w1_slave(lines) -> Optional[float]:
    """
    Decode the two-line w1_slave file of a DS18B20:

        72 01 4b 46 7f ff 0e 10 57 : crc=57 YES
        72 01 4b 46 7f ff 0e 10 57 t=23125
    """
    if len(lines) < 2 or not lines[0].strip().endswith("YES"):
        logger.warning("Temperature sensor CRC check failed")
        return None
    _, sep, raw = lines[1].partition("t=")
    if not sep:
        logger.warning("Temperature sensor returned no reading")
        return None
    try:
        value = int(raw.strip()) / 1000.0
    except ValueError:
        logger.warning(f"Temperature sensor returned garbage: {raw!r}")
        return None
    if not math.isfinite(value) or value == _POWER_ON_RESET_C:
        logger.warning(f"Discarding invalid temperature reading {value}")
        return None
    return value
