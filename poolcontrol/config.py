"""Configuration for the pool controller stack"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env file
_repo_root = Path(__file__).parent.parent.resolve()
_env_file = _repo_root / ".env"
if _env_file.exists():
    load_dotenv(_env_file)

# Hardware Platform
SIMULATE_HARDWARE = os.getenv("SIMULATE_HARDWARE", "false").lower() == "true"

# Device identity (used to namespace every topic)
DEVICE_ID = os.getenv("DEVICE_ID", "esp32-pool-01")
TOPIC_PREFIX = os.getenv("TOPIC_PREFIX", "devices")

# MQTT Broker
MQTT_BROKER = os.getenv("MQTT_BROKER", "localhost")
MQTT_PORT = int(os.getenv("MQTT_PORT", "8883"))
MQTT_USERNAME = os.getenv("MQTT_USERNAME", "")
MQTT_PASSWORD = os.getenv("MQTT_PASSWORD", "")
MQTT_TLS = os.getenv("MQTT_TLS", "true").lower() == "true"
MQTT_CA_CERTS = os.getenv("MQTT_CA_CERTS") or None
MQTT_KEEPALIVE = int(os.getenv("MQTT_KEEPALIVE", "60"))
MQTT_RECONNECT_DELAY = int(os.getenv("MQTT_RECONNECT_DELAY", "5"))  # seconds
MQTT_RECONNECT_MAX_DELAY = int(os.getenv("MQTT_RECONNECT_MAX_DELAY", "60"))
MQTT_CONNECT_TIMEOUT = float(os.getenv("MQTT_CONNECT_TIMEOUT", "30"))

# GPIO Pin Configuration (BCM numbering)
VALVE_RELAY_PIN = int(os.getenv("VALVE_RELAY_PIN", "25"))  # LOW = mode 1 (Cascada), HIGH = mode 2 (Eyectores)
PUMP_RELAY_PIN = int(os.getenv("PUMP_RELAY_PIN", "26"))

# DS18B20 probe on the 1-wire bus
W1_DEVICES_DIR = os.getenv("W1_DEVICES_DIR", "/sys/bus/w1/devices")
TEMP_SENSOR_ID = os.getenv("TEMP_SENSOR_ID", "")  # empty = first 28-* device found

# WiFi interface inspected for wifi/state
WIFI_INTERFACE = os.getenv("WIFI_INTERFACE", "wlan0")

# Controller timing (seconds)
VALVE_SWITCH_DELAY = 0.5        # settle time between valve and pump commands
TIMER_TICK_INTERVAL = 1         # countdown resolution
TIMER_PUBLISH_INTERVAL = 10     # fallback timer/state publish period
WIFI_STATE_INTERVAL = 30
TEMP_PUBLISH_INTERVAL = 60
RESET_PUBLISH_PAUSE = 0.1       # let the disconnected wifi state go out
RESET_RESTART_DELAY = 2

# Control surface timing (seconds)
COUNTDOWN_INTERVAL = 1
PROGRAM_CHECK_INTERVAL = 15 * 60

# Programs
MAX_PROGRAMS = 3

# Local storage
DB_PATH = os.getenv("DB_PATH", str(_repo_root / "data" / "pool.db"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = "logs/poolcontrol.log"
