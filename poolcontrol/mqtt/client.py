"""MQTT client shared by the controller and the control surface"""

import json
import logging
import uuid
import paho.mqtt.client as mqtt

from .. import config
from ..core.events import Event, EventBus

logger = logging.getLogger(__name__)

QOS = 0  # at-most-once on every channel


class MQTTClient:
    """
    Thin wrapper over paho.

    paho runs its network loop on its own thread; every callback is turned
    into an Event and posted to the component's bus instead of touching
    component state directly. Reconnection is left to paho.
    """

    def __init__(self, bus: EventBus, client_id: str = None, will: tuple = None,
                 host: str = None, port: int = None,
                 username: str = None, password: str = None, tls: bool = None):
        self.bus = bus
        self.client_id = client_id or f"pool-{uuid.uuid4().hex[:8]}"
        self.host = host or config.MQTT_BROKER
        self.port = port or config.MQTT_PORT
        self.connected = False

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=self.client_id)

        # Set callbacks
        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        # Set credentials if provided
        username = username if username is not None else config.MQTT_USERNAME
        password = password if password is not None else config.MQTT_PASSWORD
        if username and password:
            self.client.username_pw_set(username, password)

        tls = tls if tls is not None else config.MQTT_TLS
        if tls:
            self.client.tls_set(ca_certs=config.MQTT_CA_CERTS)

        # Last will: (topic, payload), published retained by the broker on an unexpected drop
        if will:
            will_topic, will_payload = will
            self.client.will_set(will_topic, will_payload, qos=QOS, retain=True)

        self.client.reconnect_delay_set(min_delay=config.MQTT_RECONNECT_DELAY,
                                        max_delay=config.MQTT_RECONNECT_MAX_DELAY)
        self.client.connect_timeout = config.MQTT_CONNECT_TIMEOUT

        logger.info(f"MQTT client initialized (client_id={self.client_id})")

    def connect(self):
        """Start connecting in the background; paho keeps retrying on failure."""
        logger.info(f"Connecting to MQTT broker at {self.host}:{self.port}")
        self.client.connect_async(self.host, self.port, config.MQTT_KEEPALIVE)
        self.client.loop_start()

    def disconnect(self):
        """Disconnect from MQTT broker"""
        self.client.disconnect()
        self.client.loop_stop()
        self.connected = False
        logger.info("Disconnected from MQTT broker")

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        """Callback when connected"""
        if reason_code.is_failure:
            logger.error(f"Failed to connect to MQTT broker: {reason_code}")
            return
        self.connected = True
        logger.info("Connected to MQTT broker successfully")
        self.bus.post(Event.connected())

    def _on_disconnect(self, client, userdata, disconnect_flags, reason_code, properties=None):
        """Callback when disconnected"""
        was_connected = self.connected
        self.connected = False
        if reason_code.is_failure:
            logger.warning(f"Unexpected MQTT disconnection ({reason_code})")
        else:
            logger.info("Disconnected from MQTT broker")
        if was_connected:
            self.bus.post(Event.disconnected(str(reason_code)))

    def _on_message(self, client, userdata, msg):
        """Callback when message received"""
        logger.debug(f"Received MQTT message - Topic: {msg.topic}, Payload: {msg.payload!r}")
        self.bus.post(Event.message(msg.topic, msg.payload))

    def subscribe(self, topic: str):
        result, _ = self.client.subscribe(topic, qos=QOS)
        if result == mqtt.MQTT_ERR_SUCCESS:
            logger.info(f"Subscribed to {topic}")
        else:
            logger.error(f"Subscription to {topic} failed (rc={result})")

    def publish(self, topic: str, payload, retain: bool = False) -> bool:
        """Publish a message; never blocks on acknowledgment."""
        if isinstance(payload, dict):
            payload = json.dumps(payload)

        if not self.connected:
            logger.warning(f"Cannot publish to {topic} - MQTT not connected")
            return False

        info = self.client.publish(topic, payload, qos=QOS, retain=retain)
        ok = info.rc == mqtt.MQTT_ERR_SUCCESS
        logger.debug(f"Published to {topic}: {payload} {'OK' if ok else 'FAIL'}")
        return ok

