"""MQTT transport: client, topic names and payload codec"""

from .client import MQTTClient
from .topics import Topics
from .payloads import PayloadError

__all__ = ['MQTTClient', 'Topics', 'PayloadError']
