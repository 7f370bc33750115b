"""Pool pump and valve control over MQTT"""

__version__ = "1.0.0"
