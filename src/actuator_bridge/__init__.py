"""Home Assistant MQTT discovery bridge for a single actuator device."""

__version__ = "0.1.0"
