import logging
import os

from actuator_bridge import __version__

__all__ = [
    "BRIDGE_DEBUG",
    "BRIDGE_DEVICE_ID",
    "BRIDGE_DEVICE_MANUFACTURER",
    "BRIDGE_DEVICE_MODEL",
    "BRIDGE_DEVICE_NAME",
    "BRIDGE_DEVICE_SERIAL",
    "BRIDGE_DISCOVERY_PREFIX",
    "BRIDGE_LIGHT_DEVICE_ID",
    "BRIDGE_LIGHT_OBJECT_ID",
    "BRIDGE_LIGHT_STATE_ECHO",
    "BRIDGE_LOG_FORMAT",
    "BRIDGE_LOG_HUMAN_OUTPUT",
    "BRIDGE_LOG_JSON_FILE",
    "BRIDGE_MQTT_CONN_DELAY",
    "BRIDGE_MQTT_HOST",
    "BRIDGE_MQTT_PASS",
    "BRIDGE_MQTT_PORT",
    "BRIDGE_MQTT_USER",
    "BRIDGE_NUMBER_MAX",
    "BRIDGE_NUMBER_MIN",
    "BRIDGE_OUTPUT_TICK_MS",
    "BRIDGE_PERF_THRESHOLD_MS",
    "BRIDGE_PERF_TRACKING",
    "BRIDGE_SW_VERSION",
    "BRIDGE_VARIANT",
    "BRIDGE_VERSION",
    "DEFAULT_NUMBER_MAX",
    "DEFAULT_NUMBER_MIN",
    "DEVICE_ID_ALPHABET",
    "DEVICE_ID_LENGTH",
    "FOREIGN_LOG_FORMATTER",
    "LIGHT_CHANNEL_MAX",
    "MQTT_CLIENT_START_TASK_NAME",
    "OUTPUT_SINK_START_TASK_NAME",
    "STATE_OFF",
    "STATE_ON",
    "TEXT_MAX_BYTES",
    "YES_ANSWER",
]

YES_ANSWER = ("true", "1", "yes", "y", "t", 1, "on", "o")

# adds logger name
FOREIGN_LOG_FORMATTER = logging.Formatter(
    "%(asctime)s.%(msecs)d %(levelname)s <%(name)s> [%(module)s:%(lineno)d] > %(message)s",
    "%m/%d/%y %H:%M:%S",
)
BRIDGE_VERSION: str = __version__

STATE_ON = "ON"
STATE_OFF = "OFF"
# 12-bit PWM range shared by every light channel and brightness
LIGHT_CHANNEL_MAX: int = 4095
# 64 byte buffer on the device side, one byte reserved for the terminator
TEXT_MAX_BYTES: int = 63
DEVICE_ID_ALPHABET: str = "abcdefghijklmnopqrstuvwxyz0123456789"
DEVICE_ID_LENGTH: int = 6

BRIDGE_VARIANT: str = os.environ.get("BRIDGE_VARIANT", "light").casefold()

BRIDGE_MQTT_HOST = os.environ.get("BRIDGE_MQTT_HOST", "homeassistant.local")
BRIDGE_MQTT_PORT = os.environ.get("BRIDGE_MQTT_PORT", "1883")
BRIDGE_MQTT_USER = os.environ.get("BRIDGE_MQTT_USER")
BRIDGE_MQTT_PASS = os.environ.get("BRIDGE_MQTT_PASS")
_conn_delay = os.environ.get("BRIDGE_MQTT_CONN_DELAY", "10")
try:
    _conn_delay_value: int = int(_conn_delay) if _conn_delay else 10
except ValueError:
    _conn_delay_value = 10
BRIDGE_MQTT_CONN_DELAY: int = _conn_delay_value

BRIDGE_DISCOVERY_PREFIX: str = os.environ.get("BRIDGE_DISCOVERY_PREFIX", "homeassistant")
_device_id = os.environ.get("BRIDGE_DEVICE_ID")
BRIDGE_DEVICE_ID: str | None = _device_id if _device_id else None
# the single light variant announces under a fixed identity
BRIDGE_LIGHT_DEVICE_ID: str = os.environ.get("BRIDGE_LIGHT_DEVICE_ID", "6xalj9")
_light_object_id = os.environ.get("BRIDGE_LIGHT_OBJECT_ID")
# None means "<light device id>_light"
BRIDGE_LIGHT_OBJECT_ID: str | None = _light_object_id if _light_object_id else None
BRIDGE_LIGHT_STATE_ECHO: bool = os.environ.get("BRIDGE_LIGHT_STATE_ECHO", "true").casefold() in YES_ANSWER

BRIDGE_DEVICE_NAME: str = os.environ.get("BRIDGE_DEVICE_NAME", "OngaroLight")
BRIDGE_DEVICE_MANUFACTURER: str = os.environ.get("BRIDGE_DEVICE_MANUFACTURER", "Ongaro")
BRIDGE_DEVICE_MODEL: str = os.environ.get("BRIDGE_DEVICE_MODEL", "blingbling")
BRIDGE_SW_VERSION: str = os.environ.get("BRIDGE_SW_VERSION", "alpha")
_serial = os.environ.get("BRIDGE_DEVICE_SERIAL", "124589")
try:
    _serial_value: int = int(_serial) if _serial else 124589
except ValueError:
    _serial_value = 124589
BRIDGE_DEVICE_SERIAL: int = _serial_value

DEFAULT_NUMBER_MIN: int = 0
DEFAULT_NUMBER_MAX: int = 100
_number_min = os.environ.get("BRIDGE_NUMBER_MIN", str(DEFAULT_NUMBER_MIN))
_number_max = os.environ.get("BRIDGE_NUMBER_MAX", str(DEFAULT_NUMBER_MAX))
try:
    _number_min_value: int = int(_number_min) if _number_min else DEFAULT_NUMBER_MIN
    _number_max_value: int = int(_number_max) if _number_max else DEFAULT_NUMBER_MAX
except ValueError:
    _number_min_value, _number_max_value = DEFAULT_NUMBER_MIN, DEFAULT_NUMBER_MAX
BRIDGE_NUMBER_MIN: int = _number_min_value
BRIDGE_NUMBER_MAX: int = _number_max_value

_tick = os.environ.get("BRIDGE_OUTPUT_TICK_MS", "100")
BRIDGE_OUTPUT_TICK_MS: int = int(_tick) if _tick and _tick.isdigit() and int(_tick) > 0 else 100

BRIDGE_DEBUG = os.environ.get("BRIDGE_DEBUG", "0").casefold() in YES_ANSWER

MQTT_CLIENT_START_TASK_NAME = "MQTTClient_START"
OUTPUT_SINK_START_TASK_NAME = "OutputSink_START"

# Logging Configuration
BRIDGE_LOG_FORMAT: str = os.environ.get("BRIDGE_LOG_FORMAT", "human")  # "json", "human", or "both"
_json_file = os.environ.get("BRIDGE_LOG_JSON_FILE")
BRIDGE_LOG_JSON_FILE: str | None = _json_file if _json_file else None
BRIDGE_LOG_HUMAN_OUTPUT: str = os.environ.get("BRIDGE_LOG_HUMAN_OUTPUT", "stdout")  # "stdout", "stderr", or file path

# Performance Instrumentation
BRIDGE_PERF_TRACKING: bool = os.environ.get("BRIDGE_PERF_TRACKING", "true").casefold() in YES_ANSWER
_perf_threshold = os.environ.get("BRIDGE_PERF_THRESHOLD_MS", "50")
BRIDGE_PERF_THRESHOLD_MS: int = int(_perf_threshold) if _perf_threshold and _perf_threshold.isdigit() else 50
