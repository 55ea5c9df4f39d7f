"""Core data structures and typing protocols for the actuator bridge."""

from __future__ import annotations

import asyncio
import os
from argparse import Namespace
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, ClassVar, Protocol

import uvloop
from pydantic import BaseModel

from actuator_bridge.const import (
    BRIDGE_DEVICE_MANUFACTURER,
    BRIDGE_DEVICE_MODEL,
    BRIDGE_DEVICE_NAME,
    BRIDGE_DEVICE_SERIAL,
    BRIDGE_LIGHT_DEVICE_ID,
    BRIDGE_LIGHT_OBJECT_ID,
    BRIDGE_NUMBER_MAX,
    BRIDGE_NUMBER_MIN,
    BRIDGE_SW_VERSION,
    DEFAULT_NUMBER_MAX,
    DEFAULT_NUMBER_MIN,
    YES_ANSWER,
)


class EntityKind(StrEnum):
    """Home Assistant MQTT platforms this bridge can expose."""

    LIGHT = "light"
    SWITCH = "switch"
    NUMBER = "number"
    TEXT = "text"


class BridgeVariant(StrEnum):
    """Fixed entity sets a bridge instance can run with."""

    LIGHT = "light"
    MULTI = "multi"

    @property
    def kinds(self) -> tuple[EntityKind, ...]:
        if self is BridgeVariant.LIGHT:
            return (EntityKind.LIGHT,)
        return (EntityKind.SWITCH, EntityKind.NUMBER, EntityKind.TEXT)


class LinkState(StrEnum):
    """Broker link state tracked by the event dispatcher."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


DEFAULT_ENTITY_NAMES: dict[EntityKind, str] = {
    EntityKind.LIGHT: "REGEBELEEGHT",
    EntityKind.SWITCH: "Relay",
    EntityKind.NUMBER: "Level",
    EntityKind.TEXT: "Message",
}


@dataclass(frozen=True, slots=True)
class EntityTopics:
    """Discovery config, command and state topics for one entity."""

    config: str
    command: str
    state: str


@dataclass(frozen=True, slots=True)
class Entity:
    """One controllable unit exposed to Home Assistant."""

    kind: EntityKind
    name: str
    object_id: str
    topics: EntityTopics
    min_value: int | None = None
    max_value: int | None = None
    max_length: int | None = None


class DeviceInfo(BaseModel):
    """Device registry details announced alongside every entity."""

    identity: str
    name: str = BRIDGE_DEVICE_NAME
    manufacturer: str = BRIDGE_DEVICE_MANUFACTURER
    model: str = BRIDGE_DEVICE_MODEL
    sw_version: str = BRIDGE_SW_VERSION
    serial_number: int | None = BRIDGE_DEVICE_SERIAL


class TransportProtocol(Protocol):
    """Operations the dispatcher issues back to the messaging transport."""

    async def subscribe(self, topic: str) -> bool:
        """Subscribe to a topic on the current session."""
        ...

    async def publish(self, topic: str, payload: bytes, retain: bool = False) -> bool:
        """Publish a payload, returning False when the broker rejected it."""
        ...


class OutputPin(Protocol):
    """Physical (or simulated) output driven by the output sink."""

    def setup(self) -> None:
        """Configure the pin as an output."""
        ...

    def set_level(self, level: bool) -> None:
        """Drive the pin high (True) or low (False)."""
        ...


class BridgeEnv(BaseModel):
    """Environment-derived settings, re-read by ``GlobalObject.reload_env``."""

    variant: str = "light"
    mqtt_host: str = "homeassistant.local"
    mqtt_port: int = 1883
    mqtt_user: str | None = None
    mqtt_pass: str | None = None
    mqtt_conn_delay: int = 10
    discovery_prefix: str = "homeassistant"
    device_id: str | None = None
    light_state_echo: bool = True
    output_tick_ms: int = 100
    light_device_id: str = BRIDGE_LIGHT_DEVICE_ID
    light_object_id: str | None = BRIDGE_LIGHT_OBJECT_ID
    number_min: int = BRIDGE_NUMBER_MIN
    number_max: int = BRIDGE_NUMBER_MAX
    device_name: str = BRIDGE_DEVICE_NAME
    device_manufacturer: str = BRIDGE_DEVICE_MANUFACTURER
    device_model: str = BRIDGE_DEVICE_MODEL
    sw_version: str = BRIDGE_SW_VERSION
    device_serial: int = BRIDGE_DEVICE_SERIAL

    def device_defaults(self) -> dict[str, Any]:
        """Device registry fields for ``DeviceInfo``, before device file overrides."""
        return {
            "name": self.device_name,
            "manufacturer": self.device_manufacturer,
            "model": self.device_model,
            "sw_version": self.sw_version,
            "serial_number": self.device_serial,
        }


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


class GlobalObject:
    """Singleton container for process-level services.

    The device state is deliberately not held here; it is owned by the
    controller and handed to each component explicitly.
    """

    controller: Any = None
    mqtt_client: Any = None
    output_sink: Any = None
    loop: uvloop.Loop | asyncio.AbstractEventLoop | None = None
    tasks: ClassVar[list[asyncio.Task[Any]]] = []
    env: BridgeEnv = BridgeEnv()
    cli_args: Namespace | None = None

    _instance: GlobalObject | None = None

    def __new__(cls, *_args: Any, **_kwargs: Any) -> GlobalObject:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def reload_env(self) -> None:
        """Re-evaluate environment variables (after a ``.env`` file is loaded)."""
        self.env.variant = os.environ.get("BRIDGE_VARIANT", "light").casefold()
        self.env.mqtt_host = os.environ.get("BRIDGE_MQTT_HOST", "homeassistant.local")
        self.env.mqtt_port = int(os.environ.get("BRIDGE_MQTT_PORT", "1883"))
        self.env.mqtt_user = os.environ.get("BRIDGE_MQTT_USER")
        self.env.mqtt_pass = os.environ.get("BRIDGE_MQTT_PASS")
        self.env.mqtt_conn_delay = int(os.environ.get("BRIDGE_MQTT_CONN_DELAY", "10"))
        self.env.discovery_prefix = os.environ.get("BRIDGE_DISCOVERY_PREFIX", "homeassistant")
        self.env.device_id = os.environ.get("BRIDGE_DEVICE_ID") or None
        self.env.light_state_echo = os.environ.get("BRIDGE_LIGHT_STATE_ECHO", "true").casefold() in YES_ANSWER
        self.env.output_tick_ms = int(os.environ.get("BRIDGE_OUTPUT_TICK_MS", "100"))
        self.env.light_device_id = os.environ.get("BRIDGE_LIGHT_DEVICE_ID") or "6xalj9"
        self.env.light_object_id = os.environ.get("BRIDGE_LIGHT_OBJECT_ID") or None
        self.env.number_min = _env_int("BRIDGE_NUMBER_MIN", DEFAULT_NUMBER_MIN)
        self.env.number_max = _env_int("BRIDGE_NUMBER_MAX", DEFAULT_NUMBER_MAX)
        self.env.device_name = os.environ.get("BRIDGE_DEVICE_NAME", "OngaroLight")
        self.env.device_manufacturer = os.environ.get("BRIDGE_DEVICE_MANUFACTURER", "Ongaro")
        self.env.device_model = os.environ.get("BRIDGE_DEVICE_MODEL", "blingbling")
        self.env.sw_version = os.environ.get("BRIDGE_SW_VERSION", "alpha")
        self.env.device_serial = _env_int("BRIDGE_DEVICE_SERIAL", 124589)
